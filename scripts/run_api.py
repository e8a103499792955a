#!/usr/bin/env python3
"""Run the redirect rules API."""

from __future__ import annotations

import os

import uvicorn

from backend.app import app


if __name__ == "__main__":  # pragma: no cover
    uvicorn.run(app, host=os.environ.get("HOST", "127.0.0.1"), port=int(os.environ.get("PORT", "8002")))
