"""Render message templates and build redirect URLs."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Mapping
from urllib.parse import quote, quote_plus, urlencode

from .actions import Action, ActionKind
from .conditions import to_text

WA_ME_BASE = "https://wa.me/"
GROUP_INVITE_BASE = "https://chat.whatsapp.com/"

_PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\}\}")
_NON_DIGITS_RE = re.compile(r"[^0-9]")
# Characters encodeURIComponent leaves alone besides alphanumerics.
_URI_COMPONENT_SAFE = "-_.!~*'()"


@dataclass(frozen=True)
class ResolvedRedirect:
    url: str
    message: str

    def to_dict(self) -> dict:
        return {"url": self.url, "message": self.message}


def render_template(template: str, result_data: Mapping[str, Any]) -> str:
    """Replace ``{{field}}`` tokens in a single pass; unknown fields stay verbatim."""

    def _lookup(match: "re.Match[str]") -> str:
        name = match.group(1)
        if name not in result_data:
            return match.group(0)
        return to_text(result_data[name])

    return _PLACEHOLDER_RE.sub(_lookup, template)


def encode_component(text: str) -> str:
    return quote(text, safe=_URI_COMPONENT_SAFE)


def base_url(action: Action, message: str) -> str:
    encoded = encode_component(message)
    if action.kind == ActionKind.DIRECT_MESSAGE:
        digits = _NON_DIGITS_RE.sub("", action.destination)
        return f"{WA_ME_BASE}{digits}?text={encoded}"
    if action.kind == ActionKind.BUSINESS_MESSAGE:
        return f"{WA_ME_BASE}{action.destination}?text={encoded}"
    if action.kind == ActionKind.GROUP_INVITE:
        return f"{GROUP_INVITE_BASE}{action.destination}"
    return action.destination


def append_tracking(url: str, params: Mapping[str, str]) -> str:
    if not params:
        return url
    query = urlencode(list(params.items()), quote_via=quote_plus, safe="*")
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{query}"


def resolve(action: Action, result_data: Mapping[str, Any]) -> ResolvedRedirect:
    message = render_template(action.message_template, result_data)
    url = append_tracking(base_url(action, message), action.tracking_params)
    return ResolvedRedirect(url=url, message=message)
