"""Redirect action descriptor."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from .conditions import RuleFormatError, parse_enum


class ActionKind(str, Enum):
    DIRECT_MESSAGE = "direct_message"
    BUSINESS_MESSAGE = "business_message"
    GROUP_INVITE = "group_invite"
    CUSTOM_URL = "custom_url"


DESTINATION_LABELS: Dict[ActionKind, str] = {
    ActionKind.DIRECT_MESSAGE: "phone number",
    ActionKind.BUSINESS_MESSAGE: "business id",
    ActionKind.GROUP_INVITE: "group invite code",
    ActionKind.CUSTOM_URL: "URL",
}


@dataclass
class Action:
    kind: ActionKind
    destination: str = ""
    message_template: str = ""
    delay_ms: Optional[int] = None
    tracking_params: Dict[str, str] = field(default_factory=dict)
    show_confirmation: bool = True

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Action":
        if "kind" not in data:
            raise RuleFormatError("Action is missing 'kind'.")
        delay = data.get("delay_ms")
        if delay is not None:
            try:
                delay = max(0, int(delay))
            except (TypeError, ValueError) as exc:
                raise RuleFormatError(f"Invalid delay_ms '{delay}'.") from exc
        return cls(
            kind=parse_enum(ActionKind, data["kind"], "action kind"),
            destination=str(data.get("destination") or ""),
            message_template=str(data.get("message_template") or ""),
            delay_ms=delay,
            tracking_params={str(k): str(v) for k, v in (data.get("tracking_params") or {}).items()},
            show_confirmation=bool(data.get("show_confirmation", True)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "destination": self.destination,
            "message_template": self.message_template,
            "delay_ms": self.delay_ms,
            "tracking_params": dict(self.tracking_params),
            "show_confirmation": self.show_confirmation,
        }
