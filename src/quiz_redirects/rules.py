"""Rule, stats and schedule models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time, timezone
from typing import Any, Dict, List, Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .actions import Action
from .conditions import Condition, RuleFormatError, matches

WEEKDAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


def parse_clock(text: str) -> time:
    hours, _, minutes = text.partition(":")
    return time(int(hours), int(minutes or 0))


@dataclass
class RuleStats:
    total_triggers: int = 0
    successful_redirects: int = 0
    failed_redirects: int = 0
    conversion_rate: float = 0.0
    last_triggered_at: Optional[datetime] = None
    average_response_time_ms: float = 0.0
    response_samples: int = 0
    device_breakdown: Dict[str, int] = field(default_factory=dict)
    location_breakdown: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "RuleStats":
        if not data:
            return cls()
        last = data.get("last_triggered_at")
        try:
            return cls(
                total_triggers=int(data.get("total_triggers", 0)),
                successful_redirects=int(data.get("successful_redirects", 0)),
                failed_redirects=int(data.get("failed_redirects", 0)),
                conversion_rate=float(data.get("conversion_rate", 0.0)),
                last_triggered_at=datetime.fromisoformat(last) if last else None,
                average_response_time_ms=float(data.get("average_response_time_ms", 0.0)),
                response_samples=int(data.get("response_samples", 0)),
                device_breakdown=dict(data.get("device_breakdown") or {}),
                location_breakdown=dict(data.get("location_breakdown") or {}),
            )
        except (TypeError, ValueError) as exc:
            raise RuleFormatError(f"Invalid analytics block: {exc}") from exc

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_triggers": self.total_triggers,
            "successful_redirects": self.successful_redirects,
            "failed_redirects": self.failed_redirects,
            "conversion_rate": self.conversion_rate,
            "last_triggered_at": self.last_triggered_at.isoformat() if self.last_triggered_at else None,
            "average_response_time_ms": self.average_response_time_ms,
            "response_samples": self.response_samples,
            "device_breakdown": dict(self.device_breakdown),
            "location_breakdown": dict(self.location_breakdown),
        }


@dataclass
class Schedule:
    """Working hours outside of which a rule falls back or stays silent."""

    enabled: bool = False
    timezone: str = "UTC"
    start: str = "09:00"
    end: str = "18:00"
    days: List[str] = field(default_factory=lambda: list(WEEKDAYS[:5]))
    fallback_action: Optional[Action] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional["Schedule"]:
        if not data:
            return None
        fallback = data.get("fallback_action")
        days = data.get("days", WEEKDAYS[:5])
        if isinstance(days, str):
            days = [days]
        elif not isinstance(days, (list, tuple)):
            raise RuleFormatError("Schedule 'days' must be a list of weekday names.")
        return cls(
            enabled=bool(data.get("enabled", False)),
            timezone=str(data.get("timezone", "UTC")),
            start=str(data.get("start", "09:00")),
            end=str(data.get("end", "18:00")),
            days=[str(day).lower()[:3] for day in days],
            fallback_action=Action.from_dict(fallback) if fallback else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "timezone": self.timezone,
            "start": self.start,
            "end": self.end,
            "days": list(self.days),
            "fallback_action": self.fallback_action.to_dict() if self.fallback_action else None,
        }

    def is_open(self, now: datetime) -> bool:
        # A schedule that cannot be read never blocks a rule; validation reports it.
        try:
            zone = ZoneInfo(self.timezone)
            start = parse_clock(self.start)
            end = parse_clock(self.end)
        except (ZoneInfoNotFoundError, ValueError):
            return True
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        local = now.astimezone(zone)
        if WEEKDAYS[local.weekday()] not in self.days:
            return False
        clock = local.time().replace(tzinfo=None)
        if start <= end:
            return start <= clock < end
        # overnight window
        return clock >= start or clock < end


@dataclass
class Rule:
    id: str
    name: str
    action: Action
    conditions: List[Condition] = field(default_factory=list)
    enabled: bool = True
    priority: int = 0
    description: str = ""
    schedule: Optional[Schedule] = None
    analytics: RuleStats = field(default_factory=RuleStats)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Rule":
        if "action" not in data:
            raise RuleFormatError(f"Rule '{data.get('id', '?')}' is missing 'action'.")
        try:
            priority = int(data.get("priority", 0))
        except (TypeError, ValueError) as exc:
            raise RuleFormatError(f"Invalid priority '{data.get('priority')}'.") from exc
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            action=Action.from_dict(data["action"]),
            conditions=[Condition.from_dict(c) for c in data.get("conditions") or []],
            enabled=bool(data.get("enabled", True)),
            priority=priority,
            description=str(data.get("description", "")),
            schedule=Schedule.from_dict(data.get("schedule")),
            analytics=RuleStats.from_dict(data.get("analytics")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "enabled": self.enabled,
            "priority": self.priority,
            "conditions": [c.to_dict() for c in self.conditions],
            "action": self.action.to_dict(),
            "schedule": self.schedule.to_dict() if self.schedule else None,
            "analytics": self.analytics.to_dict(),
        }


def is_triggered(rule: Rule, result_data: Mapping[str, Any]) -> bool:
    # all() over an empty list is True: a rule without conditions is a catch-all.
    return all(matches(condition, result_data) for condition in rule.conditions)


def rules_from_dicts(items: List[Mapping[str, Any]]) -> List[Rule]:
    return [Rule.from_dict(item) for item in items]


def rules_to_dicts(rules: List[Rule]) -> List[Dict[str, Any]]:
    return [rule.to_dict() for rule in rules]
