"""Redirect counters and per-quiz summaries."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional

from .rules import Rule, RuleStats


@dataclass(frozen=True)
class AnalyticsSummary:
    total_triggers: int
    total_successful: int
    average_conversion: float
    active_rules: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "total_triggers": self.total_triggers,
            "total_successful": self.total_successful,
            "average_conversion": self.average_conversion,
            "active_rules": self.active_rules,
        }


def conversion_rate(successful: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(successful / total * 100, 2)


def record_redirect(
    stats: RuleStats,
    success: bool,
    *,
    device: Optional[str] = None,
    location: Optional[str] = None,
    response_time_ms: Optional[float] = None,
    now: Optional[datetime] = None,
) -> RuleStats:
    """Count one firing of a rule. Mutates and returns ``stats``."""
    stats.total_triggers += 1
    if success:
        stats.successful_redirects += 1
    else:
        stats.failed_redirects += 1
    stats.conversion_rate = conversion_rate(stats.successful_redirects, stats.total_triggers)
    if response_time_ms is not None:
        # running mean over the triggers that reported a timing
        samples = stats.response_samples
        stats.average_response_time_ms = (
            stats.average_response_time_ms * samples + float(response_time_ms)
        ) / (samples + 1)
        stats.response_samples = samples + 1
    if device:
        stats.device_breakdown[device] = stats.device_breakdown.get(device, 0) + 1
    if location:
        stats.location_breakdown[location] = stats.location_breakdown.get(location, 0) + 1
    stats.last_triggered_at = now or datetime.now(timezone.utc)
    return stats


def reset_stats(stats: RuleStats) -> RuleStats:
    stats.total_triggers = 0
    stats.successful_redirects = 0
    stats.failed_redirects = 0
    stats.conversion_rate = 0.0
    stats.last_triggered_at = None
    stats.average_response_time_ms = 0.0
    stats.response_samples = 0
    stats.device_breakdown.clear()
    stats.location_breakdown.clear()
    return stats


def summarize(rules: Iterable[Rule]) -> AnalyticsSummary:
    rules = list(rules)
    total = sum(rule.analytics.total_triggers for rule in rules)
    successful = sum(rule.analytics.successful_redirects for rule in rules)
    return AnalyticsSummary(
        total_triggers=total,
        total_successful=successful,
        average_conversion=conversion_rate(successful, total),
        active_rules=sum(1 for rule in rules if rule.enabled),
    )
