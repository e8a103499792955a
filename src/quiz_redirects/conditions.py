"""Condition model and the operator dispatch used to match result data."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional


class RuleFormatError(ValueError):
    """Raised when a stored rule document cannot be parsed."""


class Operator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    BETWEEN = "between"
    CONTAINS = "contains"
    IN_LIST = "in_list"


class ConditionType(str, Enum):
    SCORE = "score"
    OUTCOME = "outcome"
    PROFILE = "profile"
    TIME = "time"
    DEVICE = "device"
    LOCATION = "location"
    CUSTOM = "custom"


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


def parse_enum(enum_cls, raw: Any, label: str):
    try:
        return enum_cls(raw)
    except ValueError as exc:
        raise RuleFormatError(f"Unknown {label} '{raw}'.") from exc


@dataclass
class Condition:
    field: str
    operator: Operator
    value: Any
    id: str = ""
    type: ConditionType = ConditionType.CUSTOM
    weight: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Condition":
        if "operator" not in data:
            raise RuleFormatError("Condition is missing 'operator'.")
        return cls(
            field=str(data.get("field", "")),
            operator=parse_enum(Operator, data["operator"], "operator"),
            value=data.get("value"),
            id=str(data.get("id", "")),
            type=parse_enum(ConditionType, data.get("type", "custom"), "condition type"),
            weight=data.get("weight"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "field": self.field,
            "operator": self.operator.value,
            "value": self.value,
        }
        if self.weight is not None:
            data["weight"] = self.weight
        return data


# Coercion table shared by every operator.

def to_number(value: Any) -> float:
    if value is MISSING:
        return math.nan
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        try:
            return float(value)
        except OverflowError:
            return math.nan
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            return float(text)
        except ValueError:
            return math.nan
    return math.nan


def to_text(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(to_text(item) for item in value)
    return str(value)


def strict_equals(left: Any, right: Any) -> bool:
    if left is MISSING or right is MISSING:
        return False
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        return left == right
    if isinstance(left, (list, tuple, dict)) or isinstance(right, (list, tuple, dict)):
        return left is right
    return type(left) is type(right) and left == right


def _between(actual: Any, bounds: Any) -> bool:
    if not isinstance(bounds, (list, tuple)) or len(bounds) != 2:
        return False
    number = to_number(actual)
    return to_number(bounds[0]) <= number <= to_number(bounds[1])


def _contains(actual: Any, needle: Any) -> bool:
    if actual is MISSING:
        return False
    return to_text(needle) in to_text(actual)


def _in_list(actual: Any, options: Any) -> bool:
    if not isinstance(options, (list, tuple)):
        return False
    return any(strict_equals(actual, option) for option in options)


_DISPATCH: Dict[Operator, Callable[[Any, Any], bool]] = {
    Operator.EQUALS: strict_equals,
    Operator.NOT_EQUALS: lambda actual, expected: not strict_equals(actual, expected),
    Operator.GREATER_THAN: lambda actual, expected: to_number(actual) > to_number(expected),
    Operator.LESS_THAN: lambda actual, expected: to_number(actual) < to_number(expected),
    Operator.BETWEEN: _between,
    Operator.CONTAINS: _contains,
    Operator.IN_LIST: _in_list,
}


def matches(condition: Condition, result_data: Mapping[str, Any]) -> bool:
    """Return True when ``result_data`` satisfies ``condition``.

    Never raises: a condition that cannot be evaluated counts as not matching.
    """
    handler = _DISPATCH.get(condition.operator)
    if handler is None:
        return False
    actual = result_data.get(condition.field, MISSING)
    try:
        return bool(handler(actual, condition.value))
    except (TypeError, ValueError, ArithmeticError):
        return False
