"""Built-in rule templates a quiz owner can start from."""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from .actions import Action, ActionKind
from .conditions import Condition, ConditionType, Operator, RuleFormatError, parse_enum
from .rules import Rule, RuleStats


class TemplateCategory(str, Enum):
    SALES = "sales"
    SUPPORT = "support"
    MARKETING = "marketing"
    LEAD_QUALIFICATION = "lead_qualification"


@dataclass
class RedirectTemplate:
    id: str
    name: str
    description: str
    category: TemplateCategory
    conditions: List[Condition]
    action: Action
    tags: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RedirectTemplate":
        for key in ("id", "action"):
            if not data.get(key):
                raise RuleFormatError(f"Template is missing '{key}'.")
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            description=str(data.get("description", "")),
            category=parse_enum(TemplateCategory, data.get("category", "marketing"), "template category"),
            conditions=[Condition.from_dict(c) for c in data.get("conditions") or []],
            action=Action.from_dict(data["action"]),
            tags=[str(tag) for tag in data.get("tags") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "conditions": [c.to_dict() for c in self.conditions],
            "action": self.action.to_dict(),
            "tags": list(self.tags),
        }


DEFAULT_TEMPLATES: List[RedirectTemplate] = [
    RedirectTemplate(
        id="high_score_sales",
        name="Sales - High Score",
        description="Send high scorers straight to the sales team.",
        category=TemplateCategory.SALES,
        conditions=[
            Condition("total_score", Operator.GREATER_THAN, 80, id="score_high", type=ConditionType.SCORE, weight=1),
        ],
        action=Action(
            kind=ActionKind.BUSINESS_MESSAGE,
            destination="your_business_id",
            message_template=(
                "Hi! You did great on our quiz ({{total_score}} points). "
                "Can we talk about how we can help you even more?"
            ),
            delay_ms=2000,
            tracking_params={"source": "quiz_high_score", "campaign": "sales_qualified"},
        ),
        tags=["sales", "high-intent", "qualified"],
    ),
    RedirectTemplate(
        id="support_needed",
        name="Support - Help Needed",
        description="Route people whose outcome says they need help to support.",
        category=TemplateCategory.SUPPORT,
        conditions=[
            Condition("result_type", Operator.EQUALS, "needs_help", id="outcome_help", type=ConditionType.OUTCOME, weight=1),
        ],
        action=Action(
            kind=ActionKind.DIRECT_MESSAGE,
            destination="+5511999999999",
            message_template="Hi! Looks like you could use a hand. How can I help?",
            delay_ms=1000,
            tracking_params={"source": "quiz_support", "type": "help_needed"},
        ),
        tags=["support", "help", "assistance"],
    ),
    RedirectTemplate(
        id="lead_qualification",
        name="Lead Qualification",
        description="Invite qualified decision makers to the leaders group.",
        category=TemplateCategory.LEAD_QUALIFICATION,
        conditions=[
            Condition(
                "target_audience", Operator.EQUALS, "decision_maker",
                id="profile_match", type=ConditionType.PROFILE, weight=0.8,
            ),
            Condition(
                "company_size", Operator.IN_LIST, ["medium", "large", "enterprise"],
                id="company_size", type=ConditionType.CUSTOM, weight=0.6,
            ),
        ],
        action=Action(
            kind=ActionKind.GROUP_INVITE,
            destination="your_group_code",
            message_template="Congratulations! You qualified for our private leaders group.",
            delay_ms=3000,
            tracking_params={"source": "quiz_qualified", "segment": "decision_makers"},
        ),
        tags=["qualification", "decision-maker", "exclusive"],
    ),
    RedirectTemplate(
        id="marketing_nurture",
        name="Marketing Nurture",
        description="Keep mid-range scorers warm with tailored tips.",
        category=TemplateCategory.MARKETING,
        conditions=[
            Condition("total_score", Operator.BETWEEN, [40, 79], id="score_medium", type=ConditionType.SCORE, weight=1),
        ],
        action=Action(
            kind=ActionKind.DIRECT_MESSAGE,
            destination="+5511888888888",
            message_template="Thanks for taking our quiz! Want tips tailored to your result?",
            delay_ms=5000,
            tracking_params={"source": "quiz_nurture", "score_range": "medium"},
        ),
        tags=["nurturing", "medium-intent", "education"],
    ),
]

BUILTIN_TEMPLATE_IDS = frozenset(template.id for template in DEFAULT_TEMPLATES)


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def find_template(template_id: str, extra: Optional[List[RedirectTemplate]] = None) -> Optional[RedirectTemplate]:
    for template in [*DEFAULT_TEMPLATES, *(extra or [])]:
        if template.id == template_id:
            return template
    return None


def rule_from_template(template: RedirectTemplate, priority: int) -> Rule:
    conditions = []
    for condition in template.conditions:
        fresh = copy.deepcopy(condition)
        fresh.id = new_id(f"condition_{condition.id}")
        conditions.append(fresh)
    return Rule(
        id=new_id("rule"),
        name=template.name,
        description=template.description,
        enabled=True,
        priority=priority,
        conditions=conditions,
        action=copy.deepcopy(template.action),
        analytics=RuleStats(),
    )
