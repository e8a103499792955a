from datetime import datetime
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from . import config
from .stores import build_manager

from quiz_redirects.conditions import RuleFormatError
from quiz_redirects.manager import RedirectRuleManager, RuleNotFoundError
from quiz_redirects.rest_repository import StoreError
from quiz_redirects.rules import Rule
from quiz_redirects.validation import RuleValidationError


class RuleCreateRequest(BaseModel):
    name: Optional[str] = None


class RuleUpdateRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    enabled: Optional[bool] = None
    priority: Optional[int] = None
    action: Optional[Dict[str, Any]] = None
    schedule: Optional[Dict[str, Any]] = None
    conditions: Optional[List[Dict[str, Any]]] = None


class RulesReplaceRequest(BaseModel):
    rules: List[Dict[str, Any]]


class ConditionRequest(BaseModel):
    field: Optional[str] = None
    operator: Optional[str] = None
    value: Any = None
    type: Optional[str] = None
    weight: Optional[float] = None


class EvaluateRequest(BaseModel):
    result_data: Dict[str, Any]
    now: Optional[datetime] = None


class RedirectOutcomeRequest(BaseModel):
    success: bool
    device: Optional[str] = None
    location: Optional[str] = None
    response_time_ms: Optional[float] = None


class ImportRequest(BaseModel):
    rules: Optional[List[Dict[str, Any]]] = None
    templates: Optional[List[Dict[str, Any]]] = None


def _rules_payload(quiz_id: str, rules: List[Rule]) -> Dict[str, Any]:
    return {"quiz_id": quiz_id, "rules": [rule.to_dict() for rule in rules]}


def create_app(manager: Optional[RedirectRuleManager] = None) -> FastAPI:
    app = FastAPI(title="Quiz Redirect Rules")
    rules_manager = manager or build_manager()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RuleNotFoundError)
    def _not_found(request: Request, exc: RuleNotFoundError):
        return JSONResponse(status_code=404, content={"detail": exc.args[0] if exc.args else "Not found"})

    @app.exception_handler(RuleValidationError)
    def _invalid(request: Request, exc: RuleValidationError):
        return JSONResponse(
            status_code=422,
            content={"detail": str(exc), "issues": [issue.to_dict() for issue in exc.issues]},
        )

    @app.exception_handler(RuleFormatError)
    def _bad_format(request: Request, exc: RuleFormatError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(StoreError)
    def _store_down(request: Request, exc: StoreError):
        return JSONResponse(status_code=502, content={"detail": str(exc)})

    def _check_rule_limit(quiz_id: str) -> None:
        if len(rules_manager.list_rules(quiz_id)) >= config.MAX_RULES_PER_QUIZ:
            raise RuleFormatError(f"Quiz {quiz_id} already has {config.MAX_RULES_PER_QUIZ} rules.")

    @app.get("/health")
    def health():
        return {"status": "ok"}

    # ─── Templates ───

    @app.get("/api/templates")
    def list_templates():
        return {"templates": [t.to_dict() for t in rules_manager.list_templates()]}

    @app.post("/api/quizzes/{quiz_id}/templates/{template_id}")
    def apply_template(quiz_id: str, template_id: str):
        _check_rule_limit(quiz_id)
        rule = rules_manager.apply_template(quiz_id, template_id)
        return {"rule": rule.to_dict()}

    # ─── Rules ───

    @app.get("/api/quizzes/{quiz_id}/rules")
    def list_rules(quiz_id: str):
        rules = rules_manager.list_rules(quiz_id)
        payload = _rules_payload(quiz_id, rules)
        payload["issues"] = [issue.to_dict() for issue in rules_manager.validate(quiz_id)]
        return payload

    @app.post("/api/quizzes/{quiz_id}/rules")
    def create_rule(quiz_id: str, payload: RuleCreateRequest):
        _check_rule_limit(quiz_id)
        if payload.name:
            rule = rules_manager.create_rule(quiz_id, name=payload.name)
        else:
            rule = rules_manager.create_rule(quiz_id)
        return {"rule": rule.to_dict()}

    @app.put("/api/quizzes/{quiz_id}/rules")
    def replace_rules(quiz_id: str, payload: RulesReplaceRequest):
        if len(payload.rules) > config.MAX_RULES_PER_QUIZ:
            raise RuleFormatError(f"At most {config.MAX_RULES_PER_QUIZ} rules per quiz.")
        rules = [Rule.from_dict(item) for item in payload.rules]
        warnings = rules_manager.save_rules(quiz_id, rules)
        response = _rules_payload(quiz_id, rules)
        response["issues"] = [issue.to_dict() for issue in warnings]
        return response

    @app.patch("/api/quizzes/{quiz_id}/rules/{rule_id}")
    def update_rule(quiz_id: str, rule_id: str, payload: RuleUpdateRequest):
        updates = payload.model_dump(exclude_unset=True)
        if len(updates.get("conditions") or []) > config.MAX_CONDITIONS_PER_RULE:
            raise RuleFormatError(f"At most {config.MAX_CONDITIONS_PER_RULE} conditions per rule.")
        rule = rules_manager.update_rule(quiz_id, rule_id, updates)
        return {"rule": rule.to_dict()}

    @app.delete("/api/quizzes/{quiz_id}/rules/{rule_id}")
    def delete_rule(quiz_id: str, rule_id: str):
        rules_manager.delete_rule(quiz_id, rule_id)
        return {"status": "deleted", "rule_id": rule_id}

    # ─── Conditions ───

    @app.post("/api/quizzes/{quiz_id}/rules/{rule_id}/conditions")
    def add_condition(quiz_id: str, rule_id: str, payload: Optional[ConditionRequest] = None):
        rule = rules_manager.get_rule(quiz_id, rule_id)
        if len(rule.conditions) >= config.MAX_CONDITIONS_PER_RULE:
            raise RuleFormatError(f"At most {config.MAX_CONDITIONS_PER_RULE} conditions per rule.")
        fields = payload.model_dump(exclude_unset=True) if payload else {}
        condition = rules_manager.add_condition(quiz_id, rule_id, fields or None)
        return {"condition": condition.to_dict()}

    @app.patch("/api/quizzes/{quiz_id}/rules/{rule_id}/conditions/{condition_id}")
    def update_condition(quiz_id: str, rule_id: str, condition_id: str, payload: ConditionRequest):
        condition = rules_manager.update_condition(
            quiz_id, rule_id, condition_id, payload.model_dump(exclude_unset=True)
        )
        return {"condition": condition.to_dict()}

    @app.delete("/api/quizzes/{quiz_id}/rules/{rule_id}/conditions/{condition_id}")
    def remove_condition(quiz_id: str, rule_id: str, condition_id: str):
        rules_manager.remove_condition(quiz_id, rule_id, condition_id)
        return {"status": "deleted", "condition_id": condition_id}

    # ─── Evaluation & analytics ───

    @app.post("/api/quizzes/{quiz_id}/evaluate")
    def evaluate(quiz_id: str, payload: EvaluateRequest):
        decision = rules_manager.evaluate(quiz_id, payload.result_data, now=payload.now)
        return {"redirect": decision.to_dict() if decision else None}

    @app.post("/api/quizzes/{quiz_id}/rules/{rule_id}/redirects")
    def record_redirect(quiz_id: str, rule_id: str, payload: RedirectOutcomeRequest):
        stats = rules_manager.record_redirect(
            quiz_id,
            rule_id,
            payload.success,
            device=payload.device,
            location=payload.location,
            response_time_ms=payload.response_time_ms,
        )
        return {"rule_id": rule_id, "analytics": stats.to_dict()}

    @app.delete("/api/quizzes/{quiz_id}/rules/{rule_id}/analytics")
    def reset_analytics(quiz_id: str, rule_id: str):
        stats = rules_manager.reset_stats(quiz_id, rule_id)
        return {"rule_id": rule_id, "analytics": stats.to_dict()}

    @app.post("/api/quizzes/{quiz_id}/rules/{rule_id}/test")
    def test_rule(quiz_id: str, rule_id: str):
        results = rules_manager.test_rule(quiz_id, rule_id)
        return {"rule_id": rule_id, "results": [result.to_dict() for result in results]}

    @app.get("/api/quizzes/{quiz_id}/analytics")
    def analytics(quiz_id: str):
        return {"quiz_id": quiz_id, "summary": rules_manager.analytics_summary(quiz_id).to_dict()}

    # ─── Export / import ───

    @app.get("/api/quizzes/{quiz_id}/export")
    def export_config(quiz_id: str):
        return rules_manager.export_config(quiz_id)

    @app.post("/api/quizzes/{quiz_id}/import")
    def import_config(quiz_id: str, payload: ImportRequest):
        rules = rules_manager.import_config(quiz_id, payload.model_dump(exclude_none=True))
        return _rules_payload(quiz_id, rules)

    return app


app = create_app()
