"""Validation of structured backend output.

Score bounds are enforced here, at the parse boundary, so the run loop only
ever sees well-formed evaluations and patches.
"""
from __future__ import annotations

from typing import Any, Dict, List, Union

from pydantic import BaseModel, Field, ValidationError

from policy_loop.core.errors import EvaluationSchemaError, PatchSchemaError
from policy_loop.core.types import (
    Evaluation,
    Patch,
    ScoreBreakdown,
    Severity,
    Violation,
)


class ViolationModel(BaseModel):
    type: str
    message: str
    severity: Severity


class ScoreBreakdownModel(BaseModel):
    constraint_coverage: float = Field(ge=0, le=5)
    clarity_structure: float = Field(ge=0, le=5)
    tone: float = Field(ge=0, le=5)
    safety: float = Field(ge=0, le=5)
    tool_correctness: float = Field(ge=0, le=5)


class EvaluationModel(BaseModel):
    score_total: float = Field(ge=0, le=100)
    score_breakdown: ScoreBreakdownModel
    violations: List[ViolationModel] = Field(default_factory=list)
    notes: str = ""

    def to_evaluation(self) -> Evaluation:
        return Evaluation(
            score_total=self.score_total,
            score_breakdown=ScoreBreakdown(**self.score_breakdown.model_dump()),
            violations=tuple(
                Violation(type=v.type, message=v.message, severity=v.severity)
                for v in self.violations
            ),
            notes=self.notes,
        )


class PatchModel(BaseModel):
    new_rules: List[str] = Field(default_factory=list)
    remove_rules: List[str] = Field(default_factory=list)
    update_style: Dict[str, Union[int, str]] = Field(default_factory=dict)
    update_checklist: List[str] = Field(default_factory=list)
    rationale: str

    def to_patch(self) -> Patch:
        return Patch(
            new_rules=tuple(self.new_rules),
            remove_rules=tuple(self.remove_rules),
            update_style=dict(self.update_style),
            update_checklist=tuple(self.update_checklist),
            rationale=self.rationale,
        )


def _summarize(err: ValidationError) -> str:
    parts = []
    for item in err.errors():
        loc = ".".join(str(p) for p in item["loc"]) or "<root>"
        parts.append(f"{loc}: {item['msg']}")
    return "; ".join(parts)


def parse_evaluation(data: Any) -> Evaluation:
    try:
        return EvaluationModel.model_validate(data).to_evaluation()
    except ValidationError as e:
        raise EvaluationSchemaError(
            f"Evaluation failed schema validation: {_summarize(e)}", payload=data
        ) from e


def parse_patch(data: Any) -> Patch:
    if isinstance(data, dict) and data.get("update_style") is None:
        data = {**data, "update_style": {}}
    try:
        return PatchModel.model_validate(data).to_patch()
    except ValidationError as e:
        raise PatchSchemaError(
            f"Patch failed schema validation: {_summarize(e)}", payload=data
        ) from e
