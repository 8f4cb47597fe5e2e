from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Union

StyleValue = Union[str, int]

SCORE_KEYS = (
    "constraint_coverage",
    "clarity_structure",
    "tone",
    "safety",
    "tool_correctness",
)


def _frozen_style(style: Mapping[str, StyleValue]) -> Mapping[str, StyleValue]:
    return MappingProxyType(dict(style))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class Policy:
    version: int
    rules: tuple[str, ...] = ()
    style: Mapping[str, StyleValue] = field(default_factory=dict)
    checklist: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "style", _frozen_style(self.style))

    @property
    def max_words(self) -> int | None:
        value = self.style.get("max_words_default")
        return value if isinstance(value, int) else None


@dataclass(frozen=True)
class Violation:
    type: str
    message: str
    severity: Severity


@dataclass(frozen=True)
class ScoreBreakdown:
    constraint_coverage: float
    clarity_structure: float
    tone: float
    safety: float
    tool_correctness: float

    def total(self) -> float:
        return sum(getattr(self, key) for key in SCORE_KEYS)


@dataclass(frozen=True)
class Evaluation:
    score_total: float
    score_breakdown: ScoreBreakdown
    violations: tuple[Violation, ...] = ()
    notes: str = ""


@dataclass(frozen=True)
class Patch:
    new_rules: tuple[str, ...] = ()
    remove_rules: tuple[str, ...] = ()
    update_style: Mapping[str, StyleValue] = field(default_factory=dict)
    update_checklist: tuple[str, ...] = ()
    rationale: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "update_style", _frozen_style(self.update_style))


@dataclass(frozen=True)
class Attempt:
    run_id: str
    index: int  # 1-based, gap-free within a run
    output_text: str
    score_total: int
    score_breakdown: ScoreBreakdown
    violations: tuple[Violation, ...] = ()
    notes: str = ""
    created_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class PolicyVersion:
    run_id: str
    version: int
    policy: Policy
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Run:
    id: str
    title: str
    task_text: str
    max_attempts: int = 5
    target_score: int = 90
    status: RunStatus = RunStatus.PENDING
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class RunDetail:
    run: Run
    attempts: list[Attempt] = field(default_factory=list)
    policy_versions: list[PolicyVersion] = field(default_factory=list)

    @property
    def best_score(self) -> int | None:
        if not self.attempts:
            return None
        return max(a.score_total for a in self.attempts)

    @property
    def current_policy(self) -> Policy | None:
        return self.policy_versions[-1].policy if self.policy_versions else None


@dataclass
class RunSummary:
    id: str
    title: str
    status: RunStatus
    created_at: datetime
    attempt_count: int
    best_score: int | None
