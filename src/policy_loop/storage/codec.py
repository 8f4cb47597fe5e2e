"""Plain-dict conversion for every persisted entity."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from policy_loop.core.types import (
    SCORE_KEYS,
    Attempt,
    Evaluation,
    Policy,
    PolicyVersion,
    Run,
    RunDetail,
    RunStatus,
    RunSummary,
    ScoreBreakdown,
    Severity,
    Violation,
)


def policy_to_dict(policy: Policy) -> dict[str, Any]:
    return {
        "version": policy.version,
        "rules": list(policy.rules),
        "style": dict(policy.style),
        "checklist": list(policy.checklist),
    }


def policy_from_dict(data: dict[str, Any]) -> Policy:
    return Policy(
        version=int(data["version"]),
        rules=tuple(data.get("rules", ())),
        style=dict(data.get("style", {})),
        checklist=tuple(data.get("checklist", ())),
    )


def breakdown_to_dict(breakdown: ScoreBreakdown) -> dict[str, float]:
    return {key: getattr(breakdown, key) for key in SCORE_KEYS}


def breakdown_from_dict(data: dict[str, Any]) -> ScoreBreakdown:
    return ScoreBreakdown(**{key: data[key] for key in SCORE_KEYS})


def violation_to_dict(violation: Violation) -> dict[str, str]:
    return {
        "type": violation.type,
        "message": violation.message,
        "severity": violation.severity.value,
    }


def violation_from_dict(data: dict[str, Any]) -> Violation:
    return Violation(
        type=data["type"], message=data["message"], severity=Severity(data["severity"])
    )


def evaluation_to_dict(evaluation: Evaluation) -> dict[str, Any]:
    return {
        "score_total": evaluation.score_total,
        "score_breakdown": breakdown_to_dict(evaluation.score_breakdown),
        "violations": [violation_to_dict(v) for v in evaluation.violations],
        "notes": evaluation.notes,
    }


def attempt_to_dict(attempt: Attempt) -> dict[str, Any]:
    return {
        "run_id": attempt.run_id,
        "index": attempt.index,
        "output_text": attempt.output_text,
        "score_total": attempt.score_total,
        "score_breakdown": breakdown_to_dict(attempt.score_breakdown),
        "violations": {
            "violations": [violation_to_dict(v) for v in attempt.violations],
            "notes": attempt.notes,
        },
        "created_at": attempt.created_at.isoformat(),
    }


def attempt_from_dict(data: dict[str, Any]) -> Attempt:
    wrapped = data.get("violations") or {}
    return Attempt(
        run_id=data["run_id"],
        index=int(data["index"]),
        output_text=data["output_text"],
        score_total=int(data["score_total"]),
        score_breakdown=breakdown_from_dict(data["score_breakdown"]),
        violations=tuple(violation_from_dict(v) for v in wrapped.get("violations", [])),
        notes=wrapped.get("notes") or "",
        created_at=datetime.fromisoformat(data["created_at"]),
    )


def policy_version_to_dict(policy_version: PolicyVersion) -> dict[str, Any]:
    return {
        "run_id": policy_version.run_id,
        "version": policy_version.version,
        "policy": policy_to_dict(policy_version.policy),
        "created_at": policy_version.created_at.isoformat(),
    }


def policy_version_from_dict(data: dict[str, Any]) -> PolicyVersion:
    return PolicyVersion(
        run_id=data["run_id"],
        version=int(data["version"]),
        policy=policy_from_dict(data["policy"]),
        created_at=datetime.fromisoformat(data["created_at"]),
    )


def run_to_dict(run: Run) -> dict[str, Any]:
    return {
        "id": run.id,
        "title": run.title,
        "task_text": run.task_text,
        "max_attempts": run.max_attempts,
        "target_score": run.target_score,
        "status": run.status.value,
        "created_at": run.created_at.isoformat(),
    }


def run_from_dict(data: dict[str, Any]) -> Run:
    return Run(
        id=data["id"],
        title=data["title"],
        task_text=data["task_text"],
        max_attempts=int(data["max_attempts"]),
        target_score=int(data["target_score"]),
        status=RunStatus(data["status"]),
        created_at=datetime.fromisoformat(data["created_at"]),
    )


def run_detail_to_dict(detail: RunDetail) -> dict[str, Any]:
    """Shape a run for the request boundary (camelCase keys)."""
    run = detail.run
    return {
        "id": run.id,
        "title": run.title,
        "taskText": run.task_text,
        "maxAttempts": run.max_attempts,
        "targetScore": run.target_score,
        "status": run.status.value,
        "createdAt": run.created_at.isoformat(),
        "attempts": [
            {
                "index": a.index,
                "outputText": a.output_text,
                "createdAt": a.created_at.isoformat(),
                "scoreTotal": a.score_total,
                "scoreBreakdown": breakdown_to_dict(a.score_breakdown),
                "violations": [violation_to_dict(v) for v in a.violations],
                "notes": a.notes,
            }
            for a in detail.attempts
        ],
        "policyVersions": [
            {
                "version": p.version,
                "policy": policy_to_dict(p.policy),
                "createdAt": p.created_at.isoformat(),
            }
            for p in detail.policy_versions
        ],
    }


def run_summary_to_dict(summary: RunSummary) -> dict[str, Any]:
    return {
        "id": summary.id,
        "title": summary.title,
        "createdAt": summary.created_at.isoformat(),
        "status": summary.status.value,
        "attemptCount": summary.attempt_count,
        "bestScore": summary.best_score,
    }
