from __future__ import annotations

from policy_loop.core.types import Patch, Policy

DEFAULT_POLICY = Policy(
    version=1,
    rules=(
        "Before answering, list constraints and tick them off.",
        "Do not request sensitive payment data beyond last 4 digits.",
    ),
    style={
        "tone": "calm, confident",
        "max_words_default": 120,
    },
    checklist=(
        "Constraint coverage complete",
        "Word limit respected",
        "No sensitive data requested",
        "No admission of fault when prohibited",
    ),
)


def _append_unique(existing: list[str], additions: tuple[str, ...]) -> list[str]:
    merged = list(existing)
    seen = set(merged)
    for item in additions:
        if item not in seen:
            merged.append(item)
            seen.add(item)
    return merged


def apply_patch(current: Policy, patch: Patch) -> Policy:
    """Merge a patch into a policy, returning the next version.

    Removal happens before addition, so a rule listed in both ``remove_rules``
    and ``new_rules`` ends up at the tail of the list. The version always
    advances, even for an empty patch.
    """
    removed = set(patch.remove_rules)
    kept_rules = [r for r in current.rules if r not in removed]

    return Policy(
        version=current.version + 1,
        rules=tuple(_append_unique(kept_rules, patch.new_rules)),
        style={**current.style, **patch.update_style},
        checklist=tuple(_append_unique(list(current.checklist), patch.update_checklist)),
    )
