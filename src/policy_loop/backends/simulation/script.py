"""Scripted attempts for the double-charge support-reply demo.

Each table is keyed by 1-based attempt index. Scores climb 52, 72, 84, 92, 96
so a run with a target of 90 stops at attempt 4.
"""
from __future__ import annotations

from typing import Callable

from policy_loop.core.types import (
    Evaluation,
    Patch,
    Policy,
    ScoreBreakdown,
    Severity,
    Violation,
)

_ATTEMPT_2_TIGHT = """Dear Customer,

We sincerely apologize for the duplicate charge on your account. To look into this promptly, could you share your order ID and the last 4 digits of the card used?

Once confirmed, we'll process a full refund to your original payment method right away.

Thank you for your patience.
Best regards, Support Team"""

_ATTEMPT_2_LOOSE = """Dear Customer,

We apologize for the duplicate charge. To investigate, could you please share your order ID and the last 4 digits of the card used?

Once verified, we'll issue a refund immediately. We can also offer account credit as an alternative if you prefer.

Best regards,
Support Team"""


def _attempt_2(policy: Policy) -> str:
    max_words = policy.max_words
    if max_words is not None and max_words <= 90:
        return _ATTEMPT_2_TIGHT
    return _ATTEMPT_2_LOOSE


def _fixed(text: str) -> Callable[[Policy], str]:
    return lambda policy: text


OUTPUTS: dict[int, Callable[[Policy], str]] = {
    1: _fixed("""Dear Customer,

I'm truly sorry for the inconvenience. We understand how frustrating this must be, and we sincerely apologize for the error on our end. We take full responsibility for this mistake.

To resolve this, could you please provide your full credit card number and your order details? We'll process a refund immediately.

Thank you for your patience.

Best regards,
Support Team"""),
    2: _attempt_2,
    3: _fixed("""Dear Customer,

We apologize for the duplicate charge. To resolve this quickly, could you please provide your order ID and the last 4 digits of the card used?

Once confirmed, we'd be happy to offer either a full refund to your original payment method or account credit, whichever you prefer.

Best regards,
Support Team"""),
    4: _fixed("""We apologize for the duplicate charge on your account. To resolve this quickly, please share your order ID and last 4 digits of the card used.

Once verified, we can offer a full refund or account credit, your choice. We'll have this sorted promptly.

Best regards,
Support Team"""),
    5: _fixed("""We apologize for the inconvenience with the duplicate charge. To look into this right away, could you share your order ID and the last 4 digits of the card used?

Once confirmed, we'll offer either a full refund or account credit, whichever works best for you.

Best regards,
Support Team"""),
}


def _v(type_: str, message: str, severity: Severity) -> Violation:
    return Violation(type=type_, message=message, severity=severity)


EVALUATIONS: dict[int, Evaluation] = {
    1: Evaluation(
        score_total=52,
        score_breakdown=ScoreBreakdown(2, 4, 3, 1, 3),
        violations=(
            _v("safety", "Asked for full credit card number instead of last 4 digits only", Severity.HIGH),
            _v("constraints", "Apologized multiple times (constraint says apologize once)", Severity.MEDIUM),
            _v("constraints", "Admitted fault ('we take full responsibility'), violates 'do not admit fault'", Severity.HIGH),
            _v("constraints", "Did not offer refund vs credit options", Severity.MEDIUM),
            _v("constraints", "Exceeded 90 word limit (actual: ~96 words)", Severity.MEDIUM),
        ),
        notes=(
            "Major safety violation requesting full card number. Multiple constraint "
            "failures including admitting fault and apologizing more than once."
        ),
    ),
    2: Evaluation(
        score_total=72,
        score_breakdown=ScoreBreakdown(3, 4, 5, 5, 4),
        violations=(
            _v("constraints", "Did not explicitly offer credit as an alternative to refund", Severity.MEDIUM),
            _v("constraints", "Word count is borderline at ~88 words", Severity.LOW),
        ),
        notes=(
            "Safety issue fixed. Tone is now calm and confident. Missing explicit "
            "refund vs credit choice for the customer."
        ),
    ),
    3: Evaluation(
        score_total=84,
        score_breakdown=ScoreBreakdown(4, 5, 5, 5, 5),
        violations=(
            _v("constraints", "Slightly exceeds 90-word limit at ~92 words", Severity.LOW),
        ),
        notes=(
            "Strong improvement. All major constraints met. Both refund and credit "
            "options offered. Minor word count overage."
        ),
    ),
    4: Evaluation(
        score_total=92,
        score_breakdown=ScoreBreakdown(5, 5, 4, 5, 4),
        notes=(
            "Excellent response. All constraints met: single apology, no fault admission, "
            "asks for order ID and last 4 digits, offers both refund and credit, within "
            "90 words, calm professional tone."
        ),
    ),
    5: Evaluation(
        score_total=96,
        score_breakdown=ScoreBreakdown(5, 5, 5, 5, 4),
        notes=(
            "Near-perfect response hitting all constraints with a confident, "
            "professional tone and clean structure."
        ),
    ),
}

COUNT_WORDS_RULE = "Count words before finalizing; must be under the max_words_default limit."

PATCHES: dict[int, Patch] = {
    1: Patch(
        new_rules=(
            "NEVER ask for full credit card number; only last 4 digits.",
            "Apologize exactly once; do not repeat apologies.",
            "Do not admit fault or accept responsibility.",
            "Always offer both refund AND credit as options.",
            COUNT_WORDS_RULE,
        ),
        update_style={"max_words_default": 90},
        update_checklist=(
            "Verified: only last 4 digits requested",
            "Verified: exactly one apology",
            "Verified: no fault admission",
        ),
        rationale=(
            "Critical safety violation fixed by adding explicit card data rule. Added "
            "rules to prevent multiple apologies and fault admission. Lowered word "
            "limit to match task constraint."
        ),
    ),
    2: Patch(
        new_rules=(
            "Explicitly mention 'refund or account credit' as two distinct options "
            "the customer can choose.",
        ),
        update_checklist=("Verified: both refund and credit options mentioned",),
        rationale=(
            "Previous attempt missed offering both options explicitly. Adding specific "
            "rule to always present both refund and credit as customer choices."
        ),
    ),
    3: Patch(
        new_rules=("Draft response, count words, then trim to fit under limit before sending.",),
        remove_rules=(COUNT_WORDS_RULE,),
        update_style={"max_words_default": 85},
        update_checklist=("Verified: final word count under limit",),
        rationale=(
            "Word count slightly over. Replaced generic counting rule with actionable "
            "draft-then-trim rule. Lowered target to 85 words for safety margin."
        ),
    ),
    4: Patch(
        rationale="All constraints met with a score of 92. No changes needed; policy is working well.",
    ),
}


def _scripted(table: dict, attempt_index: int):
    """Look up a scripted entry, repeating the last one past the end of the script."""
    if attempt_index < 1:
        raise ValueError(f"attempt_index must be >= 1, got {attempt_index}")
    return table.get(attempt_index, table[max(table)])


def scripted_output(attempt_index: int, policy: Policy) -> str:
    return _scripted(OUTPUTS, attempt_index)(policy)


def scripted_evaluation(attempt_index: int) -> Evaluation:
    return _scripted(EVALUATIONS, attempt_index)


def scripted_patch(attempt_index: int) -> Patch:
    return _scripted(PATCHES, attempt_index)
