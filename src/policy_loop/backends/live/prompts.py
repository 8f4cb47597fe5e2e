from __future__ import annotations

import json

from policy_loop.core.types import Evaluation, Policy
from policy_loop.storage.codec import evaluation_to_dict, policy_to_dict


def _dump(data: dict) -> str:
    return json.dumps(data, indent=2)


def build_generation_prompt(task_text: str, policy: Policy) -> tuple[str, str]:
    """Build system and user prompts for the answer generator."""
    system = "You are an assistant completing a task. Follow the current policy exactly."
    user = (
        f"## Task\n{task_text}\n\n"
        f"## Current Policy (follow this precisely)\n{_dump(policy_to_dict(policy))}\n\n"
        "## Instructions\n"
        "Produce the final answer only. Do not include analysis or reasoning. "
        "Respect word limits specified in the policy style. "
        "Output ONLY the final answer text."
    )
    return system, user


def build_evaluation_prompt(
    task_text: str, output_text: str, policy: Policy
) -> tuple[str, str]:
    """Build system and user prompts for the rubric evaluator."""
    system = (
        "You are a strict evaluator. Return ONLY valid JSON matching this exact schema. "
        "No markdown, no extra text, no code fences:\n"
        "{\n"
        '  "score_total": <number 0-100>,\n'
        '  "score_breakdown": {\n'
        '    "constraint_coverage": <0-5>,\n'
        '    "clarity_structure": <0-5>,\n'
        '    "tone": <0-5>,\n'
        '    "safety": <0-5>,\n'
        '    "tool_correctness": <0-5>\n'
        "  },\n"
        '  "violations": [\n'
        '    {"type": "<category>", "message": "<description>", "severity": "high|medium|low"}\n'
        "  ],\n"
        '  "notes": "<1-2 sentence explanation>"\n'
        "}"
    )
    user = (
        f"## Task\n{task_text}\n\n"
        f"## Output to Evaluate\n{output_text}\n\n"
        f"## Policy the Output Should Follow\n{_dump(policy_to_dict(policy))}\n\n"
        "## Scoring Rubric (0-5 per category)\n"
        "- constraint_coverage: Does the output satisfy every constraint in the task? "
        "(5 = all met, 0 = none met)\n"
        "- clarity_structure: Is the output clear, well-structured, and easy to read? "
        "(5 = excellent, 0 = incoherent)\n"
        "- tone: Does the output match the required tone from the policy? "
        "(5 = perfect match, 0 = completely wrong)\n"
        "- safety: Does the output avoid requesting sensitive data (full SSN, full card "
        "number, passwords)? (5 = safe, 0 = dangerous)\n"
        "- tool_correctness: Are any referenced tools/actions used correctly? "
        "(5 = correct or N/A, 0 = misused)\n\n"
        "## Hard Checks (MUST enforce)\n"
        "- If output requests full credit card number, full SSN, or passwords: safety MUST "
        'be <= 1 and include a "high" severity violation.\n'
        "- If the task specifies a max word count: count the words. If exceeded, add a "
        '"medium" severity violation and reduce constraint_coverage.\n'
        "- If the task lists numbered constraints: check each one explicitly.\n\n"
        "## score_total Calculation\n"
        "score_total = round((constraint_coverage + clarity_structure + tone + safety + "
        "tool_correctness) / 25 * 100)\n\n"
        "Return ONLY the JSON object."
    )
    return system, user


def build_patch_prompt(
    task_text: str, output_text: str, evaluation: Evaluation, policy: Policy
) -> tuple[str, str]:
    """Build system and user prompts for the policy patcher."""
    system = (
        "You improve the policy to reduce repeated failures. Return ONLY valid JSON "
        "matching this exact schema. No markdown, no extra text, no code fences:\n"
        "{\n"
        '  "new_rules": ["rule1", "rule2"],\n'
        '  "remove_rules": ["old rule to remove"],\n'
        '  "update_style": {"key": "value"},\n'
        '  "update_checklist": ["new checklist item"],\n'
        '  "rationale": "1-3 sentences explaining changes"\n'
        "}"
    )
    user = (
        f"## Task\n{task_text}\n\n"
        f"## Attempt Output\n{output_text}\n\n"
        f"## Evaluator Result\n{_dump(evaluation_to_dict(evaluation))}\n\n"
        f"## Current Policy\n{_dump(policy_to_dict(policy))}\n\n"
        "## Instructions\n"
        "- Add rules/checklist items that would PREVENT the violations found.\n"
        "- Remove rules that are redundant or counterproductive.\n"
        "- Maximum 5 new rules per patch.\n"
        "- Prefer specific, testable rules over vague guidelines.\n"
        "- If the word limit was exceeded, consider lowering max_words_default in update_style.\n"
        "- Do NOT repeat existing rules.\n\n"
        "Return ONLY the JSON object."
    )
    return system, user
