from __future__ import annotations

import re

_FENCE_PATTERN = re.compile(r"```(?:json|JSON)?[ \t]*\n?(.*?)```", re.DOTALL)


def extract_json_text(llm_response: str) -> str:
    """Pull the JSON payload out of an LLM response.

    Tries a fenced code block first, then the span from the first ``{`` to the
    last ``}``, and otherwise returns the text unchanged.
    """
    match = _FENCE_PATTERN.search(llm_response)
    if match:
        return match.group(1).strip()

    start = llm_response.find("{")
    end = llm_response.rfind("}")
    if start != -1 and end > start:
        return llm_response[start : end + 1]

    return llm_response.strip()
