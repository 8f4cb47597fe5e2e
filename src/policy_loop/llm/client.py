from __future__ import annotations

import json
import logging
import re
from typing import Any

import litellm

from policy_loop.core.errors import GenerationError, InvalidJSONError
from policy_loop.llm.parser import extract_json_text

litellm.drop_params = True

logger = logging.getLogger(__name__)

RAW_PREFIX_CHARS = 500
_SENSITIVE_PATTERN = re.compile(r"sk-[A-Za-z0-9]{20,}")


def redact(text: str) -> str:
    return _SENSITIVE_PATTERN.sub("sk-***REDACTED***", text)


class LLMClient:
    def __init__(self, model: str, api_key: str, base_url: str | None = None) -> None:
        self.model = model
        self.api_key = api_key
        self.base_url = base_url

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 2048,
        temperature: float = 0.3,
    ) -> str:
        try:
            response = await litellm.acompletion(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                max_tokens=max_tokens,
                temperature=temperature,
                api_key=self.api_key,
                api_base=self.base_url,
            )
        except Exception as e:
            raise GenerationError(f"LLM API error: {redact(str(e))}") from e

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content or not content.strip():
            raise GenerationError("LLM returned empty response")
        return content

    async def generate_json(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 2048,
        temperature: float = 0.1,
    ) -> Any:
        """Call the model and parse its reply as JSON, retrying once on a parse failure."""
        max_attempts = 2
        response = ""

        for attempt in range(max_attempts):
            response = await self.generate(
                system_prompt, user_prompt, max_tokens=max_tokens, temperature=temperature
            )
            logger.debug("JSON RESPONSE (attempt %d):\n%s", attempt, response)
            try:
                return json.loads(extract_json_text(response))
            except json.JSONDecodeError as e:
                logger.warning("Unparseable JSON from %s (attempt %d): %s", self.model, attempt, e)

        raise InvalidJSONError(
            f"LLM returned invalid JSON after {max_attempts} attempts. "
            f"Raw: {redact(response[:RAW_PREFIX_CHARS])}",
            raw=response,
        )
