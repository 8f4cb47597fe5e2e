from __future__ import annotations

import logging

from policy_loop.backends.live.prompts import build_generation_prompt
from policy_loop.core.types import Policy
from policy_loop.llm.client import LLMClient

logger = logging.getLogger(__name__)


class LiveGenerator:
    def __init__(self, llm: LLMClient, temperature: float = 0.4) -> None:
        self.llm = llm
        self.temperature = temperature

    async def generate(self, task_text: str, policy: Policy, attempt_index: int) -> str:
        system, user = build_generation_prompt(task_text, policy)

        logger.debug("=== GENERATION (attempt %d, policy v%d) ===", attempt_index, policy.version)
        logger.debug("SYSTEM PROMPT:\n%s", system)
        logger.debug("USER PROMPT:\n%s", user)

        response = await self.llm.generate(system, user, temperature=self.temperature)
        logger.debug("RESPONSE:\n%s", response)
        return response
