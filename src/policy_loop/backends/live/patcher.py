from __future__ import annotations

import logging

from policy_loop.backends.live.prompts import build_patch_prompt
from policy_loop.core.schemas import parse_patch
from policy_loop.core.types import Evaluation, Patch, Policy
from policy_loop.llm.client import LLMClient

logger = logging.getLogger(__name__)


class LivePatcher:
    def __init__(self, llm: LLMClient, temperature: float = 0.2) -> None:
        self.llm = llm
        self.temperature = temperature

    async def derive_patch(
        self,
        task_text: str,
        output_text: str,
        evaluation: Evaluation,
        policy: Policy,
        attempt_index: int,
    ) -> Patch:
        system, user = build_patch_prompt(task_text, output_text, evaluation, policy)

        logger.debug("=== PATCH (after attempt %d, policy v%d) ===", attempt_index, policy.version)
        logger.debug("USER PROMPT:\n%s", user)

        data = await self.llm.generate_json(system, user, temperature=self.temperature)
        return parse_patch(data)
