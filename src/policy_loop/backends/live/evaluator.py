from __future__ import annotations

import logging

from policy_loop.backends.live.prompts import build_evaluation_prompt
from policy_loop.core.schemas import parse_evaluation
from policy_loop.core.types import Evaluation, Policy
from policy_loop.llm.client import LLMClient

logger = logging.getLogger(__name__)


class LiveEvaluator:
    def __init__(self, llm: LLMClient, temperature: float = 0.1) -> None:
        self.llm = llm
        self.temperature = temperature

    async def evaluate(
        self, task_text: str, output_text: str, policy: Policy, attempt_index: int
    ) -> Evaluation:
        system, user = build_evaluation_prompt(task_text, output_text, policy)

        logger.debug("=== EVALUATION (attempt %d) ===", attempt_index)
        logger.debug("SYSTEM PROMPT:\n%s", system)
        logger.debug("USER PROMPT:\n%s", user)

        data = await self.llm.generate_json(system, user, temperature=self.temperature)
        return parse_evaluation(data)
