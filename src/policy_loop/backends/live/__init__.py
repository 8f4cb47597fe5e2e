from __future__ import annotations

from typing import TYPE_CHECKING

from policy_loop.backends.base import BackendComponents, BackendPlugin
from policy_loop.backends.live.evaluator import LiveEvaluator
from policy_loop.backends.live.generator import LiveGenerator
from policy_loop.backends.live.patcher import LivePatcher
from policy_loop.llm.client import LLMClient

if TYPE_CHECKING:
    from policy_loop.config.loader import Settings


class LiveBackend(BackendPlugin):
    name = "live"
    description = "OpenAI-compatible chat completions via LiteLLM"

    def create_components(self, settings: Settings) -> BackendComponents:
        llm = LLMClient(
            model=settings.model,
            api_key=settings.require_api_key(),
            base_url=settings.base_url,
        )
        return BackendComponents(
            generator=LiveGenerator(llm),
            evaluator=LiveEvaluator(llm),
            patcher=LivePatcher(llm),
        )
