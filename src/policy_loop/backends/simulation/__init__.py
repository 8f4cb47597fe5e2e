from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from policy_loop.backends.base import BackendComponents, BackendPlugin
from policy_loop.backends.simulation.script import (
    scripted_evaluation,
    scripted_output,
    scripted_patch,
)

if TYPE_CHECKING:
    from policy_loop.config.loader import Settings
    from policy_loop.core.types import Evaluation, Patch, Policy

# Base latencies in seconds, scaled by Settings.simulation_delay.
GENERATION_DELAY = 1.0
EVALUATION_DELAY = 0.7
PATCH_DELAY = 0.5


class SimulatedGenerator:
    def __init__(self, delay: float = GENERATION_DELAY) -> None:
        self.delay = delay

    async def generate(self, task_text: str, policy: Policy, attempt_index: int) -> str:
        await asyncio.sleep(self.delay)
        return scripted_output(attempt_index, policy)


class SimulatedEvaluator:
    def __init__(self, delay: float = EVALUATION_DELAY) -> None:
        self.delay = delay

    async def evaluate(
        self, task_text: str, output_text: str, policy: Policy, attempt_index: int
    ) -> Evaluation:
        await asyncio.sleep(self.delay)
        return scripted_evaluation(attempt_index)


class SimulatedPatcher:
    def __init__(self, delay: float = PATCH_DELAY) -> None:
        self.delay = delay

    async def derive_patch(
        self,
        task_text: str,
        output_text: str,
        evaluation: Evaluation,
        policy: Policy,
        attempt_index: int,
    ) -> Patch:
        await asyncio.sleep(self.delay)
        return scripted_patch(attempt_index)


class SimulationBackend(BackendPlugin):
    name = "simulation"
    description = "Deterministic scripted responses keyed by attempt index (no API key needed)"

    def create_components(self, settings: Settings) -> BackendComponents:
        scale = settings.simulation_delay
        return BackendComponents(
            generator=SimulatedGenerator(GENERATION_DELAY * scale),
            evaluator=SimulatedEvaluator(EVALUATION_DELAY * scale),
            patcher=SimulatedPatcher(PATCH_DELAY * scale),
        )
