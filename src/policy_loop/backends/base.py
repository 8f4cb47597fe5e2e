from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from policy_loop.core.protocols import Evaluator, Generator, Patcher

if TYPE_CHECKING:
    from policy_loop.config.loader import Settings


@dataclass
class BackendComponents:
    generator: Generator
    evaluator: Evaluator
    patcher: Patcher


class BackendPlugin:
    name: str
    description: str

    def create_components(self, settings: Settings) -> BackendComponents:
        raise NotImplementedError
