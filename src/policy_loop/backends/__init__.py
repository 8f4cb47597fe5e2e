from __future__ import annotations

from typing import TYPE_CHECKING

from policy_loop.backends.base import BackendComponents, BackendPlugin

if TYPE_CHECKING:
    from policy_loop.config.loader import Settings

_registry: dict[str, BackendPlugin] = {}


def register_backend(plugin: BackendPlugin) -> None:
    _registry[plugin.name] = plugin


def get_backend(name: str) -> BackendPlugin:
    if name not in _registry:
        available = list(_registry.keys())
        raise ValueError(f"Unknown backend {name!r}. Available: {available}")
    return _registry[name]


def list_backends() -> list[str]:
    return sorted(_registry.keys())


def build_components(settings: Settings) -> BackendComponents:
    """All three capabilities come from the one backend the settings select."""
    return get_backend(settings.backend_name).create_components(settings)


def _register_builtins() -> None:
    from policy_loop.backends.live import LiveBackend
    from policy_loop.backends.simulation import SimulationBackend

    register_backend(LiveBackend())
    register_backend(SimulationBackend())


_register_builtins()
