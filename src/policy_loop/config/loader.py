from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from policy_loop.core.errors import ConfigurationError

CONFIGS_DIR = Path(__file__).parent.parent / "configs"

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "openai/gpt-4o-mini"
PLACEHOLDER_API_KEY = "sk-placeholder"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    api_key: str | None = None
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    simulation: bool = False
    simulation_delay: float = 1.0  # scales the simulated backend latency
    data_dir: Path = field(default_factory=lambda: Path("runs"))

    @property
    def backend_name(self) -> str:
        return "simulation" if self.simulation else "live"

    def require_api_key(self) -> str:
        if not self.api_key or self.api_key == PLACEHOLDER_API_KEY:
            raise ConfigurationError(
                "POLICY_LOOP_API_KEY (or OPENAI_API_KEY) is not set. "
                "Add it to .env or enable simulation mode."
            )
        return self.api_key


def _lookup(env: Mapping[str, str], *names: str) -> str | None:
    for name in names:
        value = env.get(name)
        if value:
            return value
    return None


def load_settings(env: Mapping[str, str] | None = None, **overrides: Any) -> Settings:
    """Build settings once from the environment; keyword overrides win."""
    env = os.environ if env is None else env

    delay_raw = _lookup(env, "POLICY_LOOP_SIMULATION_DELAY")
    try:
        delay = float(delay_raw) if delay_raw is not None else 1.0
    except ValueError as e:
        raise ConfigurationError(
            f"POLICY_LOOP_SIMULATION_DELAY must be a number, got {delay_raw!r}"
        ) from e
    if delay < 0:
        raise ConfigurationError("POLICY_LOOP_SIMULATION_DELAY must not be negative")

    values: dict[str, Any] = {
        "api_key": _lookup(env, "POLICY_LOOP_API_KEY", "OPENAI_API_KEY"),
        "base_url": (
            _lookup(env, "POLICY_LOOP_BASE_URL", "OPENAI_BASE_URL") or DEFAULT_BASE_URL
        ).rstrip("/"),
        "model": _lookup(env, "POLICY_LOOP_MODEL", "OPENAI_MODEL") or DEFAULT_MODEL,
        "simulation": (_lookup(env, "POLICY_LOOP_SIMULATION") or "").strip().lower()
        in _TRUTHY,
        "simulation_delay": delay,
        "data_dir": Path(_lookup(env, "POLICY_LOOP_DATA_DIR") or "runs"),
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**values)


def list_task_presets() -> list[str]:
    preset_dir = CONFIGS_DIR / "tasks"
    if not preset_dir.exists():
        return []
    return sorted(p.stem for p in preset_dir.glob("*.yaml"))


def load_task_file(path: Path) -> dict[str, Any]:
    data = yaml.safe_load(path.read_text())
    if not isinstance(data, dict) or not str(data.get("task_text", "")).strip():
        raise ValueError(f"Task file {path} must define a non-empty 'task_text'")
    return data


def load_task_preset(name: str) -> dict[str, Any]:
    path = CONFIGS_DIR / "tasks" / f"{name}.yaml"
    if not path.exists():
        raise FileNotFoundError(
            f"Task preset {name!r} not found. Available: {list_task_presets()}"
        )
    return load_task_file(path)
