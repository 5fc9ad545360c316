from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool) -> bool:
    raw = str(os.getenv(name, "")).strip().lower()
    if raw in {"1", "true", "yes", "on"}:
        return True
    if raw in {"0", "false", "no", "off"}:
        return False
    return bool(default)


def _env_float(name: str, default: float) -> float:
    raw = str(os.getenv(name, "")).strip()
    if not raw:
        return float(default)
    try:
        return float(raw)
    except ValueError:
        return float(default)


def _default_state_path() -> str:
    return os.path.join(os.getcwd(), ".scenekit", "scene-state.json")


MIN_SANDBOX_TIMEOUT_S = 0.05


@dataclass(frozen=True)
class SceneConfig:
    state_path: str = ""
    sandbox_enabled: bool = False
    sandbox_timeout_s: float = 1.0
    async_writes: bool = True

    @staticmethod
    def from_env() -> "SceneConfig":
        timeout = _env_float("SCENEKIT_SANDBOX_TIMEOUT", 1.0)
        return SceneConfig(
            state_path=str(os.getenv("SCENEKIT_STATE_PATH", "") or _default_state_path()),
            sandbox_enabled=_env_bool("SCENEKIT_ENABLE_SANDBOX", False),
            sandbox_timeout_s=max(MIN_SANDBOX_TIMEOUT_S, timeout),
            async_writes=_env_bool("SCENEKIT_ASYNC_WRITES", True),
        )
