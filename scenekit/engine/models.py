from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Tuple


class SceneError(RuntimeError):
    """Controlled error type for scene graph operations."""

    default_code = "scene_error"

    def __init__(self, message: str, *, code: str | None = None, details: Mapping[str, Any] | None = None):
        super().__init__(str(message))
        self.code = str(code or self.default_code)
        self.details: Dict[str, Any] = dict(details or {})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": str(self),
            "details": dict(self.details),
        }


class NotFound(SceneError):
    default_code = "not_found"

    @classmethod
    def for_id(cls, obj_id: str) -> "NotFound":
        return cls(f'Object "{obj_id}" not found', details={"id": str(obj_id)})


class InvalidColor(SceneError):
    default_code = "invalid_color"

    @classmethod
    def for_value(cls, color: Any) -> "InvalidColor":
        return cls(f'Invalid color "{color}". Use hex format e.g. #ff0000', details={"color": str(color)})


class ValidationError(SceneError):
    default_code = "validation_error"


class SandboxDisabled(SceneError):
    default_code = "sandbox_disabled"


class SandboxExecutionError(SceneError):
    default_code = "sandbox_execution_error"


class PersistenceWarning(SceneError):
    """Non-fatal failure reading or writing the durable record. Logged, never raised to callers."""

    default_code = "persistence_warning"


@dataclass(frozen=True)
class SceneSnapshot:
    """Immutable view of the scene graph at one version."""

    objects: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    connections: Tuple[Any, ...] = ()
    version: int = 0
    next_id: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "objects": {oid: obj.to_dict() for oid, obj in self.objects.items()},
            "connections": [c.to_dict() for c in self.connections],
            "version": int(self.version),
        }

    def graph_dict(self) -> Dict[str, Any]:
        data = self.to_dict()
        data.pop("version", None)
        return data
