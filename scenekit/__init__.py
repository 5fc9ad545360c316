"""Persistent 3D scene graph: primitives, face-to-face connections, versioned storage."""

from .engine import (
    FACES,
    Connection,
    InvalidColor,
    NotFound,
    SandboxDisabled,
    SandboxExecutionError,
    SceneError,
    SceneStore,
    ValidationError,
    Vec3,
    face_anchor,
    half_extents,
    resolve_connection,
)
from .storage import ScenePersistence

__version__ = "1.0.0"

__all__ = [
    "FACES",
    "Connection",
    "InvalidColor",
    "NotFound",
    "SandboxDisabled",
    "SandboxExecutionError",
    "SceneError",
    "ScenePersistence",
    "SceneStore",
    "ValidationError",
    "Vec3",
    "face_anchor",
    "half_extents",
    "resolve_connection",
]
