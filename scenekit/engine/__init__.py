from .geometry_ops import face_anchor, half_extents, resolve_connection
from .models import (
    InvalidColor,
    NotFound,
    PersistenceWarning,
    SandboxDisabled,
    SandboxExecutionError,
    SceneError,
    SceneSnapshot,
    ValidationError,
)
from .scene_engine import SceneStore
from .scene_object import FACES, OBJECT_KINDS, Connection, SceneObject, Vec3

__all__ = [
    "FACES",
    "OBJECT_KINDS",
    "Connection",
    "InvalidColor",
    "NotFound",
    "PersistenceWarning",
    "SandboxDisabled",
    "SandboxExecutionError",
    "SceneError",
    "SceneObject",
    "SceneSnapshot",
    "SceneStore",
    "ValidationError",
    "Vec3",
    "face_anchor",
    "half_extents",
    "resolve_connection",
]
