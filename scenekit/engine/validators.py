from __future__ import annotations

import math
import re
from typing import Any, Dict, Mapping

from .models import InvalidColor, ValidationError
from .scene_object import SceneObject, Vec3


_HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")


def is_hex_color(value: Any) -> bool:
    return isinstance(value, str) and bool(_HEX_COLOR.match(value))


def check_color(value: Any) -> str:
    if not is_hex_color(value):
        raise InvalidColor.for_value(value)
    return str(value)


def check_positive(value: float, label: str) -> float:
    v = float(value)
    if not math.isfinite(v) or v <= 0.0:
        raise ValidationError(f"{label} must be finite and > 0, got {value!r}", details={"field": label, "value": v})
    return v


def check_finite_vector(vec: Vec3, label: str) -> Vec3:
    for axis, v in (("x", vec.x), ("y", vec.y), ("z", vec.z)):
        if not math.isfinite(float(v)):
            raise ValidationError(f"{label}.{axis} must be finite, got {v!r}", details={"field": f"{label}.{axis}"})
    return vec


def check_scale(vec: Vec3) -> Vec3:
    for axis, v in (("x", vec.x), ("y", vec.y), ("z", vec.z)):
        check_positive(v, f"scale.{axis}")
    return vec


def validate_object(obj: SceneObject) -> SceneObject:
    """Raise unless the object may be accepted into the graph."""
    if not str(obj.id):
        raise ValidationError("Object id must not be empty")
    check_color(obj.color)
    check_finite_vector(obj.position, "position")
    check_scale(obj.scale)
    for key, value in obj.dimensions().items():
        check_positive(value, key)
    return obj


def validate_graph(objects: Mapping[str, SceneObject], connections) -> Dict[str, object]:
    """Check key aliasing and dangling connections for a whole graph."""
    messages = []
    for key, obj in objects.items():
        if str(key) != str(obj.id):
            messages.append(f'Key "{key}" does not match object id "{obj.id}"')
    for idx, conn in enumerate(connections):
        for end in (conn.from_id, conn.to_id):
            if end not in objects:
                messages.append(f'Connection {idx} references missing object "{end}"')
    return {
        "ok": not messages,
        "messages": messages,
        "object_count": len(objects),
        "connection_count": len(connections),
    }
