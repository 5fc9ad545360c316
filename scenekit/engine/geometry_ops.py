from __future__ import annotations

from typing import Any, Dict, Mapping

import numpy as np

from .models import ValidationError
from .scene_object import (
    BoxObject,
    ConeObject,
    CylinderObject,
    PlaneObject,
    SceneObject,
    SphereObject,
    Vec3,
    check_face,
    object_from_dict,
)


_FACE_DIRECTIONS: Dict[str, np.ndarray] = {
    "top": np.array([0.0, 1.0, 0.0]),
    "bottom": np.array([0.0, -1.0, 0.0]),
    "left": np.array([-1.0, 0.0, 0.0]),
    "right": np.array([1.0, 0.0, 0.0]),
    "front": np.array([0.0, 0.0, 1.0]),
    "back": np.array([0.0, 0.0, -1.0]),
    "center": np.zeros(3),
}


def _unscaled_half_extents(obj: SceneObject) -> np.ndarray:
    if isinstance(obj, BoxObject):
        return np.array([obj.width * 0.5, obj.height * 0.5, obj.depth * 0.5], dtype=float)
    if isinstance(obj, SphereObject):
        return np.full(3, float(obj.radius))
    if isinstance(obj, (CylinderObject, ConeObject)):
        return np.array([obj.radius, obj.height * 0.5, obj.radius], dtype=float)
    if isinstance(obj, PlaneObject):
        # Planes are flat: no vertical extent.
        return np.array([obj.width * 0.5, 0.0, obj.depth * 0.5], dtype=float)
    raise ValidationError(f"Unsupported object kind: {type(obj).__name__}")


def half_extents(obj: SceneObject) -> Vec3:
    """Bounding half-size along each axis, with the per-axis scale applied."""
    return Vec3.from_array(_unscaled_half_extents(obj) * obj.scale.as_array())


def face_anchor(obj: SceneObject, face: str) -> Vec3:
    """Offset from the object's position to the contact point of ``face``."""
    direction = _FACE_DIRECTIONS[check_face(face)]
    h = _unscaled_half_extents(obj) * obj.scale.as_array()
    # + 0.0 folds negative zeros so serialized anchors stay clean
    return Vec3.from_array(direction * h + 0.0)


def resolve_connection(from_obj: SceneObject, face_a: str, to_obj: SceneObject, face_b: str) -> Vec3:
    """New position for ``from_obj`` so its ``face_a`` touches ``to_obj``'s ``face_b``.

    ``to_obj`` stays fixed. Translation only, no rotation is modeled.
    """
    a = face_anchor(from_obj, face_a).as_array()
    b = face_anchor(to_obj, face_b).as_array()
    return Vec3.from_array(to_obj.position.as_array() + b - a)


def half_extents_dict(data: Mapping[str, Any]) -> Dict[str, float]:
    return half_extents(object_from_dict(data)).to_dict()


def face_anchor_dict(data: Mapping[str, Any], face: str) -> Dict[str, float]:
    return face_anchor(object_from_dict(data), face).to_dict()
