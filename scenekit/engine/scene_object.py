from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Type

import numpy as np

from .models import ValidationError


DEFAULT_COLOR = "#888888"
FACES: Tuple[str, ...] = ("top", "bottom", "left", "right", "front", "back", "center")


def _coerce_float(value: Any, label: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{label} must be a number, got {value!r}", details={"field": label}) from exc


@dataclass(frozen=True)
class Vec3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)

    @staticmethod
    def from_array(arr) -> "Vec3":
        v = np.asarray(arr, dtype=float).reshape(-1)
        if v.size != 3:
            raise ValidationError(f"Expected 3 components, got {v.size}")
        return Vec3(float(v[0]), float(v[1]), float(v[2]))

    @staticmethod
    def coerce(value: Any, label: str = "vector") -> "Vec3":
        """Accept a Vec3, an {x, y, z} mapping or a 3-item sequence."""
        if isinstance(value, Vec3):
            return value
        if isinstance(value, Mapping):
            missing = [k for k in ("x", "y", "z") if k not in value]
            if missing:
                raise ValidationError(f"{label} is missing {', '.join(missing)}", details={"field": label})
            return Vec3(
                _coerce_float(value["x"], f"{label}.x"),
                _coerce_float(value["y"], f"{label}.y"),
                _coerce_float(value["z"], f"{label}.z"),
            )
        if isinstance(value, (list, tuple, np.ndarray)) and len(value) == 3:
            return Vec3(*(_coerce_float(v, label) for v in value))
        raise ValidationError(f"{label} must be an {{x, y, z}} object", details={"field": label})

    def to_dict(self) -> Dict[str, float]:
        return {"x": float(self.x), "y": float(self.y), "z": float(self.z)}


UNIT_SCALE = Vec3(1.0, 1.0, 1.0)


@dataclass(frozen=True)
class SceneObject:
    KIND: ClassVar[str] = ""
    DIMENSIONS: ClassVar[Tuple[str, ...]] = ()

    id: str
    name: str
    position: Vec3 = field(default_factory=Vec3)
    scale: Vec3 = UNIT_SCALE
    color: str = DEFAULT_COLOR

    def dimensions(self) -> Dict[str, float]:
        return {k: float(getattr(self, k)) for k in self.DIMENSIONS}

    def with_fields(self, **changes: Any) -> "SceneObject":
        return replace(self, **changes)

    def to_dict(self) -> dict:
        out = {
            "type": self.KIND,
            "id": str(self.id),
            "name": str(self.name),
            "position": self.position.to_dict(),
            "scale": self.scale.to_dict(),
            "color": str(self.color),
        }
        out.update(self.dimensions())
        return out


@dataclass(frozen=True)
class BoxObject(SceneObject):
    KIND: ClassVar[str] = "box"
    DIMENSIONS: ClassVar[Tuple[str, ...]] = ("width", "height", "depth")

    width: float = 100.0
    height: float = 100.0
    depth: float = 100.0


@dataclass(frozen=True)
class SphereObject(SceneObject):
    KIND: ClassVar[str] = "sphere"
    DIMENSIONS: ClassVar[Tuple[str, ...]] = ("radius",)

    radius: float = 50.0


@dataclass(frozen=True)
class CylinderObject(SceneObject):
    KIND: ClassVar[str] = "cylinder"
    DIMENSIONS: ClassVar[Tuple[str, ...]] = ("radius", "height")

    radius: float = 25.0
    height: float = 100.0


@dataclass(frozen=True)
class ConeObject(SceneObject):
    KIND: ClassVar[str] = "cone"
    DIMENSIONS: ClassVar[Tuple[str, ...]] = ("radius", "height")

    radius: float = 25.0
    height: float = 100.0


@dataclass(frozen=True)
class PlaneObject(SceneObject):
    KIND: ClassVar[str] = "plane"
    DIMENSIONS: ClassVar[Tuple[str, ...]] = ("width", "depth")

    width: float = 200.0
    depth: float = 200.0


OBJECT_KINDS: Dict[str, Type[SceneObject]] = {
    cls.KIND: cls for cls in (BoxObject, SphereObject, CylinderObject, ConeObject, PlaneObject)
}


def object_class(kind: str) -> Type[SceneObject]:
    token = str(kind or "").strip().lower()
    cls = OBJECT_KINDS.get(token)
    if cls is None:
        raise ValidationError(
            f"Unknown geometry type: {kind}. Expected one of {', '.join(OBJECT_KINDS)}",
            details={"type": str(kind)},
        )
    return cls


def default_dimensions(kind: str) -> Dict[str, float]:
    cls = object_class(kind)
    return {f.name: float(f.default) for f in fields(cls) if f.name in cls.DIMENSIONS}


def build_object(
    kind: str,
    obj_id: str,
    name: str,
    position: Any = None,
    scale: Any = None,
    color: Optional[str] = None,
    **dims: Any,
) -> SceneObject:
    """Build a typed object, filling any omitted field with the kind's default.

    Dimension keywords the kind does not declare are ignored.
    """
    cls = object_class(kind)
    kwargs: Dict[str, Any] = {
        "id": str(obj_id),
        "name": str(name if name is not None else ""),
        "position": Vec3.coerce(position, "position") if position is not None else Vec3(),
        "scale": Vec3.coerce(scale, "scale") if scale is not None else UNIT_SCALE,
        "color": str(color) if color is not None else DEFAULT_COLOR,
    }
    for key in cls.DIMENSIONS:
        value = dims.get(key)
        if value is not None:
            kwargs[key] = _coerce_float(value, key)
    return cls(**kwargs)


def object_from_dict(data: Mapping[str, Any]) -> SceneObject:
    if not isinstance(data, Mapping):
        raise ValidationError("Scene object must be a mapping")
    if "id" not in data:
        raise ValidationError("Scene object is missing its id")
    dims = {k: data[k] for k in ("width", "height", "depth", "radius") if k in data}
    return build_object(
        str(data.get("type", "")),
        str(data["id"]),
        str(data.get("name", "")),
        position=data.get("position"),
        scale=data.get("scale"),
        color=data.get("color"),
        **dims,
    )


def check_face(face: str) -> str:
    token = str(face or "").strip().lower()
    if token not in FACES:
        raise ValidationError(f"Unknown face: {face}. Expected one of {', '.join(FACES)}", details={"face": str(face)})
    return token


@dataclass(frozen=True)
class Connection:
    from_id: str
    face_a: str
    to_id: str
    face_b: str

    def involves(self, obj_id: str) -> bool:
        return self.from_id == obj_id or self.to_id == obj_id

    def to_dict(self) -> dict:
        return {
            "from_id": str(self.from_id),
            "face_a": str(self.face_a),
            "to_id": str(self.to_id),
            "face_b": str(self.face_b),
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "Connection":
        if not isinstance(data, Mapping):
            raise ValidationError("Connection must be a mapping")
        missing = [k for k in ("from_id", "face_a", "to_id", "face_b") if k not in data]
        if missing:
            raise ValidationError(f"Connection is missing {', '.join(missing)}")
        return Connection(
            from_id=str(data["from_id"]),
            face_a=check_face(data["face_a"]),
            to_id=str(data["to_id"]),
            face_b=check_face(data["face_b"]),
        )


ID_PREFIX = "obj_"


def format_id(n: int) -> str:
    return f"{ID_PREFIX}{int(n)}"


def id_suffix(obj_id: str) -> Optional[int]:
    token = str(obj_id or "")
    if not token.startswith(ID_PREFIX):
        return None
    tail = token[len(ID_PREFIX):]
    if not tail.isdigit():
        return None
    n = int(tail)
    return n if n >= 1 else None


def infer_id_counter(ids, floor: int = 1) -> int:
    """Next free counter value: one past the largest ``obj_<n>`` id, never below ``floor``."""
    nums = [n for n in (id_suffix(i) for i in ids) if n is not None]
    top = max(nums) if nums else 0
    return max(int(floor), top + 1)
