from __future__ import annotations

import logging
import threading
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from scenekit.storage.persistence import ScenePersistence

from .commands import SceneCommand
from .geometry_ops import resolve_connection
from .models import NotFound, SceneSnapshot, ValidationError
from .scene_object import (
    Connection,
    SceneObject,
    Vec3,
    build_object,
    check_face,
    format_id,
    infer_id_counter,
    object_class,
    object_from_dict,
)
from .validators import check_color, validate_graph, validate_object


LOGGER = logging.getLogger(__name__)

DIMENSION_FIELDS = ("width", "height", "depth", "radius")

GraphState = Tuple[Dict[str, SceneObject], List[Connection], int]


class SceneStore:
    """Sole owner of the scene graph.

    Every mutation runs under one re-entrant lock as a ``SceneCommand``
    (capture, mutate, roll back on error) followed by exactly one commit.
    Objects and connections are frozen values, so snapshots share them safely.
    """

    def __init__(self, persistence: Optional[ScenePersistence] = None, logger: Optional[logging.Logger] = None):
        self.logger = logger or LOGGER
        self.persistence = persistence or ScenePersistence(None, logger=self.logger)
        self._lock = threading.RLock()
        self.objects: Dict[str, SceneObject] = {}
        self.connections: List[Connection] = []
        self._id_counter = 1
        self._load()

    def _load(self) -> None:
        state = self.persistence.load()
        with self._lock:
            self.objects = dict(state.objects)
            self.connections = list(state.connections)
            self._id_counter = int(state.id_counter)

    # ---------------- state ----------------
    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @property
    def version(self) -> int:
        return self.persistence.version

    @property
    def next_id(self) -> int:
        return self._id_counter

    @property
    def object_count(self) -> int:
        return len(self.objects)

    @property
    def connection_count(self) -> int:
        return len(self.connections)

    def capture_state(self) -> GraphState:
        return dict(self.objects), list(self.connections), int(self._id_counter)

    def restore_state(self, state: GraphState) -> None:
        objects, connections, counter = state
        self.objects = dict(objects)
        self.connections = list(connections)
        self._id_counter = int(counter)

    def graph_payload(self) -> Dict[str, Any]:
        return {
            "objects": {oid: obj.to_dict() for oid, obj in self.objects.items()},
            "connections": [c.to_dict() for c in self.connections],
        }

    def execute(self, label: str, action: Callable[["SceneStore"], Any]) -> Any:
        with self._lock:
            result = SceneCommand(label=str(label), action=action).do(self)
            version = self.persistence.commit(self.graph_payload(), self._id_counter)
            self.logger.debug("%s committed as v%d", label, version)
            return result

    def _allocate_id(self) -> str:
        oid = format_id(self._id_counter)
        self._id_counter += 1
        return oid

    def _require(self, obj_id: str) -> SceneObject:
        obj = self.objects.get(str(obj_id))
        if obj is None:
            raise NotFound.for_id(obj_id)
        return obj

    # ---------------- reads ----------------
    def get_object(self, obj_id: str) -> SceneObject:
        with self._lock:
            return self._require(obj_id)

    def list_objects(self) -> List[SceneObject]:
        with self._lock:
            return list(self.objects.values())

    def connections_for(self, obj_id: str) -> List[Connection]:
        with self._lock:
            return [c for c in self.connections if c.involves(str(obj_id))]

    def get_scene_snapshot(self) -> SceneSnapshot:
        with self._lock:
            return SceneSnapshot(
                objects=MappingProxyType(dict(self.objects)),
                connections=tuple(self.connections),
                version=self.version,
                next_id=self._id_counter,
            )

    # ---------------- mutations ----------------
    def add_object(
        self,
        kind: str,
        name: Optional[str] = None,
        position: Any = None,
        scale: Any = None,
        color: Optional[str] = None,
        **dims: Any,
    ) -> str:
        if color is not None:
            check_color(color)
        object_class(kind)

        def _add(eng: "SceneStore") -> str:
            oid = eng._allocate_id()
            obj = build_object(kind, oid, name if name is not None else oid, position, scale, color, **dims)
            eng.objects[oid] = validate_object(obj)
            return oid

        oid = self.execute(f"Add {kind}", _add)
        self.logger.info("Added %s %s", kind, oid)
        return oid

    def update_object(
        self,
        obj_id: str,
        name: Optional[str] = None,
        position: Any = None,
        scale: Any = None,
        color: Optional[str] = None,
        **dims: Any,
    ) -> SceneObject:
        """Replace only the fields given; dimensions the kind lacks are ignored."""
        unknown = sorted(k for k in dims if k not in DIMENSION_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown field(s): {', '.join(unknown)}", details={"fields": unknown})
        oid = str(obj_id)

        def _update(eng: "SceneStore") -> SceneObject:
            obj = eng._require(oid)
            if color is not None:
                check_color(color)
            changes: Dict[str, Any] = {}
            if name is not None:
                changes["name"] = str(name)
            if position is not None:
                changes["position"] = Vec3.coerce(position, "position")
            if scale is not None:
                changes["scale"] = Vec3.coerce(scale, "scale")
            if color is not None:
                changes["color"] = str(color)
            for key, value in dims.items():
                if value is None:
                    continue
                if key not in obj.DIMENSIONS:
                    eng.logger.debug("Ignoring %s on %s %s", key, obj.KIND, oid)
                    continue
                changes[key] = value
            updated = validate_object(object_from_dict({**obj.to_dict(), **_plain(changes)}))
            eng.objects[oid] = updated
            return updated

        return self.execute(f"Update {oid}", _update)

    def delete_object(self, obj_id: str) -> None:
        oid = str(obj_id)

        def _delete(eng: "SceneStore") -> None:
            eng._require(oid)
            del eng.objects[oid]
            eng.connections = [c for c in eng.connections if not c.involves(oid)]

        self.execute(f"Delete {oid}", _delete)
        self.logger.info("Deleted %s", oid)

    def connect(self, from_id: str, face_a: str, to_id: str, face_b: str) -> Vec3:
        """Snap ``from_id``'s ``face_a`` onto ``to_id``'s ``face_b`` and record the connection."""
        fa = check_face(face_a)
        fb = check_face(face_b)

        def _connect(eng: "SceneStore") -> Vec3:
            src = eng._require(from_id)
            dst = eng._require(to_id)
            new_pos = resolve_connection(src, fa, dst, fb)
            eng.objects[src.id] = src.with_fields(position=new_pos)
            eng.connections.append(Connection(from_id=src.id, face_a=fa, to_id=dst.id, face_b=fb))
            return new_pos

        return self.execute(f"Connect {from_id}.{fa} -> {to_id}.{fb}", _connect)

    def clear_scene(self) -> None:
        def _clear(eng: "SceneStore") -> None:
            eng.objects = {}
            eng.connections = []
            eng._id_counter = 1

        self.execute("Clear scene", _clear)
        self.logger.info("Scene cleared")

    def replace_graph(self, objects: Mapping[str, Any], connections: Sequence[Any]) -> SceneSnapshot:
        """Swap in a whole graph given as plain data, after checking every invariant."""

        def _replace(eng: "SceneStore") -> None:
            parsed: Dict[str, SceneObject] = {}
            for key, row in objects.items():
                parsed[str(key)] = validate_object(object_from_dict(row))
            links = [Connection.from_dict(row) for row in connections]
            report = validate_graph(parsed, links)
            if not report["ok"]:
                raise ValidationError(" | ".join(report["messages"]), details={"messages": report["messages"]})
            eng.objects = parsed
            eng.connections = links
            eng._id_counter = infer_id_counter(parsed.keys(), floor=eng._id_counter)

        with self._lock:
            self.execute("Replace graph", _replace)
            return self.get_scene_snapshot()


def _plain(changes: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: (v.to_dict() if isinstance(v, Vec3) else v) for k, v in changes.items()}


__all__ = ["SceneStore"]
