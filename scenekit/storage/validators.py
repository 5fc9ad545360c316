from __future__ import annotations

from typing import Any, Dict, Mapping

from .io import SCENE_SCHEMA_VERSION


def validate_record(payload: Mapping[str, Any]) -> Dict[str, Any]:
    data = dict(payload or {})
    messages = []

    schema = str(data.get("schema", "") or "").strip()
    # Untagged records predate the schema field and are accepted as-is.
    if schema and schema != SCENE_SCHEMA_VERSION:
        messages.append(f"Unexpected schema: {schema}")

    scene = data.get("scene")
    objects: Any = None
    connections: Any = None
    if not isinstance(scene, dict):
        messages.append("scene must be an object")
    else:
        objects = scene.get("objects")
        connections = scene.get("connections")
        if not isinstance(objects, dict):
            messages.append("scene.objects must be an object")
        if not isinstance(connections, list):
            messages.append("scene.connections must be a list")

    return {
        "ok": len(messages) == 0,
        "messages": messages,
        "schema": schema,
        "object_count": len(objects) if isinstance(objects, dict) else 0,
        "connection_count": len(connections) if isinstance(connections, list) else 0,
        "has_version": "version" in data,
        "has_counter": "id_counter" in data,
    }
