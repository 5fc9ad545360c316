from __future__ import annotations

import contextlib
import json
import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, Mapping


SCENE_SCHEMA_VERSION = "scene_state_v1"

# Records written before the schema tag existed used camelCase keys.
_LEGACY_KEYS = {"sceneState": "scene", "idCounter": "id_counter", "sceneVersion": "version"}


def serialize_record(graph: Mapping[str, Any], id_counter: int, version: int) -> Dict[str, Any]:
    return {
        "schema": SCENE_SCHEMA_VERSION,
        "scene": {
            "objects": dict(graph.get("objects", {})),
            "connections": list(graph.get("connections", [])),
        },
        "id_counter": int(id_counter),
        "version": int(version),
        "saved_utc": datetime.now(timezone.utc).isoformat(),
    }


def normalize_record(data: Mapping[str, Any]) -> Dict[str, Any]:
    out = dict(data or {})
    for old, new in _LEGACY_KEYS.items():
        if old in out and new not in out:
            out[new] = out.pop(old)
    return out


def save_record(path: str, record: Mapping[str, Any]) -> str:
    """Write ``record`` as JSON, replacing ``path`` atomically."""
    out = os.path.abspath(str(path))
    folder = os.path.dirname(out) or "."
    os.makedirs(folder, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=".scene-", suffix=".tmp", dir=folder)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            json.dump(dict(record), f, ensure_ascii=False, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, out)
    except BaseException:
        with contextlib.suppress(OSError):
            os.remove(tmp)
        raise
    return out


def load_record(path: str) -> Dict[str, Any]:
    src = os.path.abspath(str(path or ""))
    if not src or not os.path.isfile(src):
        raise FileNotFoundError(src)
    with open(src, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise RuntimeError("Invalid scene record format")
    return normalize_record(data)
