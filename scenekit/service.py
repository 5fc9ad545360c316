from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional

from scenekit.core.config import SceneConfig
from scenekit.engine.models import SceneError, ValidationError
from scenekit.engine.scene_engine import DIMENSION_FIELDS, SceneStore
from scenekit.sandbox.bridge import SandboxBridge
from scenekit.storage.persistence import ScenePersistence


LOGGER = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], Any]


def _ok(payload: Any) -> Dict[str, Any]:
    return {
        "ok": True,
        "payload": payload,
    }


def _err(error: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "ok": False,
        "error": dict(error),
    }


def _require(params: Mapping[str, Any], key: str) -> Any:
    value = params.get(key)
    if value is None or value == "":
        raise ValidationError(f"Missing required parameter: {key}", details={"field": key})
    return value


def _fields(params: Mapping[str, Any]) -> Dict[str, Any]:
    # Tool-style requests nest the object fields under "params".
    nested = params.get("params")
    return dict(nested) if isinstance(nested, Mapping) else dict(params)


class SceneService:
    """Named scene operations returning ``{"ok": ..., "payload"/"error": ...}`` envelopes."""

    def __init__(self, store: SceneStore, sandbox: Optional[SandboxBridge] = None, logger: Optional[logging.Logger] = None):
        self.store = store
        self.sandbox = sandbox or SandboxBridge(store, enabled=False)
        self.logger = logger or LOGGER
        self._handlers: Dict[str, Handler] = {
            "addObject": self._add_object,
            "getObject": self._get_object,
            "updateObject": self._update_object,
            "deleteObject": self._delete_object,
            "connect": self._connect,
            "clearScene": self._clear_scene,
            "getSceneSnapshot": self._get_scene_snapshot,
            "executeSandboxed": self._execute_sandboxed,
        }
        aliases = {
            "add_object": "addObject",
            "get_object": "getObject",
            "update_object": "updateObject",
            "delete_object": "deleteObject",
            "clear_scene": "clearScene",
            "get_scene_snapshot": "getSceneSnapshot",
            "get_scene_state": "getSceneSnapshot",
            "execute_sandboxed": "executeSandboxed",
            "execute_code": "executeSandboxed",
        }
        for alias, target in aliases.items():
            self._handlers[alias] = self._handlers[target]

    @classmethod
    def from_config(cls, config: SceneConfig, logger: Optional[logging.Logger] = None) -> "SceneService":
        log = logger or LOGGER
        persistence = ScenePersistence(config.state_path or None, async_writes=config.async_writes, logger=log)
        store = SceneStore(persistence, logger=log)
        sandbox = SandboxBridge(store, enabled=config.sandbox_enabled, timeout_s=config.sandbox_timeout_s, logger=log)
        return cls(store, sandbox, logger=log)

    @property
    def commands(self) -> list:
        return sorted(self._handlers)

    def dispatch(self, command: str, params: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        name = str(command or "").strip()
        handler = self._handlers.get(name)
        if handler is None:
            return _err(SceneError(f"Unknown command: {name}", code="unknown_command").to_dict())
        try:
            return _ok(handler(dict(params or {})))
        except SceneError as exc:
            self.logger.info("%s failed: %s", name, exc)
            return _err(exc.to_dict())
        except Exception as exc:
            self.logger.exception("%s crashed: %s", name, exc)
            return _err({"code": "internal_error", "message": str(exc), "details": {}})

    def close(self) -> None:
        self.store.persistence.close()

    # ---------------- handlers ----------------
    def _add_object(self, params: Dict[str, Any]) -> Dict[str, Any]:
        kind = _require(params, "type")
        fields = _fields(params)
        dims = {k: fields.get(k) for k in DIMENSION_FIELDS}
        oid = self.store.add_object(
            str(kind),
            name=fields.get("name"),
            position=fields.get("position"),
            scale=fields.get("scale"),
            color=fields.get("color"),
            **dims,
        )
        return {"id": oid}

    def _get_object(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return self.store.get_object(str(_require(params, "id"))).to_dict()

    def _update_object(self, params: Dict[str, Any]) -> Dict[str, Any]:
        oid = str(_require(params, "id"))
        fields = _fields(params)
        fields.pop("id", None)
        dims = {k: fields.get(k) for k in DIMENSION_FIELDS}
        obj = self.store.update_object(
            oid,
            name=fields.get("name"),
            position=fields.get("position"),
            scale=fields.get("scale"),
            color=fields.get("color"),
            **dims,
        )
        return {"id": obj.id, "object": obj.to_dict()}

    def _delete_object(self, params: Dict[str, Any]) -> Dict[str, Any]:
        oid = str(_require(params, "id"))
        self.store.delete_object(oid)
        return {"deleted": oid}

    def _connect(self, params: Dict[str, Any]) -> Dict[str, Any]:
        from_id = str(_require(params, "from_id"))
        new_pos = self.store.connect(
            from_id,
            str(_require(params, "face_a")),
            str(_require(params, "to_id")),
            str(_require(params, "face_b")),
        )
        return {"from_id": from_id, "new_position": new_pos.to_dict()}

    def _clear_scene(self, params: Dict[str, Any]) -> Dict[str, Any]:
        self.store.clear_scene()
        return {"cleared": True}

    def _get_scene_snapshot(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return self.store.get_scene_snapshot().to_dict()

    def _execute_sandboxed(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return self.sandbox.execute(str(params.get("code", "") or ""))
