from __future__ import annotations

import logging
import math
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from scenekit.core.perf import PerfTracer
from scenekit.engine.models import PersistenceWarning, SceneError
from scenekit.engine.scene_object import Connection, SceneObject, infer_id_counter, object_from_dict
from scenekit.engine.validators import validate_object

from .io import load_record, save_record, serialize_record
from .validators import validate_record


LOGGER = logging.getLogger(__name__)


@dataclass
class PersistedState:
    objects: Dict[str, SceneObject] = field(default_factory=dict)
    connections: List[Connection] = field(default_factory=list)
    id_counter: int = 1
    version: int = 0


def _as_count(value: Any, minimum: int) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(float(value)) or value < minimum:
        return None
    return int(math.floor(value))


class ScenePersistence:
    """Durable (graph, id counter, version) record behind a JSON file.

    ``path=None`` keeps everything in memory: versions still advance but
    nothing touches disk. With ``async_writes`` the file writes run on a
    single background worker, in commit order, so callers never wait on disk.
    """

    def __init__(self, path: Optional[str] = None, *, async_writes: bool = False, logger: Optional[logging.Logger] = None):
        self.path = os.path.abspath(path) if path else None
        self.logger = logger or LOGGER
        self.tracer = PerfTracer(logger=self.logger)
        self.last_warning: Optional[PersistenceWarning] = None
        self._version = 0
        self._lock = threading.Lock()
        self._pending: List[Future] = []
        self._executor: Optional[ThreadPoolExecutor] = None
        if async_writes and self.path:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="scenekit-persist")

    @property
    def version(self) -> int:
        return self._version

    def _warn(self, message: str) -> PersistenceWarning:
        warning = PersistenceWarning(message, details={"path": self.path or ""})
        self.last_warning = warning
        self.logger.warning("%s", message)
        return warning

    # ---------------- load ----------------
    def load(self) -> PersistedState:
        """Read the persisted record; any failure yields an empty graph at version 0."""
        self._version = 0
        if not self.path:
            return PersistedState()
        try:
            payload = load_record(self.path)
        except FileNotFoundError:
            self.logger.info("No persisted scene at %s; starting empty", self.path)
            return PersistedState()
        except (OSError, ValueError, RuntimeError) as exc:
            self._warn(f"Failed to read persisted scene {self.path}: {exc}")
            return PersistedState()

        report = validate_record(payload)
        if not report["ok"]:
            self._warn("Ignoring persisted scene: " + " | ".join(report["messages"]))
            return PersistedState()

        state = self._decode(payload)
        self._version = state.version
        self.logger.info(
            "Loaded scene v%d from %s (%d objects, %d connections, next id %d)",
            state.version,
            self.path,
            len(state.objects),
            len(state.connections),
            state.id_counter,
        )
        return state

    def _decode(self, payload: Mapping[str, Any]) -> PersistedState:
        scene = payload["scene"]
        objects: Dict[str, SceneObject] = {}
        for key, row in scene["objects"].items():
            try:
                obj = validate_object(object_from_dict(row))
            except SceneError as exc:
                self._warn(f'Dropping persisted object "{key}": {exc}')
                continue
            if obj.id != str(key):
                self._warn(f'Dropping persisted object "{key}": id mismatch ("{obj.id}")')
                continue
            objects[obj.id] = obj

        connections: List[Connection] = []
        for row in scene["connections"]:
            try:
                conn = Connection.from_dict(row)
            except SceneError as exc:
                self._warn(f"Dropping persisted connection: {exc}")
                continue
            if conn.from_id not in objects or conn.to_id not in objects:
                self._warn(f"Dropping dangling connection {conn.from_id} -> {conn.to_id}")
                continue
            connections.append(conn)

        counter = _as_count(payload.get("id_counter"), 1)
        inferred = infer_id_counter(objects.keys(), floor=1)
        id_counter = inferred if counter is None else max(counter, inferred)
        version = _as_count(payload.get("version"), 0) or 0
        return PersistedState(objects=objects, connections=connections, id_counter=id_counter, version=version)

    # ---------------- commit ----------------
    def commit(self, graph: Mapping[str, Any], id_counter: int) -> int:
        """Advance the version and write the full record. Returns the new version.

        ``graph`` must already be plain data; it is not copied again.
        Write failures are logged as warnings and never raised.
        """
        with self._lock:
            self._version += 1
            version = self._version
            if not self.path:
                return version
            record = serialize_record(graph, id_counter, version)
            if self._executor is not None:
                self._pending = [f for f in self._pending if not f.done()]
                self._pending.append(self._executor.submit(self._write, record))
            else:
                self._write(record)
            return version

    def _write(self, record: Dict[str, Any]) -> bool:
        version = record.get("version")
        with self.tracer.span("SCENE_COMMIT") as notes:
            notes.append(f"v{version}")
            try:
                save_record(self.path, record)
            except Exception as exc:
                # Runs on the writer thread too, where nothing reads the future.
                self._warn(f"Failed to persist scene v{version}: {exc}")
                return False
        return True

    def flush(self, timeout: Optional[float] = None) -> None:
        """Block until every queued write has finished."""
        with self._lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def close(self) -> None:
        self.flush()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
