from __future__ import annotations

import json
import logging
import os
import subprocess
import sys
import tempfile
from typing import Any, Dict, Optional

import scenekit
from scenekit.core.perf import PerfTracer
from scenekit.engine.models import SandboxDisabled, SandboxExecutionError, SceneError
from scenekit.engine.scene_engine import SceneStore

from .policy import check_script


LOGGER = logging.getLogger(__name__)

WORKER_MODULE = "scenekit.sandbox.worker"
# Interpreter start-up plus imports, granted on top of the script budget.
WORKER_STARTUP_GRACE_S = 1.0


def _package_root() -> str:
    return os.path.dirname(os.path.dirname(os.path.abspath(scenekit.__file__)))


def _worker_env() -> Dict[str, str]:
    env = {
        "PYTHONPATH": _package_root(),
        "PYTHONIOENCODING": "utf-8",
        "PYTHONDONTWRITEBYTECODE": "1",
    }
    # Windows refuses to start Python without these.
    for key in ("SYSTEMROOT", "SystemRoot"):
        if key in os.environ:
            env[key] = os.environ[key]
    return env


class SandboxBridge:
    """Run bulk-edit scripts in a separate process against a copy of the scene.

    Only the plain-data ``objects`` and ``connections`` the worker sends back
    are merged, through ``SceneStore.replace_graph``. The store lock is held
    for the whole run, so no other mutation can interleave with the merge.
    """

    def __init__(
        self,
        store: SceneStore,
        *,
        enabled: bool = False,
        timeout_s: float = 1.0,
        python_executable: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.enabled = bool(enabled)
        self.timeout_s = float(timeout_s)
        self.python_executable = str(python_executable or sys.executable)
        self.logger = logger or LOGGER
        self.tracer = PerfTracer(logger=self.logger, threshold_s=0.5)

    def execute(self, code: str) -> Dict[str, Any]:
        if not self.enabled:
            raise SandboxDisabled("Sandboxed execution is disabled")
        check_script(code)
        with self.tracer.span("SANDBOX_RUN") as notes, self.store.lock:
            snapshot = self.store.get_scene_snapshot()
            reply = self._run_worker({"code": str(code), "scene": snapshot.graph_dict(), "timeout_s": self.timeout_s})
            payload = reply.get("payload")
            if not isinstance(payload, dict):
                raise SandboxExecutionError("Sandbox returned no payload")
            objects = payload.get("objects")
            connections = payload.get("connections")
            if not isinstance(objects, dict):
                raise SandboxExecutionError("scene.objects must be an object map")
            if not isinstance(connections, list):
                raise SandboxExecutionError("scene.connections must be a list")
            try:
                merged = self.store.replace_graph(objects, connections)
            except SceneError as exc:
                raise SandboxExecutionError(f"Sandbox result rejected: {exc}", details=exc.to_dict()) from exc
            notes.append(f"v{merged.version}")
        self.logger.info(
            "Sandbox merge committed v%d (%d objects, %d connections)",
            merged.version,
            len(merged.objects),
            len(merged.connections),
        )
        return {
            "result": "Code executed successfully",
            "object_count": len(merged.objects),
            "connection_count": len(merged.connections),
            "version": merged.version,
            "stdout": str(payload.get("stdout", "") or ""),
        }

    def _run_worker(self, request: Dict[str, Any]) -> Dict[str, Any]:
        cmd = [self.python_executable, "-B", "-m", WORKER_MODULE]
        with tempfile.TemporaryDirectory(prefix="scenekit-sandbox-") as workdir:
            try:
                proc = subprocess.run(
                    cmd,
                    input=json.dumps(request, ensure_ascii=False),
                    capture_output=True,
                    text=True,
                    encoding="utf-8",
                    timeout=self.timeout_s + WORKER_STARTUP_GRACE_S,
                    env=_worker_env(),
                    cwd=workdir,
                    check=False,
                )
            except subprocess.TimeoutExpired as exc:
                self.logger.warning("Sandbox script abandoned after %.2fs", self.timeout_s)
                raise SandboxExecutionError(
                    f"Script timed out after {self.timeout_s:.2f}s",
                    details={"timeout_s": self.timeout_s},
                ) from exc
            except OSError as exc:
                raise SandboxExecutionError(f"Unable to start sandbox worker: {exc}") from exc

        lines = [ln for ln in str(proc.stdout or "").splitlines() if ln.strip()]
        try:
            reply = json.loads(lines[-1]) if lines else None
        except ValueError:
            reply = None
        if not isinstance(reply, dict):
            tail = str(proc.stderr or "").strip().splitlines()[-1:] or ["no output"]
            raise SandboxExecutionError(f"Sandbox worker failed (exit {proc.returncode}): {tail[0]}")
        if not reply.get("ok", False):
            error = dict(reply.get("error", {}) or {})
            raise SandboxExecutionError(
                str(error.get("message", "Sandbox script failed")),
                details={"worker_code": str(error.get("code", ""))},
            )
        return reply
