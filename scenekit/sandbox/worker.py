from __future__ import annotations

import argparse
import builtins
import contextlib
import io
import json
import logging
import signal
import sys
import threading
import time
from types import SimpleNamespace
from typing import Any, Dict

from scenekit.engine.geometry_ops import face_anchor_dict, half_extents_dict
from scenekit.engine.models import SceneError

from .policy import check_script


LOG = logging.getLogger("scenekit.sandbox.worker")

SAFE_BUILTINS = {
    name: getattr(builtins, name)
    for name in (
        "abs",
        "all",
        "any",
        "bool",
        "dict",
        "enumerate",
        "filter",
        "float",
        "int",
        "isinstance",
        "len",
        "list",
        "map",
        "max",
        "min",
        "print",
        "range",
        "reversed",
        "round",
        "set",
        "sorted",
        "str",
        "sum",
        "tuple",
        "zip",
        "Exception",
        "KeyError",
        "ValueError",
        "TypeError",
        "ZeroDivisionError",
    )
}

MAX_STDOUT_CHARS = 10_000


class ScriptTimeout(BaseException):
    """Raised inside the script when its wall-clock budget runs out."""


@contextlib.contextmanager
def _deadline(timeout_s):
    budget = SimpleNamespace(expired=False)
    # SIGALRM is POSIX only; elsewhere the elapsed check and the parent process kill remain.
    if not timeout_s or not hasattr(signal, "setitimer") or threading.current_thread() is not threading.main_thread():
        yield budget
        return

    def _expire(_signum, _frame):
        budget.expired = True
        raise ScriptTimeout(f"Script timed out after {float(timeout_s):.2f}s")

    previous = signal.signal(signal.SIGALRM, _expire)
    signal.setitimer(signal.ITIMER_REAL, float(timeout_s))
    try:
        yield budget
    finally:
        signal.setitimer(signal.ITIMER_REAL, 0)
        signal.signal(signal.SIGALRM, previous)


def _ok(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "ok": True,
        "payload": payload,
    }


def _err(message: str, *, code: str = "worker_error") -> Dict[str, Any]:
    return {
        "ok": False,
        "error": {
            "code": str(code),
            "message": str(message),
        },
    }


def _helpers() -> SimpleNamespace:
    return SimpleNamespace(half_extents=half_extents_dict, face_offset=face_anchor_dict)


def run_script(code: str, scene: Dict[str, Any], timeout_s: float | None = None) -> Dict[str, Any]:
    """Run ``code`` against ``scene`` and return the plain-data result.

    The script sees exactly two names: ``scene`` (``objects`` and
    ``connections``) and ``helpers`` (``half_extents``, ``face_offset``).
    """
    tree = check_script(code)
    env: Dict[str, Any] = {
        "__builtins__": dict(SAFE_BUILTINS),
        "scene": scene,
        "helpers": _helpers(),
    }
    out = io.StringIO()
    started = time.monotonic()
    with contextlib.redirect_stdout(out), _deadline(timeout_s) as budget:
        exec(compile(tree, "<sandbox>", "exec"), env)
    # The script may have caught ScriptTimeout; an overrun budget is still fatal.
    if budget.expired or (timeout_s and time.monotonic() - started > float(timeout_s)):
        raise ScriptTimeout(f"Script timed out after {float(timeout_s):.2f}s")

    result = env.get("scene")
    if not isinstance(result, dict):
        raise TypeError("scene must remain a dict")
    snapshot = {
        "objects": result.get("objects", {}),
        "connections": result.get("connections", []),
    }
    # Round-trip through JSON so only plain data leaves the sandbox.
    payload = json.loads(json.dumps(snapshot, allow_nan=False))
    payload["stdout"] = out.getvalue()[:MAX_STDOUT_CHARS]
    return payload


def run_worker(request: Dict[str, Any]) -> Dict[str, Any]:
    req = dict(request or {})
    scene = req.get("scene")
    if not isinstance(scene, dict):
        return _err("Request is missing the scene", code="bad_request")
    try:
        return _ok(run_script(str(req.get("code", "")), scene, req.get("timeout_s")))
    except ScriptTimeout as exc:
        return _err(str(exc), code="timeout")
    except SceneError as exc:
        return _err(str(exc), code=exc.code)
    except Exception as exc:
        LOG.debug("Sandbox script failed: %s", exc)
        return _err(f"{exc.__class__.__name__}: {exc}", code="script_error")


def _read_json_from_stdin() -> Dict[str, Any]:
    raw = sys.stdin.read()
    if not str(raw).strip():
        return {}
    return dict(json.loads(raw))


def _write_json_to_stdout(payload: Dict[str, Any]) -> None:
    sys.stdout.write(json.dumps(payload, ensure_ascii=False))
    sys.stdout.write("\n")
    sys.stdout.flush()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Isolated scene bulk-edit worker")
    parser.parse_args(argv)
    try:
        req = _read_json_from_stdin()
    except ValueError as exc:
        response = _err(f"Invalid request: {exc}", code="bad_request")
    else:
        response = run_worker(req)
    _write_json_to_stdout(response)
    return 0 if bool(response.get("ok", False)) else 1


if __name__ == "__main__":
    raise SystemExit(main())
