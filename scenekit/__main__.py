from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from typing import Any, Dict

from scenekit.core.config import SceneConfig
from scenekit.core.logging import LoggerConfig, build_logger
from scenekit.service import SceneService


def _read_request(args: argparse.Namespace) -> Dict[str, Any]:
    if args.request_file:
        with open(args.request_file, "r", encoding="utf-8") as f:
            return dict(json.load(f))
    if args.command:
        params = json.loads(args.params) if args.params else {}
        return {"command": args.command, "params": params}
    raw = sys.stdin.read()
    if not str(raw).strip():
        return {}
    return dict(json.loads(raw))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="scenekit", description="Run one scene command against the persisted scene")
    parser.add_argument("command", nargs="?", default="", help="Command name, e.g. addObject or getSceneSnapshot")
    parser.add_argument("--params", default="", help="JSON object with the command parameters")
    parser.add_argument("--request-file", default="", help="Read a {command, params} JSON request from file")
    parser.add_argument("--state", default="", help="Scene state file (default: $SCENEKIT_STATE_PATH)")
    parser.add_argument("--enable-sandbox", action="store_true", help="Allow executeSandboxed")
    parser.add_argument("--verbose", action="store_true", help="Mirror logs to stderr")
    args = parser.parse_args(argv)

    build_logger(LoggerConfig(name="scenekit", level=logging.DEBUG if args.verbose else logging.INFO, console=args.verbose))

    config = SceneConfig.from_env()
    overrides: Dict[str, Any] = {}
    if args.state:
        overrides["state_path"] = args.state
    if args.enable_sandbox:
        overrides["sandbox_enabled"] = True
    if overrides:
        config = dataclasses.replace(config, **overrides)

    try:
        request = _read_request(args)
    except ValueError as exc:
        response: Dict[str, Any] = {"ok": False, "error": {"code": "bad_request", "message": str(exc), "details": {}}}
    else:
        service = SceneService.from_config(config, logger=logging.getLogger("scenekit"))
        try:
            response = service.dispatch(str(request.get("command", "")), request.get("params") or {})
        finally:
            service.close()

    sys.stdout.write(json.dumps(response, ensure_ascii=False, indent=2))
    sys.stdout.write("\n")
    return 0 if bool(response.get("ok", False)) else 1


if __name__ == "__main__":
    raise SystemExit(main())
