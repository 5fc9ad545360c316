from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_MAX_BYTES = 2_000_000
LOG_BACKUPS = 5
LOG_DIR = Path("~") / ".scenekit" / "logs"


@dataclass(frozen=True)
class LoggerConfig:
    name: str = "scenekit"
    level: int = logging.INFO
    console: bool = False
    log_file: Optional[str] = None

    def resolved_file(self) -> Path:
        if self.log_file:
            return Path(self.log_file).expanduser().resolve()
        return (LOG_DIR.expanduser() / f"{self.name.replace('.', '_')}.log").resolve()


def _writes_to(handler: logging.Handler, path: Path) -> bool:
    base = getattr(handler, "baseFilename", None)
    return bool(base) and os.path.normcase(str(Path(base).resolve())) == os.path.normcase(str(path))


def _console_requested(config: LoggerConfig) -> bool:
    return config.console or str(os.environ.get("SCENEKIT_LOG_STDOUT", "")).strip() == "1"


def build_logger(config: LoggerConfig) -> logging.Logger:
    """Attach a rotating scene log (and optionally a console mirror) to ``config.name``.

    Calling it again for the same name and file adds nothing. Module loggers
    under ``scenekit.`` propagate into it; it does not propagate to root.
    """
    logger = logging.getLogger(config.name)
    logger.setLevel(int(config.level))
    formatter = logging.Formatter(LOG_FORMAT)

    log_file = config.resolved_file()
    if not any(_writes_to(h, log_file) for h in logger.handlers):
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(str(log_file), maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8")
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    has_console = any(type(h) is logging.StreamHandler for h in logger.handlers)
    if _console_requested(config) and not has_console:
        # stderr: stdout carries the CLI's JSON reply
        stream = logging.StreamHandler(stream=sys.stderr)
        stream.setFormatter(formatter)
        logger.addHandler(stream)

    logger.propagate = False
    return logger
