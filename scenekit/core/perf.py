from __future__ import annotations

import contextlib
import logging
import time
from typing import Iterator, List, Optional


class PerfTracer:
    """Log scene commits and sandbox runs that take longer than ``threshold_s``."""

    def __init__(self, logger: Optional[logging.Logger] = None, threshold_s: float = 0.050):
        self.logger = logger or logging.getLogger("scenekit.perf")
        self.threshold_s = float(threshold_s)

    @contextlib.contextmanager
    def span(self, tag: str) -> Iterator[List[str]]:
        """Time the block. Notes appended to the yielded list end up in the log line."""
        notes: List[str] = []
        t0 = time.perf_counter()
        try:
            yield notes
        finally:
            dt = time.perf_counter() - t0
            if dt > self.threshold_s:
                suffix = "".join(f" | {n}" for n in notes)
                self.logger.info("%s dt=%.2fms%s", tag, dt * 1000.0, suffix)
