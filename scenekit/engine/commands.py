from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol


class EngineStateProvider(Protocol):
    def capture_state(self) -> Any: ...
    def restore_state(self, state: Any) -> None: ...


@dataclass
class SceneCommand:
    """One all-or-nothing mutation of the scene graph.

    The engine state is captured before ``action`` runs; if the action raises,
    the captured state is restored and the exception propagates.
    """

    label: str
    action: Callable[[EngineStateProvider], Any]
    _before: Optional[Any] = None

    def do(self, engine: EngineStateProvider) -> Any:
        self._before = engine.capture_state()
        try:
            return self.action(engine)
        except BaseException:
            self.rollback(engine)
            raise

    def rollback(self, engine: EngineStateProvider) -> None:
        if self._before is not None:
            engine.restore_state(self._before)
