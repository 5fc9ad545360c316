from __future__ import annotations

import logging

import pytest

from scenekit.engine.scene_engine import SceneStore


def pytest_configure(config):
    config.addinivalue_line("markers", "scene: scene graph core tests")
    config.addinivalue_line("markers", "sandbox: tests that start a sandbox worker process")


@pytest.fixture
def store() -> SceneStore:
    return SceneStore()


@pytest.fixture
def state_path(tmp_path):
    return str(tmp_path / "state" / "scene-state.json")


@pytest.fixture
def restore_scenekit_logger():
    logger = logging.getLogger("scenekit")
    handlers = list(logger.handlers)
    level = logger.level
    propagate = logger.propagate
    yield logger
    for h in list(logger.handlers):
        if h not in handlers:
            logger.removeHandler(h)
            h.close()
    logger.setLevel(level)
    logger.propagate = propagate
