from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from scenekit.engine.models import PersistenceWarning
from scenekit.engine.scene_engine import SceneStore
from scenekit.storage.io import SCENE_SCHEMA_VERSION, load_record, save_record, serialize_record
from scenekit.storage.persistence import ScenePersistence
from scenekit.storage.validators import validate_record


pytestmark = pytest.mark.scene


def _write_json(path: str, data) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    Path(path).write_text(json.dumps(data), encoding="utf-8")


def test_commit_then_reload_roundtrip(state_path):
    store = SceneStore(ScenePersistence(state_path))
    table = store.add_object("box", name="Table", width=200, height=20, depth=100, color="#cc0000")
    leg = store.add_object("cylinder", name="Leg", radius=10, height=100)
    store.connect(leg, "bottom", table, "top")
    before = store.get_scene_snapshot()

    reloaded = SceneStore(ScenePersistence(state_path))
    after = reloaded.get_scene_snapshot()

    assert after.to_dict() == before.to_dict()
    assert after.next_id == before.next_id == 3
    assert reloaded.version == before.version == 3

    reloaded.update_object(table, color="#0000cc")
    again = SceneStore(ScenePersistence(state_path))
    assert again.version == 4
    assert again.get_object(table).color == "#0000cc"
    assert again.add_object("sphere") == "obj_3"


def test_record_layout(state_path):
    store = SceneStore(ScenePersistence(state_path))
    store.add_object("plane", name="Floor")

    record = load_record(state_path)

    assert record["schema"] == SCENE_SCHEMA_VERSION
    assert record["id_counter"] == 2
    assert record["version"] == 1
    assert record["scene"]["objects"]["obj_1"]["type"] == "plane"
    assert record["scene"]["connections"] == []
    assert validate_record(record)["ok"] is True


def test_missing_file_starts_empty(state_path):
    persistence = ScenePersistence(state_path)
    state = persistence.load()

    assert state.objects == {}
    assert state.connections == []
    assert (state.id_counter, state.version) == (1, 0)
    assert persistence.last_warning is None


def test_corrupt_file_starts_empty_with_warning(state_path, caplog):
    Path(state_path).parent.mkdir(parents=True)
    Path(state_path).write_text("{ not json", encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="scenekit.storage.persistence"):
        store = SceneStore(ScenePersistence(state_path))

    assert store.object_count == 0
    assert store.version == 0
    assert isinstance(store.persistence.last_warning, PersistenceWarning)
    assert "Failed to read persisted scene" in caplog.text
    assert store.add_object("box") == "obj_1"


@pytest.mark.parametrize(
    "payload",
    [
        [1, 2, 3],
        {"schema": "someone_elses_v9", "scene": {"objects": {}, "connections": []}},
        {"schema": SCENE_SCHEMA_VERSION, "scene": {"objects": [], "connections": []}},
        {"schema": SCENE_SCHEMA_VERSION},
    ],
)
def test_schema_mismatch_starts_empty(state_path, payload):
    _write_json(state_path, payload)
    store = SceneStore(ScenePersistence(state_path))

    assert store.get_scene_snapshot().to_dict() == {"objects": {}, "connections": [], "version": 0}
    assert store.next_id == 1


def test_legacy_record_without_version_or_counter(state_path):
    _write_json(
        state_path,
        {
            "sceneState": {
                "objects": {
                    "obj_3": {"type": "box", "id": "obj_3", "name": "a", "position": {"x": 0, "y": 0, "z": 0}, "scale": {"x": 1, "y": 1, "z": 1}, "color": "#888888", "width": 1, "height": 1, "depth": 1},
                    "obj_7": {"type": "sphere", "id": "obj_7", "name": "b", "radius": 2},
                },
                "connections": [{"from_id": "obj_7", "face_a": "bottom", "to_id": "obj_3", "face_b": "top"}],
            }
        },
    )

    store = SceneStore(ScenePersistence(state_path))

    assert store.version == 0
    assert list(store.objects) == ["obj_3", "obj_7"]
    assert len(store.connections) == 1
    assert store.next_id == 8


def test_stale_counter_is_raised_past_existing_ids(state_path):
    record = serialize_record(
        {"objects": {"obj_5": {"type": "cone", "id": "obj_5", "name": "c"}}, "connections": []},
        id_counter=2,
        version=11,
    )
    save_record(state_path, record)

    store = SceneStore(ScenePersistence(state_path))

    assert store.version == 11
    assert store.add_object("cone") == "obj_6"


def test_invalid_objects_are_dropped_with_their_connections(state_path):
    record = serialize_record(
        {
            "objects": {
                "obj_1": {"type": "box", "id": "obj_1", "name": "ok"},
                "obj_2": {"type": "box", "id": "obj_2", "name": "bad", "width": -4},
                "obj_3": {"type": "box", "id": "obj_99", "name": "aliased"},
            },
            "connections": [
                {"from_id": "obj_2", "face_a": "top", "to_id": "obj_1", "face_b": "bottom"},
                {"from_id": "obj_1", "face_a": "sideways", "to_id": "obj_1", "face_b": "bottom"},
            ],
        },
        id_counter=4,
        version=2,
    )
    save_record(state_path, record)

    persistence = ScenePersistence(state_path)
    state = persistence.load()

    assert list(state.objects) == ["obj_1"]
    assert state.connections == []
    assert state.id_counter == 4
    assert isinstance(persistence.last_warning, PersistenceWarning)


def test_write_failure_is_a_warning_not_an_error(tmp_path, caplog):
    blocked = tmp_path / "occupied"
    blocked.mkdir()
    store = SceneStore(ScenePersistence(str(blocked)))

    with caplog.at_level(logging.WARNING, logger="scenekit.storage.persistence"):
        oid = store.add_object("box")

    assert store.get_object(oid).id == "obj_1"
    assert store.version == 1
    assert store.persistence.last_warning is not None
    assert store.persistence.last_warning.code == "persistence_warning"
    assert "Failed to persist scene v1" in caplog.text


def test_atomic_writes_leave_no_temp_files(state_path):
    store = SceneStore(ScenePersistence(state_path))
    for _ in range(5):
        store.add_object("sphere")

    folder = Path(state_path).parent
    assert sorted(p.name for p in folder.iterdir()) == [Path(state_path).name]


def test_async_writes_land_after_flush(state_path):
    persistence = ScenePersistence(state_path, async_writes=True)
    store = SceneStore(persistence)
    for _ in range(10):
        store.add_object("box")
    persistence.close()

    record = load_record(state_path)
    assert record["version"] == 10
    assert len(record["scene"]["objects"]) == 10
    assert record["id_counter"] == 11


def test_in_memory_persistence_counts_versions(tmp_path):
    persistence = ScenePersistence(None)
    assert persistence.commit({"objects": {}, "connections": []}, 1) == 1
    assert persistence.commit({"objects": {}, "connections": []}, 1) == 2
    assert list(tmp_path.iterdir()) == []


def test_async_write_errors_are_logged_as_warnings(state_path, monkeypatch, caplog):
    def _explode(path, record):
        raise RuntimeError("disk gone")

    monkeypatch.setattr("scenekit.storage.persistence.save_record", _explode)
    persistence = ScenePersistence(state_path, async_writes=True)
    store = SceneStore(persistence)

    with caplog.at_level(logging.WARNING, logger="scenekit.storage.persistence"):
        store.add_object("box")
        persistence.close()

    assert persistence.last_warning is not None
    assert "disk gone" in str(persistence.last_warning)
    assert "Failed to persist scene v1" in caplog.text
