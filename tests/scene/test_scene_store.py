from __future__ import annotations

import math
import threading

import pytest

from scenekit.engine.models import InvalidColor, NotFound, ValidationError
from scenekit.engine.scene_engine import SceneStore
from scenekit.engine.scene_object import DEFAULT_COLOR, BoxObject, Connection, Vec3, default_dimensions


pytestmark = pytest.mark.scene


@pytest.mark.parametrize(
    "kind, expected",
    [
        ("box", {"width": 100.0, "height": 100.0, "depth": 100.0}),
        ("sphere", {"radius": 50.0}),
        ("cylinder", {"radius": 25.0, "height": 100.0}),
        ("cone", {"radius": 25.0, "height": 100.0}),
        ("plane", {"width": 200.0, "depth": 200.0}),
    ],
)
def test_add_applies_documented_defaults(store: SceneStore, kind, expected):
    oid = store.add_object(kind, name=f"default {kind}")
    obj = store.get_object(oid)

    assert obj.KIND == kind
    assert obj.dimensions() == expected == default_dimensions(kind)
    assert obj.position == Vec3(0, 0, 0)
    assert obj.scale == Vec3(1, 1, 1)
    assert obj.color == DEFAULT_COLOR


def test_table_and_leg_scenario(store: SceneStore):
    table = store.add_object("box", name="Table", width=200, height=20, depth=100, color="#cc0000")
    leg = store.add_object("cylinder", name="Leg", radius=10, height=100, color="#ffffff")
    assert (table, leg) == ("obj_1", "obj_2")

    new_pos = store.connect(leg, "bottom", table, "top")
    assert new_pos == Vec3(0, 60, 0)
    assert store.get_object(leg).position == Vec3(0, 60, 0)
    assert store.connections == [Connection("obj_2", "bottom", "obj_1", "top")]

    before = store.get_object(table)
    after = store.update_object(table, color="#0000cc")
    assert after.color == "#0000cc"
    assert after == before.with_fields(color="#0000cc")


def test_add_without_name_uses_id(store: SceneStore):
    oid = store.add_object("sphere")
    assert store.get_object(oid).name == oid


def test_add_ignores_dimensions_the_kind_does_not_declare(store: SceneStore):
    oid = store.add_object("sphere", radius=5, width=300)
    assert store.get_object(oid).dimensions() == {"radius": 5.0}


def test_invalid_color_on_add_changes_nothing(store: SceneStore):
    with pytest.raises(InvalidColor):
        store.add_object("box", color="red")
    with pytest.raises(InvalidColor):
        store.add_object("box", color="#12345")

    assert store.object_count == 0
    assert store.version == 0
    assert store.add_object("box") == "obj_1"


@pytest.mark.parametrize(
    "dims",
    [
        {"width": 0},
        {"height": -1},
        {"depth": math.nan},
        {"width": math.inf},
        {"width": "wide"},
    ],
)
def test_invalid_dimensions_are_rejected(store: SceneStore, dims):
    with pytest.raises(ValidationError):
        store.add_object("box", **dims)
    assert store.object_count == 0
    assert store.next_id == 1
    assert store.version == 0


def test_non_positive_scale_is_rejected(store: SceneStore):
    with pytest.raises(ValidationError):
        store.add_object("sphere", scale={"x": 1, "y": 0, "z": 1})
    with pytest.raises(ValidationError):
        store.add_object("sphere", scale={"x": 1, "y": 1})


def test_unknown_kind_is_rejected(store: SceneStore):
    with pytest.raises(ValidationError):
        store.add_object("torus")
    assert store.version == 0


def test_get_missing_object(store: SceneStore):
    with pytest.raises(NotFound) as exc:
        store.get_object("obj_42")
    assert exc.value.code == "not_found"
    assert exc.value.details["id"] == "obj_42"


def test_partial_update_leaves_other_fields(store: SceneStore):
    oid = store.add_object("cone", name="Tip", position={"x": 1, "y": 2, "z": 3}, radius=4, height=9, color="#00ff00")
    before = store.get_object(oid)

    after = store.update_object(oid, name="Spike")

    assert after.name == "Spike"
    assert after == before.with_fields(name="Spike")
    assert after.id == oid


def test_update_dimension_on_matching_kind(store: SceneStore):
    oid = store.add_object("cylinder", radius=4, height=9)
    after = store.update_object(oid, radius=6, scale=(2, 2, 2))
    assert after.radius == 6.0
    assert after.height == 9.0
    assert after.scale == Vec3(2, 2, 2)


def test_radius_on_box_is_silently_ignored(store: SceneStore):
    oid = store.add_object("box", width=10, height=20, depth=30)
    before = store.get_object(oid)

    after = store.update_object(oid, radius=99)

    assert isinstance(after, BoxObject)
    assert after == before


def test_update_failures_leave_object_untouched(store: SceneStore):
    oid = store.add_object("box", color="#101010")
    before = store.get_object(oid)
    version = store.version

    with pytest.raises(NotFound):
        store.update_object("obj_9", color="#ffffff")
    with pytest.raises(InvalidColor):
        store.update_object(oid, color="#zzzzzz")
    with pytest.raises(ValidationError):
        store.update_object(oid, width=-5)
    with pytest.raises(ValidationError):
        store.update_object(oid, colour="#ffffff")

    assert store.get_object(oid) == before
    assert store.version == version


def test_update_missing_id_reports_not_found_before_bad_color(store: SceneStore):
    with pytest.raises(NotFound):
        store.update_object("obj_7", color="nope")


def test_delete_cascades_connections(store: SceneStore):
    a = store.add_object("box")
    b = store.add_object("box")
    c = store.add_object("box")
    store.connect(b, "bottom", a, "top")
    store.connect(c, "bottom", b, "top")
    store.connect(c, "left", a, "right")

    store.delete_object(b)

    assert b not in store.objects
    assert store.connections == [Connection(c, "left", a, "right")]
    assert all(not conn.involves(b) for conn in store.connections)
    with pytest.raises(NotFound):
        store.delete_object(b)


def test_ids_are_never_reused(store: SceneStore):
    first = store.add_object("sphere")
    store.delete_object(first)
    second = store.add_object("sphere")

    assert (first, second) == ("obj_1", "obj_2")


def test_clear_resets_counter(store: SceneStore):
    store.add_object("box")
    store.add_object("box")
    a = store.add_object("box")
    b = store.add_object("box")
    store.connect(a, "top", b, "bottom")

    store.clear_scene()

    assert store.objects == {}
    assert store.connections == []
    assert store.add_object("plane") == "obj_1"


def test_self_connection_is_allowed(store: SceneStore):
    oid = store.add_object("box")

    moved = store.connect(oid, "bottom", oid, "top")
    assert moved == Vec3(0, 100, 0)

    store.update_object(oid, position={"x": 5, "y": 5, "z": 5})
    still = store.connect(oid, "center", oid, "center")
    assert still == Vec3(5, 5, 5)
    assert len(store.connections_for(oid)) == 2


def test_connect_failures_do_not_commit(store: SceneStore):
    oid = store.add_object("box")
    version = store.version

    with pytest.raises(NotFound):
        store.connect(oid, "top", "obj_99", "bottom")
    with pytest.raises(NotFound):
        store.connect("obj_99", "top", oid, "bottom")
    with pytest.raises(ValidationError):
        store.connect(oid, "upside", oid, "bottom")

    assert store.connections == []
    assert store.version == version


def test_each_mutation_commits_once_and_reads_never(store: SceneStore):
    a = store.add_object("box")
    b = store.add_object("sphere")
    assert store.version == 2

    store.get_object(a)
    store.get_scene_snapshot()
    store.list_objects()
    assert store.version == 2

    store.update_object(a, name="A")
    store.connect(b, "bottom", a, "top")
    store.delete_object(b)
    store.clear_scene()
    assert store.version == 6


def test_snapshot_is_immutable_and_detached(store: SceneStore):
    oid = store.add_object("box")
    snap = store.get_scene_snapshot()

    with pytest.raises(TypeError):
        snap.objects["obj_2"] = snap.objects[oid]
    with pytest.raises(AttributeError):
        snap.objects[oid].name = "changed"

    store.update_object(oid, name="renamed")
    store.add_object("box")

    assert snap.objects[oid].name == oid
    assert list(snap.objects) == [oid]
    assert snap.to_dict()["version"] == 1
    assert snap.next_id == 2


def test_replace_graph_rejects_dangling_connection(store: SceneStore):
    oid = store.add_object("box")
    before = store.get_scene_snapshot().to_dict()

    with pytest.raises(ValidationError):
        store.replace_graph(
            {oid: store.get_object(oid).to_dict()},
            [{"from_id": oid, "face_a": "top", "to_id": "obj_8", "face_b": "bottom"}],
        )
    with pytest.raises(ValidationError):
        store.replace_graph({"obj_3": store.get_object(oid).to_dict()}, [])

    assert store.get_scene_snapshot().to_dict() == before


def test_replace_graph_moves_counter_past_new_ids(store: SceneStore):
    store.add_object("box")
    rows = {
        "obj_1": {"type": "box", "id": "obj_1", "name": "a"},
        "obj_9": {"type": "sphere", "id": "obj_9", "name": "b", "radius": 3},
    }

    snap = store.replace_graph(rows, [])

    assert set(snap.objects) == {"obj_1", "obj_9"}
    assert store.add_object("cone") == "obj_10"


def test_concurrent_adds_get_unique_ids(store: SceneStore):
    ids = []
    lock = threading.Lock()

    def _worker():
        for _ in range(25):
            oid = store.add_object("sphere")
            with lock:
                ids.append(oid)

    threads = [threading.Thread(target=_worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(ids) == len(set(ids)) == 100
    assert store.version == 100
    assert store.next_id == 101


def test_concurrent_deletes_of_same_id_cascade_once():
    for _ in range(20):
        store = SceneStore()
        target = store.add_object("box")
        other = store.add_object("sphere")
        store.connect(other, "bottom", target, "top")
        outcomes = []
        barrier = threading.Barrier(2)

        def _worker():
            barrier.wait()
            try:
                store.delete_object(target)
            except NotFound:
                outcomes.append("missing")
            else:
                outcomes.append("deleted")

        threads = [threading.Thread(target=_worker) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(outcomes) == ["deleted", "missing"]
        assert store.connections == []
        assert [o.id for o in store.list_objects()] == [other]
        assert store.version == 4
