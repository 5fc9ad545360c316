from .io import SCENE_SCHEMA_VERSION, load_record, save_record, serialize_record
from .persistence import PersistedState, ScenePersistence
from .validators import validate_record

__all__ = [
    "SCENE_SCHEMA_VERSION",
    "PersistedState",
    "ScenePersistence",
    "load_record",
    "save_record",
    "serialize_record",
    "validate_record",
]
