"""
Built-in category schemas for a slot's save files.

Each slot directory holds one file per category:

    SlotInfo.sav          Slot Info     (slot summary + thumbnail)
    PlayerData_<n>.sav    Player Data   (one per player, n = 1..4)
    MissionData.sav       Mission Data
    StatsData.sav         Stats Data
    WorldData.sav         World Data    (no schema yet -> shown as unavailable)

The shipped game writes these files as .NET BinaryFormatter streams. The
layouts below are illustrative stand-ins, not that format: every file starts
with a 4-byte signature and a little-endian u16 schema version, and between
them they use every descriptor kind. A real layout registers its own
CategorySchema next to these rather than patching the decoder.

The build_* helpers produce well-formed sample buffers for tests and demos.
"""

from typing import Dict, Iterable, Optional, Sequence, Tuple

from ...utils.binary import ByteCursor
from .schema import (
    AlignField, BlobField, BoolField, CategorySchema, FloatField, IntField, MagicField,
    PaddingField, RecordField, SequenceField, StringField, VariantField, register_schema,
)

SLOT_INFO = "Slot Info"
PLAYER_DATA = "Player Data"
MISSION_DATA = "Mission Data"
STATS_DATA = "Stats Data"
WORLD_DATA = "World Data"

# Category -> file name inside a slot directory ({player} = player index)
CATEGORY_FILES: Dict[str, str] = {
    SLOT_INFO: "SlotInfo.sav",
    PLAYER_DATA: "PlayerData_{player}.sav",
    MISSION_DATA: "MissionData.sav",
    STATS_DATA: "StatsData.sav",
    WORLD_DATA: "WorldData.sav",
}

KNOWN_CATEGORIES = tuple(CATEGORY_FILES)

VERSION_OFFSET = 4


def _header(signature: bytes) -> tuple:
    return (
        MagicField("signature", signature),
        IntField("version", width=2, readonly=True),
    )


# ─────────────────────────────────────────────────────────────
# SLOT INFO
# ─────────────────────────────────────────────────────────────

SLOT_INFO_V1 = register_schema(CategorySchema(
    category=SLOT_INFO, version=1, name="SaveSlotInfoData",
    signature=b"WLSI", version_at=VERSION_OFFSET,
    fields=_header(b"WLSI") + (
        IntField("lastSelectedPlayerSlot", width=4, signed=True),
        StringField("dateTime", prefix="varint", max_length=64),
        IntField("thumbnailWidth", width=2),
        IntField("thumbnailHeight", width=2),
        BlobField("smallImageData", prefix="u32"),
    ),
))


# ─────────────────────────────────────────────────────────────
# PLAYER DATA
# ─────────────────────────────────────────────────────────────

_VECTOR3 = (FloatField("x"), FloatField("y"), FloatField("z"))

_VEHICLE = RecordField("vehicle", name="VehicleSave", fields=(
    IntField("id", width=4),
    IntField("colour", width=4),
    BoolField("isOwned"),
))

_CONTROLS = VariantField(
    "controls",
    cases={
        0: (FloatField("mouseSensitivity"),),
        1: (FloatField("stickSensitivity"), BoolField("invertY")),
    },
    names={0: "KeyboardControls", 1: "GamepadControls"},
)

_PLAYER_V1_FIELDS = _header(b"WLPD") + (
    StringField("name", prefix="u16", max_length=32),
    IntField("money", width=4),
    IntField("playerSlot", width=1),
    BoolField("isFirstTime"),
    AlignField("align0", boundary=4),
    RecordField("position", fields=_VECTOR3, name="Vector3"),
    FloatField("health"),
    SequenceField("unlockedClothing", element=StringField("item", prefix="varint"),
                  prefix="u32"),
    SequenceField("vehicles", element=_VEHICLE, prefix="u16"),
    _CONTROLS,
)

PLAYER_DATA_V1 = register_schema(CategorySchema(
    category=PLAYER_DATA, version=1, name="PlayerSaveData",
    signature=b"WLPD", version_at=VERSION_OFFSET,
    fields=_PLAYER_V1_FIELDS,
))

# v2 appends a length-bounded job record; readers of v1 files never see it
PLAYER_DATA_V2 = register_schema(CategorySchema(
    category=PLAYER_DATA, version=2, name="PlayerSaveData",
    signature=b"WLPD", version_at=VERSION_OFFSET,
    fields=_PLAYER_V1_FIELDS + (
        RecordField("jobs", size_prefix="u32", name="JobSave", fields=(
            IntField("currentJob", width=2),
            IntField("jobLevel", width=2),
            FloatField("experience", width=8),
        )),
    ),
))


# ─────────────────────────────────────────────────────────────
# MISSION DATA
# ─────────────────────────────────────────────────────────────

_MISSION = RecordField("mission", name="MissionSave", fields=(
    StringField("id", size=16, encoding="ascii"),
    BoolField("completed"),
    FloatField("bestTime", width=8),
    IntField("stars", width=1),
    PaddingField("reserved", size=3),
))

_MISSION_EVENT = RecordField("event", name="MissionEvent", fields=(
    IntField("eventId", width=2),
    IntField("count", width=2),
))

EVENTS_END = b"\xff\xff"

MISSION_DATA_V1 = register_schema(CategorySchema(
    category=MISSION_DATA, version=1, name="MissionSaveData",
    signature=b"WLMD", version_at=VERSION_OFFSET,
    fields=_header(b"WLMD") + (
        IntField("missionCount", width=4),
        SequenceField("missions", element=_MISSION, count_from="missionCount"),
        StringField("activeMission", terminated=True),
        SequenceField("events", element=_MISSION_EVENT, until=EVENTS_END),
    ),
))


# ─────────────────────────────────────────────────────────────
# STATS DATA
# ─────────────────────────────────────────────────────────────

STATS_DATA_V1 = register_schema(CategorySchema(
    category=STATS_DATA, version=1, name="StatsSaveData",
    signature=b"WLST", version_at=VERSION_OFFSET,
    fields=_header(b"WLST") + (
        IntField("distanceWalked", width=8),
        FloatField("playTime", width=8),
        IntField("jumps", width=4),
        StringField("lastLocation", prefix="u8", encoding="utf-16-le"),
        SequenceField("counters", element=IntField("value", width=4, signed=True),
                      until_end=True),
    ),
))


# ─────────────────────────────────────────────────────────────
# SAMPLE BUFFERS
# ─────────────────────────────────────────────────────────────

def _start(signature: bytes, version: int) -> ByteCursor:
    w = ByteCursor()
    w.write_bytes(signature)
    w.write_uint16(version)
    return w


def build_slot_info_bytes(last_selected_player_slot: int = 1,
                          date_time: str = "2025-09-22 12:00",
                          small_image_data: Optional[bytes] = None,
                          width: int = 16, height: int = 16) -> bytes:
    """Slot Info file with a raw RGB thumbnail (black unless given)."""
    if small_image_data is None:
        small_image_data = bytes(width * height * 3)
    w = _start(b"WLSI", 1)
    w.write_int32(last_selected_player_slot)
    w.write_prefixed_string(date_time, "varint")
    w.write_uint16(width)
    w.write_uint16(height)
    w.write_uint32(len(small_image_data))
    w.write_bytes(small_image_data)
    return w.getvalue()


def build_player_data_bytes(name: str = "Alice", money: int = 500, player_slot: int = 1,
                            is_first_time: bool = False,
                            position: Tuple[float, float, float] = (1.5, 0.0, -3.25),
                            health: float = 100.0,
                            clothing: Sequence[str] = ("Hat", "Scarf"),
                            vehicles: Iterable[Tuple[int, int, bool]] = ((7, 0xFF0000, True),),
                            gamepad: bool = False, sensitivity: float = 0.5,
                            invert_y: bool = False,
                            job: Optional[Tuple[int, int, float]] = None,
                            trailing: bytes = b"") -> bytes:
    """Player Data file; passing `job` produces a v2 file."""
    w = _start(b"WLPD", 2 if job is not None else 1)
    w.write_prefixed_string(name, "u16")
    w.write_uint32(money)
    w.write_byte(player_slot)
    w.write_byte(1 if is_first_time else 0)
    w.write_bytes(b"\x00" * ((-w.position) % 4))
    for axis in position:
        w.write_float(axis)
    w.write_float(health)
    w.write_uint32(len(clothing))
    for item in clothing:
        w.write_prefixed_string(item, "varint")
    vehicles = list(vehicles)
    w.write_uint16(len(vehicles))
    for vehicle_id, colour, owned in vehicles:
        w.write_uint32(vehicle_id)
        w.write_uint32(colour)
        w.write_byte(1 if owned else 0)
    w.write_byte(1 if gamepad else 0)
    w.write_float(sensitivity)
    if gamepad:
        w.write_byte(1 if invert_y else 0)
    if job is not None:
        current, level, experience = job
        w.write_uint32(12)
        w.write_uint16(current)
        w.write_uint16(level)
        w.write_double(experience)
    w.write_bytes(trailing)
    return w.getvalue()


def build_mission_data_bytes(missions: Iterable[Tuple[str, bool, float, int]] = (
                                 ("tutorial", True, 42.5, 3), ("delivery_01", False, 0.0, 0)),
                             active_mission: str = "delivery_01",
                             events: Iterable[Tuple[int, int]] = ((1, 4), (9, 1))) -> bytes:
    """Mission Data file."""
    missions = list(missions)
    w = _start(b"WLMD", 1)
    w.write_uint32(len(missions))
    for mission_id, completed, best_time, stars in missions:
        w.write_bytes(mission_id.encode("ascii")[:16].ljust(16, b"\x00"))
        w.write_byte(1 if completed else 0)
        w.write_double(best_time)
        w.write_byte(stars)
        w.write_bytes(b"\x00\x00\x00")
    w.write_bytes(active_mission.encode("utf-8") + b"\x00")
    for event_id, count in events:
        w.write_uint16(event_id)
        w.write_uint16(count)
    w.write_bytes(EVENTS_END)
    return w.getvalue()


def build_stats_data_bytes(distance_walked: int = 123456, play_time: float = 3600.5,
                           jumps: int = 77, last_location: str = "Harbour",
                           counters: Sequence[int] = (3, -1, 12)) -> bytes:
    """Stats Data file."""
    w = _start(b"WLST", 1)
    w.write_uint64(distance_walked)
    w.write_double(play_time)
    w.write_uint32(jumps)
    w.write_prefixed_string(last_location, "u8", "utf-16-le")
    for value in counters:
        w.write_int32(value)
    return w.getvalue()


def build_sample_slot(player: int = 1) -> Dict[str, bytes]:
    """Category -> bytes for a complete sample slot (World Data is opaque)."""
    return {
        SLOT_INFO: build_slot_info_bytes(last_selected_player_slot=player),
        PLAYER_DATA: build_player_data_bytes(player_slot=player),
        MISSION_DATA: build_mission_data_bytes(),
        STATS_DATA: build_stats_data_bytes(),
        WORLD_DATA: b"WLWD\x01\x00" + bytes(range(32)),
    }
