"""
SaveSmith Suite - Document Tests

Lazy decoding, edits, revert, status tracking and paths on SaveDocument.

Can be run standalone: python test_document.py
Or via main runner: python tests.py --module document
"""

import struct
import sys
from datetime import datetime

from harness import TestResults, raises, section

from savesmith.errors import (
    InvalidValue, PathNotFound, ReadOnlyField, TypeMismatch, UnreadableData, ValueTooLarge,
)
from savesmith.formats.sav import (
    BlobField, CategorySchema, IntegerValue, IntField, RecordField, SchemaRegistry, SequenceField,
    StringField, StringValue,
)
from savesmith.formats.sav.categories import (
    MISSION_DATA, PLAYER_DATA, SLOT_INFO, STATS_DATA, WORLD_DATA, build_player_data_bytes,
    build_sample_slot,
)
from savesmith.formats.sav.values import replace_child
from savesmith.save_editor import (
    CategoryStatus, EventBus, Events, SaveDocument, format_path, parse_path,
)

# Global results instance
results = TestResults("DOCUMENT")


def _document():
    return SaveDocument.from_buffers(build_sample_slot())


def _diff_ranges(a: bytes, b: bytes):
    """Offsets where two equal-length buffers differ."""
    return [i for i, (x, y) in enumerate(zip(a, b)) if x != y]


def test_lazy_loading():
    """Categories are decoded on first access only."""
    section("LAZY LOADING")
    try:
        calls = []
        buffers = build_sample_slot()

        def loader(category):
            calls.append(category)
            return buffers[category]

        doc = SaveDocument(loader, buffers)
        results.record("nothing decoded on open", calls == [], str(calls))
        results.record("status not-loaded", doc.status(PLAYER_DATA) == CategoryStatus.NOT_LOADED, "")

        doc.get(PLAYER_DATA, ("money",))
        doc.get(PLAYER_DATA, ("name",))
        results.record("decoded once", calls == [PLAYER_DATA], str(calls))
        results.record("status ready", doc.status(PLAYER_DATA) == CategoryStatus.READY, "")
        results.record("other categories untouched", not doc.is_loaded(MISSION_DATA), "")
        results.record("schema recorded", doc.schema(PLAYER_DATA).version == 1, "")
    except Exception as e:
        results.record("Lazy loading", False, str(e))


def test_unavailable_category():
    """An undecodable category is reported without blocking the others."""
    section("UNAVAILABLE CATEGORY")
    try:
        seen = []
        EventBus.subscribe(Events.CATEGORY_UNAVAILABLE, seen.append)
        buffers = build_sample_slot()
        buffers[STATS_DATA] = buffers[STATS_DATA][:9]
        doc = SaveDocument.from_buffers(buffers)

        available = doc.load_all()
        results.record("good categories load", available == [SLOT_INFO, PLAYER_DATA, MISSION_DATA],
                       str(available))
        results.record("world data unavailable",
                       doc.status(WORLD_DATA) == CategoryStatus.UNAVAILABLE, "")
        results.record("truncated stats unavailable",
                       doc.status(STATS_DATA) == CategoryStatus.UNAVAILABLE, "")
        results.record("error kept", isinstance(doc.errors.get(STATS_DATA), UnreadableData), "")
        results.record("tree access raises",
                       raises(UnreadableData, doc.tree, STATS_DATA) is not None, "")
        results.record("unavailable events", {e["category"] for e in seen} == {STATS_DATA, WORLD_DATA},
                       str(seen))

        doc = SaveDocument.from_buffers({PLAYER_DATA: build_player_data_bytes()})
        results.record("unknown category", raises(PathNotFound, doc.tree, MISSION_DATA) is not None, "")
        EventBus.unsubscribe(Events.CATEGORY_UNAVAILABLE, seen.append)
    except Exception as e:
        results.record("Unavailable category", False, str(e))


def test_money_scenario():
    """Edit money in Player Data: only its four bytes change."""
    section("PLAYER MONEY SCENARIO")
    try:
        doc = _document()
        original = doc.encode(PLAYER_DATA)
        money = doc.get(PLAYER_DATA, ("money",))
        start = money.layout.offset

        doc.set_value(PLAYER_DATA, ("money",), IntegerValue(value=999999, width=4))
        edited = doc.encode(PLAYER_DATA)
        results.record("same length", len(edited) == len(original), "")
        results.record("bytes outside the field unchanged",
                       edited[:start] == original[:start] and edited[start + 4:] == original[start + 4:], "")
        results.record("new integer written", edited[start:start + 4] == struct.pack("<I", 999999), "")
        results.record("dirty", doc.dirty and doc.status(PLAYER_DATA) == CategoryStatus.DIRTY, "")
        results.record("leaf keeps its width", doc.get(PLAYER_DATA, ("money",)).width == 4, "")

        before = doc.encode(PLAYER_DATA)
        err = raises(TypeMismatch, doc.set_value, PLAYER_DATA, ("money",), StringValue(value="lots"))
        results.record("string for integer rejected", err is not None, "")
        results.record("tree unchanged after mismatch", doc.encode(PLAYER_DATA) == before, "")
    except Exception as e:
        results.record("Money scenario", False, str(e))


def test_edit_locality():
    """Same-size edits touch only the edited leaf's bytes."""
    section("EDIT LOCALITY")
    edits = [
        (PLAYER_DATA, ("name",), "Bobby"),
        (PLAYER_DATA, ("health",), 42.5),
        (PLAYER_DATA, ("isFirstTime",), True),
        (PLAYER_DATA, ("position", "y"), -7.0),
        (PLAYER_DATA, ("vehicles", 0, "colour"), 0x00FF00),
        (PLAYER_DATA, ("controls", "mouseSensitivity"), 1.25),
        (MISSION_DATA, ("missions", 0, "id"), "intro"),
        (MISSION_DATA, ("missions", 1, "bestTime"), 99.5),
        (MISSION_DATA, ("events", 1, "count"), 5),
        (STATS_DATA, ("counters", 1), -100),
        (STATS_DATA, ("distanceWalked",), 2 ** 40),
        (SLOT_INFO, ("smallImageData",), b"\x7f" * 768),
    ]
    for category, path, value in edits:
        label = f"{category}{format_path(path)}"
        try:
            doc = _document()
            original = doc.encode(category)
            leaf = doc.get(category, path)
            low, high = leaf.layout.offset, leaf.layout.end
            doc.set_value(category, path, value)
            edited = doc.encode(category)
            changed = _diff_ranges(original, edited)
            results.record(label, len(edited) == len(original)
                           and all(low <= i < high for i in changed) and changed != [],
                           f"changed {changed[:8]} outside {low}..{high}")
        except Exception as e:
            results.record(label, False, str(e))


def test_length_changes():
    """Variable-length leaves may change size within their prefix."""
    section("LENGTH CHANGES")
    try:
        doc = _document()
        doc.set_value(PLAYER_DATA, ("name",), "Maximilian")
        doc.set_value(MISSION_DATA, ("activeMission",), "tutorial")
        doc.set_value(STATS_DATA, ("lastLocation",), "Old Town Square")

        reread = SaveDocument.from_buffers({c: doc.encode(c) for c in (PLAYER_DATA, MISSION_DATA, STATS_DATA)})
        results.record("longer prefixed string", reread.get(PLAYER_DATA, ("name",)).value == "Maximilian", "")
        results.record("fields after it intact",
                       reread.get(PLAYER_DATA, ("vehicles", 0, "id")).value == 7, "")
        results.record("shorter terminated string",
                       reread.get(MISSION_DATA, ("activeMission",)).value == "tutorial", "")
        results.record("marker sequence intact",
                       len(reread.get(MISSION_DATA, ("events",))) == 2, "")
        results.record("utf-16 string", reread.get(STATS_DATA, ("lastLocation",)).value
                       == "Old Town Square", "")
        results.record("until-end sequence intact",
                       [c.value for c in reread.get(STATS_DATA, ("counters",))] == [3, -1, 12], "")
    except Exception as e:
        results.record("Length changes", False, str(e))


def test_rejections():
    """Every refused edit leaves the tree byte-identical."""
    section("REJECTED EDITS")
    cases = [
        ("string for int", TypeMismatch, PLAYER_DATA, ("money",), "lots"),
        ("bool for int", TypeMismatch, PLAYER_DATA, ("money",), True),
        ("int for float", TypeMismatch, PLAYER_DATA, ("health",), 5),
        ("int for bool", TypeMismatch, PLAYER_DATA, ("isFirstTime",), 1),
        ("bytes for string", TypeMismatch, PLAYER_DATA, ("name",), b"Alice"),
        ("value for a record", TypeMismatch, PLAYER_DATA, ("position",), 1.0),
        ("value for a sequence", TypeMismatch, PLAYER_DATA, ("vehicles",), 1),
        ("unsupported python type", TypeMismatch, PLAYER_DATA, ("money",), [1]),
        ("unparsed region", TypeMismatch, PLAYER_DATA, ("signature",), b"ABCD"),
        ("u32 overflow", ValueTooLarge, PLAYER_DATA, ("money",), 2 ** 32),
        ("u32 negative", ValueTooLarge, PLAYER_DATA, ("money",), -1),
        ("u8 overflow", ValueTooLarge, PLAYER_DATA, ("playerSlot",), 256),
        ("name over its limit", ValueTooLarge, PLAYER_DATA, ("name",), "A" * 33),
        ("fixed string too long", ValueTooLarge, MISSION_DATA, ("missions", 0, "id"), "x" * 17),
        ("float overflow", ValueTooLarge, PLAYER_DATA, ("health",), 1e300),
        ("u8 string prefix overflow", ValueTooLarge, STATS_DATA, ("lastLocation",), "x" * 128),
        ("ascii only", InvalidValue, MISSION_DATA, ("missions", 0, "id"), "café"),
        ("null in terminated string", InvalidValue, MISSION_DATA, ("activeMission",), "a\0b"),
        ("version", ReadOnlyField, PLAYER_DATA, ("version",), 2),
        ("count source", ReadOnlyField, MISSION_DATA, ("missionCount",), 5),
        ("missing key", PathNotFound, PLAYER_DATA, ("nope",), 1),
        ("index out of range", PathNotFound, PLAYER_DATA, ("vehicles", 3, "id"), 1),
    ]
    doc = _document()
    for label, error, category, path, value in cases:
        try:
            before = doc.encode(category)
            err = raises(error, doc.set_value, category, path, value)
            results.record(f"{label} -> {error.__name__}", err is not None, "not raised")
            results.record(f"{label}: tree unchanged", doc.encode(category) == before
                           and not doc.is_dirty(category), "")
        except Exception as e:
            results.record(label, False, str(e))


GADGET = "Gadget"


def _gadget_document():
    """Small schema with a fixed blob, a size-prefixed record and digit keys."""
    registry = SchemaRegistry()
    registry.register(CategorySchema(category=GADGET, version=1, fields=(
        BlobField("key", size=4),
        RecordField("box", size_prefix="u8", fields=(StringField("label", prefix="u16"),)),
        IntField("007", width=1),
        SequenceField("slots", element=IntField("v", width=1), count=2),
    )))
    data = b"abcd" + b"\x05" + b"\x03\x00abc" + b"\x2a" + b"\x01\x02"
    return SaveDocument.from_buffers({GADGET: data}, registry=registry), data


def test_layout_bound_edits():
    """Edits that would change a fixed layout are refused up front."""
    section("LAYOUT-BOUND EDITS")
    try:
        doc, data = _gadget_document()
        results.record("gadget round trip", doc.encode(GADGET) == data, "")

        err = raises(InvalidValue, doc.set_value, GADGET, ("key",), b"xy")
        results.record("short fixed blob refused", err is not None, "")
        results.record("short blob leaves tree", doc.get(GADGET, ("key",)).value == b"abcd"
                       and not doc.is_dirty(GADGET), "")
        results.record("long fixed blob refused",
                       raises(ValueTooLarge, doc.set_value, GADGET, ("key",), b"abcde") is not None, "")
        doc.set_value(GADGET, ("key",), b"wxyz")
        results.record("same-size blob accepted", doc.encode(GADGET).startswith(b"wxyz"), "")
        doc.revert(GADGET)

        err = raises(ValueTooLarge, doc.set_value, GADGET, ("box", "label"), "x" * 300)
        results.record("record size prefix overflow refused", err is not None, "")
        results.record("overflow leaves tree", doc.get(GADGET, ("box", "label")).value == "abc"
                       and doc.encode(GADGET) == data and not doc.is_dirty(GADGET), "")
        doc.set_value(GADGET, ("box", "label"), "x" * 200)
        out = doc.encode(GADGET)
        results.record("record size prefix follows edit", out[4] == 202 and len(out) == len(data) + 197,
                       str(out[4]))

        doc = _document()
        stored = doc.set_value(PLAYER_DATA, ("health",), 0.1)
        single = struct.unpack("<f", struct.pack("<f", 0.1))[0]
        results.record("float32 edit holds stored value", stored.value == single and single != 0.1,
                       repr(stored.value))
        results.record("float32 tree matches", doc.get(PLAYER_DATA, ("health",)).value == single, "")
        doc.mark_saved(PLAYER_DATA, doc.encode(PLAYER_DATA))
        results.record("float32 unchanged by save",
                       doc.get(PLAYER_DATA, ("health",)).value == single, "")
        results.record("float64 edit exact",
                       doc.set_value(STATS_DATA, ("playTime",), 0.1).value == 0.1, "")
    except Exception as e:
        results.record("Layout-bound edits", False, str(e))


def test_revert_and_save_state():
    """Revert, encode failures and mark_saved."""
    section("REVERT / SAVE STATE")
    try:
        seen = []
        EventBus.subscribe(Events.VALUE_CHANGED, seen.append)
        doc = _document()
        original = doc.encode(PLAYER_DATA)
        doc.set_value(PLAYER_DATA, ("money",), 1)
        results.record("value changed event", len(seen) == 1 and seen[0]["path"] == ("money",), "")
        doc.revert(PLAYER_DATA)
        results.record("revert restores value", doc.get(PLAYER_DATA, ("money",)).value == 500, "")
        results.record("revert clears dirty", not doc.dirty, "")
        results.record("revert restores bytes", doc.encode(PLAYER_DATA) == original, "")
        EventBus.unsubscribe(Events.VALUE_CHANGED, seen.append)

        # Bypass set_value to plant a leaf that cannot be encoded
        root = doc.tree(PLAYER_DATA)
        replace_child(root, "money", root["money"].with_value(2 ** 40))
        err = raises(ValueTooLarge, doc.encode, PLAYER_DATA)
        results.record("encode failure raised", err is not None, "")
        results.record("cannot save after failed encode", not doc.can_save(PLAYER_DATA), "")
        doc.set_value(PLAYER_DATA, ("money",), 10)
        results.record("fixed by a valid edit", doc.can_save(PLAYER_DATA), "")

        saved = doc.encode(PLAYER_DATA)
        doc.mark_saved(PLAYER_DATA, saved)
        results.record("mark_saved clears dirty", not doc.is_dirty(PLAYER_DATA), "")
        doc.set_value(PLAYER_DATA, ("money",), 20)
        doc.revert(PLAYER_DATA)
        results.record("revert goes to last save", doc.get(PLAYER_DATA, ("money",)).value == 10, "")
        results.record("saved bytes", doc.saved_bytes(PLAYER_DATA) == saved, "")

        doc.close()
        results.record("close releases trees", not doc.is_loaded(PLAYER_DATA), "")
    except Exception as e:
        results.record("Revert / save state", False, str(e))


def test_children_and_paths():
    """children() listing and JSON-Pointer style paths."""
    section("CHILDREN / PATHS")
    try:
        doc = _document()
        kids = doc.children(PLAYER_DATA)
        keys = [k.key for k in kids]
        results.record("declaration order", keys[:4] == ["signature", "version", "name", "money"],
                       str(keys))
        by_key = {k.key: k for k in kids}
        results.record("sequence length", by_key["unlockedClothing"].kind == "sequence"
                       and by_key["unlockedClothing"].length == 2, "")
        results.record("record length", by_key["position"].length == 3, "")
        results.record("integer has no length", by_key["money"].length is None, "")

        items = doc.children(PLAYER_DATA, ("vehicles",))
        results.record("sequence children are indices", [k.key for k in items] == [0], "")

        results.record("parse", parse_path("/missions/0/id") == ("missions", 0, "id"), "")
        results.record("parse root", parse_path("") == () and parse_path("/") == (), "")
        results.record("parse without slash", parse_path("money") == ("money",), "")
        results.record("escapes", parse_path("/a~1b/c~0d") == ("a/b", "c~d"), "")
        results.record("format", format_path(("a/b", 0, "c~d")) == "/a~1b/0/c~0d", "")
        results.record("format root", format_path(()) == "", "")
        results.record("path lookup", doc.get(MISSION_DATA, parse_path("/missions/1/id")).value
                       == "delivery_01", "")

        results.record("leading zero stays a key", parse_path("/007") == ("007",), "")
        results.record("plain digits become an index", parse_path("/7") == (7,), "")
        gadget, _ = _gadget_document()
        results.record("zero-padded record key", gadget.get(GADGET, parse_path("/007")).value == 42, "")
        gadget.set_value(GADGET, parse_path("/007"), 7)
        results.record("zero-padded key editable", gadget.get(GADGET, ("007",)).value == 7, "")
        results.record("zero-padded index", gadget.get(GADGET, parse_path("/slots/01")).value == 2, "")
        results.record("key path round trip", parse_path(format_path(("007", 1))) == ("007", 1), "")
    except Exception as e:
        results.record("Children / paths", False, str(e))


# ═══════════════════════════════════════════════════════════════════════════════
# RUN ALL
# ═══════════════════════════════════════════════════════════════════════════════

def run_all_tests(results_obj=None):
    """Run all document tests. Returns (passed, failed, skipped)."""
    global results
    results = results_obj or TestResults("DOCUMENT")

    test_lazy_loading()
    test_unavailable_category()
    test_money_scenario()
    test_edit_locality()
    test_length_changes()
    test_rejections()
    test_layout_bound_edits()
    test_revert_and_save_state()
    test_children_and_paths()

    return results.passed, results.failed, results.skipped


def main():
    """Run document tests standalone."""
    print("SAVESMITH SUITE - DOCUMENT TESTS  " + datetime.now().strftime("%Y-%m-%d %H:%M:%S"))
    run_all_tests()
    return 0 if results.summary() else 1


if __name__ == "__main__":
    sys.exit(main())
