"""
Save Document - one decoded tree per category of an open slot.

The document is the single owner of the trees: search and presentation get
read access through get()/children()/tree(), and every change goes through
set_value(). Categories are decoded lazily on first access, and a category
that cannot be decoded is reported as unavailable without affecting the
others.

Each category has its own lock, so at most one decode, encode or edit runs
against a category at a time.
"""

import logging
import struct
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..errors import (
    PathNotFound, ReadOnlyField, SaveDataError, TypeMismatch, UnreadableData, ValueRejected,
)
from ..formats.sav.decoder import Decoder
from ..formats.sav.encoder import Encoder, encode_leaf
from ..formats.sav.schema import SCHEMAS, CategorySchema, SchemaRegistry
from ..formats.sav.values import (
    Path, PathItem, RecordValue, Value, ValueKind, child, children as child_nodes, kind_of,
    plain, replace_child,
)
from ..utils.binary import float_format
from .events import EventBus, Events

logger = logging.getLogger(__name__)


class CategoryStatus(Enum):
    NOT_LOADED = "not-loaded"
    READY = "ready"
    DIRTY = "dirty"
    UNAVAILABLE = "unavailable"


@dataclass
class ChildInfo:
    """One entry of a children() listing."""
    key: PathItem
    kind: str
    length: Optional[int] = None


# ─────────────────────────────────────────────────────────────
# PATHS
# ─────────────────────────────────────────────────────────────

def parse_path(text: str) -> Path:
    """
    "/missions/0/id" -> ("missions", 0, "id").

    JSON-Pointer style with ~0 / ~1 escapes. Digit segments without a
    leading zero become indices; "" and "/" both mean the root, and a
    missing leading slash is tolerated.
    """
    if text in ("", "/"):
        return ()
    if not text.startswith("/"):
        text = "/" + text
    parts: List[PathItem] = []
    for token in text[1:].split("/"):
        token = token.replace("~1", "/").replace("~0", "~")
        parts.append(int(token) if _is_index(token) else token)
    return tuple(parts)


def _is_index(token: str) -> bool:
    """Canonical decimal index: "0", "7", "12" but not "007"."""
    return token.isascii() and token.isdigit() and str(int(token)) == token


def format_path(path: Sequence[PathItem]) -> str:
    """("missions", 0, "id") -> "/missions/0/id"; the root is ""."""
    return "".join("/" + str(p).replace("~", "~0").replace("/", "~1") for p in path)


def _length(node: Value) -> Optional[int]:
    if node.kind == ValueKind.RECORD:
        return len(node.fields)
    if node.kind == ValueKind.SEQUENCE:
        return len(node.items)
    if node.kind in (ValueKind.BLOB, ValueKind.UNPARSED, ValueKind.STRING):
        return len(node.value)
    return None


# ─────────────────────────────────────────────────────────────
# DOCUMENT
# ─────────────────────────────────────────────────────────────

@dataclass
class _CategoryState:
    lock: threading.RLock = field(default_factory=threading.RLock)
    saved: Optional[bytes] = None           # last-saved bytes
    schema: Optional[CategorySchema] = None
    tree: Optional[RecordValue] = None
    dirty: bool = False
    encode_failed: bool = False


class SaveDocument:
    """
    Editable view of one save slot.

    `loader(category)` supplies a category's bytes (raising OSError when they
    cannot be read); it is called at most once per category until revert.
    """

    def __init__(self, loader: Callable[[str], bytes], categories: Iterable[str],
                 registry: Optional[SchemaRegistry] = None, name: str = ""):
        self.name = name
        self.registry = registry or SCHEMAS
        self._loader = loader
        self._states: Dict[str, _CategoryState] = {c: _CategoryState() for c in categories}
        self.errors: Dict[str, SaveDataError] = {}

    @classmethod
    def from_buffers(cls, buffers: Dict[str, bytes], registry: Optional[SchemaRegistry] = None,
                     name: str = "memory") -> 'SaveDocument':
        """Document over in-memory category buffers."""
        buffers = dict(buffers)

        def load(category: str) -> bytes:
            if category not in buffers:
                raise FileNotFoundError(f"no data for '{category}'")
            return buffers[category]

        return cls(load, buffers, registry, name)

    @property
    def categories(self) -> List[str]:
        return list(self._states)

    def _state(self, category: str) -> _CategoryState:
        state = self._states.get(category)
        if state is None:
            raise PathNotFound(category, ())
        return state

    # ─────────────────────────────────────────────────────────────
    # LOADING
    # ─────────────────────────────────────────────────────────────

    def tree(self, category: str) -> RecordValue:
        """Decoded tree of a category, decoding it on first use."""
        state = self._state(category)
        with state.lock:
            if state.tree is None:
                self._load(category, state)
            return state.tree

    def _load(self, category: str, state: _CategoryState):
        known = self.errors.get(category)
        if known is not None:
            raise known

        try:
            data = bytes(self._loader(category))
        except OSError as e:
            error = UnreadableData(f"{category}: cannot read data ({e})")
            self._mark_unavailable(category, error)
            raise error from e

        try:
            schema = self.registry.resolve(category, data)
            result = Decoder(schema).decode(data)
        except UnreadableData as e:
            self._mark_unavailable(category, e)
            raise

        # Publish only a fully decoded tree
        state.saved = data
        state.schema = schema
        state.tree = result.root
        state.dirty = False
        state.encode_failed = False
        logger.debug(f"{category}: decoded with {schema} ({len(data)} bytes)")
        EventBus.publish(Events.CATEGORY_DECODED, category)

    def _mark_unavailable(self, category: str, error: SaveDataError):
        self.errors[category] = error
        logger.warning(f"{category} unavailable: {error}")
        EventBus.publish(Events.CATEGORY_UNAVAILABLE, {"category": category, "error": error})

    def load_all(self) -> List[str]:
        """Decode every category that can be decoded; returns the available ones."""
        available = []
        for category in self._states:
            try:
                self.tree(category)
            except UnreadableData:
                continue
            available.append(category)
        return available

    def is_loaded(self, category: str) -> bool:
        return self._state(category).tree is not None

    def schema(self, category: str) -> CategorySchema:
        """Schema revision the category was decoded with."""
        state = self._state(category)
        with state.lock:
            self.tree(category)
            return state.schema

    def saved_bytes(self, category: str) -> Optional[bytes]:
        """Bytes the category was last loaded from or saved as."""
        return self._state(category).saved

    def status(self, category: str) -> CategoryStatus:
        state = self._state(category)
        if category in self.errors:
            return CategoryStatus.UNAVAILABLE
        if state.tree is None:
            return CategoryStatus.NOT_LOADED
        if state.dirty:
            return CategoryStatus.DIRTY
        return CategoryStatus.READY

    # ─────────────────────────────────────────────────────────────
    # READING
    # ─────────────────────────────────────────────────────────────

    def _trail(self, category: str, root: Value,
               path: Path) -> List[Tuple[Value, PathItem, Value]]:
        """(parent, key, node) for every step of `path`, root first."""
        trail = []
        node = root
        for step in path:
            found = child(node, step)
            if found is None and isinstance(step, int) and node.kind == ValueKind.RECORD:
                step = str(step)
                found = child(node, step)
            elif (found is None and isinstance(step, str) and node.kind == ValueKind.SEQUENCE
                  and step.isascii() and step.isdigit()):
                step = int(step)
                found = child(node, step)
            if found is None:
                raise PathNotFound(category, path)
            trail.append((node, step, found))
            node = found
        return trail

    def _locate(self, category: str, root: Value,
                path: Path) -> Tuple[Optional[Value], Optional[PathItem], Value]:
        """(parent, key, node) at `path`; digit keys match both indices and record keys."""
        trail = self._trail(category, root, path)
        if not trail:
            return None, None, root
        return trail[-1]

    def get(self, category: str, path: Sequence[PathItem] = ()) -> Value:
        """Node at `path` (raises PathNotFound)."""
        path = tuple(path)
        return self._locate(category, self.tree(category), path)[2]

    def children(self, category: str, path: Sequence[PathItem] = ()) -> List[ChildInfo]:
        """Direct children of the node at `path`, in declaration order."""
        node = self.get(category, path)
        return [ChildInfo(key=key, kind=value.kind.value, length=_length(value))
                for key, value in child_nodes(node)]

    # ─────────────────────────────────────────────────────────────
    # EDITING
    # ─────────────────────────────────────────────────────────────

    def set_value(self, category: str, path: Sequence[PathItem], new_value: Any) -> Value:
        """
        Replace the leaf at `path`.

        `new_value` is a Value of the leaf's kind or a plain Python scalar
        (int, float, bool, str, bytes). Only the scalar is taken; the leaf
        keeps its width, encoding and position. Raises TypeMismatch,
        ReadOnlyField, ValueTooLarge, InvalidValue or PathNotFound, and on any
        failure the tree is left exactly as it was.
        """
        path = tuple(path)
        state = self._state(category)
        with state.lock:
            root = self.tree(category)
            trail = self._trail(category, root, path)
            parent, key, node = trail[-1] if trail else (None, None, root)
            if not node.is_leaf:
                raise TypeMismatch(f"{node.kind.value} is not an editable leaf", path)
            try:
                new_kind = kind_of(new_value)
            except TypeError as e:
                raise TypeMismatch(str(e), path) from e
            if new_kind != node.kind:
                raise TypeMismatch(f"cannot replace {node.kind.value} with {new_kind.value}", path)
            if node.layout.readonly:
                raise ReadOnlyField("field drives the file layout and cannot be edited", path)

            candidate = node.with_value(plain(new_value))
            # Raises ValueTooLarge / InvalidValue before anything changes
            encoded = encode_leaf(candidate, path)
            if candidate.kind == ValueKind.FLOAT:
                # Hold what the file will hold (float32 edits lose precision)
                stored = struct.unpack(float_format(node.width, node.byte_order), encoded)[0]
                candidate = node.with_value(stored)

            replace_child(parent, key, candidate)
            if any(getattr(n, "size_prefix", None) for _, _, n in trail[:-1]):
                # A longer leaf may overflow an enclosing record's size prefix
                try:
                    Encoder().encode(root)
                except ValueRejected:
                    replace_child(parent, key, node)
                    raise
            state.dirty = True
            state.encode_failed = False

        logger.debug(f"{category}{format_path(path)} = {candidate.value!r}")
        EventBus.publish(Events.VALUE_CHANGED,
                         {"category": category, "path": path, "value": candidate})
        return candidate

    def revert(self, category: str):
        """Drop in-memory edits by decoding the last-saved bytes again."""
        state = self._state(category)
        with state.lock:
            if state.saved is None:
                return
            result = Decoder(state.schema).decode(state.saved)
            state.tree = result.root
            state.dirty = False
            state.encode_failed = False
        logger.info(f"{category}: reverted")
        EventBus.publish(Events.CATEGORY_REVERTED, category)

    # ─────────────────────────────────────────────────────────────
    # ENCODING
    # ─────────────────────────────────────────────────────────────

    def encode(self, category: str) -> bytes:
        """Encode the category's current tree. A failure blocks can_save()."""
        state = self._state(category)
        with state.lock:
            root = self.tree(category)
            try:
                data = Encoder().encode(root)
            except SaveDataError as e:
                state.encode_failed = True
                logger.warning(f"{category}: encode failed: {e}")
                raise
            state.encode_failed = False
        return data

    def can_save(self, category: str) -> bool:
        state = self._state(category)
        return state.tree is not None and not state.encode_failed

    def mark_saved(self, category: str, data: bytes):
        """`data` is now on disk: make it the revert point and clear the dirty flag."""
        state = self._state(category)
        with state.lock:
            result = Decoder(state.schema).decode(data)
            state.saved = bytes(data)
            state.tree = result.root
            state.dirty = False
        EventBus.publish(Events.CATEGORY_SAVED, category)

    @property
    def dirty(self) -> bool:
        return any(s.dirty for s in self._states.values())

    def is_dirty(self, category: str) -> bool:
        return self._state(category).dirty

    def dirty_categories(self) -> List[str]:
        return [c for c, s in self._states.items() if s.dirty]

    def close(self):
        """Release every tree; unsaved edits are discarded."""
        for state in self._states.values():
            with state.lock:
                state.tree = None
                state.saved = None
                state.dirty = False
        self.errors.clear()
