"""
Schema descriptors for save-data categories.

A category schema is a fixed sequence of field specs. Each spec names a key,
the kind of value stored there and the width/encoding rules; record,
sequence and variant specs nest further specs. One generic decoder and one
generic encoder walk these descriptors, so adding a category (or a new
revision of one) is a table entry, not new parsing code.

Schemas are versioned: a category may register several revisions and the
registry picks the one whose signature and version header match the buffer.
"""

import logging
import struct
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ...errors import SchemaUnsupported
from ...utils.binary import PREFIX_KINDS, ByteOrder, int_format

logger = logging.getLogger(__name__)

LE = ByteOrder.LITTLE_ENDIAN


def _check_prefix(kind: Optional[str], what: str):
    if kind is not None and kind not in PREFIX_KINDS:
        raise ValueError(f"{what}: unknown prefix kind {kind!r} (expected one of {PREFIX_KINDS})")


@dataclass(frozen=True)
class FieldSpec:
    """Base descriptor. `readonly` leaves cannot be edited."""
    key: str

    @property
    def label(self) -> str:
        return type(self).__name__.replace("Field", "").lower()


@dataclass(frozen=True)
class IntField(FieldSpec):
    width: int = 4
    signed: bool = False
    byte_order: ByteOrder = LE
    readonly: bool = False

    def __post_init__(self):
        int_format(self.width, self.signed, self.byte_order)


@dataclass(frozen=True)
class FloatField(FieldSpec):
    width: int = 4
    byte_order: ByteOrder = LE
    readonly: bool = False

    def __post_init__(self):
        if self.width not in (4, 8):
            raise ValueError(f"{self.key}: float width must be 4 or 8, got {self.width}")


@dataclass(frozen=True)
class BoolField(FieldSpec):
    width: int = 1
    byte_order: ByteOrder = LE
    readonly: bool = False

    def __post_init__(self):
        int_format(self.width, False, self.byte_order)


@dataclass(frozen=True)
class StringField(FieldSpec):
    """
    Text in one of three storage modes: `prefix` (length-prefixed, length in
    bytes), `size` (fixed slot padded with `pad`) or `terminated` (null
    terminated). `max_length` caps the encoded byte length of edits.
    """
    encoding: str = "utf-8"
    prefix: Optional[str] = None
    size: Optional[int] = None
    terminated: bool = False
    max_length: Optional[int] = None
    pad: int = 0
    byte_order: ByteOrder = LE
    readonly: bool = False

    def __post_init__(self):
        modes = sum((self.prefix is not None, self.size is not None, self.terminated))
        if modes != 1:
            raise ValueError(f"{self.key}: string needs exactly one of prefix/size/terminated")
        _check_prefix(self.prefix, self.key)
        "".encode(self.encoding)


@dataclass(frozen=True)
class BlobField(FieldSpec):
    """Opaque bytes: fixed `size`, a length `prefix`, or a length held by the sibling `size_from`."""
    size: Optional[int] = None
    prefix: Optional[str] = None
    size_from: Optional[str] = None
    byte_order: ByteOrder = LE
    readonly: bool = False

    def __post_init__(self):
        modes = sum((self.size is not None, self.prefix is not None, self.size_from is not None))
        if modes != 1:
            raise ValueError(f"{self.key}: blob needs exactly one of size/prefix/size_from")
        _check_prefix(self.prefix, self.key)


@dataclass(frozen=True)
class RecordField(FieldSpec):
    """Nested record. With `size_prefix`, the body length precedes it and bounds it."""
    fields: Tuple[FieldSpec, ...] = ()
    name: str = ""
    size_prefix: Optional[str] = None
    byte_order: ByteOrder = LE

    def __post_init__(self):
        _check_prefix(self.size_prefix, self.key)
        _check_keys(self.fields, self.key)


@dataclass(frozen=True)
class SequenceField(FieldSpec):
    """
    Repeated `element`. The element count comes from exactly one of:
    `count` (fixed), `prefix` (count prefix), `count_from` (a sibling integer
    decoded earlier), `until` (elements up to a marker) or `until_end`
    (elements up to the end of the enclosing region).
    """
    element: Optional[FieldSpec] = None
    count: Optional[int] = None
    prefix: Optional[str] = None
    count_from: Optional[str] = None
    until: Optional[bytes] = None
    until_end: bool = False
    byte_order: ByteOrder = LE

    def __post_init__(self):
        if self.element is None:
            raise ValueError(f"{self.key}: sequence needs an element spec")
        modes = sum((self.count is not None, self.prefix is not None,
                     self.count_from is not None, self.until is not None, self.until_end))
        if modes != 1:
            raise ValueError(f"{self.key}: sequence needs exactly one count mode")
        if self.until is not None and not self.until:
            raise ValueError(f"{self.key}: empty end marker")
        _check_prefix(self.prefix, self.key)

    @property
    def count_mode(self) -> str:
        if self.count is not None:
            return "fixed"
        if self.prefix is not None:
            return "prefix"
        if self.count_from is not None:
            return "field"
        if self.until is not None:
            return "marker"
        return "end"


@dataclass(frozen=True)
class VariantField(FieldSpec):
    """Sum type: an unsigned tag selects which field list follows."""
    cases: Dict[int, Tuple[FieldSpec, ...]] = field(default_factory=dict)
    names: Dict[int, str] = field(default_factory=dict)
    tag_width: int = 1
    byte_order: ByteOrder = LE

    def __post_init__(self):
        int_format(self.tag_width, False, self.byte_order)
        if not self.cases:
            raise ValueError(f"{self.key}: variant without cases")
        for tag, fields in self.cases.items():
            _check_keys(fields, f"{self.key}#{tag}")

    def __hash__(self):
        return hash((self.key, self.tag_width, tuple(sorted(self.cases))))


@dataclass(frozen=True)
class PaddingField(FieldSpec):
    """Fixed run of bytes with no meaning; kept verbatim."""
    size: int = 0


@dataclass(frozen=True)
class AlignField(FieldSpec):
    """Padding up to the next multiple of `boundary` (offsets relative to the category start)."""
    boundary: int = 4

    def __post_init__(self):
        if self.boundary < 1:
            raise ValueError(f"{self.key}: alignment boundary must be positive")


@dataclass(frozen=True)
class MagicField(FieldSpec):
    """Signature bytes that must be present."""
    expected: bytes = b""


def _check_keys(fields: Tuple[FieldSpec, ...], where: str):
    seen = set()
    for spec in fields:
        if spec.key in seen:
            raise ValueError(f"{where}: duplicate field key {spec.key!r}")
        seen.add(spec.key)


# ─────────────────────────────────────────────────────────────
# CATEGORY SCHEMAS
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CategorySchema:
    """
    Top-level descriptor for one category revision.

    `signature` must prefix the buffer; when `version_at` is set, the unsigned
    `version_width`-byte integer at that offset must equal `version`.
    """
    category: str
    version: int
    fields: Tuple[FieldSpec, ...]
    name: str = ""
    signature: bytes = b""
    version_at: Optional[int] = None
    version_width: int = 2
    byte_order: ByteOrder = LE

    def __post_init__(self):
        _check_keys(self.fields, self.category)

    def __hash__(self):
        return hash((self.category, self.version))

    @property
    def record_name(self) -> str:
        return self.name or self.category.replace(" ", "")

    def matches(self, data: bytes) -> bool:
        """Does `data` carry this revision's signature and version header?"""
        if self.signature and not data.startswith(self.signature):
            return False
        if self.version_at is not None:
            end = self.version_at + self.version_width
            if len(data) < end:
                return False
            fmt = int_format(self.version_width, False, self.byte_order)
            found = struct.unpack(fmt, data[self.version_at:end])[0]
            return found == self.version
        return True

    def __str__(self) -> str:
        return f"{self.category} v{self.version}"


class SchemaRegistry:
    """Known category schemas, newest revision first."""

    def __init__(self):
        self._schemas: Dict[str, List[CategorySchema]] = {}

    def register(self, schema: CategorySchema) -> CategorySchema:
        revisions = self._schemas.setdefault(schema.category, [])
        if any(s.version == schema.version for s in revisions):
            raise ValueError(f"{schema} is already registered")
        revisions.append(schema)
        revisions.sort(key=lambda s: s.version, reverse=True)
        return schema

    def categories(self) -> List[str]:
        return list(self._schemas)

    def for_category(self, category: str) -> List[CategorySchema]:
        return list(self._schemas.get(category, []))

    def resolve(self, category: str, data: bytes) -> CategorySchema:
        """Newest registered revision that recognises `data`."""
        revisions = self._schemas.get(category)
        if not revisions:
            raise SchemaUnsupported(category, "category has no registered schema")
        for schema in revisions:
            if schema.matches(data):
                logger.debug(f"{category}: using {schema}")
                return schema
        known = ", ".join(f"v{s.version}" for s in revisions)
        raise SchemaUnsupported(category, f"no revision matches the data (known: {known})")

    def __contains__(self, category: str) -> bool:
        return category in self._schemas


# Default registry, filled by categories.py
SCHEMAS = SchemaRegistry()


def register_schema(schema: CategorySchema, registry: Optional[SchemaRegistry] = None) -> CategorySchema:
    """Register a schema revision (in the default registry unless told otherwise)."""
    return (registry or SCHEMAS).register(schema)
