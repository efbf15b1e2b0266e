"""
Schema-driven decoder: category bytes -> value tree.

One recursive walker applies the field specs of a CategorySchema in order.
Every node records its offset, length and the exact bytes of any prefix, so
the encoder can write the buffer back unchanged. Bytes left over after the
last known field are kept as a trailing UnparsedValue.

Decoding builds a fresh tree and touches nothing else, so a failure leaves
the caller's state as it was. Any failure is raised as DecodeError with the
offset and the field path where it happened.
"""

import logging
import struct
from dataclasses import dataclass
from typing import List, Optional

from ...errors import CursorError, DecodeError, MalformedData
from ...utils.binary import ByteCursor, int_format
from .schema import (
    AlignField, BlobField, BoolField, CategorySchema, FieldSpec, FloatField, IntField,
    MagicField, PaddingField, RecordField, SequenceField, StringField, VariantField,
)
from .values import (
    BlobValue, BoolValue, FloatValue, IntegerValue, Layout, Path, RecordValue,
    SequenceValue, StringValue, UnparsedValue, Value, ValueKind,
)

logger = logging.getLogger(__name__)

TRAILING_KEY = "$trailing"


@dataclass
class DecodeResult:
    """Decoded root record plus the number of bytes it consumed."""
    root: RecordValue
    consumed: int
    schema: CategorySchema


class Decoder:
    """Walks one category buffer with one schema."""

    def __init__(self, schema: CategorySchema):
        self.schema = schema

    def decode(self, data: bytes) -> DecodeResult:
        cursor = ByteCursor.from_bytes(bytes(data), self.schema.byte_order)
        root = RecordValue(type_name=self.schema.record_name, byte_order=self.schema.byte_order)
        self._read_fields(cursor, self.schema.fields, root, ())
        self._capture_trailing(cursor, root)
        root.layout = Layout(offset=0, length=cursor.position)
        logger.debug(f"Decoded {self.schema}: {len(root.fields)} fields, {cursor.position} bytes")
        return DecodeResult(root=root, consumed=cursor.position, schema=self.schema)

    # ─────────────────────────────────────────────────────────────
    # FIELD WALK
    # ─────────────────────────────────────────────────────────────

    def _read_fields(self, cursor: ByteCursor, specs, record: RecordValue, path: Path):
        for spec in specs:
            record.fields[spec.key] = self._read_field(cursor, spec, path + (spec.key,), record)

    def _read_field(self, cursor: ByteCursor, spec: FieldSpec, path: Path,
                    siblings: Optional[RecordValue] = None) -> Value:
        start = cursor.position
        try:
            if isinstance(spec, IntField):
                node = self._read_int(cursor, spec)
            elif isinstance(spec, FloatField):
                value = cursor.read_float(spec.width, spec.byte_order)
                node = FloatValue(value=value, width=spec.width, byte_order=spec.byte_order)
            elif isinstance(spec, BoolField):
                raw = cursor.read_int(spec.width, False, spec.byte_order)
                node = BoolValue(value=raw != 0, width=spec.width, byte_order=spec.byte_order)
            elif isinstance(spec, StringField):
                node = self._read_string(cursor, spec, path)
            elif isinstance(spec, BlobField):
                node = self._read_blob(cursor, spec, path, siblings)
            elif isinstance(spec, RecordField):
                node = self._read_record(cursor, spec, path)
            elif isinstance(spec, SequenceField):
                node = self._read_sequence(cursor, spec, path, siblings)
            elif isinstance(spec, VariantField):
                node = self._read_variant(cursor, spec, path)
            elif isinstance(spec, PaddingField):
                node = UnparsedValue(value=cursor.read_bytes(spec.size), reason="padding")
            elif isinstance(spec, AlignField):
                count = (-cursor.position) % spec.boundary
                node = UnparsedValue(value=cursor.read_bytes(count), reason="padding",
                                     align=spec.boundary)
            elif isinstance(spec, MagicField):
                found = cursor.read_bytes(len(spec.expected))
                if found != spec.expected:
                    raise DecodeError(f"expected signature {spec.expected!r}, found {found!r}",
                                      start, path)
                node = UnparsedValue(value=found, reason="signature")
            else:
                raise DecodeError(f"unsupported field spec {type(spec).__name__}", start, path)
        except DecodeError:
            raise
        except MalformedData as e:
            raise DecodeError(f"bad {spec.label}: {e.reason}", e.offset, path) from e
        except CursorError as e:
            raise DecodeError(f"truncated {spec.label}: {e}", e.offset, path) from e
        except (UnicodeDecodeError, ValueError, struct.error) as e:
            raise DecodeError(f"bad {spec.label}: {e}", start, path) from e

        node.layout.offset = start
        node.layout.length = cursor.position - start
        if node.is_leaf:
            node.layout.raw = bytes(cursor.data[start:cursor.position])
            node.layout.readonly = getattr(spec, "readonly", False)
        return node

    def _read_int(self, cursor: ByteCursor, spec: IntField) -> IntegerValue:
        value = cursor.read_int(spec.width, spec.signed, spec.byte_order)
        return IntegerValue(value=value, width=spec.width, signed=spec.signed,
                            byte_order=spec.byte_order)

    def _read_string(self, cursor: ByteCursor, spec: StringField, path: Path) -> StringValue:
        node = StringValue(encoding=spec.encoding, prefix=spec.prefix, size=spec.size,
                           terminated=spec.terminated, max_length=spec.max_length,
                           pad=spec.pad, byte_order=spec.byte_order)
        if spec.prefix is not None:
            start = cursor.position
            length = cursor.read_prefix(spec.prefix, spec.byte_order)
            if length > cursor.remaining:
                raise DecodeError(f"string length {length} exceeds the {cursor.remaining} "
                                  f"byte(s) left", start, path)
            node.value = cursor.read_bytes(length).decode(spec.encoding)
        elif spec.size is not None:
            slot = cursor.read_bytes(spec.size)
            node.value = _strip_fixed(slot, spec.encoding, spec.pad).decode(spec.encoding)
        else:
            node.value = _read_terminated(cursor, spec.encoding)
        return node

    def _read_blob(self, cursor: ByteCursor, spec: BlobField, path: Path,
                   siblings: Optional[RecordValue]) -> BlobValue:
        if spec.prefix is not None:
            start = cursor.position
            length = cursor.read_prefix(spec.prefix, spec.byte_order)
            if length > cursor.remaining:
                raise DecodeError(f"blob length {length} exceeds the {cursor.remaining} "
                                  f"byte(s) left", start, path)
            return BlobValue(value=cursor.read_bytes(length), prefix=spec.prefix,
                             byte_order=spec.byte_order)
        if spec.size_from is not None:
            length = self._sibling_count(cursor, spec.size_from, siblings, path)
            return BlobValue(value=cursor.read_bytes(length), size=length,
                             byte_order=spec.byte_order)
        return BlobValue(value=cursor.read_bytes(spec.size), size=spec.size,
                         byte_order=spec.byte_order)

    def _read_record(self, cursor: ByteCursor, spec: RecordField, path: Path) -> RecordValue:
        node = RecordValue(type_name=spec.name or spec.key, size_prefix=spec.size_prefix,
                           byte_order=spec.byte_order)
        if spec.size_prefix is None:
            self._read_fields(cursor, spec.fields, node, path)
            return node

        prefix_start = cursor.position
        size = cursor.read_prefix(spec.size_prefix, spec.byte_order)
        node.layout.prefix = bytes(cursor.data[prefix_start:cursor.position])
        if size > cursor.remaining:
            raise DecodeError(f"record size {size} exceeds the {cursor.remaining} byte(s) left",
                              prefix_start, path)
        outer_limit = cursor.limit
        cursor.limit = cursor.position + size
        try:
            self._read_fields(cursor, spec.fields, node, path)
            self._capture_trailing(cursor, node)
        finally:
            cursor.limit = outer_limit
        return node

    def _read_sequence(self, cursor: ByteCursor, spec: SequenceField, path: Path,
                       siblings: Optional[RecordValue]) -> SequenceValue:
        node = SequenceValue(count_mode=spec.count_mode, prefix=spec.prefix,
                             byte_order=spec.byte_order)
        items: List[Value] = node.items
        mode = spec.count_mode

        if mode in ("fixed", "prefix", "field"):
            if mode == "fixed":
                count = spec.count
            elif mode == "prefix":
                prefix_start = cursor.position
                count = cursor.read_prefix(spec.prefix, spec.byte_order)
                node.layout.prefix = bytes(cursor.data[prefix_start:cursor.position])
            else:
                count = self._sibling_count(cursor, spec.count_from, siblings, path)
            if count * _min_size(spec.element) > cursor.remaining:
                raise DecodeError(f"element count {count} cannot fit in the {cursor.remaining} "
                                  f"byte(s) left", cursor.position, path)
            for index in range(count):
                items.append(self._read_field(cursor, spec.element, path + (index,)))
        elif mode == "marker":
            marker = spec.until
            while True:
                if cursor.remaining < len(marker):
                    raise DecodeError(f"end marker {marker!r} not found", cursor.position, path)
                if cursor.peek(len(marker)) == marker:
                    node.layout.terminator = cursor.read_bytes(len(marker))
                    break
                items.append(self._read_field(cursor, spec.element, path + (len(items),)))
        else:
            while cursor.has_more:
                before = cursor.position
                items.append(self._read_field(cursor, spec.element, path + (len(items),)))
                if cursor.position == before:
                    raise DecodeError("element consumed no bytes", before, path)
        return node

    def _read_variant(self, cursor: ByteCursor, spec: VariantField, path: Path) -> RecordValue:
        tag_start = cursor.position
        tag = cursor.read_int(spec.tag_width, False, spec.byte_order)
        fields = spec.cases.get(tag)
        if fields is None:
            known = ", ".join(str(t) for t in sorted(spec.cases))
            raise DecodeError(f"invalid tag {tag} (known: {known})", tag_start, path)
        node = RecordValue(type_name=spec.names.get(tag, f"{spec.key}#{tag}"), tag=tag,
                           tag_width=spec.tag_width, byte_order=spec.byte_order)
        node.layout.prefix = bytes(cursor.data[tag_start:cursor.position])
        self._read_fields(cursor, fields, node, path)
        return node

    # ─────────────────────────────────────────────────────────────
    # HELPERS
    # ─────────────────────────────────────────────────────────────

    def _sibling_count(self, cursor: ByteCursor, key: str,
                       siblings: Optional[RecordValue], path: Path) -> int:
        source = siblings.get(key) if siblings is not None else None
        if source is None or source.kind != ValueKind.INTEGER:
            raise DecodeError(f"length field {key!r} must be an integer decoded earlier",
                              cursor.position, path)
        if source.value < 0:
            raise DecodeError(f"negative length {source.value} in {key!r}", cursor.position, path)
        source.layout.readonly = True
        return source.value

    def _capture_trailing(self, cursor: ByteCursor, record: RecordValue):
        if not cursor.has_more:
            return
        start = cursor.position
        data = cursor.read_bytes(cursor.remaining)
        record.fields[TRAILING_KEY] = UnparsedValue(
            value=data, reason="trailing", layout=Layout(offset=start, length=len(data)))
        logger.debug(f"Kept {len(data)} unmodelled trailing byte(s) at {start:#x}")


def _strip_fixed(slot: bytes, encoding: str, pad: int) -> bytes:
    """Text part of a fixed-size slot: up to the first null (or trailing pad bytes)."""
    unit = len("\0".encode(encoding))
    null = b"\x00" * unit
    for i in range(0, len(slot) - unit + 1, unit):
        if slot[i:i + unit] == null:
            return slot[:i]
    if pad:
        return slot.rstrip(bytes([pad]))
    return slot


def _read_terminated(cursor: ByteCursor, encoding: str) -> str:
    unit = len("\0".encode(encoding))
    if unit == 1:
        return cursor.read_cstring(encoding)
    null = b"\x00" * unit
    chunks = []
    while True:
        piece = cursor.read_bytes(unit)
        if piece == null:
            return b"".join(chunks).decode(encoding)
        chunks.append(piece)


def _min_size(spec: FieldSpec) -> int:
    """Lower bound of an element's encoded size, used to reject absurd counts early."""
    if isinstance(spec, (IntField, FloatField, BoolField)):
        return spec.width
    if isinstance(spec, StringField):
        return spec.size if spec.size is not None else 1
    if isinstance(spec, BlobField):
        return spec.size if spec.size is not None else 0
    if isinstance(spec, MagicField):
        return len(spec.expected)
    if isinstance(spec, RecordField):
        if spec.size_prefix is not None:
            return 1
        return sum(_min_size(f) for f in spec.fields)
    if isinstance(spec, VariantField):
        return spec.tag_width
    return 0


def decode(data: bytes, schema: CategorySchema) -> DecodeResult:
    """Decode one category buffer."""
    return Decoder(schema).decode(data)
