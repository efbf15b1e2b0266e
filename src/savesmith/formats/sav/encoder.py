"""
Encoder: value tree -> category bytes.

Mirrors the decoder's traversal. Unedited leaves replay their original bytes;
edited leaves are written with the width, byte order, encoding and padding
they were decoded with. Prefixes (lengths, counts, sizes, tags) are replayed
as found whenever the number they carry is still correct.

A value that no longer fits its slot raises ValueTooLarge instead of being
truncated: the format has no relocation table, so a silently resized field
would shift every offset after it. Encoding only reads the tree.
"""

import logging
import struct
from typing import Optional

from ...errors import InvalidValue, ValueTooLarge
from ...utils.binary import (
    VARINT, ByteCursor, ByteOrder, encode_prefix, int_format, int_range, prefix_capacity,
)
from .values import Path, RecordValue, SequenceValue, UnparsedValue, Value, ValueKind

logger = logging.getLogger(__name__)


def encode_leaf(node: Value, path: Path = ()) -> bytes:
    """Canonical bytes of a leaf at its declared width/encoding; raises on overflow."""
    kind = node.kind
    if kind == ValueKind.INTEGER:
        low, high = int_range(node.width, node.signed)
        if not low <= node.value <= high:
            raise ValueTooLarge(f"{node.value} does not fit {node.type_name} "
                                f"({low}..{high})", path)
        return struct.pack(int_format(node.width, node.signed, node.byte_order), node.value)

    if kind == ValueKind.FLOAT:
        fmt = node.byte_order.value + ("f" if node.width == 4 else "d")
        try:
            return struct.pack(fmt, node.value)
        except OverflowError as e:
            raise ValueTooLarge(f"{node.value} does not fit {node.type_name}", path) from e

    if kind == ValueKind.BOOL:
        return struct.pack(int_format(node.width, False, node.byte_order), 1 if node.value else 0)

    if kind == ValueKind.STRING:
        return _encode_string(node, path)

    if kind == ValueKind.BLOB:
        data = bytes(node.value)
        if node.prefix is not None:
            _check_prefix_fits(node.prefix, len(data), path, "blob")
            return encode_prefix(node.prefix, len(data), node.byte_order) + data
        if len(data) > node.size:
            raise ValueTooLarge(f"{len(data)} bytes do not fit the {node.size}-byte slot", path)
        if len(data) < node.size:
            raise InvalidValue(f"fixed-size blob needs exactly {node.size} bytes, "
                               f"got {len(data)}", path)
        return data

    raise TypeError(f"{kind.value} is not a leaf")


def _encode_string(node: Value, path: Path) -> bytes:
    try:
        data = node.value.encode(node.encoding)
    except UnicodeEncodeError as e:
        raise InvalidValue(f"text cannot be encoded as {node.encoding}: {e.reason}", path) from e

    if node.max_length is not None and len(data) > node.max_length:
        raise ValueTooLarge(f"{len(data)} bytes exceed the {node.max_length}-byte limit", path)

    if node.prefix is not None:
        _check_prefix_fits(node.prefix, len(data), path, "string")
        return encode_prefix(node.prefix, len(data), node.byte_order) + data

    null = "\0".encode(node.encoding)
    if "\0" in node.value:
        raise InvalidValue("text contains a null character", path)

    if node.size is not None:
        if len(data) > node.size:
            raise ValueTooLarge(f"{len(data)} bytes do not fit the {node.size}-byte slot", path)
        fill = node.size - len(data)
        if node.pad and fill:
            return data + null[:fill] + bytes([node.pad]) * (fill - min(fill, len(null)))
        return data + b"\x00" * fill

    return data + null


def _check_prefix_fits(kind: str, length: int, path: Path, what: str):
    capacity = prefix_capacity(kind)
    if length > capacity:
        raise ValueTooLarge(f"{what} of {length} bytes exceeds its {kind} length prefix "
                            f"(max {capacity})", path)


def _prefix_value(kind: str, raw: bytes, byte_order: ByteOrder) -> Optional[int]:
    """Number held by a stored prefix, or None if there is none."""
    if not raw:
        return None
    cursor = ByteCursor.from_bytes(raw, byte_order)
    return cursor.read_prefix(kind, byte_order)


def _prefix_bytes(kind: str, value: int, stored: bytes, byte_order: ByteOrder) -> bytes:
    """Stored prefix if it still says `value`, otherwise the canonical form."""
    if _prefix_value(kind, stored, byte_order) == value:
        return stored
    return encode_prefix(kind, value, byte_order)


class Encoder:
    """Writes a decoded (and possibly edited) tree back to bytes."""

    def __init__(self, capacity: Optional[int] = None):
        self.capacity = capacity

    def encode(self, root: RecordValue) -> bytes:
        if root.kind != ValueKind.RECORD:
            raise TypeError("root must be a record")
        if self.capacity is None:
            cursor = ByteCursor(b"", root.byte_order)
        else:
            cursor = ByteCursor.fixed(self.capacity, root.byte_order)
        self._write_fields(cursor, root, (), 0)
        data = cursor.getvalue()
        logger.debug(f"Encoded {root.type_name}: {len(data)} bytes")
        return data

    # ─────────────────────────────────────────────────────────────
    # TREE WALK
    # ─────────────────────────────────────────────────────────────

    def _write(self, cursor: ByteCursor, node: Value, path: Path, base: int):
        kind = node.kind
        if node.is_leaf:
            raw = node.layout.raw
            cursor.write_bytes(raw if raw is not None else encode_leaf(node, path))
        elif kind == ValueKind.UNPARSED:
            cursor.write_bytes(self._unparsed_bytes(node, base + cursor.position))
        elif kind == ValueKind.SEQUENCE:
            self._write_sequence(cursor, node, path, base)
        elif kind == ValueKind.RECORD:
            self._write_record(cursor, node, path, base)
        else:
            raise TypeError(f"cannot encode {kind.value}")

    def _write_fields(self, cursor: ByteCursor, record: RecordValue, path: Path, base: int):
        for key, node in record.fields.items():
            self._write(cursor, node, path + (key,), base)

    def _write_record(self, cursor: ByteCursor, node: RecordValue, path: Path, base: int):
        if node.tag is not None:
            stored = node.layout.prefix
            if stored and len(stored) == node.tag_width:
                cursor.write_bytes(stored)
            else:
                cursor.write_int(node.tag, node.tag_width, False, node.byte_order)

        if node.size_prefix is None:
            self._write_fields(cursor, node, path, base)
            return

        # Body first, so the size prefix in front of it is known
        stored = node.layout.prefix
        prefix_len = len(stored) or len(encode_prefix(node.size_prefix, 0, node.byte_order))
        for _ in range(2):
            body_base = base + cursor.position + prefix_len
            body = ByteCursor(b"", node.byte_order)
            self._write_fields(body, node, path, body_base)
            size = len(body.data)
            _check_prefix_fits(node.size_prefix, size, path, "record body")
            prefix = _prefix_bytes(node.size_prefix, size, stored, node.byte_order)
            if len(prefix) == prefix_len or node.size_prefix != VARINT:
                break
            prefix_len = len(prefix)
        cursor.write_bytes(prefix)
        cursor.write_bytes(body.getvalue())

    def _write_sequence(self, cursor: ByteCursor, node: SequenceValue, path: Path, base: int):
        if node.count_mode == "prefix":
            cursor.write_bytes(_prefix_bytes(node.prefix, len(node.items),
                                             node.layout.prefix, node.byte_order))
        for index, item in enumerate(node.items):
            self._write(cursor, item, path + (index,), base)
        if node.count_mode == "marker":
            cursor.write_bytes(node.layout.terminator)

    @staticmethod
    def _unparsed_bytes(node: UnparsedValue, absolute: int) -> bytes:
        if not node.align:
            return node.value
        needed = (-absolute) % node.align
        if needed == len(node.value):
            return node.value
        return bytes([node.fill]) * needed


def encode(root: RecordValue, capacity: Optional[int] = None) -> bytes:
    """Encode a category tree; with `capacity`, into a fixed-size buffer."""
    return Encoder(capacity).encode(root)
