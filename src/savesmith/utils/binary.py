"""Bounds-checked binary cursor for save-data parsing and writing."""

import struct
from enum import Enum
from typing import Optional

from ..errors import BufferExhausted, MalformedData, OutOfBounds


class ByteOrder(Enum):
    """Byte order enum for struct packing/unpacking."""
    BIG_ENDIAN = ">"
    LITTLE_ENDIAN = "<"


# Length/count prefix kinds: fixed-width unsigned or 7-bit encoded ("varint")
PREFIX_WIDTHS = {"u8": 1, "u16": 2, "u32": 4, "u64": 8}
VARINT = "varint"
PREFIX_KINDS = tuple(PREFIX_WIDTHS) + (VARINT,)

_INT_CODES = {1: "b", 2: "h", 4: "i", 8: "q"}
_FLOAT_CODES = {4: "f", 8: "d"}

# .NET caps 7-bit encoded lengths at 5 groups (int32)
VARINT_MAX_GROUPS = 5


def int_format(width: int, signed: bool, byte_order: ByteOrder) -> str:
    """struct format string for an integer of the given width."""
    code = _INT_CODES.get(width)
    if code is None:
        raise ValueError(f"unsupported integer width: {width}")
    return byte_order.value + (code if signed else code.upper())


def float_format(width: int, byte_order: ByteOrder) -> str:
    code = _FLOAT_CODES.get(width)
    if code is None:
        raise ValueError(f"unsupported float width: {width}")
    return byte_order.value + code


def int_range(width: int, signed: bool) -> tuple:
    """(min, max) representable by an integer field."""
    bits = width * 8
    if signed:
        return -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    return 0, (1 << bits) - 1


def prefix_capacity(kind: str) -> int:
    """Largest value a length prefix of this kind can hold."""
    if kind == VARINT:
        return 0x7FFFFFFF
    width = PREFIX_WIDTHS.get(kind)
    if width is None:
        raise ValueError(f"unknown prefix kind: {kind}")
    return (1 << (width * 8)) - 1


def encode_varint(value: int) -> bytes:
    """7-bit encoded unsigned integer (BinaryWriter.Write7BitEncodedInt)."""
    if value < 0:
        raise ValueError("varint cannot encode negative values")
    out = bytearray()
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def encode_prefix(kind: str, value: int,
                  byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN) -> bytes:
    """Canonical on-disk form of a length/count prefix."""
    if kind == VARINT:
        return encode_varint(value)
    return struct.pack(int_format(PREFIX_WIDTHS[kind], False, byte_order), value)


class ByteCursor:
    """
    Sequential reader/writer over a byte buffer.

    Every read is checked against `limit` (end of buffer unless narrowed for
    a nested region) and raises OutOfBounds instead of returning short data.
    Writes overwrite at the current position and append past the end; when
    `capacity` is set the buffer is fixed-size and overflow raises
    BufferExhausted.
    """

    def __init__(self, data: bytes = b"",
                 byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN,
                 capacity: Optional[int] = None):
        self.data = bytearray(data)
        self.byte_order = byte_order
        self.capacity = capacity
        self._pos = 0
        self._limit: Optional[int] = None

    @classmethod
    def from_bytes(cls, data: bytes,
                   byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN) -> 'ByteCursor':
        """Create a reader over bytes."""
        return cls(data, byte_order)

    @classmethod
    def fixed(cls, capacity: int,
              byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN) -> 'ByteCursor':
        """Create a fixed-capacity writer."""
        return cls(b"", byte_order, capacity=capacity)

    # ─────────────────────────────────────────────────────────────
    # POSITION
    # ─────────────────────────────────────────────────────────────

    @property
    def position(self) -> int:
        """Current absolute position."""
        return self._pos

    @position.setter
    def position(self, value: int):
        self.seek(value)

    def seek(self, offset: int):
        """Move to an absolute offset (may not go past the readable end)."""
        if offset < 0 or offset > len(self.data):
            raise OutOfBounds(offset, 0, len(self.data))
        self._pos = offset

    @property
    def limit(self) -> Optional[int]:
        """Absolute end of the current readable region (None = whole buffer)."""
        return self._limit

    @limit.setter
    def limit(self, value: Optional[int]):
        if value is not None and value > len(self.data):
            raise OutOfBounds(self._pos, value - self._pos, len(self.data) - self._pos)
        self._limit = value

    @property
    def end(self) -> int:
        return len(self.data) if self._limit is None else self._limit

    @property
    def remaining(self) -> int:
        return max(0, self.end - self._pos)

    @property
    def has_more(self) -> bool:
        """Check if there are more bytes to read."""
        return self._pos < self.end

    def has_bytes(self, num_bytes: int) -> bool:
        """Check if there are at least num_bytes remaining."""
        return self.remaining >= num_bytes

    def getvalue(self) -> bytes:
        return bytes(self.data)

    # ─────────────────────────────────────────────────────────────
    # READ
    # ─────────────────────────────────────────────────────────────

    def _take(self, count: int) -> bytes:
        if count < 0 or count > self.remaining:
            raise OutOfBounds(self._pos, count, self.remaining)
        chunk = bytes(self.data[self._pos:self._pos + count])
        self._pos += count
        return chunk

    def peek(self, count: int) -> bytes:
        """Look at the next bytes without consuming them."""
        if count > self.remaining:
            raise OutOfBounds(self._pos, count, self.remaining)
        return bytes(self.data[self._pos:self._pos + count])

    def skip(self, num_bytes: int):
        """Skip bytes from current position."""
        self._take(num_bytes)

    def read_bytes(self, count: int) -> bytes:
        """Read raw bytes."""
        return self._take(count)

    def read_int(self, width: int, signed: bool = False,
                 byte_order: Optional[ByteOrder] = None) -> int:
        fmt = int_format(width, signed, byte_order or self.byte_order)
        return struct.unpack(fmt, self._take(width))[0]

    def read_uint8(self) -> int:
        return self.read_int(1)

    def read_sbyte(self) -> int:
        return self.read_int(1, signed=True)

    def read_uint16(self, byte_order: Optional[ByteOrder] = None) -> int:
        return self.read_int(2, False, byte_order)

    def read_int16(self, byte_order: Optional[ByteOrder] = None) -> int:
        return self.read_int(2, True, byte_order)

    def read_uint32(self, byte_order: Optional[ByteOrder] = None) -> int:
        return self.read_int(4, False, byte_order)

    def read_int32(self, byte_order: Optional[ByteOrder] = None) -> int:
        return self.read_int(4, True, byte_order)

    def read_uint64(self, byte_order: Optional[ByteOrder] = None) -> int:
        return self.read_int(8, False, byte_order)

    def read_int64(self, byte_order: Optional[ByteOrder] = None) -> int:
        return self.read_int(8, True, byte_order)

    def read_float(self, width: int = 4, byte_order: Optional[ByteOrder] = None) -> float:
        """Read a 32-bit (or, with width=8, 64-bit) float."""
        fmt = float_format(width, byte_order or self.byte_order)
        return struct.unpack(fmt, self._take(width))[0]

    def read_double(self, byte_order: Optional[ByteOrder] = None) -> float:
        return self.read_float(8, byte_order)

    def read_varint(self) -> int:
        """Read a 7-bit encoded length."""
        start = self._pos
        result = 0
        for group in range(VARINT_MAX_GROUPS):
            byte = self._take(1)[0]
            result |= (byte & 0x7F) << (7 * group)
            if not byte & 0x80:
                return result
        self._pos = start
        raise MalformedData(start, f"7-bit length runs past {VARINT_MAX_GROUPS} bytes")

    def read_prefix(self, kind: str, byte_order: Optional[ByteOrder] = None) -> int:
        """Read a length or count prefix."""
        if kind == VARINT:
            return self.read_varint()
        return self.read_int(PREFIX_WIDTHS[kind], False, byte_order)

    def read_prefixed_string(self, kind: str = VARINT, encoding: str = "utf-8",
                             byte_order: Optional[ByteOrder] = None) -> str:
        """Read a length-prefixed string (length counts bytes)."""
        start = self._pos
        length = self.read_prefix(kind, byte_order)
        if length > self.remaining:
            self._pos = start
            raise OutOfBounds(start, length, self.remaining)
        try:
            return self._take(length).decode(encoding)
        except UnicodeDecodeError as e:
            self._pos = start
            raise MalformedData(start, f"not valid {encoding} text") from e

    def read_cstring(self, encoding: str = "utf-8") -> str:
        """Read a null-terminated string; the terminator is consumed."""
        end = self.data.find(b"\x00", self._pos, self.end)
        if end == -1:
            raise OutOfBounds(self._pos, self.remaining + 1, self.remaining)
        try:
            text = bytes(self.data[self._pos:end]).decode(encoding)
        except UnicodeDecodeError as e:
            raise MalformedData(self._pos, f"not valid {encoding} text") from e
        self._pos = end + 1
        return text

    # ─────────────────────────────────────────────────────────────
    # WRITE
    # ─────────────────────────────────────────────────────────────

    def write_bytes(self, data: bytes):
        """Write raw bytes at the current position."""
        end = self._pos + len(data)
        if self.capacity is not None and end > self.capacity:
            raise BufferExhausted(self._pos, len(data), self.capacity)
        self.data[self._pos:end] = data
        self._pos = end

    def write_int(self, value: int, width: int, signed: bool = False,
                  byte_order: Optional[ByteOrder] = None):
        fmt = int_format(width, signed, byte_order or self.byte_order)
        self.write_bytes(struct.pack(fmt, value))

    def write_byte(self, value: int):
        self.write_int(value, 1)

    def write_uint16(self, value: int, byte_order: Optional[ByteOrder] = None):
        self.write_int(value, 2, False, byte_order)

    def write_int16(self, value: int, byte_order: Optional[ByteOrder] = None):
        self.write_int(value, 2, True, byte_order)

    def write_uint32(self, value: int, byte_order: Optional[ByteOrder] = None):
        self.write_int(value, 4, False, byte_order)

    def write_int32(self, value: int, byte_order: Optional[ByteOrder] = None):
        self.write_int(value, 4, True, byte_order)

    def write_uint64(self, value: int, byte_order: Optional[ByteOrder] = None):
        self.write_int(value, 8, False, byte_order)

    def write_float(self, value: float, width: int = 4,
                    byte_order: Optional[ByteOrder] = None):
        self.write_bytes(struct.pack(float_format(width, byte_order or self.byte_order), value))

    def write_double(self, value: float, byte_order: Optional[ByteOrder] = None):
        self.write_float(value, 8, byte_order)

    def write_prefix(self, kind: str, value: int, byte_order: Optional[ByteOrder] = None):
        self.write_bytes(encode_prefix(kind, value, byte_order or self.byte_order))

    def write_prefixed_string(self, text: str, kind: str = VARINT, encoding: str = "utf-8",
                              byte_order: Optional[ByteOrder] = None):
        raw = text.encode(encoding)
        self.write_prefix(kind, len(raw), byte_order)
        self.write_bytes(raw)
