"""
Save-data value model.

A decoded category is a tree of these nodes. Leaves (integer, float, bool,
string, blob) are the only editable parts; containers (record, sequence)
and unparsed regions carry the layout needed to write the original bytes
back unchanged.

Every node keeps a Layout. For leaves, `layout.raw` holds the exact bytes the
leaf was decoded from; the encoder replays them verbatim until the leaf is
replaced, which is what makes an unedited round trip byte-identical even for
non-canonical encodings (odd bool bytes, NaN payloads, junk after a string's
null terminator, over-long 7-bit lengths).
"""

import math
import struct
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, ClassVar, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from ...utils.binary import ByteOrder

PathItem = Union[str, int]
Path = Tuple[PathItem, ...]


class ValueKind(Enum):
    INTEGER = "integer"
    FLOAT = "float"
    BOOL = "bool"
    STRING = "string"
    BLOB = "blob"
    SEQUENCE = "sequence"
    RECORD = "record"
    UNPARSED = "unparsed"


LEAF_KINDS = frozenset({
    ValueKind.INTEGER, ValueKind.FLOAT, ValueKind.BOOL, ValueKind.STRING, ValueKind.BLOB,
})


@dataclass
class Layout:
    """Where a node sat in the category buffer and what surrounded it."""
    offset: int = 0
    length: int = 0
    raw: Optional[bytes] = None     # leaf bytes as found; None once replaced
    prefix: bytes = b""             # length / count / size / tag prefix as found
    terminator: bytes = b""         # end marker of an until-marker sequence
    readonly: bool = False          # leaf drives structure (count, size, version)

    @property
    def end(self) -> int:
        return self.offset + self.length


class Value:
    """Common behaviour of all nodes."""
    kind: ClassVar[ValueKind]
    layout: Layout

    @property
    def is_leaf(self) -> bool:
        return self.kind in LEAF_KINDS

    @property
    def is_container(self) -> bool:
        return self.kind in (ValueKind.RECORD, ValueKind.SEQUENCE)

    @property
    def edited(self) -> bool:
        return self.is_leaf and self.layout.raw is None

    def with_value(self, new_value: Any) -> 'Value':
        """Copy of a leaf holding `new_value`, keeping every layout detail but the raw bytes."""
        if not self.is_leaf:
            raise TypeError(f"{self.kind.value} is not a leaf")
        return replace(self, value=new_value, layout=replace(self.layout, raw=None))


# ─────────────────────────────────────────────────────────────
# LEAVES
# ─────────────────────────────────────────────────────────────

@dataclass
class IntegerValue(Value):
    kind: ClassVar[ValueKind] = ValueKind.INTEGER
    value: int = 0
    width: int = 4
    signed: bool = False
    byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN
    layout: Layout = field(default_factory=Layout)

    @property
    def type_name(self) -> str:
        return f"{'i' if self.signed else 'u'}{self.width * 8}"


@dataclass
class FloatValue(Value):
    kind: ClassVar[ValueKind] = ValueKind.FLOAT
    value: float = 0.0
    width: int = 4
    byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN
    layout: Layout = field(default_factory=Layout)

    @property
    def type_name(self) -> str:
        return f"f{self.width * 8}"


@dataclass
class BoolValue(Value):
    kind: ClassVar[ValueKind] = ValueKind.BOOL
    value: bool = False
    width: int = 1
    byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN
    layout: Layout = field(default_factory=Layout)

    @property
    def type_name(self) -> str:
        return "bool" if self.width == 1 else f"bool{self.width * 8}"


@dataclass
class StringValue(Value):
    """
    Text leaf. Exactly one storage mode applies:
    - prefix: length prefix ("u8", "u16", "u32", "u64", "varint") then bytes
    - size: fixed slot of `size` bytes, padded with `pad`
    - terminated: bytes followed by a null
    """
    kind: ClassVar[ValueKind] = ValueKind.STRING
    value: str = ""
    encoding: str = "utf-8"
    prefix: Optional[str] = None
    size: Optional[int] = None
    terminated: bool = False
    max_length: Optional[int] = None
    pad: int = 0
    byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN
    layout: Layout = field(default_factory=Layout)

    @property
    def declared_length(self) -> int:
        """Byte length of the slot (fixed strings) or of the decoded text."""
        if self.size is not None:
            return self.size
        return len(self.value.encode(self.encoding, errors="replace"))

    @property
    def type_name(self) -> str:
        if self.size is not None:
            return f"str[{self.size}]"
        if self.prefix:
            return f"str<{self.prefix}>"
        return "cstr"


@dataclass
class BlobValue(Value):
    """Opaque bytes, either fixed-size or length-prefixed."""
    kind: ClassVar[ValueKind] = ValueKind.BLOB
    value: bytes = b""
    size: Optional[int] = None
    prefix: Optional[str] = None
    byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN
    layout: Layout = field(default_factory=Layout)

    @property
    def type_name(self) -> str:
        if self.prefix:
            return f"bytes<{self.prefix}>"
        return f"bytes[{len(self.value) if self.size is None else self.size}]"


# ─────────────────────────────────────────────────────────────
# CONTAINERS
# ─────────────────────────────────────────────────────────────

@dataclass
class SequenceValue(Value):
    """
    Ordered list of elements. `count_mode` records how the length was found:
    "fixed", "prefix", "field", "marker" or "end".
    """
    kind: ClassVar[ValueKind] = ValueKind.SEQUENCE
    items: List[Value] = field(default_factory=list)
    count_mode: str = "fixed"
    prefix: Optional[str] = None
    byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN
    layout: Layout = field(default_factory=Layout)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[Value]:
        return iter(self.items)

    def __getitem__(self, index: int) -> Value:
        return self.items[index]


@dataclass
class RecordValue(Value):
    """
    Ordered mapping of field key -> node. A record read through a size prefix
    keeps the prefix kind; a variant record keeps its tag.
    """
    kind: ClassVar[ValueKind] = ValueKind.RECORD
    fields: Dict[str, Value] = field(default_factory=dict)
    type_name: str = ""
    size_prefix: Optional[str] = None
    tag: Optional[int] = None
    tag_width: int = 0
    byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN
    layout: Layout = field(default_factory=Layout)

    def __len__(self) -> int:
        return len(self.fields)

    def __iter__(self) -> Iterator[str]:
        return iter(self.fields)

    def __contains__(self, key: object) -> bool:
        return key in self.fields

    def __getitem__(self, key: str) -> Value:
        return self.fields[key]

    def keys(self):
        return self.fields.keys()

    def items(self):
        return self.fields.items()

    def get(self, key: str, default: Optional[Value] = None) -> Optional[Value]:
        return self.fields.get(key, default)


@dataclass
class UnparsedValue(Value):
    """
    Bytes the schema does not model: trailing data, padding, signatures.
    An `align` boundary means the region is alignment padding and may be
    regenerated (with its fill byte) if the bytes before it changed size.
    """
    kind: ClassVar[ValueKind] = ValueKind.UNPARSED
    value: bytes = b""
    reason: str = "trailing"
    align: int = 0
    layout: Layout = field(default_factory=Layout)

    @property
    def fill(self) -> int:
        return self.value[0] if self.value else 0


# ─────────────────────────────────────────────────────────────
# PYTHON VALUES / KINDS
# ─────────────────────────────────────────────────────────────

def kind_of(value: Any) -> ValueKind:
    """Kind a plain Python value (or a Value) stands for."""
    if isinstance(value, Value):
        return value.kind
    if isinstance(value, bool):
        return ValueKind.BOOL
    if isinstance(value, int):
        return ValueKind.INTEGER
    if isinstance(value, float):
        return ValueKind.FLOAT
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, (bytes, bytearray)):
        return ValueKind.BLOB
    raise TypeError(f"no value kind for {type(value).__name__}")


def plain(value: Any) -> Any:
    """Scalar carried by a leaf Value, or the value itself."""
    if isinstance(value, Value):
        return bytes(value.value) if value.kind == ValueKind.BLOB else value.value
    if isinstance(value, bytearray):
        return bytes(value)
    return value


def format_float(value: float, width: int = 8) -> str:
    """Shortest decimal text that reads back to the same float at `width`."""
    if math.isnan(value):
        return "nan"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    text = repr(value)
    if width == 4:
        target = struct.pack("<f", value)
        for digits in range(1, 10):
            candidate = float(f"{value:.{digits}g}")
            if struct.pack("<f", candidate) == target:
                text = repr(candidate)
                break
    if "e" in text or "." in text:
        return text
    return text + ".0"


def render(value: Value) -> Optional[str]:
    """Canonical text of a leaf, as shown and searched; None for non-leaves and blobs."""
    if value.kind == ValueKind.INTEGER:
        return str(value.value)
    if value.kind == ValueKind.FLOAT:
        return format_float(value.value, value.width)
    if value.kind == ValueKind.BOOL:
        return "true" if value.value else "false"
    if value.kind == ValueKind.STRING:
        return value.value
    return None


def describe(value: Value) -> str:
    """Short display text for any node."""
    text = render(value)
    if text is not None:
        return text
    if value.kind == ValueKind.BLOB:
        return f"<bytes {len(value.value)}>"
    if value.kind == ValueKind.UNPARSED:
        return f"<unparsed {len(value.value)}: {value.reason}>"
    if value.kind == ValueKind.SEQUENCE:
        return f"[{len(value.items)} items]"
    return f"{value.type_name or 'record'} {{{len(value.fields)} fields}}"


# ─────────────────────────────────────────────────────────────
# NAVIGATION
# ─────────────────────────────────────────────────────────────

def child(node: Value, key: PathItem) -> Optional[Value]:
    """One step down the tree, or None if there is no such child."""
    if node.kind == ValueKind.RECORD and isinstance(key, str):
        return node.fields.get(key)
    if node.kind == ValueKind.SEQUENCE and isinstance(key, int) and not isinstance(key, bool):
        if 0 <= key < len(node.items):
            return node.items[key]
    return None


def resolve(root: Value, path: Sequence[PathItem]) -> Optional[Value]:
    """Node at `path`, or None."""
    node = root
    for key in path:
        node = child(node, key)
        if node is None:
            return None
    return node


def replace_child(parent: Value, key: PathItem, new_node: Value):
    """Swap a child in place (the caller has already validated the key)."""
    if parent.kind == ValueKind.RECORD:
        parent.fields[key] = new_node
    else:
        parent.items[key] = new_node


def children(node: Value) -> Iterator[Tuple[PathItem, Value]]:
    if node.kind == ValueKind.RECORD:
        yield from node.fields.items()
    elif node.kind == ValueKind.SEQUENCE:
        yield from enumerate(node.items)


def walk(root: Value, path: Path = ()) -> Iterator[Tuple[Path, Value]]:
    """Depth-first, pre-order traversal in declaration order."""
    yield path, root
    for key, node in children(root):
        yield from walk(node, path + (key,))
