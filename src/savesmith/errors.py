"""
Error taxonomy for the save-data codec.

Two groups matter to callers:
- UnreadableData: a category could not be decoded (show it as unavailable).
- ValueRejected: an edit was refused (the user can simply try again).

Everything derives from SaveDataError so a caller can catch the lot.
"""

from typing import Sequence, Union

PathItem = Union[str, int]


def _path_text(path: Sequence[PathItem]) -> str:
    if not path:
        return "/"
    return "".join(f"[{p}]" if isinstance(p, int) else f"/{p}" for p in path)


class SaveDataError(Exception):
    """Base class for every codec failure."""


# ─────────────────────────────────────────────────────────────
# Cursor level
# ─────────────────────────────────────────────────────────────

class CursorError(SaveDataError):
    """Bytes at the current offset cannot be read or written as asked."""

    def __init__(self, message: str, offset: int, needed: int):
        super().__init__(message)
        self.offset = offset
        self.needed = needed


class OutOfBounds(CursorError):
    def __init__(self, offset: int, needed: int, available: int):
        super().__init__(
            f"need {needed} byte(s) at {offset:#x}, only {available} available",
            offset, needed)
        self.available = available


class BufferExhausted(CursorError):
    def __init__(self, offset: int, needed: int, capacity: int):
        super().__init__(
            f"cannot write {needed} byte(s) at {offset:#x}, capacity is {capacity}",
            offset, needed)
        self.capacity = capacity


class MalformedData(CursorError):
    """Bytes are present but do not form a valid length or text."""

    def __init__(self, offset: int, reason: str):
        super().__init__(f"malformed data at {offset:#x}: {reason}", offset, 0)
        self.reason = reason


# ─────────────────────────────────────────────────────────────
# "File unreadable"
# ─────────────────────────────────────────────────────────────

class UnreadableData(SaveDataError):
    """A category buffer cannot be turned into a tree."""


class DecodeError(UnreadableData):
    """Bytes do not match the schema at a given offset and field path."""

    def __init__(self, message: str, offset: int, path: Sequence[PathItem] = ()):
        self.message = message
        self.offset = offset
        self.path = tuple(path)
        super().__init__(f"{message} (at {offset:#x}, field {_path_text(self.path)})")


class SchemaUnsupported(UnreadableData):
    """No registered schema recognises the category buffer."""

    def __init__(self, category: str, reason: str = ""):
        self.category = category
        self.reason = reason
        text = f"no known schema for '{category}'"
        super().__init__(f"{text}: {reason}" if reason else text)


# ─────────────────────────────────────────────────────────────
# "Value rejected"
# ─────────────────────────────────────────────────────────────

class ValueRejected(SaveDataError):
    """An edit was refused; the tree is unchanged."""

    def __init__(self, message: str, path: Sequence[PathItem] = ()):
        self.path = tuple(path)
        super().__init__(f"{_path_text(self.path)}: {message}" if path else message)


class TypeMismatch(ValueRejected):
    """New value is of a different kind than the existing leaf."""


class ValueTooLarge(ValueRejected):
    """New value does not fit the leaf's fixed width or length slot."""


class ReadOnlyField(ValueRejected):
    """Leaf drives structure (a count, a size, a schema version)."""


class InvalidValue(ValueRejected):
    """Right kind, but the leaf cannot represent it (e.g. unencodable text)."""


class PathNotFound(SaveDataError, LookupError):
    def __init__(self, category: str, path: Sequence[PathItem]):
        self.category = category
        self.path = tuple(path)
        super().__init__(f"{category}: no value at {_path_text(self.path)}")


class SaveRefused(SaveDataError):
    """One or more dirty categories failed to encode; nothing was written."""

    def __init__(self, failures: dict):
        self.failures = dict(failures)
        names = ", ".join(sorted(self.failures))
        super().__init__(f"refusing to save, encode failed for: {names}")
