"""
JSON export of a category tree.

Produces plain Python data (dict / list / scalars) ready for json.dumps.
Large trees are capped: sequences stop after `max_array` items with a
{"$truncated": true, "$omitted": n} marker, and children below `max_depth`
become null. Blobs are summarised unless `bytes_full` is set.
"""

import math
from dataclasses import dataclass
from typing import Any, Optional

from .values import Value, ValueKind, format_float


@dataclass
class ExportOptions:
    max_depth: int = 16
    max_array: int = 128
    bytes_full: bool = False


def to_json(node: Value, options: Optional[ExportOptions] = None) -> Any:
    """Convert a decoded node (usually a category root) to JSON-ready data."""
    return _convert(node, 0, options or ExportOptions())


def _convert(node: Value, depth: int, opts: ExportOptions) -> Any:
    kind = node.kind

    if kind == ValueKind.INTEGER or kind == ValueKind.BOOL or kind == ValueKind.STRING:
        return node.value

    if kind == ValueKind.FLOAT:
        # JSON has no NaN/inf
        if math.isnan(node.value) or math.isinf(node.value):
            return format_float(node.value, node.width)
        return node.value

    if kind == ValueKind.BLOB:
        out = {"$type": "bytes", "len": len(node.value)}
        if opts.bytes_full:
            out["hex"] = bytes(node.value).hex()
        return out

    if kind == ValueKind.UNPARSED:
        return {"$unparsed": len(node.value), "reason": node.reason}

    if kind == ValueKind.SEQUENCE:
        shown = node.items[:opts.max_array]
        out = [None if depth >= opts.max_depth else _convert(item, depth + 1, opts)
               for item in shown]
        if len(node.items) > len(shown):
            out.append({"$truncated": True, "$omitted": len(node.items) - len(shown)})
        return out

    out = {"$type": node.type_name}
    for key, value in node.fields.items():
        out[key] = None if depth >= opts.max_depth else _convert(value, depth + 1, opts)
    return out
