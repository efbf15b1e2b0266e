"""savesmith - command line front end for SaveSmith Suite.

Inspect, search and edit the category files of a save slot directory.

Usage:
    savesmith inspect <slot>
    savesmith dump <slot> [--category <name>] [--max-array N] [--max-depth N] [--bytes-full]
    savesmith get <slot> <category> <path>
    savesmith list <slot> <category> [path]
    savesmith set <slot> <category> <path> <value> [--dry-run] [--no-backup]
    savesmith search <slot> <query> [--category <name>]
    savesmith thumbnail <slot> <out.png>

Paths are JSON-Pointer style: /missions/0/id. Categories may be given
loosely ("player", "player_data", "Player Data").

Output formats (before the command):
    --format table    (default, human-readable)
    --format json     (machine-readable)

Exit codes: 0 ok, 1 usage / not found, 2 unreadable data,
3 value rejected, 4 write failure.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .errors import PathNotFound, SaveRefused, UnreadableData, ValueRejected
from .formats.sav.export import ExportOptions, to_json
from .formats.sav.values import Value, ValueKind, describe
from .save_editor.document import SaveDocument, format_path, parse_path
from .save_editor.save_manager import SaveManager
from .save_editor.search import search
from .save_editor.sources import DirectorySlotSource
from .save_editor.thumbnail import export_thumbnail

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_UNREADABLE = 2
EXIT_REJECTED = 3
EXIT_WRITE_FAILED = 4

TRUE_WORDS = ("true", "yes", "on", "1")
FALSE_WORDS = ("false", "no", "off", "0")


class CliError(Exception):
    """Reported on stderr; ends the command with `code`."""

    def __init__(self, message: str, code: int = EXIT_USAGE):
        super().__init__(message)
        self.code = code


# ─────────────────────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────────────────────

def load_slot(path: str, player: int, backup: bool = True) -> SaveManager:
    """Open a slot directory. Raises CliError if it does not exist."""
    slot = Path(path)
    if not slot.is_dir():
        raise CliError(f"Slot directory not found: {path}")
    mgr = SaveManager(backup=backup)
    mgr.open_slot(DirectorySlotSource(slot, player=player))
    return mgr


def _normalise(name: str) -> str:
    return name.casefold().replace(" ", "").replace("_", "").replace("-", "")


def resolve_category(document: SaveDocument, name: str) -> str:
    """Exact, then loose ("player" -> "Player Data") category lookup."""
    if name in document.categories:
        return name
    wanted = _normalise(name)
    exact = [c for c in document.categories if _normalise(c) == wanted]
    if exact:
        return exact[0]
    partial = [c for c in document.categories if _normalise(c).startswith(wanted)]
    if len(partial) == 1:
        return partial[0]
    available = ", ".join(document.categories)
    if partial:
        raise CliError(f"Category '{name}' is ambiguous: {', '.join(partial)}")
    raise CliError(f"No category matching '{name}'. Available: {available}")


def parse_value(text: str, node: Value):
    """Command-line text -> Python value of the leaf's kind."""
    kind = node.kind
    if kind == ValueKind.INTEGER:
        return int(text, 0)
    if kind == ValueKind.FLOAT:
        return float(text)
    if kind == ValueKind.BOOL:
        word = text.strip().lower()
        if word in TRUE_WORDS:
            return True
        if word in FALSE_WORDS:
            return False
        raise ValueError(f"not a boolean: {text!r}")
    if kind == ValueKind.BLOB:
        return bytes.fromhex(text)
    return text


def export_options(args) -> ExportOptions:
    return ExportOptions(max_depth=getattr(args, "max_depth", 16),
                         max_array=getattr(args, "max_array", 128),
                         bytes_full=getattr(args, "bytes_full", False))


def print_json(data):
    print(json.dumps(data, indent=2, ensure_ascii=False))


# ─────────────────────────────────────────────────────────────
# COMMANDS
# ─────────────────────────────────────────────────────────────

def cmd_inspect(args) -> int:
    """Per-category status of a slot."""
    mgr = load_slot(args.slot, args.player)
    doc = mgr.document
    doc.load_all()

    rows = []
    for category in doc.categories:
        status = doc.status(category).value
        row = {"category": category, "status": status,
               "file": mgr.source.file_for(category).name}
        if category in doc.errors:
            row["error"] = str(doc.errors[category])
        else:
            row["schema"] = str(doc.schema(category))
            row["bytes"] = len(doc.saved_bytes(category))
        rows.append(row)

    if args.format == "json":
        print_json({"slot": args.slot, "categories": rows})
        return EXIT_OK

    print(f"Slot: {args.slot}  (player {args.player})\n")
    print(f"  {'CATEGORY':<14} {'STATUS':<12} {'FILE':<20} DETAIL")
    print(f"  {'─' * 60}")
    for row in rows:
        detail = row.get("error") or f"{row['schema']}, {row['bytes']} bytes"
        print(f"  {row['category']:<14} {row['status']:<12} {row['file']:<20} {detail}")
    return EXIT_OK


def cmd_dump(args) -> int:
    """Dump categories as JSON."""
    mgr = load_slot(args.slot, args.player)
    doc = mgr.document
    categories = [resolve_category(doc, args.category)] if args.category else doc.categories
    options = export_options(args)

    out = {}
    for category in categories:
        try:
            out[category] = to_json(doc.tree(category), options)
        except UnreadableData as e:
            if args.category:
                raise
            out[category] = {"$unavailable": str(e)}
    print_json(out if not args.category else out[categories[0]])
    return EXIT_OK


def cmd_get(args) -> int:
    """Show the value at a path."""
    mgr = load_slot(args.slot, args.player)
    doc = mgr.document
    category = resolve_category(doc, args.category)
    node = doc.get(category, parse_path(args.path))

    if args.format == "json" or node.is_container:
        print_json(to_json(node, export_options(args)))
    else:
        print(describe(node))
    return EXIT_OK


def cmd_list(args) -> int:
    """List the children at a path."""
    mgr = load_slot(args.slot, args.player)
    doc = mgr.document
    category = resolve_category(doc, args.category)
    base = parse_path(args.path)
    entries = doc.children(category, base)

    if args.format == "json":
        print_json([{"key": e.key, "kind": e.kind, "len": e.length} for e in entries])
        return EXIT_OK

    for entry in entries:
        node = doc.get(category, base + (entry.key,))
        pointer = format_path(base + (entry.key,))
        print(f"  {pointer:<32} {entry.kind:<9} {describe(node)}")
    return EXIT_OK


def cmd_set(args) -> int:
    """Set a leaf value and save the slot."""
    mgr = load_slot(args.slot, args.player, backup=not args.no_backup)
    doc = mgr.document
    category = resolve_category(doc, args.category)
    path = parse_path(args.path)
    node = doc.get(category, path)
    if not node.is_leaf:
        raise ValueRejected(f"{node.kind.value} is not an editable leaf", path)
    try:
        value = parse_value(args.value, node)
    except ValueError as e:
        raise ValueRejected(f"cannot read {args.value!r} as {node.kind.value}: {e}", path) from e

    new = doc.set_value(category, path, value)
    if args.dry_run:
        data = doc.encode(category)
        print(f"{category}{format_path(path)} = {describe(new)} "
              f"(dry run, {len(data)} bytes, nothing written)")
        return EXIT_OK

    mgr.save()
    print(f"{category}{format_path(path)} = {describe(new)}")
    print(f"Saved to {mgr.source.file_for(category)}")
    return EXIT_OK


def cmd_search(args) -> int:
    """Search keys and values."""
    mgr = load_slot(args.slot, args.player)
    doc = mgr.document
    if args.category:
        scope = resolve_category(doc, args.category)
        doc.tree(scope)
    else:
        scope = None
        doc.load_all()
    matches = search(doc, args.query, scope)

    if args.format == "json":
        print_json([{"category": m.category, "path": m.pointer, "matched": m.matched_text,
                     "on": m.matched_on} for m in matches])
        return EXIT_OK

    if not matches:
        print(f"No matches for '{args.query}'")
        return EXIT_OK
    for m in matches:
        print(f"  {m.category:<14} {m.pointer:<32} {m.matched_on:<5} {m.matched_text}")
    print(f"\n{len(matches)} match(es)")
    return EXIT_OK


def cmd_thumbnail(args) -> int:
    """Export the slot thumbnail."""
    mgr = load_slot(args.slot, args.player)
    doc = mgr.document
    category = resolve_category(doc, "Slot Info")
    try:
        width, height = export_thumbnail(doc.tree(category), args.out)
    except ValueError as e:
        raise CliError(f"cannot export thumbnail: {e}", EXIT_UNREADABLE) from e
    print(f"Wrote {width}x{height} thumbnail to {args.out}")
    return EXIT_OK


# ─────────────────────────────────────────────────────────────
# ENTRY POINT
# ─────────────────────────────────────────────────────────────

def _add_export_args(p):
    p.add_argument("--max-array", type=int, default=128, help="Max array elements shown")
    p.add_argument("--max-depth", type=int, default=16, help="Max nesting depth shown")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="savesmith",
        description="Inspect, search and edit save slot data.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Exit codes: 0 ok, 1 usage/not found, 2 unreadable data, "
               "3 value rejected, 4 write failure.",
    )
    parser.add_argument("--format", choices=["table", "json"],
                        default="table", help="Output format (default: table)")
    parser.add_argument("--player", type=int, default=1,
                        help="Player index for PlayerData_<n>.sav (default: 1)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", help="Command to run")

    # inspect
    p = sub.add_parser("inspect", help="Show every category's status")
    p.add_argument("slot", help="Save slot directory")

    # dump
    p = sub.add_parser("dump", help="Dump categories as JSON")
    p.add_argument("slot", help="Save slot directory")
    p.add_argument("--category", "-c", help="Only this category")
    _add_export_args(p)
    p.add_argument("--bytes-full", action="store_true", help="Emit blobs as hex")

    # get
    p = sub.add_parser("get", help="Show the value at a path")
    p.add_argument("slot", help="Save slot directory")
    p.add_argument("category", help="Category name")
    p.add_argument("path", help="Path, e.g. /money")
    _add_export_args(p)

    # list
    p = sub.add_parser("list", help="List children at a path")
    p.add_argument("slot", help="Save slot directory")
    p.add_argument("category", help="Category name")
    p.add_argument("path", nargs="?", default="", help="Path (default: root)")

    # set
    p = sub.add_parser("set", help="Set a value and save")
    p.add_argument("slot", help="Save slot directory")
    p.add_argument("category", help="Category name")
    p.add_argument("path", help="Path, e.g. /money")
    p.add_argument("value", help="New value (read according to the field's type)")
    p.add_argument("--dry-run", action="store_true", help="Encode but do not write")
    p.add_argument("--no-backup", action="store_true", help="Skip the .bak copy")

    # search
    p = sub.add_parser("search", help="Search keys and values")
    p.add_argument("slot", help="Save slot directory")
    p.add_argument("query", help="Case-insensitive text")
    p.add_argument("--category", "-c", help="Only this category")

    # thumbnail
    p = sub.add_parser("thumbnail", help="Export the slot thumbnail image")
    p.add_argument("slot", help="Save slot directory")
    p.add_argument("out", help="Output image path (.png, .bmp, ...)")

    return parser


COMMANDS = {
    "inspect": cmd_inspect,
    "dump": cmd_dump,
    "get": cmd_get,
    "list": cmd_list,
    "set": cmd_set,
    "search": cmd_search,
    "thumbnail": cmd_thumbnail,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    cmd_func = COMMANDS.get(args.command)
    if cmd_func is None:
        parser.print_help()
        return EXIT_USAGE

    try:
        return cmd_func(args)
    except CliError as e:
        code, message = e.code, str(e)
    except PathNotFound as e:
        code, message = EXIT_USAGE, str(e)
    except UnreadableData as e:
        code, message = EXIT_UNREADABLE, f"unreadable data: {e}"
    except (ValueRejected, SaveRefused) as e:
        code, message = EXIT_REJECTED, f"value rejected: {e}"
    except OSError as e:
        code, message = EXIT_WRITE_FAILED, f"write failed: {e}"
    print(f"ERROR: {message}", file=sys.stderr)
    return code


if __name__ == "__main__":
    sys.exit(main())
