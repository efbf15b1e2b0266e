"""
Search over an open document.

A query is matched case-insensitively as a substring of field keys and of
the canonical text of leaf values. Results come out in decode order
(depth-first, pre-order, categories in document order), so repeating a
search on an unedited tree gives the same list and "first"/"next"
navigation is reproducible.

Nothing is indexed: the match list is recomputed from the document on every
refresh and never outlives the session that asked for it.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..errors import UnreadableData
from ..formats.sav.values import Path, Value, ValueKind, walk
from ..formats.sav.values import render as render_value
from .document import SaveDocument, format_path
from .events import EventBus, Events

logger = logging.getLogger(__name__)

MATCH_KEY = "key"
MATCH_VALUE = "value"


@dataclass(frozen=True)
class SearchMatch:
    category: str
    path: Path
    matched_text: str
    matched_on: str = MATCH_KEY

    @property
    def pointer(self) -> str:
        return format_path(self.path)


def _scope_categories(document: SaveDocument, scope: Optional[str]) -> List[str]:
    if scope is not None:
        return [scope]
    return [c for c in document.categories if document.is_loaded(c)]


def search_tree(category: str, root: Value, query: str) -> List[SearchMatch]:
    """Matches within one decoded tree."""
    needle = query.casefold()
    if not needle:
        return []
    matches = []
    for path, node in walk(root):
        if not path or node.kind == ValueKind.UNPARSED:
            continue
        key = path[-1]
        if isinstance(key, str) and needle in key.casefold():
            matches.append(SearchMatch(category, path, key, MATCH_KEY))
            continue
        text = render_value(node)
        if text is not None and needle in text.casefold():
            matches.append(SearchMatch(category, path, text, MATCH_VALUE))
    return matches


def search(document: SaveDocument, query: str, scope: Optional[str] = None) -> List[SearchMatch]:
    """
    Search one category (`scope`) or, with scope=None, every category the
    document has decoded. An empty query matches nothing.
    """
    matches: List[SearchMatch] = []
    for category in _scope_categories(document, scope):
        try:
            root = document.tree(category)
        except UnreadableData:
            logger.debug(f"Search skipped unavailable category {category}")
            continue
        matches.extend(search_tree(category, root, query))
    logger.debug(f"Search {query!r} in {scope or 'all'}: {len(matches)} match(es)")
    return matches


class SearchSession:
    """
    Query state for "jump to first / next result" navigation.

    The session only holds the query, the match list and the index of the
    last result visited; jumps are pure functions of those two.
    """

    def __init__(self, document: SaveDocument, query: str = "", scope: Optional[str] = None):
        self.document = document
        self.query = query
        self.scope = scope
        self.matches: List[SearchMatch] = []
        self.index = -1
        self.refresh()

    def set_query(self, query: str, scope: Optional[str] = None):
        """New query text or scope: recompute the matches."""
        self.query = query
        self.scope = scope
        self.refresh()

    def refresh(self) -> Sequence[SearchMatch]:
        """Recompute matches from the current document state."""
        self.matches = search(self.document, self.query, self.scope)
        self.index = -1
        return self.matches

    @property
    def current(self) -> Optional[SearchMatch]:
        if 0 <= self.index < len(self.matches):
            return self.matches[self.index]
        return None

    def jump_to_first(self) -> Optional[SearchMatch]:
        if not self.matches:
            return None
        self.index = 0
        return self._select()

    def jump_to_next(self) -> Optional[SearchMatch]:
        """Next result after the last visited one, wrapping to the first."""
        if not self.matches:
            return None
        self.index = (self.index + 1) % len(self.matches)
        return self._select()

    def _select(self) -> SearchMatch:
        match = self.matches[self.index]
        EventBus.publish(Events.SEARCH_RESULT_SELECTED, match)
        return match
