"""
SaveSmith Suite - Search Tests

Key/value matching, ordering, scope and first/next navigation.

Can be run standalone: python test_search.py
Or via main runner: python tests.py --module search
"""

import sys
from datetime import datetime

from harness import TestResults, section

from savesmith.formats.sav.categories import (
    MISSION_DATA, PLAYER_DATA, STATS_DATA, build_player_data_bytes, build_sample_slot,
)
from savesmith.save_editor import (
    MATCH_KEY, MATCH_VALUE, EventBus, Events, SaveDocument, SearchSession, search,
)

# Global results instance
results = TestResults("SEARCH")


def _document():
    return SaveDocument.from_buffers(build_sample_slot())


def _paths(matches):
    return [m.path for m in matches]


def test_key_and_value_matches():
    """Keys and rendered leaf values match case-insensitively."""
    section("KEY / VALUE MATCHES")
    try:
        doc = _document()
        doc.tree(PLAYER_DATA)

        found = search(doc, "money", PLAYER_DATA)
        results.record("key match", _paths(found) == [("money",)], str(_paths(found)))
        results.record("matched on key", found and found[0].matched_on == MATCH_KEY, "")
        results.record("pointer", found and found[0].pointer == "/money", "")

        found = search(doc, "ALICE", PLAYER_DATA)
        results.record("value match, any case", _paths(found) == [("name",)], str(_paths(found)))
        results.record("matched text is the value",
                       found and found[0].matched_on == MATCH_VALUE and found[0].matched_text == "Alice",
                       "")

        found = search(doc, "hat", PLAYER_DATA)
        results.record("sequence element value", _paths(found) == [("unlockedClothing", 0)],
                       str(_paths(found)))

        found = search(doc, "500", PLAYER_DATA)
        results.record("integer value", _paths(found) == [("money",)], str(_paths(found)))

        found = search(doc, "true", PLAYER_DATA)
        results.record("bool value", _paths(found) == [("vehicles", 0, "isOwned")],
                       str(_paths(found)))

        found = search(doc, "-3.25", PLAYER_DATA)
        results.record("float value", _paths(found) == [("position", "z")], str(_paths(found)))

        found = search(doc, "signature", PLAYER_DATA)
        results.record("unparsed regions skipped", found == [], str(_paths(found)))
    except Exception as e:
        results.record("Key / value matches", False, str(e))


def test_key_wins():
    """A node whose key and value both match is reported once, as a key match."""
    section("ONE MATCH PER LOCATION")
    try:
        doc = SaveDocument.from_buffers({PLAYER_DATA: build_player_data_bytes(name="namesake")})
        doc.tree(PLAYER_DATA)
        found = search(doc, "name", PLAYER_DATA)
        results.record("single match", len(found) == 1, str(_paths(found)))
        results.record("key preferred", found and found[0].matched_on == MATCH_KEY
                       and found[0].matched_text == "name", "")
    except Exception as e:
        results.record("Key wins", False, str(e))


def test_order_and_scope():
    """Results come in decode order; scope picks the categories searched."""
    section("ORDER / SCOPE")
    try:
        doc = _document()
        results.record("nothing loaded, nothing found", search(doc, "a") == [], "")

        doc.load_all()
        first = search(doc, "i")
        second = search(doc, "i")
        results.record("deterministic", first == second and first != [], "")

        categories = [m.category for m in first]
        order = [c for c in doc.categories if c in categories]
        results.record("categories in document order",
                       sorted(categories, key=order.index) == categories, "")

        player = [m.path for m in first if m.category == PLAYER_DATA]
        results.record("pre-order within a category",
                       player.index(("name",)) < player.index(("isFirstTime",))
                       < player.index(("position",)) < player.index(("vehicles",))
                       < player.index(("vehicles", 0, "id")), str(player[:6]))

        found = search(doc, "tutorial")
        results.record("mission id found", [(m.category, m.path) for m in found]
                       == [(MISSION_DATA, ("missions", 0, "id"))], str(found))

        scoped = search(doc, "harbour", STATS_DATA)
        results.record("scoped search", _paths(scoped) == [("lastLocation",)], str(_paths(scoped)))
        results.record("scope excludes others", search(doc, "harbour", PLAYER_DATA) == [], "")

        results.record("empty query", search(doc, "") == [], "")
        results.record("no match", search(doc, "zzz-nothing") == [], "")

        doc.set_value(PLAYER_DATA, ("name",), "Harbour Master")
        found = search(doc, "harbour")
        results.record("edits are searchable",
                       [m.category for m in found] == [PLAYER_DATA, STATS_DATA], str(found))
    except Exception as e:
        results.record("Order / scope", False, str(e))


def test_session_navigation():
    """jump_to_first / jump_to_next, wrap-around and selection events."""
    section("SESSION NAVIGATION")
    try:
        selected = []
        EventBus.subscribe(Events.SEARCH_RESULT_SELECTED, selected.append)

        doc = _document()
        doc.load_all()
        session = SearchSession(doc, "count")
        paths = _paths(session.matches)
        results.record("matches computed", len(paths) >= 3, str(paths))
        results.record("nothing selected yet", session.current is None, "")

        first = session.jump_to_first()
        results.record("first", first == session.matches[0], "")
        second = session.jump_to_next()
        results.record("next", second == session.matches[1], "")
        for _ in range(len(session.matches) - 1):
            last = session.jump_to_next()
        results.record("wraps to first", last == session.matches[0], "")
        results.record("events published", len(selected) == len(session.matches) + 1
                       and selected[0] == first, str(len(selected)))

        results.record("next without a prior first starts at the top",
                       SearchSession(doc, "count").jump_to_next() == session.matches[0], "")

        session.set_query("qqqq")
        results.record("no matches: first is None", session.jump_to_first() is None, "")
        results.record("no matches: next is None", session.jump_to_next() is None, "")

        session.set_query("money", PLAYER_DATA)
        results.record("requery", session.jump_to_first().path == ("money",), "")
        EventBus.unsubscribe(Events.SEARCH_RESULT_SELECTED, selected.append)
    except Exception as e:
        results.record("Session navigation", False, str(e))


# ═══════════════════════════════════════════════════════════════════════════════
# RUN ALL
# ═══════════════════════════════════════════════════════════════════════════════

def run_all_tests(results_obj=None):
    """Run all search tests. Returns (passed, failed, skipped)."""
    global results
    results = results_obj or TestResults("SEARCH")

    test_key_and_value_matches()
    test_key_wins()
    test_order_and_scope()
    test_session_navigation()

    return results.passed, results.failed, results.skipped


def main():
    """Run search tests standalone."""
    print("SAVESMITH SUITE - SEARCH TESTS  " + datetime.now().strftime("%Y-%m-%d %H:%M:%S"))
    run_all_tests()
    return 0 if results.summary() else 1


if __name__ == "__main__":
    sys.exit(main())
