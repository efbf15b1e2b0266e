#!/usr/bin/env python3
"""
SaveSmith Suite - UNIFIED TEST SYSTEM

Main test runner that loads and executes test modules.

USAGE:
  python tests.py                    # Run ALL tests
  python tests.py --module codec     # One module only
  python tests.py --list             # Show the test modules

TEST MODULES:
  test_binary.py    - byte cursor reads, writes, prefixes, limits
  test_codec.py     - schemas, decoder, encoder, round trips, JSON export
  test_document.py  - lazy loading, edits, revert, status, paths
  test_search.py    - key/value search and first/next navigation
  test_session.py   - save manager, slot directories, thumbnail, CLI

No game files are needed: every test builds its save data in memory.
"""

import argparse
import importlib
import sys
from datetime import datetime

from harness import TestResults

MODULES = {
    "binary": ("test_binary", "BYTE CURSOR"),
    "codec": ("test_codec", "CODEC"),
    "document": ("test_document", "DOCUMENT"),
    "search": ("test_search", "SEARCH"),
    "session": ("test_session", "SESSION"),
}


def main():
    parser = argparse.ArgumentParser(
        description="SaveSmith Suite - Unified Test System",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python tests.py                   # Run all tests
  python tests.py --module search   # Search tests only
"""
    )
    parser.add_argument('-m', '--module', action='append', choices=sorted(MODULES),
                        help='Run only this module (repeatable)')
    parser.add_argument('--list', action='store_true', help='List test modules and exit')
    args = parser.parse_args()

    if args.list:
        for key, (module_name, title) in MODULES.items():
            print(f"  {key:<10} {module_name}.py  ({title})")
        return 0

    selected = args.module or list(MODULES)

    # Print header
    print("╔" + "═"*60 + "╗")
    print("║  SAVESMITH SUITE - UNIFIED TEST SYSTEM                     ║")
    print("║  " + datetime.now().strftime("%Y-%m-%d %H:%M:%S") + "                                       ║")
    print("╚" + "═"*60 + "╝")

    total_passed = 0
    total_failed = 0
    total_skipped = 0

    for key in selected:
        module_name, title = MODULES[key]
        print("\n" + "═"*60)
        print(f"  MODULE: {title} TESTS ({module_name}.py)")
        print("═"*60)

        try:
            module = importlib.import_module(module_name)
            results = TestResults(title)
            passed, failed, skipped = module.run_all_tests(results)

            total_passed += passed
            total_failed += failed
            total_skipped += skipped

            print(f"\n  📊 {title}: {passed} passed, {failed} failed, {skipped} skipped")

        except ImportError as e:
            print(f"  ❌ Failed to import {module_name}: {e}")
            total_failed += 1
        except Exception as e:
            print(f"  ❌ {title} tests error: {e}")
            total_failed += 1

    # Final Summary
    total = total_passed + total_failed + total_skipped
    print("\n" + "═"*60)
    print("FINAL SUMMARY")
    print("═"*60)
    print(f"Total:   {total}")
    print(f"Passed:  {total_passed} ✅")
    print(f"Failed:  {total_failed} ❌")
    print(f"Skipped: {total_skipped} ⏭️")

    if total_failed == 0:
        print("\n🎉 ALL TESTS PASSED!")
        return 0
    else:
        print(f"\n⚠️  {total_failed} TESTS FAILED")
        return 1


if __name__ == "__main__":
    sys.exit(main())
