#!/usr/bin/env python3
"""smith.py - run the SaveSmith CLI from a source checkout.

Usage:
    python smith.py inspect <slot-dir>
    python smith.py --format json dump <slot-dir> --category player
    python smith.py set <slot-dir> "Player Data" /money 999999

See `python smith.py --help` for every command.
"""

import sys
from pathlib import Path

# Add SaveSmith src to path
_src_dir = Path(__file__).parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

from savesmith.cli import main


if __name__ == "__main__":
    sys.exit(main())
