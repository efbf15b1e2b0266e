# Save Editor backend: document model, search and slot session
# The codec itself lives in savesmith.formats.sav

from .document import SaveDocument, ChildInfo, CategoryStatus, parse_path, format_path
from .search import MATCH_KEY, MATCH_VALUE, SearchMatch, SearchSession, search, render_value
from .sources import SlotSource, DirectorySlotSource, MemorySlotSource
from .save_manager import SaveManager
from .events import EventBus, Events

__all__ = [
    'SaveDocument', 'ChildInfo', 'CategoryStatus', 'parse_path', 'format_path',
    'MATCH_KEY', 'MATCH_VALUE', 'SearchMatch', 'SearchSession', 'search', 'render_value',
    'SlotSource', 'DirectorySlotSource', 'MemorySlotSource',
    'SaveManager', 'EventBus', 'Events',
]
