"""
Save Manager - the session around one open save slot.

Only one slot is open at a time. Opening another slot, or closing the
current one, discards the open document and any unsaved edits. Saving
encodes every dirty category first and writes nothing if any of them fails.
The pre-edit bytes of every category are then backed up, and only when all
backups succeed do the new bytes replace them.
"""

import logging
from typing import Dict, List, Optional

from ..errors import SaveDataError, SaveRefused
from ..formats.sav.schema import SchemaRegistry
from .document import SaveDocument
from .events import EventBus, Events
from .sources import SlotSource

logger = logging.getLogger(__name__)


class SaveManager:
    """
    High-level session manager.

    `backup` controls whether pre-edit bytes are handed to the source's
    backup step before a category is overwritten.
    """

    def __init__(self, registry: Optional[SchemaRegistry] = None, backup: bool = True):
        self.registry = registry
        self.backup = backup
        self.source: Optional[SlotSource] = None
        self.document: Optional[SaveDocument] = None

    @property
    def is_open(self) -> bool:
        return self.document is not None

    def open_slot(self, source: SlotSource) -> SaveDocument:
        """Open a slot; any previously open slot is closed first."""
        if self.document is not None:
            self.close_slot()
        self.source = source
        self.document = SaveDocument(source.read, source.categories(), self.registry,
                                     name=source.name)
        logger.info(f"Opened slot {source.name}")
        EventBus.publish(Events.SLOT_OPENED, self.document)
        return self.document

    def close_slot(self):
        """Close the open slot, discarding unsaved edits."""
        if self.document is None:
            return
        name = self.document.name
        if self.document.dirty:
            logger.warning(f"Discarding unsaved edits in {', '.join(self.document.dirty_categories())}")
        self.document.close()
        self.document = None
        self.source = None
        logger.info(f"Closed slot {name}")
        EventBus.publish(Events.SLOT_CLOSED, name)

    def _require_open(self) -> SaveDocument:
        if self.document is None:
            raise RuntimeError("no save slot is open")
        return self.document

    def save(self, backup: Optional[bool] = None) -> List[str]:
        """
        Write every dirty category back to the source.

        Raises SaveRefused (nothing written) when a category fails to encode,
        and lets OSError from the source propagate. A failed backup raises
        before any category is written. Returns the categories written.
        """
        document = self._require_open()
        backup = self.backup if backup is None else backup

        encoded: Dict[str, bytes] = {}
        failures: Dict[str, SaveDataError] = {}
        for category in document.dirty_categories():
            try:
                encoded[category] = document.encode(category)
            except SaveDataError as e:
                failures[category] = e
        if failures:
            raise SaveRefused(failures)

        # Every backup lands before the first write; a failed backup stops the save
        if backup:
            for category in encoded:
                self._backup(category, document.saved_bytes(category))

        for category, data in encoded.items():
            self.source.write(category, data)
            document.mark_saved(category, data)

        if encoded:
            logger.info(f"Saved {len(encoded)} categor{'y' if len(encoded) == 1 else 'ies'} "
                        f"to {self.source.name}")
        EventBus.publish(Events.SLOT_SAVED, list(encoded))
        return list(encoded)

    def _backup(self, category: str, original: Optional[bytes]):
        if original is None:
            return
        try:
            self.source.backup(category, original)
        except OSError as e:
            logger.error(f"Backup of {category} failed, nothing saved: {e}")
            raise
