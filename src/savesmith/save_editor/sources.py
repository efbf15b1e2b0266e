"""
Slot sources - where a slot's category bytes come from and go back to.

The codec never touches files; a SlotSource does. DirectorySlotSource maps
categories onto the files of a slot directory, MemorySlotSource keeps
everything in dicts (embedding, tests).
"""

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from ..formats.sav.categories import CATEGORY_FILES

logger = logging.getLogger(__name__)


class SlotSource(ABC):
    """Byte storage for one save slot."""

    name: str = ""

    @abstractmethod
    def categories(self) -> List[str]:
        """Categories this source knows how to address."""

    @abstractmethod
    def available(self) -> List[str]:
        """Categories that currently have data."""

    @abstractmethod
    def read(self, category: str) -> bytes:
        """Current bytes of a category (OSError if they cannot be read)."""

    @abstractmethod
    def write(self, category: str, data: bytes):
        """Replace a category's bytes."""

    @abstractmethod
    def backup(self, category: str, data: bytes) -> Optional[str]:
        """Keep a copy of the pre-edit bytes; returns where they went."""


def atomic_write_bytes(path: Path, data: bytes):
    """Either the old file stays or the new one fully replaces it."""
    fd, tmp_name = tempfile.mkstemp(prefix=path.name, dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    finally:
        if os.path.exists(tmp_name):
            os.remove(tmp_name)


class DirectorySlotSource(SlotSource):
    """
    A slot directory on disk.

    Player Data lives in PlayerData_<player>.sav; `files` overrides or extends
    the category -> file name map.
    """

    def __init__(self, path, player: int = 1, files: Optional[Dict[str, str]] = None):
        self.path = Path(path)
        self.player = player
        self.files = dict(CATEGORY_FILES)
        if files:
            self.files.update(files)
        self.name = str(self.path)

    def file_for(self, category: str) -> Path:
        pattern = self.files.get(category)
        if pattern is None:
            raise KeyError(f"no file known for category '{category}'")
        return self.path / pattern.format(player=self.player)

    def categories(self) -> List[str]:
        return list(self.files)

    def available(self) -> List[str]:
        return [c for c in self.files if self.file_for(c).is_file()]

    def read(self, category: str) -> bytes:
        with open(self.file_for(category), "rb") as f:
            return f.read()

    def write(self, category: str, data: bytes):
        target = self.file_for(category)
        atomic_write_bytes(target, data)
        logger.info(f"Saved {target} ({len(data)} bytes)")

    def backup(self, category: str, data: bytes) -> Optional[str]:
        target = self.file_for(category)
        backup_path = target.with_name(target.name + ".bak")
        atomic_write_bytes(backup_path, data)
        logger.info(f"Backup saved to {backup_path}")
        return str(backup_path)


class MemorySlotSource(SlotSource):
    """In-memory slot; writes and backups are kept in dicts."""

    def __init__(self, buffers: Dict[str, bytes], name: str = "memory"):
        self.buffers = dict(buffers)
        self.backups: Dict[str, bytes] = {}
        self.name = name

    def categories(self) -> List[str]:
        return list(self.buffers)

    def available(self) -> List[str]:
        return list(self.buffers)

    def read(self, category: str) -> bytes:
        if category not in self.buffers:
            raise FileNotFoundError(f"{self.name}: no data for '{category}'")
        return self.buffers[category]

    def write(self, category: str, data: bytes):
        self.buffers[category] = bytes(data)

    def backup(self, category: str, data: bytes) -> Optional[str]:
        self.backups[category] = bytes(data)
        return f"{self.name}:{category}.bak"
