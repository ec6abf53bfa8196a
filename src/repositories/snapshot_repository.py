"""
Conversation Snapshot Repository
================================

Whole-snapshot persistence for conversation memory. Every save rewrites the
complete mapping of user id to turn list; every load returns it wholesale.

Implementations:
- JsonFileSnapshotRepository: JSON file, replaced atomically on each save
- InMemorySnapshotRepository: process memory only
"""

import copy
import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List

import structlog

from .exceptions import PersistenceError

Snapshot = Dict[str, List[Dict[str, Any]]]


class SnapshotRepository(ABC):
    """Storage for the full conversation snapshot"""

    @abstractmethod
    def load(self) -> Snapshot:
        """
        Read the persisted snapshot

        Returns:
            Mapping of user id to serialized turns (empty if nothing is stored)

        Raises:
            PersistenceError: If stored data cannot be read or parsed
        """

    @abstractmethod
    def save(self, snapshot: Snapshot) -> None:
        """
        Replace the persisted snapshot

        Raises:
            PersistenceError: If the snapshot cannot be written
        """


class JsonFileSnapshotRepository(SnapshotRepository):
    """
    Snapshot stored as a single JSON document.

    Writes go to a temporary file in the target directory which is then
    renamed over the target, so a crash mid-write leaves the previous
    snapshot intact.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self.logger = structlog.get_logger("JsonFileSnapshotRepository")

    def load(self) -> Snapshot:
        if not self.path.exists():
            self.logger.info("No conversation snapshot found", path=str(self.path))
            return {}

        try:
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError, RecursionError) as e:
            raise PersistenceError(
                f"Failed to read snapshot: {e}",
                path=str(self.path),
                original_error=e
            )

        if not isinstance(data, dict):
            raise PersistenceError(
                f"Snapshot root must be an object, got {type(data).__name__}",
                path=str(self.path)
            )

        return data

    def save(self, snapshot: Snapshot) -> None:
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                dir=str(self.path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(snapshot, fh, ensure_ascii=False, indent=2)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(
                f"Failed to write snapshot: {e}",
                path=str(self.path),
                original_error=e
            )
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

        self.logger.debug("Conversation snapshot saved", path=str(self.path), users=len(snapshot))


class InMemorySnapshotRepository(SnapshotRepository):
    """Keeps the last saved snapshot in process memory"""

    def __init__(self, initial: Snapshot = None):
        self._snapshot: Snapshot = copy.deepcopy(initial) if initial else {}
        self.save_count = 0

    def load(self) -> Snapshot:
        return copy.deepcopy(self._snapshot)

    def save(self, snapshot: Snapshot) -> None:
        self._snapshot = copy.deepcopy(snapshot)
        self.save_count += 1


def create_snapshot_repository(path: str) -> SnapshotRepository:
    """File-backed repository for a non-empty path, in-memory otherwise"""
    if path:
        return JsonFileSnapshotRepository(path)
    return InMemorySnapshotRepository()
