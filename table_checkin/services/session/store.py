"""
Client Session Store

Persists the single ``ClientSessionRecord`` a device holds while seated.

Implementations:
    - InMemorySessionStore: tests and short-lived hosts
    - JsonFileSessionStore: one JSON document on disk, guarded by a
      FileLock and replaced atomically on every write

Document layout:
    {
        "customerSession": {...},   # active record, camelCase keys
        "lastSessionExit": {...}    # archived record + exitReason/exitTime/zone
    }

Author: Your Name
Version: 1.0.0
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union

from filelock import FileLock, Timeout
from pydantic import ValidationError

from table_checkin.schemas import ClientSessionRecord

logger = logging.getLogger(__name__)

SESSION_KEY = "customerSession"
EXIT_KEY = "lastSessionExit"


def _exit_entry(
    record: Optional[dict[str, Any]],
    reason: str,
    zone: Optional[str],
) -> dict[str, Any]:
    entry = dict(record or {})
    entry.update({
        "exitReason": reason,
        "exitTime": datetime.now(timezone.utc).isoformat(),
        "zone": zone,
    })
    return entry


class BaseSessionStore(ABC):
    """Abstract base class for client session persistence."""

    @abstractmethod
    def save(self, record: ClientSessionRecord) -> None:
        """Write the active record, replacing any previous one."""
        pass

    @abstractmethod
    def load(self) -> Optional[ClientSessionRecord]:
        """Return the active record, or None."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove the active record."""
        pass

    @abstractmethod
    def record_exit(self, reason: str, zone: Optional[str] = None) -> dict[str, Any]:
        """Archive the active record with an exit reason, then clear it."""
        pass

    @abstractmethod
    def last_exit(self) -> Optional[dict[str, Any]]:
        """Return the most recent archived exit."""
        pass


class InMemorySessionStore(BaseSessionStore):
    """Process-local store."""

    def __init__(self):
        self._record: Optional[ClientSessionRecord] = None
        self._last_exit: Optional[dict[str, Any]] = None

    def save(self, record: ClientSessionRecord) -> None:
        self._record = record

    def load(self) -> Optional[ClientSessionRecord]:
        return self._record

    def clear(self) -> None:
        self._record = None

    def record_exit(self, reason: str, zone: Optional[str] = None) -> dict[str, Any]:
        stored = self._record.to_storage() if self._record else None
        self._last_exit = _exit_entry(stored, reason, zone)
        self._record = None
        return self._last_exit

    def last_exit(self) -> Optional[dict[str, Any]]:
        return self._last_exit


class JsonFileSessionStore(BaseSessionStore):
    """
    File-backed store with cross-process locking.

    Args:
        path: JSON document location (parent directories are created)
        lock_timeout: Seconds to wait for the lock before giving up

    Raises (on write):
        filelock.Timeout: Lock not acquired in time
        OSError: Document could not be written
    """

    def __init__(self, path: Union[str, Path], lock_timeout: float = 30):
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.lock_timeout = lock_timeout

    def _lock(self) -> FileLock:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        return FileLock(str(self.lock_path), timeout=self.lock_timeout)

    def _read_document(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                document = json.load(f)
        except ValueError as e:
            logger.warning(f"Corrupt session document {self.path} removed: {e}")
            self.path.unlink(missing_ok=True)
            return {}
        if not isinstance(document, dict):
            logger.warning(f"Unexpected session document in {self.path} removed")
            self.path.unlink(missing_ok=True)
            return {}
        return document

    def _write_document(self, document: dict[str, Any]) -> None:
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.path.parent),
            prefix=f".{self.path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    def save(self, record: ClientSessionRecord) -> None:
        try:
            with self._lock():
                document = self._read_document()
                document[SESSION_KEY] = record.to_storage()
                self._write_document(document)
        except Timeout:
            logger.error(f"Lock timeout ({self.lock_timeout}s) saving session {record.session_id}")
            raise

        logger.debug(f"Session {record.session_id} saved to {self.path}")

    def load(self) -> Optional[ClientSessionRecord]:
        with self._lock():
            document = self._read_document()
            raw = document.get(SESSION_KEY)
            if raw is None:
                return None
            try:
                return ClientSessionRecord.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"Corrupt session record removed: {e.error_count()} invalid field(s)")
                document.pop(SESSION_KEY, None)
                self._write_document(document)
                return None

    def clear(self) -> None:
        with self._lock():
            document = self._read_document()
            if document.pop(SESSION_KEY, None) is not None:
                self._write_document(document)
                logger.debug(f"Session cleared from {self.path}")

    def record_exit(self, reason: str, zone: Optional[str] = None) -> dict[str, Any]:
        with self._lock():
            document = self._read_document()
            entry = _exit_entry(document.pop(SESSION_KEY, None), reason, zone)
            document[EXIT_KEY] = entry
            self._write_document(document)

        logger.info(f"Session exit recorded ({reason})")
        return entry

    def last_exit(self) -> Optional[dict[str, Any]]:
        with self._lock():
            return self._read_document().get(EXIT_KEY)
