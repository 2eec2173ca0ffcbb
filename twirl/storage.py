"""Key-value persistence backends.

The conversation store only needs get/set/remove on a handful of keys
plus a lock around read-modify-write sequences. ``JsonFileStore`` keeps
everything in one JSON file guarded by a file lock so several processes
can share it; ``MemoryKeyValueStore`` is the in-process equivalent.
"""

import json
import os
import tempfile
from abc import ABC, abstractmethod
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import Any, ContextManager, Iterator, Optional

from filelock import FileLock, Timeout

from .constants import LOCK_TIMEOUT_SECONDS
from .exceptions import HostUnavailableError
from .logging_config import get_logger

logger = get_logger("storage")


class KeyValueStore(ABC):
    """Persistence collaborator used by ``ConversationStore``."""

    @abstractmethod
    def get(self, *keys: str) -> dict[str, Any]:
        """Return the present keys and their values.

        Raises:
            HostUnavailableError: If the backend cannot be read
        """

    @abstractmethod
    def set(self, values: dict[str, Any]) -> None:
        """Write several keys at once.

        Raises:
            HostUnavailableError: If the backend cannot be written
        """

    @abstractmethod
    def remove(self, *keys: str) -> None:
        pass

    def is_available(self) -> bool:
        return True

    def locked(self) -> ContextManager[None]:
        """Hold exclusive access for a read-modify-write sequence."""
        return nullcontext()


class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed store, values are deep-copied through JSON."""

    def __init__(self, initial: Optional[dict[str, Any]] = None):
        self._data: dict[str, str] = {}
        self.available = True
        if initial:
            self.set(initial)

    def _check(self) -> None:
        if not self.available:
            raise HostUnavailableError("In-memory store marked unavailable")

    def is_available(self) -> bool:
        return self.available

    def get(self, *keys: str) -> dict[str, Any]:
        self._check()
        return {k: json.loads(self._data[k]) for k in keys if k in self._data}

    def set(self, values: dict[str, Any]) -> None:
        self._check()
        for key, value in values.items():
            self._data[key] = json.dumps(value)

    def remove(self, *keys: str) -> None:
        self._check()
        for key in keys:
            self._data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """Store persisted as a single JSON document on disk."""

    LOCK_TIMEOUT = LOCK_TIMEOUT_SECONDS

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = FileLock(self.path.with_suffix(self.path.suffix + ".lock"),
                              timeout=self.LOCK_TIMEOUT)
        logger.debug("JsonFileStore initialized: %s", self.path)

    def is_available(self) -> bool:
        parent = self.path.parent
        try:
            parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Storage directory unavailable %s: %s", parent, e)
            return False
        return os.access(parent, os.W_OK)

    @contextmanager
    def locked(self) -> Iterator[None]:
        """Acquire the store's file lock.

        FileLock is re-entrant within one process, so nested ``get``/``set``
        calls inside the block do not deadlock.

        Raises:
            HostUnavailableError: If the lock cannot be acquired
        """
        try:
            with self._lock:
                yield
        except Timeout:
            logger.error("Failed to acquire lock: %s", self._lock.lock_file)
            raise HostUnavailableError(
                f"Could not acquire storage lock (timeout: {self.LOCK_TIMEOUT}s)"
            )

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.warning("Corrupt storage file %s, starting empty: %s", self.path, e)
            return {}
        except OSError as e:
            raise HostUnavailableError(f"Failed to read storage: {e}")
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Atomic write: temp file + rename
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise HostUnavailableError(f"Failed to write storage: {e}")

    def get(self, *keys: str) -> dict[str, Any]:
        with self.locked():
            data = self._read()
        return {k: data[k] for k in keys if k in data}

    def set(self, values: dict[str, Any]) -> None:
        with self.locked():
            data = self._read()
            data.update(values)
            self._write(data)
        logger.debug("Wrote keys %s to %s", sorted(values), self.path.name)

    def remove(self, *keys: str) -> None:
        with self.locked():
            data = self._read()
            for key in keys:
                data.pop(key, None)
            self._write(data)
