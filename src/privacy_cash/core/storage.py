"""
Key-value cache used by the UTXO scanner.

The scanner persists two things per wallet: how far through the global output
list it has decrypted (`fetch_offset`) and the encrypted outputs it found to be
its own (`encrypted_outputs`). Any object with `get`/`set`/`remove`/`clear`
works; two implementations are provided.
"""

from __future__ import annotations

import logging
import re
import threading
from pathlib import Path
from typing import Protocol

from privacy_cash.core.errors import StorageError

logger = logging.getLogger("privacy_cash.storage")

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class Storage(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...

    def clear(self) -> None: ...


class MemoryStorage:
    """Process-local storage; everything is lost when the process exits."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.RLock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


class FileStorage:
    """
    One file per key under `cache_dir`.

    Reads of a missing key return None. A failed write is logged and dropped.
    """

    def __init__(self, cache_dir: str | Path) -> None:
        self.cache_dir = Path(cache_dir).expanduser()
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create cache directory {self.cache_dir}: {e}") from e
        self._lock = threading.RLock()

    def _path(self, key: str) -> Path:
        return self.cache_dir / _UNSAFE_KEY_CHARS.sub("_", key)

    def get(self, key: str) -> str | None:
        path = self._path(key)
        with self._lock:
            if not path.exists():
                return None
            try:
                return path.read_text(encoding="utf-8")
            except OSError as e:
                raise StorageError(f"Cannot read cache entry {key!r}: {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp = path.with_suffix(path.suffix + ".tmp")
        with self._lock:
            try:
                tmp.write_text(value, encoding="utf-8")
                tmp.replace(path)
            except OSError as e:
                logger.warning(f"Failed to write cache entry {key!r}: {e}")

    def remove(self, key: str) -> None:
        with self._lock:
            self._path(key).unlink(missing_ok=True)

    def clear(self) -> None:
        with self._lock:
            for entry in self.cache_dir.iterdir():
                if entry.is_file():
                    entry.unlink(missing_ok=True)
