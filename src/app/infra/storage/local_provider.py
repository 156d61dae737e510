# src/app/infra/storage/local_provider.py
"""
Local storage providers backing the session store.
"""
from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Optional

from src.app.domain.errors import SessionStorageError
from src.app.infra.storage.base import KeyValueStorage

logger = logging.getLogger(__name__)

_SAFE_KEY_RE = re.compile(r"[^a-zA-Z0-9._-]")


class LocalFileStorage(KeyValueStorage):
    """
    Stores each key as `<directory>/<key>.json`.

    Writes go to a temporary file in the same directory and are renamed over
    the target, so a reader never observes a half-written value.
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def _path_for(self, key: str) -> Path:
        safe_key = _SAFE_KEY_RE.sub("_", key)
        return self.directory / f"{safe_key}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        try:
            # Undecodable bytes come back as replacement chars; the caller discards them.
            return path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.error("Failed to read local storage key=%s: %s", key, e)
            raise SessionStorageError(key, str(e)) from e

    def set_item(self, key: str, value: str) -> None:
        path = self._path_for(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(value)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            logger.error("Failed to write local storage key=%s: %s", key, e)
            raise SessionStorageError(key, str(e)) from e

        logger.debug("Wrote local storage key=%s (%d bytes)", key, len(value))

    def remove_item(self, key: str) -> None:
        try:
            self._path_for(key).unlink(missing_ok=True)
        except OSError as e:
            logger.error("Failed to remove local storage key=%s: %s", key, e)
            raise SessionStorageError(key, str(e)) from e


class InMemoryStorage(KeyValueStorage):
    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)
