"""
File system store: one JSON document per cache key.

Values must be JSON serializable. Expiry uses wall-clock time so entries
survive process restarts.
"""
import asyncio
import hashlib
import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Callable, List, Optional

from .base import BackingStore

logger = logging.getLogger("cache.stores.file")


class FileStore(BackingStore):
    """
    Stores each entry as <directory>/<sha256(key)>.json.

    The document holds the original key, its expiry and the value. Writes go
    through a temporary file and os.replace so readers never see a partial file.
    """

    def __init__(self, directory: Path, clock: Callable[[], float] = time.time):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._clock = clock

    def _path_for(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.directory / f"{digest}.json"

    @staticmethod
    def _read(path: Path) -> Optional[dict]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                doc = json.load(f)
        except FileNotFoundError:
            return None
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring unreadable cache file {path.name}: {e}")
            return None

        if (
            not isinstance(doc, dict)
            or not isinstance(doc.get("key"), str)
            or not isinstance(doc.get("expires_at"), (int, float))
            or "value" not in doc
        ):
            logger.warning(f"Ignoring malformed cache file {path.name}")
            return None
        return doc

    def _fetch_sync(self, key: str) -> Optional[Any]:
        path = self._path_for(key)
        doc = self._read(path)
        if doc is None:
            return None
        if self._clock() > doc["expires_at"]:
            path.unlink(missing_ok=True)
            return None
        return doc["value"]

    def _store_sync(self, key: str, value: Any, ttl_ms: float) -> None:
        doc = {
            "key": key,
            "expires_at": self._clock() + ttl_ms / 1000.0,
            "value": value,
        }
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(doc, f)
            os.replace(tmp_path, self._path_for(key))
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    def _enumerate_sync(self, prefix: str) -> List[str]:
        now = self._clock()
        keys = []
        for path in self.directory.glob("*.json"):
            doc = self._read(path)
            if doc is None or now > doc["expires_at"]:
                continue
            if doc["key"].startswith(prefix):
                keys.append(doc["key"])
        return keys

    async def fetch(self, key: str) -> Optional[Any]:
        return await asyncio.to_thread(self._fetch_sync, key)

    async def store(self, key: str, value: Any, ttl_ms: float) -> None:
        await asyncio.to_thread(self._store_sync, key, value, ttl_ms)

    async def enumerate(self, prefix: str = "") -> List[str]:
        return await asyncio.to_thread(self._enumerate_sync, prefix)
