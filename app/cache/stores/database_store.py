"""
Database store using SQLAlchemy.

SQLite by default; any SQLAlchemy URL works. Values are stored as JSON text.
"""
import asyncio
import json
import logging
import time
from typing import Any, Callable, List, Optional

from sqlalchemy import Column, Float, String, Text, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .base import BackingStore

logger = logging.getLogger("cache.stores.database")

Base = declarative_base()


class CacheRow(Base):
    """
    One cache entry - unique by key, overwritten on every store()
    """
    __tablename__ = "cache_entries"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    expires_at = Column(Float, nullable=False, index=True)

    def __repr__(self):
        return f"<CacheRow(key='{self.key}', expires_at={self.expires_at})>"


def _escape_like(prefix: str) -> str:
    return prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class DatabaseStore(BackingStore):
    """Backing store persisting entries in a cache_entries table."""

    def __init__(self, database_url: str, clock: Callable[[], float] = time.time):
        connect_args = {}
        if database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False  # Needed for SQLite
        self.engine = create_engine(database_url, connect_args=connect_args, echo=False)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        self._clock = clock
        # Safe to call multiple times (won't recreate existing tables)
        Base.metadata.create_all(bind=self.engine)

    def _fetch_sync(self, key: str) -> Optional[Any]:
        with self.SessionLocal() as db:
            row = db.get(CacheRow, key)
            if row is None:
                return None
            if self._clock() > row.expires_at:
                db.delete(row)
                db.commit()
                logger.debug(f"Dropped expired cache row {key}")
                return None
            return json.loads(row.value)

    def _store_sync(self, key: str, value: Any, ttl_ms: float) -> None:
        row = CacheRow(
            key=key,
            value=json.dumps(value),
            expires_at=self._clock() + ttl_ms / 1000.0,
        )
        with self.SessionLocal() as db:
            db.merge(row)
            db.commit()

    def _enumerate_sync(self, prefix: str) -> List[str]:
        with self.SessionLocal() as db:
            query = db.query(CacheRow.key).filter(CacheRow.expires_at >= self._clock())
            if prefix:
                query = query.filter(CacheRow.key.like(f"{_escape_like(prefix)}%", escape="\\"))
            # LIKE is case-insensitive on SQLite, so re-check the prefix exactly
            return [key for (key,) in query.all() if key.startswith(prefix)]

    async def fetch(self, key: str) -> Optional[Any]:
        return await asyncio.to_thread(self._fetch_sync, key)

    async def store(self, key: str, value: Any, ttl_ms: float) -> None:
        await asyncio.to_thread(self._store_sync, key, value, ttl_ms)

    async def enumerate(self, prefix: str = "") -> List[str]:
        return await asyncio.to_thread(self._enumerate_sync, prefix)
