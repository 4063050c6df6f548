"""Swappable cache backends for profile analyses.

Toggle via CACHE_BACKEND env var:
  CACHE_BACKEND=sqlite   (default, document rows in CACHE_DB_PATH)
  CACHE_BACKEND=memory   (process-local, for tests and throwaway runs)

One document per username: {username, data, report, timestamp}. Entries older
than the TTL are reported as misses but left in place.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol, runtime_checkable

import aiosqlite
from pydantic import ValidationError

from insta_lens.analyzers.schema import AnalysisResult
from insta_lens.config import Settings
from insta_lens.errors import CacheError
from insta_lens.models import CacheEntry, Profile

_log = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(days=7)
_COLLECTION_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Protocol ─────────────────────────────────────────────────────────────────

@runtime_checkable
class CacheStore(Protocol):
    """Per-username store of (profile, analysis, write time)."""

    async def get(self, username: str, bypass: bool = False) -> CacheEntry | None:
        """Return the entry if present and younger than the TTL, else None.

        ``bypass=True`` always returns None (forced refresh).
        """
        ...

    async def put(self, username: str, profile: Profile, analysis: AnalysisResult) -> datetime:
        """Insert or replace the entry for ``username``; return the write time."""
        ...


def _is_fresh(written: datetime, now: datetime, ttl: timedelta) -> bool:
    return now - written < ttl


# ── SQLiteCacheStore ─────────────────────────────────────────────────────────

class SQLiteCacheStore:
    """Document-style cache table in a local SQLite file.

    Every call opens and closes its own connection; nothing is held between
    calls, so concurrent requests only contend on SQLite's own locking.
    """

    def __init__(
        self,
        db_path: str,
        *,
        collection: str = "user_data_cache",
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if not _COLLECTION_NAME.match(collection):
            raise ValueError(f"Invalid cache collection name {collection!r}")
        self.db_path = db_path
        self.collection = collection
        self.ttl = ttl
        self._clock = clock

    async def _ensure_table(self, db: aiosqlite.Connection) -> None:
        await db.execute(f"""
            CREATE TABLE IF NOT EXISTS {self.collection} (
                username  TEXT PRIMARY KEY,
                data      TEXT NOT NULL,
                report    TEXT NOT NULL,
                timestamp TEXT NOT NULL
            )
        """)

    async def get(self, username: str, bypass: bool = False) -> CacheEntry | None:
        if bypass:
            _log.info("force refresh for %s, skipping cache", username)
            return None

        try:
            async with aiosqlite.connect(self.db_path) as db:
                await self._ensure_table(db)
                async with db.execute(
                    f"SELECT data, report, timestamp FROM {self.collection} WHERE username = ?",
                    (username,),
                ) as cursor:
                    row = await cursor.fetchone()
        except (sqlite3.Error, OSError) as exc:
            raise CacheError(f"cache read failed for {username}: {exc}") from exc

        if row is None:
            _log.info("cache miss for %s", username)
            return None

        try:
            entry = CacheEntry(
                username=username,
                data=Profile.model_validate_json(row[0]),
                report=AnalysisResult.model_validate_json(row[1]),
                timestamp=datetime.fromisoformat(row[2]),
            )
        except (ValidationError, ValueError) as exc:
            _log.warning("discarding undecodable cache entry for %s: %s", username, exc)
            return None

        if not _is_fresh(entry.timestamp, self._clock(), self.ttl):
            _log.info("cache expired for %s (written %s)", username, entry.timestamp.isoformat())
            return None

        _log.info("cache hit for %s", username)
        return entry

    async def put(self, username: str, profile: Profile, analysis: AnalysisResult) -> datetime:
        timestamp = self._clock()
        try:
            async with aiosqlite.connect(self.db_path) as db:
                await self._ensure_table(db)
                await db.execute(
                    f"""INSERT OR REPLACE INTO {self.collection}
                        (username, data, report, timestamp) VALUES (?, ?, ?, ?)""",
                    (username, profile.model_dump_json(), analysis.model_dump_json(), timestamp.isoformat()),
                )
                await db.commit()
        except (sqlite3.Error, OSError) as exc:
            raise CacheError(f"cache write failed for {username}: {exc}") from exc

        _log.info("cached analysis for %s", username)
        return timestamp


# ── MemoryCacheStore ─────────────────────────────────────────────────────────

class MemoryCacheStore:
    """Same contract as SQLiteCacheStore, kept in a dict for the process lifetime."""

    def __init__(self, *, ttl: timedelta = DEFAULT_TTL, clock: Callable[[], datetime] = utcnow) -> None:
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()

    async def get(self, username: str, bypass: bool = False) -> CacheEntry | None:
        if bypass:
            return None
        async with self._lock:
            entry = self._entries.get(username)
        if entry is None or not _is_fresh(entry.timestamp, self._clock(), self.ttl):
            return None
        return entry

    async def put(self, username: str, profile: Profile, analysis: AnalysisResult) -> datetime:
        timestamp = self._clock()
        async with self._lock:
            self._entries[username] = CacheEntry(
                username=username, data=profile, report=analysis, timestamp=timestamp
            )
        return timestamp

    def __contains__(self, username: str) -> bool:
        return username in self._entries


# ── Factory ──────────────────────────────────────────────────────────────────

def make_cache_store(settings: Settings) -> CacheStore:
    """Return the cache backend selected by ``settings.cache_backend``."""
    ttl = timedelta(days=settings.cache_ttl_days)
    if settings.cache_backend == "sqlite":
        return SQLiteCacheStore(settings.cache_db_path, collection=settings.cache_collection, ttl=ttl)
    if settings.cache_backend == "memory":
        return MemoryCacheStore(ttl=ttl)
    raise ValueError(f"Unknown CACHE_BACKEND={settings.cache_backend!r}. Use 'sqlite' or 'memory'.")
