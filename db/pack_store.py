"""
Persistent pack cache.

A pack is stored under three Redis hashes keyed by its content id:

* ``pack_files:{content_id}``   file index -> JSON of path, size, season, episode
* ``pack_matches:{content_id}`` file index -> matched title id (written once)
* ``pack_meta:{content_id}``    ``created_at`` (epoch seconds) and ``pack_title``

Writes for one upsert go through a single MULTI/EXEC pipeline. Title matches
and ``created_at`` use HSETNX so a concurrent writer can add but never revert
them. A refresh after TTL expiry deletes and rewrites ``pack_files`` in the
same pipeline.
"""

import json
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

import redis.asyncio
from redis.exceptions import RedisError

from db.config import settings
from db.redis_database import REDIS_ASYNC_CLIENT
from db.schemas.pack import PackFileEntry, PackIndex

logger = logging.getLogger(__name__)


class PackStoreError(Exception):
    """The pack cache could not be read or written."""


class PackStore(Protocol):
    async def get_pack_index(
        self, content_id: str, ttl_days: int = settings.pack_cache_ttl_days
    ) -> PackIndex | None: ...

    async def upsert_pack_entries(
        self,
        content_id: str,
        entries: list[PackFileEntry],
        matched_title_id: str | None = None,
        pack_title: str | None = None,
        refresh: bool = False,
    ) -> int: ...

    async def delete_pack_index(self, content_id: str) -> int: ...


def is_expired(created_at: datetime, ttl_days: int, now: datetime) -> bool:
    return now - created_at > timedelta(days=ttl_days)


def serialize_entry(entry: PackFileEntry) -> str:
    return json.dumps(
        {
            "path": entry.path,
            "size": entry.size,
            "season": entry.season,
            "episode": entry.episode,
        }
    )


def deserialize_entry(index: str, payload: str, matched_title_id: str | None) -> PackFileEntry:
    data = json.loads(payload)
    return PackFileEntry(index=int(index), matched_title_id=matched_title_id, **data)


class RedisPackStore:
    def __init__(
        self,
        client: redis.asyncio.Redis | None = None,
        retention_days: int = settings.pack_cache_retention_days,
        clock: Callable[[], float] = time.time,
    ):
        self.client = client or REDIS_ASYNC_CLIENT
        self.retention_seconds = retention_days * 86400
        self._clock = clock

    @staticmethod
    def _keys(content_id: str) -> tuple[str, str, str]:
        return (
            f"pack_files:{content_id}",
            f"pack_matches:{content_id}",
            f"pack_meta:{content_id}",
        )

    async def get_pack_index(
        self, content_id: str, ttl_days: int = settings.pack_cache_ttl_days
    ) -> PackIndex | None:
        content_id = content_id.lower()
        files_key, matches_key, meta_key = self._keys(content_id)
        try:
            files, matches, meta = await (
                self.client.pipeline(transaction=True)
                .hgetall(files_key)
                .hgetall(matches_key)
                .hgetall(meta_key)
                .execute()
            )
        except RedisError as error:
            raise PackStoreError(f"Failed to read pack cache for {content_id}") from error
        if not files:
            return None

        try:
            entries = sorted(
                (
                    deserialize_entry(index, payload, matches.get(index))
                    for index, payload in files.items()
                ),
                key=lambda entry: entry.index,
            )
        except ValueError as error:
            raise PackStoreError(f"Corrupt pack cache for {content_id}") from error
        now = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
        created_at = (
            datetime.fromtimestamp(float(meta["created_at"]), tz=timezone.utc)
            if meta.get("created_at")
            else now
        )
        return PackIndex(
            content_id=content_id,
            entries=entries,
            created_at=created_at,
            pack_title=meta.get("pack_title"),
            expired=is_expired(created_at, ttl_days, now),
        )

    async def upsert_pack_entries(
        self,
        content_id: str,
        entries: list[PackFileEntry],
        matched_title_id: str | None = None,
        pack_title: str | None = None,
        refresh: bool = False,
    ) -> int:
        """
        Merge ``entries`` into the cached pack.

        Without ``refresh`` existing file rows are kept and only new indices
        are added, so the file list stays as first cached. ``refresh`` (a fetch
        after TTL expiry) replaces the whole file list, dropping indices the new
        listing no longer has, and restarts the TTL. Matched title ids survive
        both. ``matched_title_id`` applies to entries that carry no match of
        their own.
        """
        if not entries:
            return 0

        content_id = content_id.lower()
        files_key, matches_key, meta_key = self._keys(content_id)
        pipe = self.client.pipeline(transaction=True)
        if refresh:
            pipe.delete(files_key)
        for entry in entries:
            if refresh:
                pipe.hset(files_key, str(entry.index), serialize_entry(entry))
            else:
                pipe.hsetnx(files_key, str(entry.index), serialize_entry(entry))
            title_id = entry.matched_title_id or matched_title_id
            if title_id:
                pipe.hsetnx(matches_key, str(entry.index), title_id)

        created_at = str(self._clock())
        if refresh:
            pipe.hset(meta_key, "created_at", created_at)
        else:
            pipe.hsetnx(meta_key, "created_at", created_at)
        if pack_title:
            pipe.hsetnx(meta_key, "pack_title", pack_title)
        for key in (files_key, matches_key, meta_key):
            pipe.expire(key, self.retention_seconds)
        try:
            await pipe.execute()
        except RedisError as error:
            raise PackStoreError(f"Failed to write pack cache for {content_id}") from error

        logger.info(f"Upserted {len(entries)} pack entries for {content_id}")
        return len(entries)

    async def delete_pack_index(self, content_id: str) -> int:
        try:
            deleted = await self.client.delete(*self._keys(content_id.lower()))
        except RedisError as error:
            raise PackStoreError(f"Failed to delete pack cache for {content_id}") from error
        logger.info(f"Deleted pack cache for {content_id}")
        return deleted
