"""
Unit tests for db/pack_store.py against an in-process Redis stand-in.
"""

from datetime import datetime, timedelta, timezone

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from conftest import SAMPLE_INFO_HASH
from db.pack_store import PackStoreError, RedisPackStore, is_expired
from db.schemas.pack import PackFileEntry

DAY = 86400


def episode_entries(*episodes, season=1):
    return [
        PackFileEntry(
            index=episode,
            path=f"Show.S01/Show.S{season:02d}E{episode:02d}.mkv",
            size=500_000_000,
            season=season,
            episode=episode,
        )
        for episode in episodes
    ]


@pytest.fixture
def store(fake_redis, clock):
    return RedisPackStore(client=fake_redis, retention_days=30, clock=clock)


class TestIsExpired:
    """Tests for is_expired() function."""

    def test_boundaries(self):
        now = datetime(2024, 1, 20, tzinfo=timezone.utc)
        assert is_expired(now - timedelta(days=11), 10, now) is True
        assert is_expired(now - timedelta(days=10), 10, now) is False
        assert is_expired(now - timedelta(days=9), 10, now) is False


class TestRedisPackStore:
    """Tests for RedisPackStore merge and TTL semantics."""

    @pytest.mark.asyncio
    async def test_missing_pack(self, store):
        assert await store.get_pack_index(SAMPLE_INFO_HASH) is None

    @pytest.mark.asyncio
    async def test_upsert_and_read(self, store, fake_redis):
        written = await store.upsert_pack_entries(
            SAMPLE_INFO_HASH, episode_entries(2, 1), pack_title="Show.S01.1080p"
        )
        assert written == 2

        index = await store.get_pack_index(SAMPLE_INFO_HASH)
        assert [entry.index for entry in index.entries] == [1, 2]
        assert index.entries[0].season == 1
        assert index.entries[0].episode == 1
        assert index.pack_title == "Show.S01.1080p"
        assert index.expired is False
        assert fake_redis.expiry[f"pack_files:{SAMPLE_INFO_HASH}"] == 30 * DAY

    @pytest.mark.asyncio
    async def test_content_id_is_lowercased(self, store):
        await store.upsert_pack_entries(SAMPLE_INFO_HASH.upper(), episode_entries(1))
        assert await store.get_pack_index(SAMPLE_INFO_HASH) is not None

    @pytest.mark.asyncio
    async def test_empty_upsert_is_noop(self, store, fake_redis):
        assert await store.upsert_pack_entries(SAMPLE_INFO_HASH, []) == 0
        assert fake_redis.hashes == {}

    @pytest.mark.asyncio
    async def test_matched_title_is_set_once(self, store):
        await store.upsert_pack_entries(SAMPLE_INFO_HASH, episode_entries(1), matched_title_id="tt1")
        await store.upsert_pack_entries(SAMPLE_INFO_HASH, episode_entries(1), matched_title_id="tt2")
        index = await store.get_pack_index(SAMPLE_INFO_HASH)
        assert index.entries[0].matched_title_id == "tt1"

    @pytest.mark.asyncio
    async def test_annotation_added_later(self, store):
        await store.upsert_pack_entries(SAMPLE_INFO_HASH, episode_entries(1, 2))
        entry = episode_entries(2)[0].model_copy(update={"matched_title_id": "tt9"})
        await store.upsert_pack_entries(SAMPLE_INFO_HASH, [entry])
        index = await store.get_pack_index(SAMPLE_INFO_HASH)
        assert index.find_title("tt9").index == 2
        assert index.entries[0].matched_title_id is None

    @pytest.mark.asyncio
    async def test_merge_keeps_existing_rows(self, store):
        await store.upsert_pack_entries(SAMPLE_INFO_HASH, episode_entries(1))
        changed = episode_entries(1)[0].model_copy(update={"episode": 7})
        await store.upsert_pack_entries(SAMPLE_INFO_HASH, [changed, *episode_entries(2)])
        index = await store.get_pack_index(SAMPLE_INFO_HASH)
        assert [entry.episode for entry in index.entries] == [1, 2]

    @pytest.mark.asyncio
    async def test_expiry_after_ttl(self, store, clock):
        await store.upsert_pack_entries(SAMPLE_INFO_HASH, episode_entries(1))
        clock.advance(11 * DAY)
        index = await store.get_pack_index(SAMPLE_INFO_HASH, ttl_days=10)
        assert index.expired is True

    @pytest.mark.asyncio
    async def test_merge_does_not_reset_created_at(self, store, clock):
        await store.upsert_pack_entries(SAMPLE_INFO_HASH, episode_entries(1))
        clock.advance(11 * DAY)
        await store.upsert_pack_entries(SAMPLE_INFO_HASH, episode_entries(2))
        index = await store.get_pack_index(SAMPLE_INFO_HASH, ttl_days=10)
        assert index.expired is True

    @pytest.mark.asyncio
    async def test_refresh_resets_created_at_and_rows(self, store, clock):
        await store.upsert_pack_entries(SAMPLE_INFO_HASH, episode_entries(1))
        clock.advance(11 * DAY)
        changed = episode_entries(1)[0].model_copy(update={"episode": 7})
        await store.upsert_pack_entries(SAMPLE_INFO_HASH, [changed], refresh=True)
        index = await store.get_pack_index(SAMPLE_INFO_HASH, ttl_days=10)
        assert index.expired is False
        assert index.entries[0].episode == 7

    @pytest.mark.asyncio
    async def test_refresh_drops_indices_missing_from_new_listing(self, store, clock):
        await store.upsert_pack_entries(
            SAMPLE_INFO_HASH, episode_entries(1, 2, 3), matched_title_id="tt1"
        )
        clock.advance(11 * DAY)
        await store.upsert_pack_entries(SAMPLE_INFO_HASH, episode_entries(1, 2), refresh=True)
        index = await store.get_pack_index(SAMPLE_INFO_HASH, ttl_days=10)
        assert [entry.index for entry in index.entries] == [1, 2]
        assert all(entry.matched_title_id == "tt1" for entry in index.entries)

    @pytest.mark.asyncio
    async def test_delete(self, store):
        await store.upsert_pack_entries(SAMPLE_INFO_HASH, episode_entries(1), pack_title="x")
        assert await store.delete_pack_index(SAMPLE_INFO_HASH) == 2
        assert await store.get_pack_index(SAMPLE_INFO_HASH) is None

    @pytest.mark.asyncio
    async def test_redis_errors_are_wrapped(self, store, fake_redis):
        def broken(*args):
            raise RedisConnectionError("connection refused")

        fake_redis.hgetall = broken
        with pytest.raises(PackStoreError):
            await store.get_pack_index(SAMPLE_INFO_HASH)

    @pytest.mark.asyncio
    async def test_delete_errors_are_wrapped(self, store, fake_redis):
        async def broken(*keys):
            raise RedisConnectionError("connection refused")

        fake_redis.delete = broken
        with pytest.raises(PackStoreError):
            await store.delete_pack_index(SAMPLE_INFO_HASH)

    @pytest.mark.asyncio
    async def test_corrupt_rows_are_wrapped(self, store, fake_redis):
        fake_redis.hashes[f"pack_files:{SAMPLE_INFO_HASH}"] = {"1": "{not json"}
        with pytest.raises(PackStoreError):
            await store.get_pack_index(SAMPLE_INFO_HASH)
