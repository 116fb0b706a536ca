"""
Pytest configuration and shared fixtures for PackFusion tests.
"""

import inspect
from datetime import datetime, timedelta, timezone

import pytest

from db.enums import PackSource
from db.pack_store import PackStoreError, is_expired
from db.schemas.pack import PackFileEntry, PackIndex, PackListing, ProviderFile
from streaming_providers.mapper import PackProvider

MB = 1024 * 1024
SAMPLE_INFO_HASH = "0123456789abcdef0123456789abcdef01234567"


# =============================================================================
# Helpers
# =============================================================================


def bencode(value) -> bytes:
    """Minimal canonical encoder used to build torrent fixtures."""
    if isinstance(value, int):
        return b"i%de" % value
    if isinstance(value, str):
        value = value.encode()
    if isinstance(value, bytes):
        return b"%d:%s" % (len(value), value)
    if isinstance(value, list):
        return b"l" + b"".join(bencode(item) for item in value) + b"e"
    if isinstance(value, dict):
        items = sorted(
            (key.encode() if isinstance(key, str) else key, item)
            for key, item in value.items()
        )
        return b"d" + b"".join(bencode(key) + bencode(item) for key, item in items) + b"e"
    raise TypeError(f"Cannot bencode {type(value)}")


def make_listing(paths, size=700 * MB, source=PackSource.REALDEBRID, display_name=None):
    return PackListing(
        files=[
            ProviderFile(index=index, path=path, size=size)
            for index, path in enumerate(paths, start=1)
        ],
        display_name=display_name,
        source=source,
    )


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float):
        self.delays.append(delay)


class FakeProvider:
    """Replays ``outcomes`` in order; exceptions are raised, listings returned."""

    def __init__(self, source: PackSource, *outcomes):
        self.source = source
        self.outcomes = list(outcomes)
        self.calls = []

    async def list_files(self, content_id: str) -> PackListing:
        self.calls.append(content_id)
        outcome = self.outcomes[0] if len(self.outcomes) == 1 else self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def as_provider(self, timeout: float = 5) -> PackProvider:
        return PackProvider(source=self.source, list_files=self.list_files, timeout=timeout)


class InMemoryPackStore:
    """PackStore with the same merge rules as the Redis store."""

    def __init__(self, clock=None):
        self.clock = clock or FakeClock()
        self.packs: dict[str, dict] = {}
        self.fail_reads = False
        self.fail_writes = False
        self.upserts = []

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self.clock(), tz=timezone.utc)

    def seed(self, content_id, entries, pack_title=None, age=timedelta(0)):
        self.packs[content_id] = {
            "entries": {entry.index: entry for entry in entries},
            "created_at": self._now() - age,
            "pack_title": pack_title,
        }

    async def get_pack_index(self, content_id, ttl_days=10):
        if self.fail_reads:
            raise PackStoreError("store unavailable")
        pack = self.packs.get(content_id)
        if not pack or not pack["entries"]:
            return None
        return PackIndex(
            content_id=content_id,
            entries=sorted(pack["entries"].values(), key=lambda entry: entry.index),
            created_at=pack["created_at"],
            pack_title=pack["pack_title"],
            expired=is_expired(pack["created_at"], ttl_days, self._now()),
        )

    async def upsert_pack_entries(
        self, content_id, entries, matched_title_id=None, pack_title=None, refresh=False
    ):
        if self.fail_writes:
            raise PackStoreError("store unavailable")
        self.upserts.append((content_id, list(entries), matched_title_id, refresh))
        pack = self.packs.setdefault(
            content_id, {"entries": {}, "created_at": self._now(), "pack_title": None}
        )
        previous = dict(pack["entries"])
        if refresh:
            pack["created_at"] = self._now()
            pack["entries"] = {}
        if pack_title and not pack["pack_title"]:
            pack["pack_title"] = pack_title
        for entry in entries:
            existing = pack["entries"].get(entry.index)
            earlier = previous.get(entry.index)
            title_id = (
                (earlier.matched_title_id if earlier else None)
                or entry.matched_title_id
                or matched_title_id
            )
            base = entry if refresh or existing is None else existing
            pack["entries"][entry.index] = base.model_copy(
                update={"matched_title_id": title_id}
            )
        return len(entries)

    async def delete_pack_index(self, content_id):
        return 1 if self.packs.pop(content_id, None) else 0


class FakePipeline:
    def __init__(self, redis):
        self.redis = redis
        self.commands = []

    def __getattr__(self, name):
        def queue(*args):
            self.commands.append((name, args))
            return self

        return queue

    async def execute(self):
        results = []
        for name, args in self.commands:
            result = getattr(self.redis, name)(*args)
            if inspect.isawaitable(result):
                result = await result
            results.append(result)
        self.commands = []
        return results


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the pack store."""

    def __init__(self):
        self.hashes: dict[str, dict[str, str]] = {}
        self.expiry: dict[str, int] = {}

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    def hgetall(self, key):
        return dict(self.hashes.get(key, {}))

    def hset(self, key, field, value):
        is_new = field not in self.hashes.setdefault(key, {})
        self.hashes[key][field] = value
        return int(is_new)

    def hsetnx(self, key, field, value):
        values = self.hashes.setdefault(key, {})
        if field in values:
            return 0
        values[field] = value
        return 1

    def expire(self, key, seconds):
        self.expiry[key] = seconds
        return 1

    async def delete(self, *keys):
        return sum(1 for key in keys if self.hashes.pop(key, None) is not None)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def pack_store(clock):
    return InMemoryPackStore(clock)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def series_listing():
    """Season 1 pack of ten episodes plus extras that must be ignored."""
    paths = [
        f"Show.S01.1080p.WEB-DL/Show.S01E{episode:02d}.1080p.WEB-DL.x264-GRP.mkv"
        for episode in range(1, 11)
    ]
    listing = make_listing(paths, display_name="Show.S01.1080p.WEB-DL.x264-GRP")
    listing.files.append(
        ProviderFile(index=11, path="Show.S01.1080p.WEB-DL/Sample/sample.mkv", size=10 * MB)
    )
    listing.files.append(
        ProviderFile(index=12, path="Show.S01.1080p.WEB-DL/Show.S01.nfo", size=2048)
    )
    return listing


@pytest.fixture
def shrek_entries():
    return [
        PackFileEntry(index=1, path="Shrek.Collection/Shrek.2001.1080p.BluRay.x264.mkv", size=4000 * MB),
        PackFileEntry(index=2, path="Shrek.Collection/Shrek.2.2004.1080p.BluRay.x264.mkv", size=4000 * MB),
        PackFileEntry(index=3, path="Shrek.Collection/Shrek.III.2007.1080p.BluRay.x264.mkv", size=4000 * MB),
    ]
