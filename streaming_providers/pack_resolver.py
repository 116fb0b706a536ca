"""
Pack resolution: find the file index of one episode or movie inside a pack.

The flow is a small state machine::

    CACHE_LOOKUP -> HIT_COMPLETE -> RESOLVED
                 -> HIT_PARTIAL  -> EXTERNAL_FETCH | NOT_FOUND
                 -> MISS         -> EXTERNAL_FETCH
    EXTERNAL_FETCH -> PARSE_AND_MATCH -> PERSIST -> RESOLVED | NOT_FOUND
                   -> FAILED

Transitions that only depend on data (``classify_cache_lookup``,
``decide_partial_hit``, ``classify_fetched_pack``) are plain functions so they
can be tested without any I/O. ``PackResolver`` wires them to the pack store,
the lookup guard and the provider chain.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from db.config import settings
from db.enums import MediaType, PackSource, ResolutionState
from db.pack_store import PackStore, PackStoreError
from db.schemas.pack import (
    PackFileEntry,
    PackIndex,
    PackListing,
    PackRequest,
    PackResolution,
    ProviderConfig,
    ResolvedPackFile,
)
from streaming_providers.exceptions import ProviderException, RateLimitException
from streaming_providers.mapper import PackProvider, build_provider_chain
from streaming_providers.parser import FileInfo, PackFileProcessor
from streaming_providers.torrent_mirrors import torrent_metadata_to_listing
from utils.lookup_guard import LookupGuard
from utils.movie_matcher import find_best_match
from utils.rate_limiter import retry_on_rate_limit
from utils.title_parser import is_multi_season_pack
from utils.torrent import parse_torrent_file

logger = logging.getLogger(__name__)


# ============================================================================
# Pure transitions
# ============================================================================


@dataclass
class CacheDecision:
    state: ResolutionState
    entry: Optional[PackFileEntry] = None
    # A fuzzy movie hit whose entry is not yet linked to the requested title id.
    needs_annotation: bool = False


def _movie_candidates(index: PackIndex, title_id: Optional[str]) -> list[PackFileEntry]:
    """Entries already linked to another title are never fuzzy matched again."""
    return [
        entry
        for entry in index.entries
        if entry.matched_title_id is None or entry.matched_title_id == title_id
    ]


def classify_cache_lookup(index: Optional[PackIndex], request: PackRequest) -> CacheDecision:
    if index is None or index.expired or not index.entries:
        return CacheDecision(ResolutionState.MISS)

    if request.media_type == MediaType.SERIES:
        entry = index.find_episode(request.season, request.episode)
        if entry is not None:
            return CacheDecision(ResolutionState.HIT_COMPLETE, entry)
        return CacheDecision(ResolutionState.HIT_PARTIAL)

    if request.title_id:
        entry = index.find_title(request.title_id)
        if entry is not None:
            return CacheDecision(ResolutionState.HIT_COMPLETE, entry)

    entry = find_best_match(
        _movie_candidates(index, request.title_id), request.titles, request.year
    )
    if entry is not None:
        return CacheDecision(
            ResolutionState.HIT_COMPLETE,
            entry,
            needs_annotation=bool(request.title_id) and entry.matched_title_id is None,
        )
    return CacheDecision(ResolutionState.HIT_PARTIAL)


def decide_partial_hit(
    index: PackIndex, request: PackRequest, recently_attempted: bool
) -> ResolutionState:
    """
    Only a multi-season pack may hold episodes the cached listing missed, so
    only those are fetched again, and at most once per guard window.
    """
    if request.media_type == MediaType.MOVIE:
        return ResolutionState.NOT_FOUND
    if recently_attempted or not is_multi_season_pack(index.pack_title):
        return ResolutionState.NOT_FOUND
    return ResolutionState.EXTERNAL_FETCH


@dataclass
class FetchOutcome:
    state: ResolutionState
    file_info: Optional[FileInfo] = None
    unreliable: bool = False


def classify_fetched_pack(processor: PackFileProcessor, request: PackRequest) -> FetchOutcome:
    """Match the request against a freshly fetched listing."""
    if request.media_type == MediaType.SERIES:
        if not processor.get_structured_files():
            # Nothing parsed as an episode, the listing cannot be trusted.
            return FetchOutcome(ResolutionState.NOT_FOUND, unreliable=True)
        file_info = processor.find_specific_episode(request.season, request.episode)
    else:
        if not processor.file_infos:
            return FetchOutcome(ResolutionState.NOT_FOUND, unreliable=True)
        file_info = processor.find_movie(request.titles, request.year)

    if file_info is None:
        return FetchOutcome(ResolutionState.NOT_FOUND)
    return FetchOutcome(ResolutionState.RESOLVED, file_info)


# ============================================================================
# Resolver
# ============================================================================


class PackResolver:
    def __init__(
        self,
        store: PackStore,
        guard: Optional[LookupGuard] = None,
        providers_factory: Callable[[ProviderConfig], list[PackProvider]] = build_provider_chain,
        ttl_days: int = settings.pack_cache_ttl_days,
        max_retries: int = settings.rate_limit_max_retries,
        base_delay: float = settings.rate_limit_base_delay,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.guard = guard if guard is not None else LookupGuard()
        self.providers_factory = providers_factory
        self.ttl_days = ttl_days
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.sleep = sleep

    async def resolve_pack_file(
        self, request: PackRequest, config: Optional[ProviderConfig] = None
    ) -> Optional[ResolvedPackFile]:
        resolution = await self.resolve(request, config)
        return resolution.file

    async def resolve(
        self, request: PackRequest, config: Optional[ProviderConfig] = None
    ) -> PackResolution:
        """
        Resolve ``request`` to a file of its pack.

        Raises:
            RateLimitException: Every provider that could have answered was
                still rate limited after its retries. The lookup is deferred,
                not recorded as a failure.
        """
        config = config or ProviderConfig()
        trace = [ResolutionState.CACHE_LOOKUP]

        index = await self._read_cache(request.content_id)
        decision = classify_cache_lookup(index, request)
        trace.append(decision.state)

        if decision.state == ResolutionState.HIT_COMPLETE:
            if decision.needs_annotation:
                await self._persist(
                    request.content_id,
                    [decision.entry],
                    matched_title_id=request.title_id,
                )
            return self._resolved(
                trace, decision.entry, index.total_size, PackSource.CACHE
            )

        recently_attempted = self.guard.has_recent_attempt(request.guard_key)
        if decision.state == ResolutionState.HIT_PARTIAL:
            next_state = decide_partial_hit(index, request, recently_attempted)
            if next_state == ResolutionState.NOT_FOUND:
                logger.debug(f"Cached pack {request.content_id} has no match for {request.guard_key}")
                return self._finish(trace, ResolutionState.NOT_FOUND)
        elif recently_attempted:
            logger.debug(f"Skipping repeated lookup for {request.guard_key}")
            return self._finish(trace, ResolutionState.NOT_FOUND)

        trace.append(ResolutionState.EXTERNAL_FETCH)
        listing = await self._fetch_listing(request.content_id, config)
        if listing is None:
            self.guard.record_attempt(request.guard_key)
            return self._finish(trace, ResolutionState.FAILED)

        trace.append(ResolutionState.PARSE_AND_MATCH)
        pack_title = listing.display_name or (index.pack_title if index else None)
        processor = PackFileProcessor(listing, pack_title=pack_title)
        outcome = classify_fetched_pack(processor, request)

        if outcome.unreliable:
            logger.warning(
                f"Pack {request.content_id} from {listing.source} has no parsable "
                f"files, not caching it"
            )
            self.guard.record_attempt(request.guard_key)
            return self._finish(trace, ResolutionState.NOT_FOUND, unreliable=True)

        trace.append(ResolutionState.PERSIST)
        await self._persist(
            request.content_id,
            self._entries_to_cache(processor, request, outcome.file_info),
            pack_title=pack_title,
            refresh=index is not None and index.expired,
        )

        if outcome.file_info is None:
            self.guard.record_attempt(request.guard_key)
            return self._finish(trace, ResolutionState.NOT_FOUND)
        return self._resolved(
            trace, outcome.file_info.to_entry(), processor.total_size, listing.source
        )

    async def index_torrent_file(
        self,
        content: bytes | str,
        pack_title: Optional[str] = None,
        title_id: Optional[str] = None,
    ) -> int:
        """
        Parse a .torrent payload and cache its annotated video files.

        Returns the number of entries written. ``title_id`` is linked to every
        entry, which only makes sense for series packs.
        """
        metadata = parse_torrent_file(content)
        listing = torrent_metadata_to_listing(metadata, source=PackSource.TORRENT_FILE)
        processor = PackFileProcessor(listing, pack_title=pack_title or metadata.name)
        processor.parse_all_episodes()
        return await self.store.upsert_pack_entries(
            metadata.info_hash,
            processor.to_entries(matched_title_id=title_id),
            pack_title=processor.pack_title,
            refresh=True,
        )

    async def invalidate(self, content_id: str) -> int:
        return await self.store.delete_pack_index(content_id)

    @staticmethod
    def _entries_to_cache(
        processor: PackFileProcessor,
        request: PackRequest,
        file_info: Optional[FileInfo],
    ) -> list[PackFileEntry]:
        if request.media_type == MediaType.SERIES:
            return processor.to_entries(matched_title_id=request.title_id)
        if file_info is None or not request.title_id:
            return processor.to_entries()
        return processor.to_entries(
            matched_title_id=request.title_id, matched_index=file_info.index
        )

    async def _read_cache(self, content_id: str) -> Optional[PackIndex]:
        try:
            return await self.store.get_pack_index(content_id, self.ttl_days)
        except PackStoreError as error:
            logger.error(f"Pack cache read failed, treating as miss: {error}")
            return None

    async def _persist(
        self,
        content_id: str,
        entries: list[PackFileEntry],
        matched_title_id: Optional[str] = None,
        pack_title: Optional[str] = None,
        refresh: bool = False,
    ) -> None:
        try:
            await self.store.upsert_pack_entries(
                content_id,
                entries,
                matched_title_id=matched_title_id,
                pack_title=pack_title,
                refresh=refresh,
            )
        except PackStoreError as error:
            logger.error(f"Pack cache write failed: {error}")

    async def _fetch_listing(
        self, content_id: str, config: ProviderConfig
    ) -> Optional[PackListing]:
        """Walk the provider chain until one returns a non-empty listing."""
        rate_limit_error: Optional[RateLimitException] = None
        for provider in self.providers_factory(config):

            async def list_files(provider: PackProvider = provider) -> PackListing:
                return await asyncio.wait_for(
                    provider.list_files(content_id), provider.timeout
                )

            try:
                listing = await retry_on_rate_limit(
                    list_files,
                    max_retries=self.max_retries,
                    base_delay=self.base_delay,
                    sleep=self.sleep,
                    label=provider.source,
                )
            except RateLimitException as error:
                rate_limit_error = error
                continue
            except TimeoutError:
                logger.warning(f"{provider.source} timed out listing {content_id}")
                continue
            except (ProviderException, ValueError, KeyError) as error:
                logger.warning(f"{provider.source} failed listing {content_id}: {error}")
                continue

            if listing.files:
                logger.info(
                    f"Listed {len(listing.files)} files of {content_id} via {provider.source}"
                )
                return listing
            logger.info(f"{provider.source} returned no files for {content_id}")

        if rate_limit_error is not None:
            raise rate_limit_error
        return None

    @staticmethod
    def _resolved(
        trace: list[ResolutionState],
        entry: PackFileEntry,
        total_size: int,
        source: PackSource,
    ) -> PackResolution:
        trace.append(ResolutionState.RESOLVED)
        return PackResolution(
            status=ResolutionState.RESOLVED,
            file=ResolvedPackFile(
                file_index=entry.index,
                file_name=entry.filename,
                file_size=entry.size,
                total_pack_size=total_size,
                source=source,
            ),
            trace=trace,
        )

    @staticmethod
    def _finish(
        trace: list[ResolutionState], state: ResolutionState, unreliable: bool = False
    ) -> PackResolution:
        trace.append(state)
        return PackResolution(status=state, unreliable=unreliable, trace=trace)
