import logging
from typing import Optional

import anyio
import httpx

from db.config import settings
from db.enums import PackSource
from db.schemas.pack import PackListing, ProviderFile
from streaming_providers.exceptions import (
    ProviderException,
    RateLimitException,
    TorrentParseError,
)
from utils.torrent import TorrentMetadata, parse_torrent_file

logger = logging.getLogger(__name__)

UA_HEADER = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
}
# Mirrors answer unknown hashes with small HTML pages.
MIN_TORRENT_PAYLOAD_SIZE = 500


async def download_torrent_from_mirror(
    client: httpx.AsyncClient, url: str, info_hash: str
) -> TorrentMetadata:
    response = await client.get(url, follow_redirects=True)
    if response.status_code == 429:
        raise RateLimitException(f"Mirror rate limited: {url}")
    if response.status_code != 200:
        raise ProviderException(f"Mirror returned {response.status_code}: {url}")

    content = response.content
    if len(content) <= MIN_TORRENT_PAYLOAD_SIZE or not content.startswith(b"d"):
        raise ProviderException(f"Mirror returned no torrent payload: {url}")

    metadata = parse_torrent_file(content)
    if metadata.info_hash != info_hash.lower():
        raise ProviderException(
            f"Mirror returned torrent {metadata.info_hash} instead of {info_hash}"
        )
    return metadata


async def fetch_torrent_from_public_mirrors(
    info_hash: str,
    mirrors: Optional[list[str]] = None,
    timeout: float = settings.public_mirror_timeout,
) -> TorrentMetadata:
    """
    Query every mirror in parallel and return the first valid torrent.

    The remaining downloads are cancelled as soon as one mirror succeeds.
    """
    mirrors = mirrors if mirrors is not None else settings.public_torrent_mirrors
    result: Optional[TorrentMetadata] = None
    errors: list[Exception] = []

    async with httpx.AsyncClient(
        proxy=settings.requests_proxy_url, headers=UA_HEADER, timeout=timeout
    ) as client:
        async with anyio.create_task_group() as tg:

            async def race(url: str):
                nonlocal result
                try:
                    with anyio.fail_after(timeout):
                        metadata = await download_torrent_from_mirror(
                            client, url, info_hash
                        )
                except (
                    ProviderException,
                    TorrentParseError,
                    httpx.HTTPError,
                    TimeoutError,
                ) as error:
                    logger.debug(f"Mirror {url} failed: {error}")
                    errors.append(error)
                    return
                if result is None:
                    result = metadata
                    tg.cancel_scope.cancel()

            for template in mirrors:
                tg.start_soon(race, template.format(info_hash=info_hash.upper()))

    if result is not None:
        return result
    if errors and all(isinstance(error, RateLimitException) for error in errors):
        raise RateLimitException("All public mirrors are rate limited")
    raise ProviderException(
        f"No public mirror returned a torrent for {info_hash}", "torrent_not_downloaded.mp4"
    )


def torrent_metadata_to_listing(
    metadata: TorrentMetadata, source: PackSource = PackSource.PUBLIC_MIRROR
) -> PackListing:
    return PackListing(
        files=[
            ProviderFile(index=file.index, path=file.path, size=file.size)
            for file in metadata.files
        ],
        display_name=metadata.name,
        source=source,
    )


async def fetch_pack_listing_from_public_mirrors(info_hash: str) -> PackListing:
    metadata = await fetch_torrent_from_public_mirrors(info_hash)
    logger.info(f"Got {len(metadata.files)} files from public mirrors for {info_hash}")
    return torrent_metadata_to_listing(metadata)
