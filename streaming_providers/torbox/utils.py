import logging

from db.enums import PackSource
from db.schemas.pack import PackListing, ProviderFile
from streaming_providers.exceptions import ProviderException, RateLimitException
from streaming_providers.torbox.client import Torbox

logger = logging.getLogger(__name__)


def parse_torbox_files(files: list[dict], display_name: str | None = None) -> PackListing:
    """Files are sorted by name; Torbox ids are used when present, else the position."""
    sorted_files = sorted(files, key=lambda file: file.get("name") or file.get("path") or "")
    return PackListing(
        files=[
            ProviderFile(
                index=file["id"] if file.get("id") is not None else position,
                path=file.get("name") or file.get("path") or "",
                size=file.get("size") or 0,
            )
            for position, file in enumerate(sorted_files)
        ],
        display_name=display_name,
        source=PackSource.TORBOX,
    )


async def fetch_pack_listing_from_torbox(
    info_hash: str,
    token: str,
    max_retries: int = 3,
    retry_interval: float = 2,
) -> PackListing:
    """
    List the files of a torrent on Torbox: the instant availability check when
    the torrent is cached, otherwise add it, read its info and delete it.
    """
    async with Torbox(token=token) as torbox_client:
        try:
            cached_entry = await torbox_client.get_cached_torrent(info_hash)
        except RateLimitException:
            raise
        except ProviderException as error:
            logger.warning(f"Torbox cache check failed for {info_hash}: {error}")
            cached_entry = None

        if cached_entry and cached_entry.get("files"):
            listing = parse_torbox_files(cached_entry["files"], cached_entry.get("name"))
            logger.info(f"Got {len(listing.files)} cached files from Torbox for {info_hash}")
            return listing

        torrent_id = await torbox_client.add_magnet(info_hash)
        try:
            torrent_info = await torbox_client.wait_for_torrent_info(
                torrent_id,
                lambda info: bool(info.get("files")),
                max_retries,
                retry_interval,
            )
        finally:
            try:
                await torbox_client.delete_torrent(torrent_id)
            except ProviderException as error:
                logger.warning(
                    f"Failed to delete temporary Torbox torrent {torrent_id}: {error}"
                )

    listing = parse_torbox_files(torrent_info["files"], torrent_info.get("name"))
    logger.info(f"Got {len(listing.files)} files from Torbox for {info_hash}")
    return listing
