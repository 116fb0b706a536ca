import logging
from typing import Optional

from db.enums import PackSource
from db.schemas.pack import PackListing, ProviderFile
from streaming_providers.exceptions import ProviderException
from streaming_providers.realdebrid.client import RealDebrid

logger = logging.getLogger(__name__)

FAILED_STATUSES = ("magnet_error", "error", "virus", "dead")


def parse_realdebrid_files(torrent_info: dict) -> PackListing:
    """Real-Debrid ids are 1-based and paths are relative with a leading slash."""
    files = [
        ProviderFile(
            index=int(file["id"]),
            path=file["path"].lstrip("/"),
            size=file.get("bytes", 0),
        )
        for file in torrent_info.get("files", [])
    ]
    return PackListing(
        files=files,
        display_name=torrent_info.get("filename") or torrent_info.get("original_filename"),
        source=PackSource.REALDEBRID,
    )


async def fetch_pack_listing_from_realdebrid(
    info_hash: str,
    token: str,
    user_ip: Optional[str] = None,
    max_retries: int = 3,
    retry_interval: float = 1,
) -> PackListing:
    """
    List the files of a torrent by adding it to Real-Debrid, reading its info
    and deleting it again.
    """
    async with RealDebrid(token=token, user_ip=user_ip) as rd_client:
        torrent_id = await rd_client.add_magnet(info_hash)
        try:
            torrent_info = await rd_client.wait_for_torrent_info(
                torrent_id,
                lambda info: bool(info.get("files"))
                or info.get("status") in FAILED_STATUSES,
                max_retries,
                retry_interval,
            )
        finally:
            try:
                await rd_client.delete_torrent(torrent_id)
            except ProviderException as error:
                logger.warning(
                    f"Failed to delete temporary Real-Debrid torrent {torrent_id}: {error}"
                )

    if torrent_info.get("status") in FAILED_STATUSES:
        raise ProviderException(
            f"Torrent cannot be listed due to status: {torrent_info['status']}",
            "transfer_error.mp4",
        )

    listing = parse_realdebrid_files(torrent_info)
    logger.info(f"Got {len(listing.files)} files from Real-Debrid for {info_hash}")
    return listing
