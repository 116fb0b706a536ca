from dataclasses import dataclass
from functools import partial
from typing import Awaitable, Callable

from db.config import settings
from db.enums import PackSource
from db.schemas.pack import PackListing, ProviderConfig
from streaming_providers.realdebrid.utils import fetch_pack_listing_from_realdebrid
from streaming_providers.torbox.utils import fetch_pack_listing_from_torbox
from streaming_providers.torrent_mirrors import fetch_pack_listing_from_public_mirrors

# Define provider-specific pack listing functions
PACK_LISTING_FUNCTIONS = {
    PackSource.REALDEBRID: fetch_pack_listing_from_realdebrid,
    PackSource.TORBOX: fetch_pack_listing_from_torbox,
    PackSource.PUBLIC_MIRROR: fetch_pack_listing_from_public_mirrors,
}

PROVIDER_TIMEOUTS = {
    PackSource.REALDEBRID: settings.debrid_request_timeout,
    PackSource.TORBOX: settings.debrid_request_timeout,
    # Each mirror request times out on its own before the race as a whole.
    PackSource.PUBLIC_MIRROR: settings.public_mirror_timeout + 2,
}


@dataclass
class PackProvider:
    """One link of the fallback chain: lists a pack's files given its content id."""

    source: PackSource
    list_files: Callable[[str], Awaitable[PackListing]]
    timeout: float


def build_provider_chain(config: ProviderConfig) -> list[PackProvider]:
    """Providers in priority order: Real-Debrid, Torbox, then public mirrors."""
    chain = []
    if config.realdebrid_token:
        chain.append(
            PackProvider(
                source=PackSource.REALDEBRID,
                list_files=partial(
                    PACK_LISTING_FUNCTIONS[PackSource.REALDEBRID],
                    token=config.realdebrid_token,
                    user_ip=config.user_ip,
                ),
                timeout=PROVIDER_TIMEOUTS[PackSource.REALDEBRID],
            )
        )
    if config.torbox_token:
        chain.append(
            PackProvider(
                source=PackSource.TORBOX,
                list_files=partial(
                    PACK_LISTING_FUNCTIONS[PackSource.TORBOX], token=config.torbox_token
                ),
                timeout=PROVIDER_TIMEOUTS[PackSource.TORBOX],
            )
        )
    if config.use_public_mirrors:
        chain.append(
            PackProvider(
                source=PackSource.PUBLIC_MIRROR,
                list_files=PACK_LISTING_FUNCTIONS[PackSource.PUBLIC_MIRROR],
                timeout=PROVIDER_TIMEOUTS[PackSource.PUBLIC_MIRROR],
            )
        )
    return chain
