from streaming_providers.debrid_client import DebridClient
from streaming_providers.exceptions import ProviderException, RateLimitException
from utils.torrent import convert_info_hash_to_magnet

RATE_LIMIT_ERRORS = ("RATE_LIMITED", "TOO_MANY_REQUESTS")


class Torbox(DebridClient):
    BASE_URL = "https://api.torbox.app/v1/api"

    async def _handle_service_specific_errors(self, error_data: dict, status_code: int):
        if error_data.get("error") in RATE_LIMIT_ERRORS:
            raise RateLimitException(f"Torbox: {error_data.get('detail')}")
        if error_data.get("error") == "BAD_TOKEN":
            raise ProviderException("Invalid Torbox token", "invalid_token.mp4")

    async def add_magnet(self, info_hash: str) -> int:
        response = await self._make_request(
            "POST",
            "/torrents/createtorrent",
            data={"magnet": convert_info_hash_to_magnet(info_hash)},
        )
        torrent_id = None
        if isinstance(response, dict) and response.get("success") is not False:
            torrent_id = (response.get("data") or {}).get("torrent_id")
        if not torrent_id:
            raise ProviderException(
                f"Failed to add magnet link to Torbox {response}", "transfer_error.mp4"
            )
        return torrent_id

    async def get_torrent_info(self, torrent_id) -> dict:
        response = await self._make_request(
            "GET",
            "/torrents/mylist",
            params={"id": torrent_id, "bypass_cache": "true"},
        )
        data = response.get("data")
        # A single torrent is returned as an object, otherwise as a list.
        if isinstance(data, dict):
            return data
        for torrent in data or []:
            if torrent.get("id") == torrent_id:
                return torrent
        return {}

    async def get_cached_torrent(self, info_hash: str) -> dict | None:
        """File listing of a torrent already cached on Torbox, if it is."""
        response = await self._make_request(
            "GET",
            "/torrents/checkcached",
            params={"hash": info_hash, "format": "object", "list_files": "true"},
        )
        return find_cached_entry(response.get("data") or {}, info_hash)

    async def delete_torrent(self, torrent_id):
        return await self._make_request(
            "POST",
            "/torrents/controltorrent",
            json={"torrent_id": torrent_id, "operation": "delete"},
        )


def find_cached_entry(cached_data: dict | list, info_hash: str) -> dict | None:
    if isinstance(cached_data, list):
        items = cached_data
    else:
        items = [
            {"hash": key, **value}
            for key, value in cached_data.items()
            if isinstance(value, dict)
        ]
    for item in items:
        if (item.get("hash") or "").lower() == info_hash.lower():
            return item
    return None
