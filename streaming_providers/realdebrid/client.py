from typing import Optional

from streaming_providers.debrid_client import DebridClient
from streaming_providers.exceptions import ProviderException, RateLimitException
from utils.torrent import convert_info_hash_to_magnet

RATE_LIMIT_ERROR_CODE = 34
ERROR_CODES = {
    8: ("Real-Debrid token expired", "invalid_token.mp4"),
    9: ("Real-Debrid Permission denied", "invalid_token.mp4"),
    21: ("Active torrents limit reached", "torrent_limit.mp4"),
    22: ("IP address not allowed", "ip_not_allowed.mp4"),
    35: ("Content marked as infringing", "content_infringing.mp4"),
}


class RealDebrid(DebridClient):
    BASE_URL = "https://api.real-debrid.com/rest/1.0"

    def __init__(self, token: str, user_ip: Optional[str] = None, **kwargs):
        super().__init__(token, **kwargs)
        self.user_ip = user_ip

    async def _handle_service_specific_errors(self, error_data: dict, status_code: int):
        error_code = error_data.get("error_code")
        if error_code == RATE_LIMIT_ERROR_CODE:
            raise RateLimitException("Real-Debrid: too many requests")
        if error_code in ERROR_CODES:
            raise ProviderException(*ERROR_CODES[error_code])

    async def _make_request(self, method: str, path: str, data: Optional[dict] = None, **kwargs):
        # Real-Debrid picks the download server by the caller's address.
        if method == "POST" and self.user_ip:
            data = {**(data or {}), "ip": self.user_ip}
        return await super()._make_request(method, path, data=data, **kwargs)

    async def add_magnet(self, info_hash: str) -> str:
        response = await self._make_request(
            "POST",
            "/torrents/addMagnet",
            data={"magnet": convert_info_hash_to_magnet(info_hash)},
        )
        torrent_id = response.get("id") if isinstance(response, dict) else None
        if not torrent_id:
            raise ProviderException(
                f"Failed to add magnet link to Real-Debrid: {response}",
                "transfer_error.mp4",
            )
        return torrent_id

    async def get_torrent_info(self, torrent_id) -> dict:
        return await self._make_request("GET", f"/torrents/info/{torrent_id}")

    async def delete_torrent(self, torrent_id):
        return await self._make_request(
            "DELETE", f"/torrents/delete/{torrent_id}", is_return_none=True
        )
