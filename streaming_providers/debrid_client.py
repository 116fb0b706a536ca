import asyncio
import logging
from abc import abstractmethod
from contextlib import AsyncContextDecorator
from typing import Any, Callable, Optional

import aiohttp
from aiohttp import ClientResponse, ClientTimeout, ContentTypeError

from db.config import settings
from streaming_providers.exceptions import ProviderException, RateLimitException

logger = logging.getLogger(__name__)

# HTTP statuses every debrid service uses the same way.
STATUS_ERRORS = {
    401: ("Invalid token", "invalid_token.mp4"),
    403: ("Access denied by debrid service", "invalid_token.mp4"),
    502: ("Debrid service is down.", "debrid_service_down_error.mp4"),
    503: ("Debrid service is down.", "debrid_service_down_error.mp4"),
    504: ("Debrid service is down.", "debrid_service_down_error.mp4"),
}


class DebridClient(AsyncContextDecorator):
    """
    Base for debrid REST clients that list the files of a torrent.

    Used as ``async with Client(token=...) as client``; the HTTP session is
    opened lazily and closed on exit. Every failure surfaces as a
    ``ProviderException`` (``RateLimitException`` for throttling) so callers
    can move on to the next provider.
    """

    BASE_URL: str = ""

    def __init__(self, token: str, timeout: float = settings.debrid_request_timeout):
        if not token:
            raise ProviderException("Debrid token is required", "invalid_token.mp4")
        self.token = token
        self.headers: dict[str, str] = {}
        self._session: Optional[aiohttp.ClientSession] = None
        self._timeout = ClientTimeout(total=timeout)

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                connector=aiohttp.TCPConnector(ttl_dns_cache=300),
            )
        return self._session

    async def __aenter__(self):
        await self.initialize_headers()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        if self._session:
            await self._session.close()
            self._session = None

    async def _make_request(
        self,
        method: str,
        path: str,
        data: Optional[dict] = None,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
        is_return_none: bool = False,
        retry_count: int = 0,
    ) -> Any:
        url = self.BASE_URL + path
        try:
            async with self.session.request(
                method, url, data=data, json=json, params=params, headers=self.headers
            ) as response:
                await self._check_response_status(response)
                if is_return_none:
                    return {}
                return await self._parse_response(response)
        except ProviderException:
            raise
        except aiohttp.ClientConnectorError as error:
            if retry_count < 1:
                logger.debug(f"Retrying {method} {path} after connection error: {error}")
                return await self._make_request(
                    method, path, data, json, params, is_return_none, retry_count + 1
                )
            raise ProviderException(
                "Failed to connect to Debrid service.", "debrid_service_down_error.mp4"
            ) from error
        except asyncio.TimeoutError as error:
            raise ProviderException(
                "Request timed out.", "torrent_not_downloaded.mp4"
            ) from error
        except aiohttp.ClientError as error:
            raise ProviderException(f"Request error: {error}", "api_error.mp4") from error

    async def _check_response_status(self, response: ClientResponse):
        if response.ok:
            return
        if response.status == 429:
            raise RateLimitException(
                "Too many requests",
                retry_after=self._parse_retry_after(response.headers.get("Retry-After")),
            )

        if response.content_type == "application/json":
            try:
                error_content = await response.json()
            except (ValueError, ContentTypeError):
                error_content = {}
            if isinstance(error_content, dict):
                await self._handle_service_specific_errors(error_content, response.status)
        else:
            error_content = await response.text()

        if response.status in STATUS_ERRORS:
            raise ProviderException(*STATUS_ERRORS[response.status])
        raise ProviderException(
            f"API Error {response.status}: {error_content}", "api_error.mp4"
        )

    @staticmethod
    def _parse_retry_after(value: Optional[str]) -> Optional[float]:
        try:
            return float(value) if value else None
        except ValueError:
            return None

    @staticmethod
    async def _parse_response(response: ClientResponse) -> Any:
        try:
            return await response.json(content_type=None)
        except ValueError as error:
            response_text = await response.text()
            raise ProviderException(
                f"Failed to parse response error: {error}. \nresponse: {response_text}",
                "api_error.mp4",
            )

    async def initialize_headers(self):
        self.headers = {"Authorization": f"Bearer {self.token}"}

    @abstractmethod
    async def _handle_service_specific_errors(self, error_data: dict, status_code: int):
        """
        Service specific errors on api requests.
        """
        raise NotImplementedError

    @abstractmethod
    async def add_magnet(self, info_hash: str) -> str | int:
        """Add a torrent by info hash and return the service's torrent id."""
        raise NotImplementedError

    @abstractmethod
    async def get_torrent_info(self, torrent_id) -> dict:
        raise NotImplementedError

    @abstractmethod
    async def delete_torrent(self, torrent_id):
        raise NotImplementedError

    async def wait_for_torrent_info(
        self,
        torrent_id: str | int,
        is_ready: Callable[[dict], bool],
        max_retries: int,
        retry_interval: float,
    ) -> dict:
        """Poll the torrent info until ``is_ready`` accepts it."""
        for attempt in range(max_retries):
            torrent_info = await self.get_torrent_info(torrent_id)
            if torrent_info and is_ready(torrent_info):
                return torrent_info
            if attempt + 1 < max_retries:
                await asyncio.sleep(retry_interval)
        raise ProviderException(
            "Torrent file list did not become available.",
            "torrent_not_downloaded.mp4",
        )
