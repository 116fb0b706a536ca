class ProviderException(Exception):
    def __init__(self, message, video_file_name="api_error.mp4"):
        self.message = message
        self.video_file_name = video_file_name
        super().__init__(self.message)


class RateLimitException(ProviderException):
    """Raised when a provider answers with HTTP 429 or its own throttling code.

    The pack is not discarded by callers on this error, only deferred.
    """

    def __init__(self, message, retry_after: float | None = None):
        self.retry_after = retry_after
        super().__init__(message, "too_many_requests.mp4")


class TorrentParseError(ValueError):
    """Malformed bencode or an unusable torrent structure."""
