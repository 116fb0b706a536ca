from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Core Application Settings
    addon_name: str = "PackFusion"
    version: str = "1.0.0"
    logging_level: str = "INFO"

    # Database and Cache Settings
    redis_url: str = "redis://redis-service:6379"
    redis_max_connections: int = 100

    # External Service URLs
    requests_proxy_url: str | None = None

    # Pack Resolution Settings
    min_pack_video_size: int = 26214400  # 25 MB in bytes
    pack_cache_ttl_days: int = 10
    pack_cache_retention_days: int = 30
    lookup_guard_ttl_seconds: int = 1800  # 30 minutes in seconds
    lookup_guard_max_entries: int = 1000

    # Provider Request Settings
    debrid_request_timeout: int = 30
    public_mirror_timeout: int = 8
    rate_limit_max_retries: int = 3
    rate_limit_base_delay: float = 1.0

    # Public Torrent Mirrors, "{info_hash}" is replaced with the upper-case hash
    enable_public_mirrors: bool = True
    public_torrent_mirrors: list[str] = Field(
        default_factory=lambda: [
            "https://itorrents.org/torrent/{info_hash}.torrent",
            "https://torrage.info/torrent.php?h={info_hash}",
            "http://btcache.me/torrent/{info_hash}",
        ]
    )

    # Server-wide Debrid Tokens
    realdebrid_token: str | None = None
    torbox_token: str | None = None

    @model_validator(mode="after")
    def validate_rate_limit_settings(self) -> "Settings":
        if self.rate_limit_max_retries < 0:
            raise ValueError("rate_limit_max_retries must not be negative")
        if self.pack_cache_ttl_days <= 0:
            raise ValueError("pack_cache_ttl_days must be positive")
        return self

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
