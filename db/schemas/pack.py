"""Pack resolution schemas: cached pack listings, provider listings and results."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator, model_validator

from db.config import settings
from db.enums import MediaType, PackSource, ResolutionState
from utils.torrent import content_id_from_reference


class PackFileEntry(BaseModel):
    """One member file of a cached pack."""

    index: int = Field(ge=0)
    path: str
    size: int = Field(default=0, ge=0)
    season: int | None = None
    episode: int | None = None
    matched_title_id: str | None = None

    @property
    def filename(self) -> str:
        return self.path.rsplit("/", 1)[-1]


class PackIndex(BaseModel):
    """All cached entries of one pack plus the creation time used for TTL."""

    content_id: str
    entries: list[PackFileEntry] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))
    pack_title: str | None = None
    expired: bool = False

    @property
    def total_size(self) -> int:
        return sum(entry.size for entry in self.entries)

    def find_episode(self, season: int, episode: int) -> PackFileEntry | None:
        for entry in self.entries:
            if entry.season == season and entry.episode == episode:
                return entry
        return None

    def find_title(self, title_id: str) -> PackFileEntry | None:
        for entry in self.entries:
            if entry.matched_title_id == title_id:
                return entry
        return None


class ProviderFile(BaseModel):
    index: int = Field(ge=0)
    path: str
    size: int = Field(default=0, ge=0)


class PackListing(BaseModel):
    """File listing of a torrent as reported by one provider."""

    files: list[ProviderFile] = Field(default_factory=list)
    display_name: str | None = None
    source: PackSource

    @property
    def total_size(self) -> int:
        return sum(file.size for file in self.files)


class PackRequest(BaseModel):
    """A request to resolve one episode, or one movie, inside a pack."""

    content_id: str
    season: int | None = Field(default=None, ge=0)
    episode: int | None = Field(default=None, ge=0)
    titles: list[str] = Field(default_factory=list)
    year: int | None = None
    title_id: str | None = None

    @field_validator("content_id")
    @classmethod
    def normalize_content_id(cls, value: str) -> str:
        return content_id_from_reference(value)

    @field_validator("titles")
    @classmethod
    def drop_empty_titles(cls, value: list[str]) -> list[str]:
        return [title.strip() for title in value if title and title.strip()]

    @model_validator(mode="after")
    def validate_target(self) -> "PackRequest":
        if (self.season is None) != (self.episode is None):
            raise ValueError("season and episode must be given together")
        if self.season is None and not self.titles:
            raise ValueError("either season/episode or at least one title is required")
        return self

    @property
    def media_type(self) -> MediaType:
        return MediaType.SERIES if self.season is not None else MediaType.MOVIE

    @property
    def guard_key(self) -> str:
        if self.media_type == MediaType.SERIES:
            return f"{self.content_id}:{self.season}:{self.episode}"
        movie_key = self.title_id or self.titles[0].lower()
        return f"{self.content_id}:movie:{movie_key}"


class ProviderConfig(BaseModel):
    """Credentials and toggles that decide which providers are queried."""

    realdebrid_token: str | None = Field(default_factory=lambda: settings.realdebrid_token)
    torbox_token: str | None = Field(default_factory=lambda: settings.torbox_token)
    use_public_mirrors: bool = Field(default_factory=lambda: settings.enable_public_mirrors)
    user_ip: str | None = None


class ResolvedPackFile(BaseModel):
    file_index: int
    file_name: str
    file_size: int
    total_pack_size: int
    source: PackSource


class PackResolution(BaseModel):
    """Terminal outcome of one resolution, with the states it went through."""

    status: ResolutionState
    file: ResolvedPackFile | None = None
    unreliable: bool = False
    trace: list[ResolutionState] = Field(default_factory=list)
