import logging
from dataclasses import dataclass
from typing import Optional

from db.config import settings
from db.schemas.pack import PackFileEntry, PackListing, ProviderFile
from utils.movie_matcher import find_best_match
from utils.title_parser import (
    extract_season_from_pack_title,
    parse_filename,
    parse_season_from_path,
)
from utils.validation_helper import is_pack_video_file

logger = logging.getLogger(__name__)


@dataclass
class FileInfo:
    index: int
    path: str
    size: int
    season: Optional[int] = None
    episode: Optional[int] = None

    @property
    def filename(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def is_structured(self) -> bool:
        return self.season is not None and self.episode is not None

    @classmethod
    def from_provider_file(cls, file: ProviderFile) -> "FileInfo":
        return cls(index=file.index, path=file.path, size=file.size)

    def to_entry(self, matched_title_id: Optional[str] = None) -> PackFileEntry:
        return PackFileEntry(
            index=self.index,
            path=self.path,
            size=self.size,
            season=self.season,
            episode=self.episode,
            matched_title_id=matched_title_id,
        )


class PackFileProcessor:
    """Filters a provider listing down to real video files and annotates them."""

    def __init__(
        self,
        listing: PackListing,
        pack_title: Optional[str] = None,
        min_size: int = settings.min_pack_video_size,
    ):
        self.listing = listing
        self.pack_title = pack_title or listing.display_name
        self.min_size = min_size
        self.file_infos = self._process_files()
        self._is_parsed = False

    def _process_files(self) -> list[FileInfo]:
        """Keep video containers of at least ``min_size`` bytes."""
        file_infos = [
            FileInfo.from_provider_file(file)
            for file in self.listing.files
            if is_pack_video_file(file.path, file.size, self.min_size)
        ]
        skipped = len(self.listing.files) - len(file_infos)
        if skipped:
            logger.debug(f"Skipped {skipped} non-video or undersized files")
        return file_infos

    @property
    def total_size(self) -> int:
        return sum(file_info.size for file_info in self.file_infos)

    def _default_season(self, file_info: FileInfo, pack_season: Optional[int]) -> int:
        folder_season = parse_season_from_path(file_info.path)
        if folder_season is not None:
            return folder_season
        if pack_season is not None:
            return pack_season
        return 1

    def parse_all_episodes(self) -> list[FileInfo]:
        """Parse season/episode of every video file, seeding missing seasons."""
        if self._is_parsed:
            return self.file_infos

        pack_season = extract_season_from_pack_title(self.pack_title)
        for file_info in self.file_infos:
            parsed = parse_filename(file_info.filename)
            if not parsed.episodes:
                continue
            file_info.episode = parsed.episode
            if parsed.season is not None:
                file_info.season = parsed.season
            else:
                file_info.season = self._default_season(file_info, pack_season)

        self._is_parsed = True
        return self.file_infos

    def get_structured_files(self) -> list[FileInfo]:
        return [file_info for file_info in self.parse_all_episodes() if file_info.is_structured]

    def find_specific_episode(self, season: int, episode: int) -> Optional[FileInfo]:
        for file_info in self.get_structured_files():
            if file_info.season == season and file_info.episode == episode:
                return file_info
        return None

    def find_movie(self, titles: list[str], year: Optional[int]) -> Optional[FileInfo]:
        entries = [file_info.to_entry() for file_info in self.file_infos]
        match = find_best_match(entries, titles, year)
        if match is None:
            return None
        for file_info in self.file_infos:
            if file_info.index == match.index:
                return file_info
        return None

    def to_entries(
        self,
        matched_title_id: Optional[str] = None,
        matched_index: Optional[int] = None,
    ) -> list[PackFileEntry]:
        """
        Convert to cache entries. With ``matched_index`` only that file carries
        ``matched_title_id`` (movie packs), otherwise every file does.
        """
        entries = []
        for file_info in self.file_infos:
            if matched_index is None or file_info.index == matched_index:
                entries.append(file_info.to_entry(matched_title_id))
            else:
                entries.append(file_info.to_entry())
        return entries
