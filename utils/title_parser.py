"""
Release title and filename parsing utilities.

Every category is described by an explicit ordered table of
``(label, compiled pattern)`` pairs. Single-valued categories take the first
entry that matches, multi-valued categories collect every entry that matches.
Patterns only match on token boundaries, so ``ITA`` never fires inside
``SUBITA`` and ``HDR`` never fires inside ``HDR10``.

Exports:
    - parse_filename(): Full parsing with structured output
    - ParsedTitle: Dataclass with parsed title components
    - extract_release_group(): Trailing ``-GROUP`` heuristic
    - extract_season_from_pack_title(): Single season announced by a pack title
    - parse_season_from_path(): Season announced by a folder of a file path
    - is_season_pack(): Seasons announced without episodes
    - is_multi_season_pack(): Keyword scan for complete/multi-season packs
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from db.enums import (
    AudioChannel,
    AudioTag,
    Codec,
    Language,
    Quality,
    Resolution,
    VisualTag,
)

# =============================================================================
# Pattern Building Blocks
# =============================================================================

# Token boundaries: letters and digits glue tokens together, everything else
# (dots, spaces, underscores, dashes, brackets) separates them.
_START = r"(?<![A-Za-z0-9])"
_END = r"(?![A-Za-z0-9])"
# Audio codecs are commonly glued to their channel layout ("DDP5.1", "AAC2.0").
_AUDIO_END = r"(?![A-Za-z])"
_SEP = r"[ ._-]"

_SUBTITLE_MARKER = r"sub(?:s|bed|titles?|titulado)?"

MEDIA_EXTENSIONS: tuple[str, ...] = (
    "mkv", "mp4", "avi", "mov", "wmv", "flv", "webm", "m4v", "ts", "m2ts",
    "mts", "mpg", "mpeg", "vob", "iso", "srt", "ass", "ssa", "sub", "idx", "nfo",
)

_EXTENSION_PATTERN = re.compile(
    rf"\.(?:{'|'.join(MEDIA_EXTENSIONS)})$", re.IGNORECASE
)
_LEADING_GROUP_PATTERN = re.compile(r"^\s*\[([^\]]+)\]\s*")
_TRAILING_BRACKETS_PATTERN = re.compile(r"(?:\s*(?:\[[^\]]*\]|\([^)]*\)))+\s*$")
_TRAILING_GROUP_PATTERN = re.compile(r"-([A-Za-z0-9]+)$")
_SEASON_EPISODE_TOKEN = re.compile(
    r"s\d{1,3}(?:e\d{1,4})*|e\d{1,4}|\d{1,2}x\d{2,3}", re.IGNORECASE
)


def _token(pattern: str, end: str = _END) -> re.Pattern:
    return re.compile(rf"{_START}(?:{pattern}){end}", re.IGNORECASE)


# =============================================================================
# Single-valued Tables (first match wins, most specific first)
# =============================================================================

RESOLUTION_PATTERNS: list[tuple[Resolution, re.Pattern]] = [
    (Resolution.UHD_4K, _token(r"2160[pi]|3840x2160|4k|uhd(?!" + _SEP + r"?rip)")),
    (Resolution.QHD, _token(r"1440[pi]|2560x1440|2k")),
    (Resolution.FHD, _token(r"1080[pi]|1920x1080|fhd")),
    (Resolution.HD, _token(r"720[pi]|1280x720")),
    (Resolution.SD_576, _token(r"576[pi]")),
    (Resolution.SD_480, _token(r"480[pi]|640x480")),
    (Resolution.SD_360, _token(r"360[pi]")),
    (Resolution.SD_240, _token(r"240[pi]")),
]

QUALITY_PATTERNS: list[tuple[Quality, re.Pattern]] = [
    (
        Quality.BLURAY_REMUX,
        _token(
            rf"(?:blu{_SEP}?ray|bd|uhd){_SEP}?remux|remux{_SEP}?(?:blu{_SEP}?ray|bd)"
        ),
    ),
    (Quality.REMUX, _token(r"remux")),
    (Quality.BDRIP, _token(rf"bd{_SEP}?rip")),
    (Quality.BRRIP, _token(rf"br{_SEP}?rip|blu{_SEP}?ray{_SEP}?rip")),
    (Quality.UHDRIP, _token(rf"uhd{_SEP}?rip")),
    (Quality.BLURAY, _token(rf"blu{_SEP}?ray(?!{_SEP}?(?:rip|remux))|bd(?:25|50)?")),
    (Quality.WEB_DLRIP, _token(rf"web{_SEP}?dl{_SEP}?rip")),
    (Quality.WEBRIP, _token(rf"web{_SEP}?rip")),
    (Quality.WEBMUX, _token(rf"web{_SEP}?mux")),
    (
        Quality.WEB_DL,
        _token(rf"web{_SEP}?dl(?!{_SEP}?(?:rip|mux))|web(?!{_SEP}?(?:rip|mux|dl))"),
    ),
    (Quality.HDRIP, _token(rf"hd{_SEP}?rip")),
    (Quality.SCR, _token(rf"(?:(?:dvd|bd|web|hd){_SEP}?)?scr(?:eener)?")),
    (Quality.DVDRIP, _token(rf"dvd{_SEP}?rip")),
    (Quality.DVD, _token(r"dvd(?:5|9|r)?")),
    (Quality.HDTV, _token(rf"hdtv(?:{_SEP}?rip)?")),
    (Quality.SATRIP, _token(rf"sat{_SEP}?rip|dsr(?:ip)?")),
    (Quality.TVRIP, _token(rf"tv{_SEP}?rip")),
    (Quality.PPVRIP, _token(rf"ppv(?:{_SEP}?rip)?")),
    (Quality.PDTV, _token(r"pdtv")),
    (Quality.TELESYNC, _token(rf"(?:hd{_SEP}?)?telesync|hd{_SEP}?ts|pdvd")),
    (Quality.TELECINE, _token(rf"(?:hd{_SEP}?)?telecine|hd{_SEP}?tc")),
    (Quality.CAM, _token(rf"(?:hd{_SEP}?)?cam(?:{_SEP}?rip)?")),
]

CODEC_PATTERNS: list[tuple[Codec, re.Pattern]] = [
    (Codec.HEVC, _token(r"hevc|[xh][ ._]?265")),
    (Codec.AVC, _token(r"avc|[xh][ ._]?264")),
    (Codec.AV1, _token(r"av1")),
    (Codec.VP9, _token(r"vp9")),
    (Codec.XVID, _token(r"xvid")),
    (Codec.DIVX, _token(r"divx|dvix")),
    (Codec.MPEG2, _token(rf"mpeg{_SEP}?2")),
]

# =============================================================================
# Multi-valued Tables (every match contributes)
# =============================================================================

LANGUAGE_PATTERNS: list[tuple[Language, str]] = [
    (Language.ENGLISH, r"eng|english"),
    (Language.ITALIAN, r"ita|italian|italiano"),
    (Language.FRENCH, r"fre|fra|french|truefrench|vff|vfq"),
    (Language.GERMAN, r"ger|deu|german|deutsch"),
    (Language.SPANISH, r"esp|spanish|castellano"),
    (Language.LATINO, r"latino|latam"),
    (Language.PORTUGUESE, rf"pt{_SEP}?br|portuguese|dublado"),
    (Language.RUSSIAN, r"rus|russian"),
    (Language.JAPANESE, r"jpn|jap|japanese"),
    (Language.KOREAN, r"kor|korean"),
    (Language.CHINESE, r"chs|cht|chinese|mandarin"),
    (Language.HINDI, r"hin|hindi"),
    (Language.TAMIL, r"tamil"),
    (Language.TELUGU, r"telugu"),
    (Language.ARABIC, r"ara|arabic"),
    (Language.DUTCH, r"dut|nld|dutch"),
    (Language.POLISH, r"pol|polish"),
    (Language.TURKISH, r"turkish"),
    (Language.MULTI, rf"multi(?:{_SEP}?(?:lang(?:uage)?|audio))?"),
    (Language.DUAL, rf"dual(?:{_SEP}?audio)?"),
]

_LANGUAGE_TOKENS: list[tuple[Language, re.Pattern]] = [
    (language, _token(pattern)) for language, pattern in LANGUAGE_PATTERNS
]
# Compound subtitle tokens such as "SUBITA" or "SUBSENG".
_SUBTITLE_COMPOUND_TOKENS: list[tuple[Language, re.Pattern]] = [
    (language, _token(rf"subs?(?:{pattern})"))
    for language, pattern in LANGUAGE_PATTERNS
]
_ANY_LANGUAGE = "|".join(pattern for _, pattern in LANGUAGE_PATTERNS)
_PRECEDED_BY_SUBTITLE = re.compile(
    rf"{_START}{_SUBTITLE_MARKER}{_SEP}*$", re.IGNORECASE
)
_FOLLOWED_BY_SUBTITLE = re.compile(
    rf"^{_SEP}*{_SUBTITLE_MARKER}{_END}", re.IGNORECASE
)
_STARTS_WITH_LANGUAGE = re.compile(
    rf"^{_SEP}*(?:{_ANY_LANGUAGE}){_END}", re.IGNORECASE
)
# "sub" and "ts" double as release markers ("ENG.ITA.sub", "HD.TS") and are
# kept when a language or "HD" token comes right before them.
_MARKER_SUFFIX_PATTERN = re.compile(
    rf"{_START}(?:{_ANY_LANGUAGE}|hd){_SEP}?(?:{_SUBTITLE_MARKER}|ts)$", re.IGNORECASE
)

AUDIO_TAG_PATTERNS: list[tuple[AudioTag, re.Pattern]] = [
    (AudioTag.ATMOS, _token(r"atmos", _AUDIO_END)),
    (AudioTag.TRUEHD, _token(rf"true{_SEP}?hd", _AUDIO_END)),
    (AudioTag.DTS_HD_MA, _token(rf"dts{_SEP}?hd{_SEP}?ma", _AUDIO_END)),
    (AudioTag.DTS_HD, _token(rf"dts{_SEP}?hd(?!{_SEP}?ma)", _AUDIO_END)),
    (AudioTag.DTS_X, _token(rf"dts[ ._:-]?x", _END)),
    (
        AudioTag.DTS,
        _token(r"dts(?![ ._:-]?(?:hd|x(?![A-Za-z0-9])))", _AUDIO_END),
    ),
    (
        AudioTag.DDP,
        _token(
            rf"ddp|dd\+|e{_SEP}?ac{_SEP}?3|dolby{_SEP}?digital{_SEP}?plus",
            _AUDIO_END,
        ),
    ),
    (
        AudioTag.DD,
        _token(
            rf"dd(?!{_SEP}?(?:p|\+))|ac{_SEP}?3|dolby{_SEP}?digital(?!{_SEP}?plus)",
            _AUDIO_END,
        ),
    ),
    (AudioTag.AAC, _token(r"aac", _AUDIO_END)),
    (AudioTag.FLAC, _token(r"flac", _AUDIO_END)),
    (AudioTag.OPUS, _token(r"opus", _AUDIO_END)),
    (AudioTag.MP3, _token(r"mp3")),
    (AudioTag.LPCM, _token(r"l?pcm", _AUDIO_END)),
]

VISUAL_TAG_PATTERNS: list[tuple[VisualTag, re.Pattern]] = [
    (VisualTag.HDR10_PLUS, _token(r"hdr10(?:\+|plus)", r"(?![A-Za-z0-9])")),
    (VisualTag.HDR10, _token(r"hdr10(?!\+|plus)")),
    (VisualTag.HDR, _token(r"hdr")),
    (VisualTag.DOLBY_VISION, _token(rf"dv|dovi|dolby{_SEP}?vision")),
    (VisualTag.HLG, _token(r"hlg")),
    (VisualTag.SDR, _token(r"sdr")),
    (VisualTag.TEN_BIT, _token(rf"10{_SEP}?bits?|hi10p?")),
    (VisualTag.IMAX, _token(r"imax")),
    (VisualTag.AI_UPSCALE, _token(rf"upscaled?|ai{_SEP}?upscale")),
    (VisualTag.THREE_D, _token(rf"3d|h?sbs|half{_SEP}?(?:sbs|ou)")),
]

AUDIO_CHANNEL_PATTERNS: list[tuple[AudioChannel, re.Pattern]] = [
    (AudioChannel.CH_2_0, re.compile(r"(?<![0-9])(?<![0-9]\.)2\.0(?![0-9])")),
    (AudioChannel.CH_5_1, re.compile(r"(?<![0-9])(?<![0-9]\.)5\.1(?![0-9])")),
    (AudioChannel.CH_6_1, re.compile(r"(?<![0-9])(?<![0-9]\.)6\.1(?![0-9])")),
    (AudioChannel.CH_7_1, re.compile(r"(?<![0-9])(?<![0-9]\.)7\.1(?![0-9])")),
    (AudioChannel.STEREO, _token(r"stereo")),
    (AudioChannel.MONO, _token(r"mono")),
]

# =============================================================================
# Season / Episode Tables (pure priority order, first match wins)
# =============================================================================

_SEASON_WORD = r"season|seasons|stagione|stagioni|saison|temporada"
_EPISODE_WORD = r"episode|episodio|ep\.?|e"

SEASON_EPISODE_PATTERNS: list[tuple[str, re.Pattern]] = [
    (
        "season_episode",
        _token(rf"s(?P<season>\d{{1,3}}){_SEP}?e(?P<episode>\d{{1,4}})(?![0-9])", ""),
    ),
    ("cross", _token(r"(?P<season>\d{1,2})x(?P<episode>\d{2,3})", r"(?![0-9])")),
    (
        "season_word_episode",
        _token(
            rf"(?:{_SEASON_WORD})[ ._,-]*(?P<season>\d{{1,3}})[ ._,-]*"
            rf"(?:{_EPISODE_WORD})[ ._-]*(?P<episode>\d{{1,4}})",
            r"(?![0-9])",
        ),
    ),
    (
        "season_range",
        _token(
            r"s(?P<season>\d{1,2})[ ._]?-[ ._]?s?(?P<end_season>\d{1,2})"
        ),
    ),
    (
        "season_word_range",
        _token(
            rf"(?:{_SEASON_WORD})[ ._-]*(?P<season>\d{{1,2}})[ ._]*(?:-|to|a)[ ._]*"
            r"(?:(?:season|stagione)[ ._-]*)?(?P<end_season>\d{1,2})"
        ),
    ),
    ("season", _token(r"s(?P<season>\d{1,3})")),
    ("season_word", _token(rf"(?:{_SEASON_WORD})[ ._-]*(?P<season>\d{{1,3}})")),
]

# Continuations directly after an episode number: "-E03"/"-03" is a range,
# "E02E03" is a list.
_EPISODE_RANGE_TAIL = re.compile(
    r"^[ ._]?-[ ._]?e?(?P<end>\d{1,4})(?![A-Za-z0-9])", re.IGNORECASE
)
_EPISODE_LIST_TAIL = re.compile(r"^[ ._]?e(?P<episode>\d{1,4})(?![0-9])", re.IGNORECASE)

# Absolute numbering for serialized content without seasons (anime batches).
ABSOLUTE_EPISODE_PATTERNS: list[tuple[str, re.Pattern]] = [
    (
        "dash_number",
        re.compile(r"(?:^|[ ._])-[ ._]+(?P<episode>\d{1,4})(?:v\d)?(?![0-9A-Za-z])"),
    ),
    ("e_number", _token(r"e(?P<episode>\d{1,4})")),
    (
        "ep_number",
        _token(r"ep(?:isode|isodio)?[ ._]*(?P<episode>\d{1,4})", r"(?![0-9])"),
    ),
]

YEAR_PATTERN = _token(r"(?:19|20)\d{2}")

COMPLETE_PATTERN = _token(
    rf"complete|completa|completo|integrale|full{_SEP}?(?:season|series)"
)
EXTENDED_PATTERN = _token(rf"extended(?:{_SEP}?(?:cut|edition))?")
REPACK_PATTERN = _token(r"repack|rerip")
PROPER_PATTERN = _token(rf"(?:real{_SEP})?proper")

MULTI_SEASON_KEYWORDS = _token(
    rf"complete|completa|completo|integrale|collection|"
    rf"full{_SEP}?series|all{_SEP}?seasons|seasons|stagioni|"
    rf"tutte{_SEP}?le{_SEP}?stagioni"
)

# Range expansions beyond this size are treated as noise.
MAX_RANGE_SPAN = 100


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class ParsedTitle:
    """Parsed filename with extracted components."""

    raw_title: str
    title: str | None = None
    year: int | None = None

    seasons: list[int] = field(default_factory=list)
    episodes: list[int] = field(default_factory=list)

    # Technical specs
    resolution: Resolution = Resolution.UNKNOWN
    quality: Quality = Quality.UNKNOWN
    codec: Codec = Codec.UNKNOWN
    languages: set[Language] = field(default_factory=set)
    subtitles: set[Language] = field(default_factory=set)
    audio_tags: set[AudioTag] = field(default_factory=set)
    visual_tags: set[VisualTag] = field(default_factory=set)
    audio_channels: set[AudioChannel] = field(default_factory=set)

    # Release info
    release_group: str | None = None
    complete: bool = False
    extended: bool = False
    repack: bool = False
    proper: bool = False

    @property
    def season(self) -> int | None:
        return self.seasons[0] if self.seasons else None

    @property
    def episode(self) -> int | None:
        return self.episodes[0] if self.episodes else None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "title": self.title,
            "raw_title": self.raw_title,
            "year": self.year,
            "seasons": self.seasons,
            "episodes": self.episodes,
            "resolution": self.resolution.value,
            "quality": self.quality.value,
            "codec": self.codec.value,
            "languages": sorted(self.languages),
            "subtitles": sorted(self.subtitles),
            "audio_tags": sorted(self.audio_tags),
            "visual_tags": sorted(self.visual_tags),
            "audio_channels": sorted(self.audio_channels),
            "release_group": self.release_group,
            "complete": self.complete,
            "extended": self.extended,
            "repack": self.repack,
            "proper": self.proper,
        }


@dataclass
class _SeasonEpisodeMatch:
    seasons: list[int]
    episodes: list[int]
    start: int


# =============================================================================
# Core Functions
# =============================================================================


def parse_filename(name: str) -> ParsedTitle:
    """Parse a filename or release title into structured components.

    The result depends only on ``name``; parsing never touches external state.

    Args:
        name: Filename, path or release title

    Returns:
        ParsedTitle with extracted components
    """
    raw_title = name or ""
    text = _strip_extension(re.split(r"[\\/]", raw_title)[-1]).strip()
    parsed = ParsedTitle(raw_title=raw_title)
    if not text:
        return parsed

    leading_group = None
    leading_match = _LEADING_GROUP_PATTERN.match(text)
    if leading_match:
        leading_group = leading_match.group(1).strip()
        text = text[leading_match.end():]

    parsed.resolution = _first_label(RESOLUTION_PATTERNS, text, Resolution.UNKNOWN)
    parsed.quality = _first_label(QUALITY_PATTERNS, text, Quality.UNKNOWN)
    parsed.codec = _first_label(CODEC_PATTERNS, text, Codec.UNKNOWN)
    parsed.audio_tags = _all_labels(AUDIO_TAG_PATTERNS, text)
    parsed.visual_tags = _all_labels(VISUAL_TAG_PATTERNS, text)
    parsed.audio_channels = _all_labels(AUDIO_CHANNEL_PATTERNS, text)
    parsed.languages, parsed.subtitles = _extract_languages(text)

    season_match = _extract_seasons_and_episodes(text)
    if season_match:
        parsed.seasons = season_match.seasons
        parsed.episodes = season_match.episodes

    years = [int(match.group(0)) for match in YEAR_PATTERN.finditer(text)]
    if years:
        parsed.year = years[-1]

    parsed.release_group = extract_release_group(text)
    if parsed.release_group is None and leading_group and not _is_technical_token(
        leading_group
    ):
        parsed.release_group = leading_group

    parsed.complete = bool(COMPLETE_PATTERN.search(text))
    parsed.extended = bool(EXTENDED_PATTERN.search(text))
    parsed.repack = bool(REPACK_PATTERN.search(text))
    parsed.proper = bool(PROPER_PATTERN.search(text))

    parsed.title = _extract_title(
        text, season_match.start if season_match else None, parsed.release_group
    )
    return parsed


def extract_release_group(title: str) -> str | None:
    """Extract release group from title.

    Args:
        title: Title string (may end with "-GROUP", optionally followed by
            bracketed site tags)

    Returns:
        Release group name or None
    """
    if not title:
        return None

    text = _TRAILING_BRACKETS_PATTERN.sub("", _strip_extension(title)).strip()
    match = _TRAILING_GROUP_PATTERN.search(text)
    if not match:
        return None

    group = match.group(1)
    if group.isdigit() or _is_technical_token(group):
        return None
    # "WEB-DL", "HD-TS" and friends end in a dash-joined quality marker.
    if any(
        pattern_match.end() == len(text)
        for _, pattern in QUALITY_PATTERNS
        for pattern_match in pattern.finditer(text)
    ):
        return None
    return group


def extract_season_from_pack_title(title: str | None) -> int | None:
    """Return the season a pack title announces, when it announces exactly one."""
    if not title:
        return None
    parsed = parse_filename(title)
    if len(parsed.seasons) == 1:
        return parsed.seasons[0]
    return None


def parse_season_from_path(path: str | None) -> int | None:
    """Return the season announced by the closest folder of ``path``.

    Handles layouts such as ``Show/Season 2/01.mkv`` or
    ``Show.S02.1080p/Show.E01.mkv``.
    """
    if not path:
        return None
    folders = re.split(r"[\\/]", path)[:-1]
    for folder in reversed(folders):
        match = _extract_seasons_and_episodes(folder)
        if match and len(match.seasons) == 1:
            return match.seasons[0]
    return None


def is_season_pack(title: str | None) -> bool:
    """True for a season pack: seasons announced without any episode."""
    if not title:
        return False
    parsed = parse_filename(title)
    return bool(parsed.seasons) and not parsed.episodes


def is_multi_season_pack(title: str | None) -> bool:
    """Heuristic keyword scan for packs that may hold more than one season."""
    if not title:
        return False
    if MULTI_SEASON_KEYWORDS.search(title):
        return True
    return len(parse_filename(title).seasons) > 1


# =============================================================================
# Helper Functions
# =============================================================================


def _strip_extension(name: str) -> str:
    if _MARKER_SUFFIX_PATTERN.search(name):
        return name
    return _EXTENSION_PATTERN.sub("", name)


def _first_label(table, text: str, default):
    for label, pattern in table:
        if pattern.search(text):
            return label
    return default


def _all_labels(table, text: str) -> set:
    return {label for label, pattern in table if pattern.search(text)}


def _is_subtitle_marked(text: str, start: int, end: int) -> bool:
    if _PRECEDED_BY_SUBTITLE.search(text[:start]):
        return True
    marker = _FOLLOWED_BY_SUBTITLE.match(text[end:])
    if not marker:
        return False
    # "ENG.sub.ita": the marker introduces the next language, not this one.
    return not _STARTS_WITH_LANGUAGE.match(text[end + marker.end():])


def _extract_languages(text: str) -> tuple[set[Language], set[Language]]:
    languages: set[Language] = set()
    subtitles: set[Language] = set()
    for language, pattern in _LANGUAGE_TOKENS:
        for match in pattern.finditer(text):
            if _is_subtitle_marked(text, match.start(), match.end()):
                subtitles.add(language)
            else:
                languages.add(language)
    for language, pattern in _SUBTITLE_COMPOUND_TOKENS:
        if pattern.search(text):
            subtitles.add(language)
    return languages, subtitles


def _expand_range(start: int, end: int) -> list[int]:
    if end < start or end - start > MAX_RANGE_SPAN:
        return [start]
    return list(range(start, end + 1))


def _extract_episode_tail(text: str, position: int, first_episode: int) -> list[int]:
    tail = text[position:]
    range_match = _EPISODE_RANGE_TAIL.match(tail)
    if range_match:
        return _expand_range(first_episode, int(range_match.group("end")))

    episodes = [first_episode]
    list_match = _EPISODE_LIST_TAIL.match(tail)
    while list_match:
        episode = int(list_match.group("episode"))
        if episode not in episodes:
            episodes.append(episode)
        position += list_match.end()
        list_match = _EPISODE_LIST_TAIL.match(text[position:])
    return episodes


def _extract_seasons_and_episodes(text: str) -> _SeasonEpisodeMatch | None:
    for _, pattern in SEASON_EPISODE_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        groups = match.groupdict()
        season = int(groups["season"])
        if groups.get("end_season"):
            seasons = _expand_range(season, int(groups["end_season"]))
        else:
            seasons = [season]

        episodes = []
        if groups.get("episode"):
            episodes = _extract_episode_tail(text, match.end(), int(groups["episode"]))
        else:
            absolute = _extract_absolute_episode(text[match.end():])
            if absolute:
                episodes = [absolute[0]]
        return _SeasonEpisodeMatch(seasons=seasons, episodes=episodes, start=match.start())

    absolute = _extract_absolute_episode(text)
    if absolute:
        return _SeasonEpisodeMatch(seasons=[], episodes=[absolute[0]], start=absolute[1])
    return None


def _extract_absolute_episode(text: str) -> tuple[int, int] | None:
    for label, pattern in ABSOLUTE_EPISODE_PATTERNS:
        matches = [
            match
            for match in pattern.finditer(text)
            if not YEAR_PATTERN.fullmatch(match.group("episode"))
        ]
        if not matches:
            continue
        # The dash form is trailing numbering, so the last one counts.
        match = matches[-1] if label == "dash_number" else matches[0]
        return int(match.group("episode")), match.start()
    return None


def _is_technical_token(token: str) -> bool:
    if _SEASON_EPISODE_TOKEN.fullmatch(token):
        return True
    tables = (
        RESOLUTION_PATTERNS,
        QUALITY_PATTERNS,
        CODEC_PATTERNS,
        AUDIO_TAG_PATTERNS,
        VISUAL_TAG_PATTERNS,
    )
    return any(pattern.fullmatch(token) for table in tables for _, pattern in table)


def _terminator_offsets(text: str, season_start: int | None) -> list[int]:
    offsets = [match.start() for match in YEAR_PATTERN.finditer(text)]
    for table in (RESOLUTION_PATTERNS, QUALITY_PATTERNS):
        for _, pattern in table:
            offsets.extend(match.start() for match in pattern.finditer(text))
    if season_start is not None:
        offsets.append(season_start)
    return offsets


def _normalize_title(text: str) -> str:
    title = re.sub(r"[._]+", " ", text)
    title = re.sub(r"\s+", " ", title)
    return title.strip(" -([{")


def _extract_title(text: str, season_start: int | None, release_group: str | None) -> str | None:
    # A terminator at offset 0 is part of the title ("1917", "2012").
    offsets = [offset for offset in _terminator_offsets(text, season_start) if offset > 0]
    if offsets:
        title = _normalize_title(text[: min(offsets)])
    else:
        base = _TRAILING_BRACKETS_PATTERN.sub("", text)
        if release_group and base.endswith(f"-{release_group}"):
            base = base[: -len(release_group) - 1]
        title = _normalize_title(base)
    return title or None
