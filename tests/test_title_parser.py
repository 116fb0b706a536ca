"""
Unit tests for utils/title_parser.py

Tests cover:
- parse_filename(): Full integration parsing
- Season/episode tables: SxxExx, 1x02, word forms, ranges, absolute numbering
- Language detection with subtitle markers
- extract_release_group(): Trailing group heuristic
- Pack title helpers: extract_season_from_pack_title(), parse_season_from_path(),
  is_season_pack(), is_multi_season_pack()
"""

import pytest

from db.enums import (
    AudioChannel,
    AudioTag,
    Codec,
    Language,
    Quality,
    Resolution,
    VisualTag,
)
from utils.title_parser import (
    QUALITY_PATTERNS,
    RESOLUTION_PATTERNS,
    SEASON_EPISODE_PATTERNS,
    extract_release_group,
    extract_season_from_pack_title,
    is_multi_season_pack,
    is_season_pack,
    parse_filename,
    parse_season_from_path,
)


# =============================================================================
# parse_filename() Integration Tests
# =============================================================================

class TestParseFilename:
    """Tests for parse_filename() on complete release names."""

    def test_breaking_bad_episode(self):
        result = parse_filename("Breaking.Bad.S05E14.1080p.WEB-DL.x264-RARBG.mkv")
        assert result.title == "Breaking Bad"
        assert result.seasons == [5]
        assert result.episodes == [14]
        assert result.resolution == Resolution.FHD
        assert result.quality == Quality.WEB_DL
        assert result.codec == Codec.AVC
        assert result.release_group == "RARBG"

    def test_movie_with_technical_tags(self):
        result = parse_filename(
            "Dune.Part.Two.2024.2160p.UHD.BluRay.REMUX.HDR10.DV.TrueHD.Atmos.7.1.HEVC-FraMeSToR.mkv"
        )
        assert result.title == "Dune Part Two"
        assert result.year == 2024
        assert result.resolution == Resolution.UHD_4K
        assert result.quality == Quality.BLURAY_REMUX
        assert result.codec == Codec.HEVC
        assert {VisualTag.HDR10, VisualTag.DOLBY_VISION} <= result.visual_tags
        assert {AudioTag.TRUEHD, AudioTag.ATMOS} <= result.audio_tags
        assert AudioChannel.CH_7_1 in result.audio_channels
        assert result.release_group == "FraMeSToR"
        assert result.seasons == []

    def test_unknown_categories(self):
        result = parse_filename("home_video.mkv")
        assert result.resolution == Resolution.UNKNOWN
        assert result.quality == Quality.UNKNOWN
        assert result.codec == Codec.UNKNOWN
        assert result.languages == set()
        assert result.title == "home video"

    def test_empty_name(self):
        result = parse_filename("")
        assert result.title is None
        assert result.seasons == []
        assert result.episodes == []

    def test_path_is_reduced_to_basename(self):
        result = parse_filename("Show/Season 2/Show.S02E03.720p.HDTV.mkv")
        assert result.seasons == [2]
        assert result.episodes == [3]
        assert result.resolution == Resolution.HD
        assert result.quality == Quality.HDTV

    def test_is_pure(self):
        name = "The.Office.US.S02E01.720p.BluRay.x264-DEMAND.mkv"
        assert parse_filename(name) == parse_filename(name)
        assert parse_filename(name).to_dict() == parse_filename(name).to_dict()

    def test_leading_bracket_group(self):
        result = parse_filename("[SubsPlease] Frieren - 12 (1080p) [ABCD1234].mkv")
        assert result.release_group == "SubsPlease"
        assert result.episodes == [12]
        assert result.seasons == []
        assert result.title == "Frieren"

    def test_year_only_title_is_kept(self):
        result = parse_filename("1917.2019.1080p.BluRay.x264.mkv")
        assert result.title == "1917"
        assert result.year == 2019

    @pytest.mark.parametrize("name,flag", [
        ("Movie.2010.EXTENDED.1080p.BluRay.mkv", "extended"),
        ("Movie.2010.REPACK.1080p.BluRay.mkv", "repack"),
        ("Movie.2010.PROPER.1080p.BluRay.mkv", "proper"),
        ("Show.Complete.Series.1080p.WEB-DL", "complete"),
    ])
    def test_flags(self, name, flag):
        assert getattr(parse_filename(name), flag) is True


# =============================================================================
# Season / Episode Tests
# =============================================================================

class TestSeasonEpisode:
    """Tests for season and episode extraction."""

    @pytest.mark.parametrize("name,seasons,episodes", [
        ("Show.S01E05.mkv", [1], [5]),
        ("Show.s1e5.mkv", [1], [5]),
        ("Show.S01.E05.mkv", [1], [5]),
        ("Show.S01E01-E03.mkv", [1], [1, 2, 3]),
        ("Show.S01E01-03.mkv", [1], [1, 2, 3]),
        ("Show.S01E01E02.mkv", [1], [1, 2]),
        ("Show.1x02.HDTV.mkv", [1], [2]),
        ("Show.Season.2.Episode.4.mkv", [2], [4]),
        ("Show Stagione 3 Episodio 7.mkv", [3], [7]),
        ("Show.S01-S03.1080p", [1, 2, 3], []),
        ("Show.Season.1-3.1080p", [1, 2, 3], []),
        ("Show.S02.1080p.WEB-DL", [2], []),
        ("Show.Season.4.720p", [4], []),
        ("Show.E07.1080p.mkv", [], [7]),
        ("Show.Ep.12.720p.mkv", [], [12]),
        ("Show - 104.mkv", [], [104]),
    ])
    def test_patterns(self, name, seasons, episodes):
        result = parse_filename(name)
        assert result.seasons == seasons
        assert result.episodes == episodes

    def test_absolute_number_ignores_years(self):
        result = parse_filename("Show - 2019.mkv")
        assert result.episodes == []
        assert result.year == 2019

    def test_oversized_range_is_not_expanded(self):
        result = parse_filename("Show.S01E01-E500.mkv")
        assert result.episodes == [1]

    def test_season_episode_table_order(self):
        labels = [label for label, _ in SEASON_EPISODE_PATTERNS]
        assert labels.index("season_episode") < labels.index("season")
        assert labels.index("season_range") < labels.index("season")
        assert labels.index("season_word_range") < labels.index("season_word")

    def test_convenience_properties(self):
        result = parse_filename("Show.S03E04E05.mkv")
        assert result.season == 3
        assert result.episode == 4
        assert parse_filename("Movie.2010.mkv").season is None


# =============================================================================
# Language Tests
# =============================================================================

class TestLanguages:
    """Tests for audio language and subtitle detection."""

    def test_audio_with_compound_subtitle_token(self):
        result = parse_filename("Movie.2015.ITA.SUBITA.mkv")
        assert result.languages == {Language.ITALIAN}
        assert result.subtitles == {Language.ITALIAN}

    def test_subtitle_marker_before_language(self):
        result = parse_filename("Movie.2015.ENG.sub.ita.mkv")
        assert Language.ITALIAN not in result.languages
        assert Language.ENGLISH in result.languages
        assert Language.ITALIAN in result.subtitles

    def test_language_followed_by_subtitle_marker(self):
        result = parse_filename("Movie.2015.1080p.ITA.subs.mkv")
        assert Language.ITALIAN not in result.languages
        assert Language.ITALIAN in result.subtitles

    @pytest.mark.parametrize("name", [
        "Movie.2015.ENG.ITA.sub",
        "Serie.S01.1080p.ENG.ITA.Sub",
    ])
    def test_trailing_subtitle_marker_is_not_an_extension(self, name):
        result = parse_filename(name)
        assert result.languages == {Language.ENGLISH}
        assert result.subtitles == {Language.ITALIAN}

    def test_subtitle_file_extension_is_stripped(self):
        result = parse_filename("Movie.2015.1080p.ITA.srt")
        assert result.languages == {Language.ITALIAN}
        assert result.subtitles == set()

    def test_multiple_audio_languages(self):
        result = parse_filename("Movie.2015.1080p.ITA.ENG.AC3.mkv")
        assert result.languages == {Language.ITALIAN, Language.ENGLISH}
        assert AudioTag.DD in result.audio_tags

    def test_no_language_inside_words(self):
        result = parse_filename("Italian.Job.2003.1080p.mkv")
        assert Language.ITALIAN in result.languages
        result = parse_filename("Vitamina.2003.1080p.mkv")
        assert result.languages == set()

    @pytest.mark.parametrize("name,expected", [
        ("Movie.2020.MULTI.1080p.mkv", Language.MULTI),
        ("Movie.2020.DUAL.AUDIO.1080p.mkv", Language.DUAL),
        ("Movie.2020.TRUEFRENCH.1080p.mkv", Language.FRENCH),
        ("Movie.2020.PT-BR.1080p.mkv", Language.PORTUGUESE),
    ])
    def test_language_tokens(self, name, expected):
        assert expected in parse_filename(name).languages


# =============================================================================
# Technical Tag Tests
# =============================================================================

class TestTechnicalTags:
    """Tests for the ordered single-valued and multi-valued tables."""

    @pytest.mark.parametrize("name,expected", [
        ("Movie.2020.BDRip.mkv", Quality.BDRIP),
        ("Movie.2020.BRRip.mkv", Quality.BRRIP),
        ("Movie.2020.BluRay.mkv", Quality.BLURAY),
        ("Movie.2020.REMUX.mkv", Quality.REMUX),
        ("Movie.2020.WEBRip.mkv", Quality.WEBRIP),
        ("Movie.2020.WEB.mkv", Quality.WEB_DL),
        ("Movie.2020.HDRip.mkv", Quality.HDRIP),
        ("Movie.2020.DVDRip.mkv", Quality.DVDRIP),
        ("Movie.2020.HDTS.mkv", Quality.TELESYNC),
        ("Movie.2020.CAM.mkv", Quality.CAM),
    ])
    def test_quality(self, name, expected):
        assert parse_filename(name).quality == expected

    @pytest.mark.parametrize("name", ["Movie.2023.HD.TS", "Movie.2023.HD-TS"])
    def test_trailing_telesync_marker_is_not_an_extension(self, name):
        assert parse_filename(name).quality == Quality.TELESYNC

    def test_transport_stream_extension_is_stripped(self):
        result = parse_filename("Show.S01E02.1080p.ts")
        assert result.quality == Quality.UNKNOWN
        assert result.episodes == [2]

    @pytest.mark.parametrize("name,expected", [
        ("Movie.2020.4K.mkv", Resolution.UHD_4K),
        ("Movie.2020.1080i.mkv", Resolution.FHD),
        ("Movie.2020.1280x720.mkv", Resolution.HD),
        ("Movie.2020.480p.mkv", Resolution.SD_480),
    ])
    def test_resolution(self, name, expected):
        assert parse_filename(name).resolution == expected

    @pytest.mark.parametrize("name,expected", [
        ("Movie.2020.x265.mkv", Codec.HEVC),
        ("Movie.2020.H.264.mkv", Codec.AVC),
        ("Movie.2020.AV1.mkv", Codec.AV1),
        ("Movie.2020.XviD.avi", Codec.XVID),
    ])
    def test_codec(self, name, expected):
        assert parse_filename(name).codec == expected

    def test_hdr10_does_not_report_plain_hdr(self):
        tags = parse_filename("Movie.2020.2160p.HDR10.mkv").visual_tags
        assert VisualTag.HDR10 in tags
        assert VisualTag.HDR not in tags

    def test_audio_codec_glued_to_channels(self):
        result = parse_filename("Movie.2020.1080p.WEB-DL.DDP5.1.H.264-GRP.mkv")
        assert AudioTag.DDP in result.audio_tags
        assert AudioTag.DD not in result.audio_tags
        assert AudioChannel.CH_5_1 in result.audio_channels

    def test_first_matching_entry_wins(self):
        name = "Movie.2020.1080p.720p.mkv"
        assert parse_filename(name).resolution == RESOLUTION_PATTERNS[2][0]
        assert QUALITY_PATTERNS[0][0] == Quality.BLURAY_REMUX


# =============================================================================
# extract_release_group() Tests
# =============================================================================

class TestExtractReleaseGroup:
    """Tests for extract_release_group() function."""

    @pytest.mark.parametrize("title,expected", [
        ("Movie.2020.1080p.BluRay.x264-SPARKS", "SPARKS"),
        ("Movie.2020.1080p.BluRay.x264-SPARKS.mkv", "SPARKS"),
        ("Movie.2020.1080p.BluRay.x264-SPARKS [rarbg]", "SPARKS"),
        ("Movie.2020.1080p.WEB-DL", None),
        ("Movie.2020.1080p.BluRay-x264", None),
        ("Show.S01E01-E02", None),
        ("Movie.2020-1080p", None),
        ("Movie 2020", None),
        ("", None),
    ])
    def test_extraction(self, title, expected):
        assert extract_release_group(title) == expected


# =============================================================================
# Pack Title Helper Tests
# =============================================================================

class TestPackTitleHelpers:
    """Tests for the helpers used on pack names and folder paths."""

    @pytest.mark.parametrize("title,expected", [
        ("Show.S04.1080p.WEB-DL-GRP", 4),
        ("Show Season 2 Complete 720p", 2),
        ("Show.S01-S03.1080p", None),
        ("Show.1080p.WEB-DL", None),
        (None, None),
    ])
    def test_extract_season_from_pack_title(self, title, expected):
        assert extract_season_from_pack_title(title) == expected

    @pytest.mark.parametrize("path,expected", [
        ("Show/Season 4/Episode.01.mkv", 4),
        ("Show/S04/01.mkv", 4),
        ("Show/Stagione 4/01.mkv", 4),
        ("Show.S02.1080p/Show.E01.mkv", 2),
        ("Show/Extras/01.mkv", None),
        ("Show.E01.mkv", None),
    ])
    def test_parse_season_from_path(self, path, expected):
        assert parse_season_from_path(path) == expected

    def test_innermost_folder_wins(self):
        assert parse_season_from_path("Show.S01-S05/Season 3/03.mkv") == 3

    @pytest.mark.parametrize("title,expected", [
        ("Show.S02.1080p", True),
        ("Show.S02E01.1080p", False),
        ("Movie.2020.1080p", False),
    ])
    def test_is_season_pack(self, title, expected):
        assert is_season_pack(title) is expected

    @pytest.mark.parametrize("title,expected", [
        ("Show.Complete.Series.1080p", True),
        ("Show.Stagioni.1-5.Completa.720p", True),
        ("Show.S01-S04.1080p", True),
        ("Show Collection 1080p", True),
        ("Show.S01.1080p", False),
        ("Show.S01E05.1080p", False),
        (None, False),
    ])
    def test_is_multi_season_pack(self, title, expected):
        assert is_multi_season_pack(title) is expected
