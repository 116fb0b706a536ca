from enum import StrEnum


# Enums
class MediaType(StrEnum):
    MOVIE = "movie"
    SERIES = "series"


class Resolution(StrEnum):
    UHD_4K = "2160p"
    QHD = "1440p"
    FHD = "1080p"
    HD = "720p"
    SD_576 = "576p"
    SD_480 = "480p"
    SD_360 = "360p"
    SD_240 = "240p"
    UNKNOWN = "Unknown"


class Quality(StrEnum):
    BLURAY_REMUX = "BluRay REMUX"
    REMUX = "REMUX"
    BDRIP = "BDRip"
    BRRIP = "BRRip"
    UHDRIP = "UHDRip"
    BLURAY = "BluRay"
    WEB_DLRIP = "WEB-DLRip"
    WEBRIP = "WEBRip"
    WEBMUX = "WEBMux"
    WEB_DL = "WEB-DL"
    HDRIP = "HDRip"
    SCR = "SCR"
    DVDRIP = "DVDRip"
    DVD = "DVD"
    HDTV = "HDTV"
    SATRIP = "SATRip"
    TVRIP = "TVRip"
    PPVRIP = "PPVRip"
    PDTV = "PDTV"
    TELESYNC = "TeleSync"
    TELECINE = "TeleCine"
    CAM = "CAM"
    UNKNOWN = "Unknown"


class Codec(StrEnum):
    HEVC = "HEVC"
    AVC = "AVC"
    AV1 = "AV1"
    VP9 = "VP9"
    XVID = "XviD"
    DIVX = "DivX"
    MPEG2 = "MPEG-2"
    UNKNOWN = "Unknown"


class Language(StrEnum):
    ENGLISH = "English"
    ITALIAN = "Italian"
    FRENCH = "French"
    GERMAN = "German"
    SPANISH = "Spanish"
    LATINO = "Latino"
    PORTUGUESE = "Portuguese"
    RUSSIAN = "Russian"
    JAPANESE = "Japanese"
    KOREAN = "Korean"
    CHINESE = "Chinese"
    HINDI = "Hindi"
    TAMIL = "Tamil"
    TELUGU = "Telugu"
    ARABIC = "Arabic"
    DUTCH = "Dutch"
    POLISH = "Polish"
    TURKISH = "Turkish"
    MULTI = "Multi"
    DUAL = "Dual Audio"


class AudioTag(StrEnum):
    ATMOS = "Atmos"
    TRUEHD = "TrueHD"
    DTS_HD_MA = "DTS-HD MA"
    DTS_HD = "DTS-HD"
    DTS_X = "DTS:X"
    DTS = "DTS"
    DDP = "DD+"
    DD = "DD"
    AAC = "AAC"
    FLAC = "FLAC"
    OPUS = "OPUS"
    MP3 = "MP3"
    LPCM = "LPCM"


class VisualTag(StrEnum):
    HDR10_PLUS = "HDR10+"
    HDR10 = "HDR10"
    HDR = "HDR"
    DOLBY_VISION = "DV"
    HLG = "HLG"
    SDR = "SDR"
    TEN_BIT = "10bit"
    IMAX = "IMAX"
    AI_UPSCALE = "Upscaled"
    THREE_D = "3D"


class AudioChannel(StrEnum):
    CH_2_0 = "2.0"
    CH_5_1 = "5.1"
    CH_6_1 = "6.1"
    CH_7_1 = "7.1"
    STEREO = "Stereo"
    MONO = "Mono"


class ResolutionState(StrEnum):
    CACHE_LOOKUP = "cache_lookup"
    HIT_COMPLETE = "hit_complete"
    HIT_PARTIAL = "hit_partial"
    MISS = "miss"
    EXTERNAL_FETCH = "external_fetch"
    PARSE_AND_MATCH = "parse_and_match"
    PERSIST = "persist"
    RESOLVED = "resolved"
    NOT_FOUND = "not_found"
    FAILED = "failed"


class PackSource(StrEnum):
    CACHE = "cache"
    REALDEBRID = "realdebrid"
    TORBOX = "torbox"
    PUBLIC_MIRROR = "public_mirror"
    TORRENT_FILE = "torrent_file"
