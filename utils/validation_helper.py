import os

from db.config import settings

# Containers a debrid service or player can stream directly.
VIDEO_EXTENSIONS = frozenset(
    {
        ".mkv",
        ".mp4",
        ".avi",
        ".mov",
        ".wmv",
        ".flv",
        ".webm",
        ".m4v",
        ".ts",
        ".m2ts",
        ".mts",
        ".mpg",
        ".mpeg",
    }
)


def is_video_file(filename: str) -> bool:
    """True when the path ends with a known video container extension."""
    return os.path.splitext(filename)[1].lower() in VIDEO_EXTENSIONS


def is_pack_video_file(
    filename: str, size: int, min_size: int = settings.min_pack_video_size
) -> bool:
    """Video files below ``min_size`` are samples, extras or previews."""
    return is_video_file(filename) and size >= min_size
