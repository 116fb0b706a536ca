"""
Bencode decoding and torrent metadata extraction.

The info hash is computed over the exact byte span of the ``info`` dictionary
in the original buffer, never over a re-encoded copy, so torrents with
non-canonical encodings still hash to the id trackers and debrid services use.
"""

import base64
import binascii
import hashlib
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

from torf import Magnet, MagnetError

from streaming_providers.exceptions import TorrentParseError

logger = logging.getLogger(__name__)

# Values under these keys are hashes or other binary payloads.
BINARY_KEYS = frozenset(
    {"pieces", "piece layers", "pieces root", "sha1", "md5sum", "ed2k", "filehash"}
)
MAX_NESTING_DEPTH = 256

INFO_HASH_PATTERN = re.compile(r"^[0-9a-fA-F]{40}$")
BASE32_INFO_HASH_PATTERN = re.compile(r"^[A-Za-z2-7]{32}$")
_INTEGER_PATTERN = re.compile(rb"-?(?:0|[1-9][0-9]*)")
_LENGTH_PATTERN = re.compile(rb"[0-9]+")


@dataclass
class TorrentFile:
    index: int
    path: str
    size: int

    @property
    def filename(self) -> str:
        return self.path.rsplit("/", 1)[-1]


@dataclass
class TorrentMetadata:
    info_hash: str
    name: str
    files: list[TorrentFile] = field(default_factory=list)
    announce_list: list[str] = field(default_factory=list)
    created_at: datetime | None = None

    @property
    def total_size(self) -> int:
        return sum(file.size for file in self.files)


def decode_bencode(data: bytes, start: int = 0) -> tuple[Any, int]:
    """
    Decode one bencoded value starting at ``start``.

    Returns the decoded value and the offset just past it. Byte strings are
    returned as ``str`` when they are valid UTF-8 and as ``bytes`` otherwise.
    """
    if not isinstance(data, (bytes, bytearray)):
        raise TorrentParseError("Bencode input must be bytes")
    try:
        return _decode_value(bytes(data), start, 0, None)
    except RecursionError as error:
        raise TorrentParseError("Bencode structure is nested too deeply") from error


def _decode_value(data: bytes, pos: int, depth: int, key: Any) -> tuple[Any, int]:
    if pos >= len(data):
        raise TorrentParseError(f"Unexpected end of data at offset {pos}")
    if depth > MAX_NESTING_DEPTH:
        raise TorrentParseError("Bencode structure is nested too deeply")

    token = data[pos]
    if token == ord("i"):
        return _decode_integer(data, pos)

    if token == ord("l"):
        pos += 1
        items = []
        while True:
            if pos >= len(data):
                raise TorrentParseError("Unterminated list")
            if data[pos] == ord("e"):
                return items, pos + 1
            value, pos = _decode_value(data, pos, depth + 1, None)
            items.append(value)

    if token == ord("d"):
        pos += 1
        result = {}
        while True:
            if pos >= len(data):
                raise TorrentParseError("Unterminated dictionary")
            if data[pos] == ord("e"):
                return result, pos + 1
            raw_key, pos = _decode_byte_string(data, pos)
            dict_key = _to_text(raw_key)
            value, pos = _decode_value(data, pos, depth + 1, dict_key)
            result[dict_key] = value

    if ord("0") <= token <= ord("9"):
        raw, end = _decode_byte_string(data, pos)
        if key in BINARY_KEYS:
            return raw, end
        return _to_text(raw), end

    raise TorrentParseError(f"Invalid bencode token {chr(token)!r} at offset {pos}")


def _decode_integer(data: bytes, pos: int) -> tuple[int, int]:
    end = data.find(b"e", pos + 1)
    if end == -1:
        raise TorrentParseError(f"Unterminated integer at offset {pos}")
    digits = data[pos + 1 : end]
    if not _INTEGER_PATTERN.fullmatch(digits) or digits == b"-0":
        raise TorrentParseError(f"Invalid integer {digits!r} at offset {pos}")
    return int(digits), end + 1


def _decode_byte_string(data: bytes, pos: int) -> tuple[bytes, int]:
    colon = data.find(b":", pos)
    if colon == -1:
        raise TorrentParseError(f"Missing length separator at offset {pos}")
    length_digits = data[pos:colon]
    if not _LENGTH_PATTERN.fullmatch(length_digits):
        raise TorrentParseError(f"Invalid string length at offset {pos}")
    start = colon + 1
    end = start + int(length_digits)
    if end > len(data):
        raise TorrentParseError(
            f"String length {int(length_digits)} at offset {pos} exceeds buffer"
        )
    return data[start:end], end


def _to_text(raw: bytes) -> str | bytes:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw


def find_info_span(data: bytes) -> tuple[int, int]:
    """Return the ``(start, end)`` byte span of the top-level ``info`` value."""
    if not data or data[0] != ord("d"):
        raise TorrentParseError("Torrent root must be a dictionary")

    pos = 1
    while True:
        if pos >= len(data):
            raise TorrentParseError("Unterminated dictionary")
        if data[pos] == ord("e"):
            break
        raw_key, pos = _decode_byte_string(data, pos)
        value_start = pos
        try:
            _, pos = _decode_value(data, pos, 1, _to_text(raw_key))
        except RecursionError as error:
            raise TorrentParseError("Bencode structure is nested too deeply") from error
        if raw_key == b"info":
            if data[value_start] != ord("d"):
                raise TorrentParseError("Info value must be a dictionary")
            return value_start, pos

    raise TorrentParseError("Missing info dictionary")


def compute_info_hash(data: bytes) -> str:
    start, end = find_info_span(data)
    return hashlib.sha1(data[start:end]).hexdigest()


def _segment_text(segment: str | bytes) -> str:
    if isinstance(segment, bytes):
        return segment.decode("utf-8", errors="replace")
    return str(segment)


def _read_length(entry: dict) -> int:
    length = entry.get("length")
    if not isinstance(length, int) or length < 0:
        raise TorrentParseError(f"Invalid file length: {length!r}")
    return length


def parse_torrent_file(content: bytes | str) -> TorrentMetadata:
    """
    Decode a ``.torrent`` payload (raw bytes or base64 text) and list its files.

    Multi-file torrents are listed as ``name/segment/...``. Indices start at 1
    to line up with the numbering debrid services use.
    """
    if isinstance(content, str):
        try:
            content = base64.b64decode(content.strip(), validate=True)
        except (binascii.Error, ValueError) as error:
            raise TorrentParseError(f"Invalid base64 torrent payload: {error}") from error

    torrent_data, _ = decode_bencode(content)
    if not isinstance(torrent_data, dict):
        raise TorrentParseError("Torrent root must be a dictionary")

    info = torrent_data.get("info")
    if not isinstance(info, dict):
        raise TorrentParseError("Missing info dictionary")

    name = info.get("name.utf-8") or info.get("name")
    if not name:
        raise TorrentParseError("Torrent name is empty")
    name = _segment_text(name)

    metadata = TorrentMetadata(info_hash=compute_info_hash(content), name=name)

    if "files" in info:
        if not isinstance(info["files"], list):
            raise TorrentParseError("Torrent files entry must be a list")
        for index, file in enumerate(info["files"], start=1):
            if not isinstance(file, dict):
                raise TorrentParseError(f"Invalid file entry at index {index}")
            segments = file.get("path.utf-8") or file.get("path")
            if not isinstance(segments, list) or not segments:
                raise TorrentParseError(f"Missing path for file at index {index}")
            path = "/".join([name, *(_segment_text(segment) for segment in segments)])
            metadata.files.append(
                TorrentFile(index=index, path=path, size=_read_length(file))
            )
    elif "length" in info:
        metadata.files.append(TorrentFile(index=1, path=name, size=_read_length(info)))
    else:
        raise TorrentParseError("Torrent has neither files nor length")

    announce = torrent_data.get("announce")
    if isinstance(announce, str):
        metadata.announce_list.append(announce)
    for tier in torrent_data.get("announce-list", []):
        if isinstance(tier, list):
            metadata.announce_list.extend(
                tracker
                for tracker in tier
                if isinstance(tracker, str) and tracker not in metadata.announce_list
            )

    created_at = torrent_data.get("creation date")
    if isinstance(created_at, int) and created_at > 0:
        try:
            metadata.created_at = datetime.fromtimestamp(created_at, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            logger.warning(f"Ignoring invalid creation date {created_at}")

    return metadata


def normalize_info_hash(info_hash: str) -> str:
    """Lower-case a hex info hash, converting the 32 character base32 form."""
    info_hash = info_hash.strip()
    if INFO_HASH_PATTERN.match(info_hash):
        return info_hash.lower()
    if BASE32_INFO_HASH_PATTERN.match(info_hash):
        return base64.b32decode(info_hash.upper()).hex()
    raise ValueError(f"Invalid info hash: {info_hash!r}")


def convert_info_hash_to_magnet(info_hash: str, trackers: list[str] | None = None) -> str:
    magnet_link = f"magnet:?xt=urn:btih:{info_hash}"
    for tracker in dict.fromkeys(trackers or []):
        encoded_tracker = quote(tracker, safe="")
        magnet_link += f"&tr={encoded_tracker}"
    return magnet_link


def parse_magnet(magnet_link: str) -> tuple[str, list[str]]:
    """
    Parse magnet link and return info hash and trackers
    """
    try:
        magnet = Magnet.from_string(magnet_link)
    except MagnetError:
        return "", []
    return normalize_info_hash(magnet.infohash), list(magnet.tr)


def get_info_hash_from_magnet(magnet_link: str) -> str:
    info_hash, _ = parse_magnet(magnet_link)
    return info_hash


def content_id_from_reference(reference: str) -> str:
    """Info hash of a magnet link, or of a bare hex or base32 info hash."""
    reference = reference.strip()
    if reference.lower().startswith("magnet:"):
        info_hash = get_info_hash_from_magnet(reference)
        if not info_hash:
            raise ValueError(f"Magnet link has no info hash: {reference!r}")
        return info_hash
    return normalize_info_hash(reference)
