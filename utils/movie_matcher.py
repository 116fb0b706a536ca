"""
Fuzzy selection of one movie file inside a multi-movie pack.

Candidates are first gated on their sequel number, then scored on year and
title-word overlap. Any of several localized title variants may match.
"""

import re
import unicodedata
from dataclasses import dataclass

from db.schemas.pack import PackFileEntry
from utils.title_parser import (
    AUDIO_CHANNEL_PATTERNS,
    AUDIO_TAG_PATTERNS,
    CODEC_PATTERNS,
    QUALITY_PATTERNS,
    RESOLUTION_PATTERNS,
    YEAR_PATTERN,
)

YEAR_SCORE = 50
TITLE_SCORE = 50
PENALTY_SCORE = 50
ACCEPTANCE_THRESHOLD = 60

STOP_WORDS = frozenset(
    {
        # English
        "the", "and", "for", "with", "from", "into", "are", "was", "not", "but",
        # Italian
        "del", "della", "dello", "dei", "degli", "delle", "gli", "una", "uno",
        "con", "per", "nel", "nella", "sul", "sulla", "che", "non",
        # French / Spanish / German
        "les", "des", "une", "los", "las", "der", "die", "das", "und",
    }
)

ROMAN_NUMERALS = {
    "I": 1, "II": 2, "III": 3, "IV": 4, "V": 5,
    "VI": 6, "VII": 7, "VIII": 8, "IX": 9, "X": 10,
}

PART_PATTERN = re.compile(
    r"(?<![A-Za-z0-9])parte?[ ._-]*(?P<number>\d{1,2}|[ivx]{1,4})(?![A-Za-z0-9])",
    re.IGNORECASE,
)
# Upper-case only, "I" excluded: "V" and "X" as words are too common otherwise.
ROMAN_TOKEN_PATTERN = re.compile(
    r"(?<![A-Za-z0-9])(?P<numeral>II|III|IV|V|VI|VII|VIII|IX|X)(?![A-Za-z0-9])"
)
TRAILING_NUMBER_PATTERN = re.compile(r"(?<![A-Za-z0-9])(?P<number>\d{1,2})$")
NOISE_PATTERN = re.compile(r"trailer|sample", re.IGNORECASE)
EXTENSION_PATTERN = re.compile(r"\.[A-Za-z0-9]{2,4}$")

_TECHNICAL_TABLES = (
    RESOLUTION_PATTERNS,
    QUALITY_PATTERNS,
    CODEC_PATTERNS,
    AUDIO_TAG_PATTERNS,
    AUDIO_CHANNEL_PATTERNS,
)


@dataclass
class MatchCandidate:
    entry: PackFileEntry
    score: float
    sequel: int


def _strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def _normalize(text: str) -> str:
    text = _strip_accents(text).lower()
    return re.sub(r"[^a-z0-9]+", " ", text).strip()


def _title_part(name: str) -> str:
    """Text before the first technical token (year, resolution, codec, audio)."""
    offsets = [match.start() for match in YEAR_PATTERN.finditer(name)]
    for table in _TECHNICAL_TABLES:
        for _, pattern in table:
            offsets.extend(match.start() for match in pattern.finditer(name))
    offsets = [offset for offset in offsets if offset > 0]
    part = name[: min(offsets)] if offsets else name
    return re.sub(r"[._]+", " ", part).strip(" -([")


def _roman_to_int(numeral: str) -> int | None:
    return ROMAN_NUMERALS.get(numeral.upper())


def extract_sequel_number(name: str) -> int | None:
    """Return the installment number of a title or filename, if it has one.

    Priority: "Part N"/"Parte N" (arabic or roman), a standalone upper-case
    roman numeral, a trailing one or two digit number of the title part.
    """
    name = EXTENSION_PATTERN.sub("", name.rsplit("/", 1)[-1])

    part_match = PART_PATTERN.search(name)
    if part_match:
        number = part_match.group("number")
        if number.isdigit():
            return int(number)
        roman = _roman_to_int(number)
        if roman:
            return roman

    title_part = _title_part(name)
    for roman_match in ROMAN_TOKEN_PATTERN.finditer(title_part):
        # A leading numeral is part of the name ("X-Men", "V for Vendetta").
        if roman_match.start() > 0:
            return ROMAN_NUMERALS[roman_match.group("numeral")]

    number_match = TRAILING_NUMBER_PATTERN.search(title_part)
    if number_match and number_match.start() > 0:
        return int(number_match.group("number"))
    return None


def significant_words(title: str) -> list[str]:
    return [
        word
        for word in _normalize(title).split()
        if len(word) > 2 and word not in STOP_WORDS
    ]


def _title_score(title: str, normalized_name: str) -> float:
    words = significant_words(title)
    if words:
        found = sum(1 for word in words if word in normalized_name)
        return TITLE_SCORE * found / len(words)

    # Short titles ("Up", "It") are matched as a whole token sequence.
    normalized_title = _normalize(title)
    if normalized_title and re.search(
        rf"(?<![a-z0-9]){re.escape(normalized_title)}(?![a-z0-9])", normalized_name
    ):
        return TITLE_SCORE
    return 0


def acceptance_threshold(year: int | None) -> float:
    if year:
        return ACCEPTANCE_THRESHOLD
    # Without a year only the title part of the score is attainable.
    return ACCEPTANCE_THRESHOLD * TITLE_SCORE / (YEAR_SCORE + TITLE_SCORE)


def score_candidates(
    entries: list[PackFileEntry], titles: list[str], year: int | None = None
) -> list[MatchCandidate]:
    """Score every entry that passes sequel gating for at least one title."""
    targets = [(title, extract_sequel_number(title) or 1) for title in titles if title]
    candidates = []
    for entry in entries:
        sequel = extract_sequel_number(entry.path) or 1
        normalized_name = _normalize(entry.filename)

        scores = []
        for title, target_sequel in targets:
            if sequel != target_sequel:
                continue
            score = _title_score(title, normalized_name)
            if year and str(year) in entry.filename:
                score += YEAR_SCORE
            scores.append(score)
        if not scores:
            continue

        score = max(scores)
        if NOISE_PATTERN.search(entry.path):
            score -= PENALTY_SCORE
        candidates.append(MatchCandidate(entry=entry, score=score, sequel=sequel))
    return candidates


def find_best_match(
    entries: list[PackFileEntry], titles: list[str], year: int | None = None
) -> PackFileEntry | None:
    """Pick the entry with the strictly highest score above the threshold.

    Ties keep the first entry that reached the score.
    """
    best_entry = None
    best_score = acceptance_threshold(year)
    for candidate in score_candidates(entries, titles, year):
        if candidate.score > best_score:
            best_entry = candidate.entry
            best_score = candidate.score
    return best_entry
