from __future__ import annotations

import re


# ASCII word characters and whitespace only; accented and non-Latin letters are stripped too.
_NON_WORD_SPACE_PATTERN = re.compile(r"[^A-Za-z0-9_\s]")
_MULTISPACE_PATTERN = re.compile(r"\s+")
# Bracketed qualifiers: "(feat. X)", "[ft. X]", "(featuring X)", "(Remix)", "(X Remix)", "(Radio Version)"
_TITLE_QUALIFIER_PATTERN = re.compile(
    r"[\(\[]\s*(?:feat\.|ft\.|featuring)[^\)\]]*[\)\]]"
    r"|[\(\[][^\)\]]*(?:remix|version)[^\)\]]*[\)\]]",
    re.IGNORECASE,
)

DURATION_TOLERANCE_MS = 10000


def normalize_string(value: str) -> str:
    """Lowercase, drop everything but word characters and spaces, collapse whitespace."""
    value = (value or "").lower()
    value = _NON_WORD_SPACE_PATTERN.sub("", value)
    value = _MULTISPACE_PATTERN.sub(" ", value)
    return value.strip()


def clean_title(title: str) -> str:
    """Strip featuring/remix/version qualifiers from a track title.

    >>> clean_title("Song (feat. X) (Remix)")
    'Song'
    """
    return _TITLE_QUALIFIER_PATTERN.sub("", title or "").strip()


def calculate_string_similarity(str1: str, str2: str) -> float:
    """Similarity in [0, 1] based on substring containment, then word overlap."""
    if str1 == str2:
        return 1.0
    if not str1 or not str2:
        return 0.0

    if len(str1) > len(str2):
        longer, shorter = str1, str2
    else:
        longer, shorter = str2, str1

    if shorter in longer:
        return len(shorter) / len(longer)

    words1 = str1.split()
    words2 = str2.split()
    if not words1 or not words2:
        return 0.0
    words2_set = set(words2)
    common = [word for word in words1 if word in words2_set]
    return len(common) / max(len(words1), len(words2))


def calculate_duration_similarity(duration1_ms: int, duration2_ms: int) -> float:
    """1.0 within the 10s tolerance, then linear decay relative to the longer duration."""
    diff = abs(duration1_ms - duration2_ms)
    if diff <= DURATION_TOLERANCE_MS:
        return 1.0
    max_duration = max(duration1_ms, duration2_ms)
    return max(0.0, 1.0 - diff / max_duration)
