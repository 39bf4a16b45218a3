"""
Normalization helpers: canonicalize artist / title / album text for equality comparison.
"""
from __future__ import annotations

import re
from typing import Optional

# Descriptive parentheticals that do not change which recording it is.
# The whole bracketed clause is dropped, not just the keyword.
_DESCRIPTIVE_PARENS = [
    re.compile(r"\(feat\.?[^)]*\)", re.IGNORECASE),
    re.compile(r"\(ft\.?[^)]*\)", re.IGNORECASE),
    re.compile(r"\(with [^)]*\)", re.IGNORECASE),
    re.compile(r"\(remix\)", re.IGNORECASE),
    re.compile(r"\(remastered[^)]*\)", re.IGNORECASE),
    re.compile(r"\(deluxe[^)]*\)", re.IGNORECASE),
    re.compile(r"\(live[^)]*\)", re.IGNORECASE),
    re.compile(r"\(bonus[^)]*\)", re.IGNORECASE),
]

_SINGLE_QUOTES = re.compile(r"[‘’‚‛′]")
_DOUBLE_QUOTES = re.compile(r"[“”„‟″]")

# Anything but letters, digits, whitespace, apostrophe, hyphen (\w also admits "_")
_PUNCTUATION = re.compile(r"[^\w\s'-]|_")
_WHITESPACE = re.compile(r"\s+")

_ARTIST_COMMA = re.compile(r"\s*,\s*")
# " and " between names; the lookahead leaves the trailing space for the next match
_ARTIST_AND = re.compile(r"\s+and(?=\s)")

_ISRC = re.compile(r"^[A-Z]{2}[A-Z0-9]{3}[0-9]{7}$")
_ISRC_SEPARATORS = re.compile(r"[\s-]+")


def normalize(text: Optional[str]) -> str:
    """
    Canonical form of a title (or any free text):
    - lower-case
    - drop (feat. ...) / (ft. ...) / (with ...) / (remix) / (remastered ...) /
      (deluxe ...) / (live ...) / (bonus ...)
    - curly quotes -> straight quotes
    - strip punctuation except apostrophe and hyphen
    - collapse whitespace

    Total and idempotent: normalize(normalize(x)) == normalize(x).
    """
    s = (text or "").lower()

    for pattern in _DESCRIPTIVE_PARENS:
        s = pattern.sub("", s)

    s = _SINGLE_QUOTES.sub("'", s)
    s = _DOUBLE_QUOTES.sub('"', s)
    s = _PUNCTUATION.sub("", s)

    return _WHITESPACE.sub(" ", s).strip()


def normalize_artist(text: Optional[str]) -> str:
    """
    normalize() plus folding of list separators, so "A, B", "A and B"
    and "A & B" all become "a b".

    This conflates a duo billed as "A & B" with the two solo artists.
    Accepted false-equivalence risk; do not special-case it here.
    """
    s = normalize(text)
    s = _ARTIST_COMMA.sub(" ", s)
    s = _ARTIST_AND.sub("", s)
    return _WHITESPACE.sub(" ", s).strip()


def normalize_isrc(value: Optional[str]) -> Optional[str]:
    """
    Uppercased ISRC without separators, or None when the value is not a
    well-formed 12-character code (malformed means "no ISRC signal").
    """
    if not value:
        return None
    s = _ISRC_SEPARATORS.sub("", value).upper()
    if not _ISRC.match(s):
        return None
    return s


def format_tag(value: Optional[str]) -> str:
    """
    Uppercase codec tag: "flac" / ".flac" / "FLAC File" -> "FLAC".
    Empty input -> "UNKNOWN".
    """
    s = (value or "").strip().upper()
    if s.endswith(" FILE"):
        s = s[: -len(" FILE")].strip()
    s = s.lstrip(".")
    return s or "UNKNOWN"
