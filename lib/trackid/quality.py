"""
Quality ranking for copies of the same recording.
"""
from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, List, Mapping

from lib.trackid.models import LibraryRecord, QualityScore
from lib.trackid.normalizer import format_tag

# Rank assigned to any format missing from the table. Unknown is never "best".
UNKNOWN_FORMAT_RANK = 0

# Format tag -> rank (higher is better)
FORMAT_QUALITY: Mapping[str, int] = MappingProxyType({
    # lossless
    "FLAC": 5,
    "WAV": 5,
    "AIFF": 5,
    "ALAC": 4,
    # high-bitrate lossy
    "M4A": 3,
    "AAC": 3,
    "OGG": 2,
    "OPUS": 2,
    # low-bitrate lossy
    "MP3": 1,
    "WMA": 0,
})


def format_rank(value: str | None) -> int:
    return FORMAT_QUALITY.get(format_tag(value), UNKNOWN_FORMAT_RANK)


def quality_score(record: LibraryRecord) -> QualityScore:
    return QualityScore(format_rank(record.format), record.file_size_bytes or 0)


def rank(members: Iterable[LibraryRecord]) -> List[LibraryRecord]:
    """
    Best first: format rank, then larger file size.
    Stable, so members with equal scores keep their input order.
    """
    return sorted(members, key=quality_score, reverse=True)
