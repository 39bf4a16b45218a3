"""
Index builder: lookup structures over a library snapshot for matching.
"""
from __future__ import annotations

import logging
import time
from types import MappingProxyType
from typing import Dict, Iterable, List

from lib.trackid.models import IndexEntry, LibraryRecord, NormalizedKey, TrackIndex
from lib.trackid.normalizer import normalize, normalize_artist, normalize_isrc

logger = logging.getLogger(__name__)


def normalized_key(artist: str | None, title: str | None) -> NormalizedKey:
    return NormalizedKey(normalize_artist(artist), normalize(title))


def build_index(records: Iterable[LibraryRecord]) -> TrackIndex:
    """
    Build a TrackIndex in one linear pass.

    - by_isrc: uppercased ISRC -> record id (records without a valid ISRC are skipped)
    - by_normalized_key: (normalized artist, normalized title) -> record id.
      Last write wins; colliding records are true duplicates and are the
      duplicate grouper's concern, not the matcher's.
    - entries: flat list in insertion order for the partial fallback scan

    An empty input yields an empty, valid index.
    """
    t0 = time.time()
    by_isrc: Dict[str, int] = {}
    by_key: Dict[NormalizedKey, int] = {}
    entries: List[IndexEntry] = []

    for record in records:
        isrc = normalize_isrc(record.isrc)
        if isrc:
            by_isrc[isrc] = record.id

        key = normalized_key(record.artist, record.title)
        by_key[key] = record.id

        entries.append(
            IndexEntry(
                id=record.id,
                artist=record.artist,
                title=record.title,
                normalized_artist=key.artist,
                normalized_title=key.title,
            )
        )

    index = TrackIndex(
        by_isrc=MappingProxyType(by_isrc),
        by_normalized_key=MappingProxyType(by_key),
        entries=tuple(entries),
    )

    build_ms = int((time.time() - t0) * 1000)
    logger.debug(
        f"[trackid] index records={len(entries)} isrc={len(by_isrc)} "
        f"keys={len(by_key)} build_ms={build_ms}ms"
    )
    return index
