"""
Duplicate detection inside the local library.

Records are grouped on an exact (artist, album, title) normalized key. No
fuzzy matching is done here: copies from the same tag source carry the same
tags, so fuzziness would only add false positives.
"""
from __future__ import annotations

import logging
import time
from typing import Dict, Iterable, List

from lib.trackid.models import DuplicateAnalysis, DuplicateGroup, DuplicateKey, LibraryRecord
from lib.trackid.normalizer import format_tag, normalize
from lib.trackid.quality import rank

logger = logging.getLogger(__name__)


def duplicate_key(record: LibraryRecord) -> DuplicateKey:
    return DuplicateKey(
        normalize(record.artist),
        normalize(record.album),
        normalize(record.title),
    )


def find_duplicates(records: Iterable[LibraryRecord]) -> DuplicateAnalysis:
    """
    Partition records by duplicate_key() and keep groups of two or more.

    Groups come out in first-seen key order, members ranked best first.
    Aggregates:
    - total_duplicate_files: sum of (members - 1)
    - wasted_space_bytes: file sizes of every non-keeper
    - format_distribution: format tag counts over all members, keepers included
    """
    t0 = time.time()
    buckets: Dict[DuplicateKey, List[LibraryRecord]] = {}
    for record in records:
        buckets.setdefault(duplicate_key(record), []).append(record)

    groups: List[DuplicateGroup] = []
    total_duplicate_files = 0
    wasted_space_bytes = 0
    format_distribution: Dict[str, int] = {}

    for key, items in buckets.items():
        if len(items) < 2:
            continue

        members = rank(items)
        for member in members:
            tag = format_tag(member.format)
            format_distribution[tag] = format_distribution.get(tag, 0) + 1

        total_duplicate_files += len(members) - 1
        wasted_space_bytes += sum(m.file_size_bytes or 0 for m in members[1:])

        first = items[0]
        groups.append(
            DuplicateGroup(
                key=key,
                artist=first.artist,
                album=first.album,
                title=first.title,
                members=tuple(members),
            )
        )

    scan_ms = int((time.time() - t0) * 1000)
    logger.info(
        f"[duplicates] keys={len(buckets)} groups={len(groups)} "
        f"duplicate_files={total_duplicate_files} wasted_bytes={wasted_space_bytes} "
        f"scan_ms={scan_ms}ms"
    )

    return DuplicateAnalysis(
        groups=tuple(groups),
        total_duplicate_files=total_duplicate_files,
        wasted_space_bytes=wasted_space_bytes,
        format_distribution=format_distribution,
    )
