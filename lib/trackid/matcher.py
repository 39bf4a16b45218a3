"""
Matching a wanted track against the local library index.
Priority: ISRC -> normalized artist + title -> partial (leading artist tokens + title containment)
"""
from __future__ import annotations

import logging
import time
from typing import Iterable, List, Optional

from lib.trackid.index import normalized_key
from lib.trackid.models import (
    EXACT_CONFIDENCE,
    ISRC_CONFIDENCE,
    PARTIAL_CONFIDENCE,
    MatchMethod,
    MatchResult,
    QueryRecord,
    TrackIndex,
)
from lib.trackid.normalizer import normalize_isrc

logger = logging.getLogger(__name__)

# First token of the query artist must be at least this long for the partial scan
PARTIAL_MIN_TOKEN_LEN = 3
# Number of leading artist tokens that must appear in the candidate's artist
PARTIAL_ARTIST_TOKENS = 2


def _titles_overlap(query_title: str, candidate_title: str) -> bool:
    if not candidate_title:
        return False
    return (
        candidate_title == query_title
        or query_title in candidate_title
        or candidate_title in query_title
    )


def match_track(query: QueryRecord, index: TrackIndex) -> Optional[MatchResult]:
    """
    Return the first hit in priority order, or None.

    1. ISRC exact (1.0). Wins over any text signal. A malformed ISRC is
       treated as absent.
    2. Exact normalized (artist, title) key (0.95).
    3. Partial (0.70), only when the query artist's first token has at least
       3 characters: the candidate artist must contain the first two query
       artist tokens, and the titles must be equal or one must contain the
       other. First fit in index order, not best fit.

    Pure: the index is only read.
    """
    # 1) ISRC
    isrc = normalize_isrc(query.isrc)
    if isrc:
        record_id = index.by_isrc.get(isrc)
        if record_id is not None:
            return MatchResult(record_id, MatchMethod.ISRC, ISRC_CONFIDENCE)

    key = normalized_key(query.artist, query.title)
    if not key.title:
        return None

    # 2) exact normalized artist + title
    record_id = index.by_normalized_key.get(key)
    if record_id is not None:
        return MatchResult(record_id, MatchMethod.EXACT, EXACT_CONFIDENCE)

    # 3) partial: first-fit scan over the flat entry list
    tokens = key.artist.split(" ")
    if len(tokens[0]) < PARTIAL_MIN_TOKEN_LEN:
        return None

    artist_prefix = " ".join(tokens[:PARTIAL_ARTIST_TOKENS])
    for entry in index.entries:
        if artist_prefix in entry.normalized_artist and _titles_overlap(
            key.title, entry.normalized_title
        ):
            return MatchResult(entry.id, MatchMethod.PARTIAL, PARTIAL_CONFIDENCE)

    return None


def match_many(
    queries: Iterable[QueryRecord],
    index: TrackIndex,
) -> List[Optional[MatchResult]]:
    """match_track over a batch, with a one-line summary log."""
    t0 = time.time()
    results: List[Optional[MatchResult]] = []
    counts = {method: 0 for method in MatchMethod}

    for query in queries:
        result = match_track(query, index)
        if result is not None:
            counts[result.method] += 1
            logger.debug(
                f"[trackid] matched artist={query.artist!r} title={query.title!r} "
                f"-> id={result.record_id} method={result.method.value}"
            )
        results.append(result)

    match_ms = int((time.time() - t0) * 1000)
    matched = sum(counts.values())
    logger.info(
        f"[trackid] match queries={len(results)} matched={matched} "
        f"isrc={counts[MatchMethod.ISRC]} exact={counts[MatchMethod.EXACT]} "
        f"partial={counts[MatchMethod.PARTIAL]} match_ms={match_ms}ms"
    )
    return results
