"""
Wishlist reconciler.

Matches pending/downloading wishlist items against the local library and
marks matched items as completed. Unmatched items are left as they are and
are retried on every run.
"""
from __future__ import annotations

import logging
import time
from typing import List, Optional

from lib.trackid.index import build_index
from lib.trackid.jobs import Job
from lib.trackid.matcher import match_track
from lib.trackid.models import (
    RECONCILABLE_STATUSES,
    QueryRecord,
    ReconciledItem,
    ReconcileResult,
)
from lib.trackid.stores import LibraryStore, WishlistStore

logger = logging.getLogger(__name__)


def reconcile_wishlist(
    wishlist_store: WishlistStore,
    library_store: LibraryStore,
    *,
    job: Optional[Job] = None,
) -> ReconcileResult:
    t0 = time.time()
    pending_items = wishlist_store.list_items(RECONCILABLE_STATUSES)

    if not pending_items:
        return ReconcileResult()

    # Build track index once for all matching
    index = build_index(library_store.list_records())

    if job is not None:
        job.total = len(pending_items)

    items_updated: List[ReconciledItem] = []
    ids_to_complete: List[int] = []

    for item in pending_items:
        if job is not None:
            if job.cancel_requested:
                logger.info(f"[reconcile] cancelled after {job.processed}/{job.total} items")
                break
            job.processed += 1
            job.current_item = f"{item.seed_artist} - {item.seed_title}"

        # Nothing to match on
        if not item.seed_title or not item.seed_artist:
            continue

        match = match_track(
            QueryRecord(
                artist=item.seed_artist,
                title=item.seed_title,
                album=item.seed_album,
                isrc=item.isrc,
            ),
            index,
        )
        if match is None:
            continue

        ids_to_complete.append(item.id)
        items_updated.append(
            ReconciledItem(
                id=item.id,
                title=item.seed_title,
                artist=item.seed_artist,
                method=match.method,
                confidence=match.confidence,
            )
        )

    # Batch update matched items to completed
    if ids_to_complete:
        wishlist_store.mark_completed(ids_to_complete)

    reconcile_ms = int((time.time() - t0) * 1000)
    logger.info(
        f"[reconcile] items={len(pending_items)} matched={len(items_updated)} "
        f"library={len(index)} reconcile_ms={reconcile_ms}ms"
    )

    return ReconcileResult(
        total_items=len(pending_items),
        matched=len(items_updated),
        items_updated=items_updated,
    )
