"""
Duplicate removal: everything but each group's keeper is a removal candidate.

Dry run (the default) only computes the plan. Execute mode deletes the file
and then the library record for each candidate. Per-candidate failures are
recorded and the batch keeps going.
"""
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from lib.trackid.duplicates import find_duplicates
from lib.trackid.jobs import Job
from lib.trackid.models import DuplicateGroup, LibraryRecord, RemovalError, RemovalPlan
from lib.trackid.stores import LibraryStore

logger = logging.getLogger(__name__)


def delete_file(path: str) -> None:
    """Delete a file; a file that is already gone counts as deleted."""
    if not path:
        return
    Path(path).unlink(missing_ok=True)


def plan_removal(groups: Iterable[DuplicateGroup]) -> List[LibraryRecord]:
    """Non-keeper members of every group, in group order."""
    return [member for group in groups for member in group.removable]


def remove_duplicates(
    groups: Iterable[DuplicateGroup],
    library_store: Optional[LibraryStore] = None,
    *,
    dry_run: bool = True,
    remove_file: Callable[[str], None] = delete_file,
    job: Optional[Job] = None,
) -> RemovalPlan:
    if not dry_run and library_store is None:
        raise ValueError("library_store is required when dry_run is False")

    t0 = time.time()
    groups = list(groups)
    plan = RemovalPlan(dry_run=dry_run)

    if job is not None:
        job.total = len(plan_removal(groups))

    for group in groups:
        if job is not None and job.cancel_requested:
            logger.info(f"[removal] cancelled after {job.processed}/{job.total} candidates")
            break

        # copies[0] is the keeper; remove the rest
        for copy in group.removable:
            if job is not None:
                job.processed += 1
                job.current_item = f"{group.album} - {group.title}"

            if not dry_run:
                try:
                    remove_file(copy.file_path)
                except OSError as e:
                    # Keep the record so the file stays visible in the library
                    _record_error(plan, job, copy, e)
                    continue
                try:
                    library_store.delete_record(copy.id)
                except Exception as e:
                    _record_error(plan, job, copy, e)
                    continue

            plan.files_removed += 1
            plan.space_freed_bytes += copy.file_size_bytes or 0
            if job is not None:
                job.removed += 1
                job.freed_bytes += copy.file_size_bytes or 0

    removal_ms = int((time.time() - t0) * 1000)
    logger.info(
        f"[removal] dry_run={dry_run} groups={len(groups)} removed={plan.files_removed} "
        f"freed_bytes={plan.space_freed_bytes} errors={len(plan.errors)} removal_ms={removal_ms}ms"
    )
    return plan


def clean_duplicates(
    library_store: LibraryStore,
    *,
    dry_run: bool = True,
    remove_file: Callable[[str], None] = delete_file,
    job: Optional[Job] = None,
) -> RemovalPlan:
    """Fresh duplicate pass over the store's current snapshot, then removal."""
    analysis = find_duplicates(library_store.list_records())
    return remove_duplicates(
        analysis.groups,
        library_store,
        dry_run=dry_run,
        remove_file=remove_file,
        job=job,
    )


def _record_error(
    plan: RemovalPlan,
    job: Optional[Job],
    copy: LibraryRecord,
    exc: Exception,
) -> None:
    logger.warning(f"[removal] failed to remove {copy.file_path}: {exc}")
    plan.errors.append(
        RemovalError(record_id=copy.id, file_path=copy.file_path, message=str(exc))
    )
    if job is not None:
        job.errors += 1
