"""
Track identity resolution and duplicate detection.

Public API:
  - normalize(text) / normalize_artist(text) -> str
  - build_index(records) -> TrackIndex
  - match_track(query, index) -> MatchResult | None
  - find_duplicates(records) -> DuplicateAnalysis
  - rank(members) -> list[LibraryRecord]
  - reconcile_wishlist(wishlist_store, library_store) -> ReconcileResult
  - remove_duplicates(groups, library_store, dry_run=True) -> RemovalPlan
  - load_rekordbox_library_xml(path, timeout_sec) -> tuple[LibraryRecord, ...]
"""
from lib.trackid.duplicates import find_duplicates
from lib.trackid.index import build_index
from lib.trackid.jobs import Job, JobRegistry, JobState
from lib.trackid.matcher import match_many, match_track
from lib.trackid.models import (
    DuplicateAnalysis,
    DuplicateGroup,
    LibraryRecord,
    MatchMethod,
    MatchResult,
    QueryRecord,
    ReconcileResult,
    RemovalPlan,
    TrackIndex,
    WishlistItem,
    WishlistStatus,
)
from lib.trackid.normalizer import normalize, normalize_artist
from lib.trackid.parser import load_rekordbox_library_xml
from lib.trackid.quality import rank
from lib.trackid.reconciler import reconcile_wishlist
from lib.trackid.removal import clean_duplicates, remove_duplicates

__all__ = [
    "normalize",
    "normalize_artist",
    "build_index",
    "match_track",
    "match_many",
    "find_duplicates",
    "rank",
    "reconcile_wishlist",
    "remove_duplicates",
    "clean_duplicates",
    "load_rekordbox_library_xml",
    "Job",
    "JobRegistry",
    "JobState",
    "DuplicateAnalysis",
    "DuplicateGroup",
    "LibraryRecord",
    "MatchMethod",
    "MatchResult",
    "QueryRecord",
    "ReconcileResult",
    "RemovalPlan",
    "TrackIndex",
    "WishlistItem",
    "WishlistStatus",
]
