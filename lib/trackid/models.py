"""
Data models for track identity resolution and duplicate detection.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, NamedTuple, Optional, Tuple


# Fixed confidence tiers, one per matching strategy
ISRC_CONFIDENCE = 1.0
EXACT_CONFIDENCE = 0.95
PARTIAL_CONFIDENCE = 0.70


class MatchMethod(str, Enum):
    """
    Matching strategy that produced a result.
    Priority: ISRC > EXACT > PARTIAL
    """
    ISRC = "isrc"         # ISRC exact match
    EXACT = "exact"       # normalized artist + title exact match
    PARTIAL = "partial"   # leading artist tokens contained + title containment


class WishlistStatus(str, Enum):
    PENDING = "pending"
    DOWNLOADING = "downloading"
    COMPLETED = "completed"


# Statuses the reconciler is allowed to move to COMPLETED
RECONCILABLE_STATUSES = (WishlistStatus.PENDING, WishlistStatus.DOWNLOADING)


@dataclass(frozen=True)
class LibraryRecord:
    """Snapshot of a single track in the local library."""
    id: int
    artist: str
    title: str
    album: str = ""
    format: str = ""
    file_size_bytes: int = 0
    bitrate_kbps: Optional[int] = None
    isrc: Optional[str] = None
    file_path: str = ""


@dataclass(frozen=True)
class QueryRecord:
    """What is being searched for (from an external catalog or the wishlist)."""
    artist: str
    title: str
    album: Optional[str] = None
    isrc: Optional[str] = None


class NormalizedKey(NamedTuple):
    """(artist, title) equality key used by the index."""
    artist: str
    title: str


class DuplicateKey(NamedTuple):
    """(artist, album, title) equality key used for intra-library grouping."""
    artist: str
    album: str
    title: str


class QualityScore(NamedTuple):
    """Sort key only; higher is better."""
    format_rank: int
    file_size_bytes: int


@dataclass(frozen=True)
class MatchResult:
    record_id: int
    method: MatchMethod
    confidence: float


@dataclass(frozen=True)
class IndexEntry:
    """Flat entry scanned by the partial matcher."""
    id: int
    artist: str
    title: str
    normalized_artist: str
    normalized_title: str


@dataclass(frozen=True)
class TrackIndex:
    """Read-only lookup structures over a library snapshot."""
    by_isrc: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    by_normalized_key: Mapping[NormalizedKey, int] = field(
        default_factory=lambda: MappingProxyType({})
    )
    entries: Tuple[IndexEntry, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class DuplicateGroup:
    """Records sharing one DuplicateKey, ranked best first."""
    key: DuplicateKey
    artist: str
    album: str
    title: str
    members: Tuple[LibraryRecord, ...]

    @property
    def keeper(self) -> LibraryRecord:
        return self.members[0]

    @property
    def removable(self) -> Tuple[LibraryRecord, ...]:
        return self.members[1:]


@dataclass(frozen=True)
class DuplicateAnalysis:
    groups: Tuple[DuplicateGroup, ...]
    total_duplicate_files: int
    wasted_space_bytes: int
    format_distribution: Dict[str, int]


@dataclass
class WishlistItem:
    """Wanted track tracked by the external wishlist store."""
    id: int
    seed_artist: Optional[str]
    seed_title: Optional[str]
    seed_album: Optional[str] = None
    isrc: Optional[str] = None
    status: WishlistStatus = WishlistStatus.PENDING


@dataclass(frozen=True)
class ReconciledItem:
    id: int
    title: str
    artist: str
    method: MatchMethod
    confidence: float


@dataclass
class ReconcileResult:
    total_items: int = 0
    matched: int = 0
    items_updated: List[ReconciledItem] = field(default_factory=list)


@dataclass(frozen=True)
class RemovalError:
    record_id: int
    file_path: str
    message: str


@dataclass
class RemovalPlan:
    files_removed: int = 0
    space_freed_bytes: int = 0
    errors: List[RemovalError] = field(default_factory=list)
    dry_run: bool = True
