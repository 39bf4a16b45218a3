"""
Library and wishlist stores.

The engine only needs the small protocols below; the in-memory stores are
what the service and the tests run against.
"""
from __future__ import annotations

import threading
from dataclasses import replace
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol

from lib.trackid.models import LibraryRecord, WishlistItem, WishlistStatus
from lib.trackid.normalizer import normalize_isrc
from lib.trackid.parser import load_rekordbox_library_xml


class LibraryStore(Protocol):
    def list_records(self) -> List[LibraryRecord]:
        ...

    def delete_record(self, record_id: int) -> None:
        ...


class WishlistStore(Protocol):
    def list_items(self, statuses: Iterable[WishlistStatus]) -> List[WishlistItem]:
        ...

    def mark_completed(self, ids: Iterable[int]) -> int:
        ...


class InMemoryLibraryStore:
    """Library store backed by a dict, in insertion order."""

    def __init__(self, records: Iterable[LibraryRecord] = ()) -> None:
        self._lock = threading.Lock()
        self._records: Dict[int, LibraryRecord] = {r.id: r for r in records}

    @classmethod
    def from_rekordbox_xml(cls, path: str | Path) -> "InMemoryLibraryStore":
        return cls(load_rekordbox_library_xml(path))

    def list_records(self) -> List[LibraryRecord]:
        # Consistent snapshot for index building / grouping
        with self._lock:
            return list(self._records.values())

    def delete_record(self, record_id: int) -> None:
        with self._lock:
            self._records.pop(record_id, None)

    def get(self, record_id: int) -> Optional[LibraryRecord]:
        with self._lock:
            return self._records.get(record_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class InMemoryWishlistStore:
    def __init__(self, items: Iterable[WishlistItem] = ()) -> None:
        self._lock = threading.Lock()
        self._items: Dict[int, WishlistItem] = {item.id: item for item in items}

    def add(
        self,
        seed_artist: Optional[str],
        seed_title: Optional[str],
        seed_album: Optional[str] = None,
        isrc: Optional[str] = None,
    ) -> WishlistItem:
        with self._lock:
            item_id = max(self._items, default=0) + 1
            item = WishlistItem(
                id=item_id,
                seed_artist=seed_artist,
                seed_title=seed_title,
                seed_album=seed_album,
                isrc=normalize_isrc(isrc) or isrc,
            )
            self._items[item_id] = item
            return replace(item)

    def list_items(self, statuses: Iterable[WishlistStatus] = ()) -> List[WishlistItem]:
        wanted = set(statuses)
        with self._lock:
            # Copies, so callers cannot change status behind the store's back
            return [
                replace(item)
                for item in self._items.values()
                if not wanted or item.status in wanted
            ]

    def mark_completed(self, ids: Iterable[int]) -> int:
        """Move items to COMPLETED. One-way: completed items stay completed."""
        updated = 0
        with self._lock:
            for item_id in ids:
                item = self._items.get(item_id)
                if item is None or item.status == WishlistStatus.COMPLETED:
                    continue
                item.status = WishlistStatus.COMPLETED
                updated += 1
        return updated

    def get(self, item_id: int) -> Optional[WishlistItem]:
        with self._lock:
            item = self._items.get(item_id)
            return replace(item) if item else None
