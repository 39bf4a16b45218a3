import unittest

from lib.trackid.jobs import Job
from lib.trackid.models import LibraryRecord, MatchMethod, WishlistItem, WishlistStatus
from lib.trackid.reconciler import reconcile_wishlist
from lib.trackid.stores import InMemoryLibraryStore, InMemoryWishlistStore


class SpyWishlistStore(InMemoryWishlistStore):
    def __init__(self, items=()):
        super().__init__(items)
        self.mark_calls = []

    def mark_completed(self, ids):
        ids = list(ids)
        self.mark_calls.append(ids)
        return super().mark_completed(ids)


class SpyLibraryStore(InMemoryLibraryStore):
    def __init__(self, records=()):
        super().__init__(records)
        self.list_calls = 0

    def list_records(self):
        self.list_calls += 1
        return super().list_records()


def _library():
    return SpyLibraryStore([
        LibraryRecord(id=100, artist="Beyoncé", title="Halo", isrc="USUM70901234"),
        LibraryRecord(id=101, artist="Daft Punk", title="One More Time"),
    ])


def _wishlist():
    return SpyWishlistStore([
        WishlistItem(1, "beyonce", "HALO (Live)", isrc="USUM70901234"),
        WishlistItem(2, "Daft Punk", "One More Time (feat. Romanthony)",
                     status=WishlistStatus.DOWNLOADING),
        WishlistItem(3, "Unknown Artist", "Nothing Here"),
        WishlistItem(4, "Daft Punk", None),
        WishlistItem(5, "Daft Punk", "One More Time", status=WishlistStatus.COMPLETED),
    ])


class ReconcileTests(unittest.TestCase):
    def test_matched_items_are_completed_in_one_batch(self):
        wishlist = _wishlist()
        result = reconcile_wishlist(wishlist, _library())

        self.assertEqual(result.total_items, 4)
        self.assertEqual(result.matched, 2)
        self.assertEqual(
            [(i.id, i.method) for i in result.items_updated],
            [(1, MatchMethod.ISRC), (2, MatchMethod.EXACT)],
        )
        self.assertEqual(wishlist.mark_calls, [[1, 2]])
        self.assertEqual(wishlist.get(1).status, WishlistStatus.COMPLETED)
        self.assertEqual(wishlist.get(2).status, WishlistStatus.COMPLETED)

    def test_unmatched_and_incomplete_items_are_untouched(self):
        wishlist = _wishlist()
        reconcile_wishlist(wishlist, _library())
        self.assertEqual(wishlist.get(3).status, WishlistStatus.PENDING)
        self.assertEqual(wishlist.get(4).status, WishlistStatus.PENDING)

    def test_no_negative_caching_between_runs(self):
        wishlist = _wishlist()
        library = _library()
        reconcile_wishlist(wishlist, library)

        library = SpyLibraryStore(
            library.list_records()
            + [LibraryRecord(id=102, artist="Unknown Artist", title="Nothing Here")]
        )
        result = reconcile_wishlist(wishlist, library)
        self.assertEqual(result.total_items, 2)
        self.assertEqual([i.id for i in result.items_updated], [3])
        self.assertEqual(wishlist.get(3).status, WishlistStatus.COMPLETED)

    def test_nothing_pending_skips_index_and_update(self):
        wishlist = SpyWishlistStore([
            WishlistItem(1, "A", "B", status=WishlistStatus.COMPLETED),
        ])
        library = _library()
        result = reconcile_wishlist(wishlist, library)
        self.assertEqual(result.total_items, 0)
        self.assertEqual(result.items_updated, [])
        self.assertEqual(library.list_calls, 0)
        self.assertEqual(wishlist.mark_calls, [])

    def test_no_match_means_no_update_call(self):
        wishlist = SpyWishlistStore([WishlistItem(1, "Nobody Known", "Nothing")])
        result = reconcile_wishlist(wishlist, _library())
        self.assertEqual(result.matched, 0)
        self.assertEqual(wishlist.mark_calls, [])

    def test_progress_is_recorded_on_the_job(self):
        job = Job(kind="reconcile")
        reconcile_wishlist(_wishlist(), _library(), job=job)
        self.assertEqual(job.total, 4)
        self.assertEqual(job.processed, 4)

    def test_cancelled_job_still_applies_matches_found_so_far(self):
        class CancelAfterFirstItem(Job):
            @property
            def cancel_requested(self):
                return self.processed >= 1

        job = CancelAfterFirstItem(kind="reconcile")
        wishlist = _wishlist()
        result = reconcile_wishlist(wishlist, _library(), job=job)

        self.assertEqual(job.processed, 1)
        self.assertEqual(result.matched, 1)
        self.assertEqual(wishlist.mark_calls, [[1]])
        self.assertEqual(wishlist.get(2).status, WishlistStatus.DOWNLOADING)

    def test_cancel_before_start_changes_nothing(self):
        job = Job(kind="reconcile")
        job.request_cancel()
        wishlist = _wishlist()
        result = reconcile_wishlist(wishlist, _library(), job=job)
        self.assertEqual(job.processed, 0)
        self.assertEqual(result.matched, 0)
        self.assertEqual(wishlist.mark_calls, [])


if __name__ == "__main__":
    unittest.main()
