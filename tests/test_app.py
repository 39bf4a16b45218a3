import tempfile
import unittest
from pathlib import Path
from unittest import mock

from fastapi.testclient import TestClient

from app import _default_library_store, create_app
from lib.trackid import config
from lib.trackid.jobs import DUPLICATE_REMOVAL_JOB, RECONCILE_JOB, JobRegistry
from lib.trackid.models import LibraryRecord
from lib.trackid.stores import InMemoryLibraryStore, InMemoryWishlistStore

MB = 1024 * 1024


class AppTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        tmp = Path(self._tmp.name)
        self.mp3 = tmp / "halo.mp3"
        self.flac = tmp / "halo.flac"
        self.mp3.write_bytes(b"mp3")
        self.flac.write_bytes(b"flac")

        self.library = InMemoryLibraryStore([
            LibraryRecord(1, "Beyoncé", "Halo", "I Am... Sasha Fierce", "MP3", 4 * MB, 128,
                          None, str(self.mp3)),
            LibraryRecord(2, "Beyoncé", "Halo", "I Am... Sasha Fierce", "FLAC", 30 * MB, None,
                          "USUM70901234", str(self.flac)),
            LibraryRecord(3, "Daft Punk", "One More Time", "Discovery", "M4A", 8 * MB),
        ])
        self.wishlist = InMemoryWishlistStore()
        self.registry = JobRegistry()
        self.client = TestClient(create_app(self.library, self.wishlist, self.registry))


class SystemTests(AppTestCase):
    def test_health(self):
        res = self.client.get("/health")
        self.assertEqual(res.status_code, 200)
        self.assertTrue(res.json()["ok"])

    def test_unreadable_library_xml_starts_empty(self):
        bad_xml = Path(self._tmp.name) / "broken.xml"
        bad_xml.write_text("<DJ_PLAYLISTS><COLLECTION>", encoding="utf-8")
        with mock.patch.object(config, "LIBRARY_XML_PATH", str(bad_xml)):
            with self.assertLogs("uvicorn.error", level="ERROR"):
                store = _default_library_store()
        self.assertEqual(len(store), 0)


class DuplicateRoutesTests(AppTestCase):
    def test_analysis(self):
        res = self.client.get("/api/library/duplicates")
        self.assertEqual(res.status_code, 200)
        data = res.json()
        self.assertEqual(len(data["duplicate_sets"]), 1)
        self.assertEqual([c["id"] for c in data["duplicate_sets"][0]["copies"]], [2, 1])
        self.assertEqual(data["duplicate_sets"][0]["copies"][0]["quality"], 5)
        self.assertEqual(data["total_duplicate_files"], 1)
        self.assertEqual(data["wasted_space_bytes"], 4 * MB)
        self.assertEqual(data["format_distribution"], {"FLAC": 1, "MP3": 1})

    def test_delete_defaults_to_dry_run(self):
        res = self.client.delete("/api/library/duplicates")
        self.assertEqual(res.status_code, 200)
        data = res.json()
        self.assertTrue(data["dry_run"])
        self.assertEqual(data["files_removed"], 1)
        self.assertEqual(data["space_freed_bytes"], 4 * MB)
        self.assertTrue(self.mp3.exists())
        self.assertEqual(len(self.library), 3)

    def test_delete_execute(self):
        res = self.client.delete("/api/library/duplicates", params={"dryRun": "false"})
        self.assertEqual(res.status_code, 200)
        data = res.json()
        self.assertFalse(data["dry_run"])
        self.assertEqual(data["errors"], [])
        self.assertFalse(self.mp3.exists())
        self.assertTrue(self.flac.exists())
        self.assertIsNone(self.library.get(1))
        # Execute mode runs as a duplicate-removal job
        self.assertEqual(self.registry.status(DUPLICATE_REMOVAL_JOB).value, "complete")

    def test_delete_execute_conflicts_with_running_clean(self):
        self.registry.start(DUPLICATE_REMOVAL_JOB)
        res = self.client.delete("/api/library/duplicates", params={"dryRun": "false"})
        self.assertEqual(res.status_code, 409)
        self.assertTrue(self.mp3.exists())
        self.assertEqual(len(self.library), 3)

    def test_dry_run_allowed_while_clean_is_running(self):
        self.registry.start(DUPLICATE_REMOVAL_JOB)
        res = self.client.delete("/api/library/duplicates")
        self.assertEqual(res.status_code, 200)
        self.assertTrue(res.json()["dry_run"])

    def test_clean_job_lifecycle(self):
        self.assertEqual(self.client.get("/api/library/duplicates/clean").json(), {"status": "idle"})

        res = self.client.post("/api/library/duplicates/clean")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["status"], "running")

        # TestClient runs background tasks before returning
        status = self.client.get("/api/library/duplicates/clean").json()
        self.assertEqual(status["status"], "complete")
        self.assertEqual(status["removed"], 1)
        self.assertEqual(status["freed_bytes"], 4 * MB)
        self.assertFalse(self.mp3.exists())

    def test_clean_conflict_while_running(self):
        self.registry.start(DUPLICATE_REMOVAL_JOB)
        res = self.client.post("/api/library/duplicates/clean")
        self.assertEqual(res.status_code, 409)
        self.assertTrue(self.mp3.exists())

    def test_cancel_clean(self):
        res = self.client.delete("/api/library/duplicates/clean")
        self.assertEqual(res.status_code, 400)

        job = self.registry.start(DUPLICATE_REMOVAL_JOB)
        res = self.client.delete("/api/library/duplicates/clean")
        self.assertEqual(res.status_code, 200)
        self.assertTrue(job.cancel_requested)


class WishlistRoutesTests(AppTestCase):
    def test_add_and_reconcile(self):
        res = self.client.post(
            "/api/wishlist",
            json={"seed_artist": "beyonce", "seed_title": "HALO (Live)", "isrc": "USUM70901234"},
        )
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["status"], "pending")
        self.client.post("/api/wishlist", json={"seed_artist": "Nobody Known", "seed_title": "Nothing"})

        res = self.client.post("/api/wishlist/reconcile")
        self.assertEqual(res.status_code, 200)
        data = res.json()
        self.assertEqual(data["total_items"], 2)
        self.assertEqual(data["matched"], 1)
        self.assertEqual(data["items_updated"][0]["match_method"], "isrc")
        self.assertEqual(data["items_updated"][0]["confidence"], 1.0)

        statuses = {i["seed_title"]: i["status"] for i in self.client.get("/api/wishlist").json()}
        self.assertEqual(statuses, {"HALO (Live)": "completed", "Nothing": "pending"})

    def test_reconcile_conflict_while_running(self):
        self.registry.start(RECONCILE_JOB)
        res = self.client.post("/api/wishlist/reconcile")
        self.assertEqual(res.status_code, 409)


class MatchRoutesTests(AppTestCase):
    def test_match(self):
        res = self.client.post(
            "/api/match",
            json={
                "tracks": [
                    {"artist": "Daft Punk", "title": "One More Time (feat. Romanthony)"},
                    {"artist": "Nobody Known", "title": "Nothing"},
                ]
            },
        )
        self.assertEqual(res.status_code, 200)
        data = res.json()
        self.assertEqual(data["library_size"], 3)
        self.assertEqual(data["tracks"][0]["record_id"], 3)
        self.assertEqual(data["tracks"][0]["match_method"], "exact")
        self.assertFalse(data["tracks"][1]["matched"])


if __name__ == "__main__":
    unittest.main()
