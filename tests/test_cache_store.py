import asyncio
import hashlib
import json
import tempfile
import unittest
from pathlib import Path

from dropbox_cache.cache.io import atomic_write_bytes, read_metadata_file
from dropbox_cache.cache.models import CacheMetadata
from dropbox_cache.cache.store import CacheStore
from dropbox_cache.cache.utils import hash_remote_path
from dropbox_cache.errors import MetadataCheckError


def _metadata(remote_path: str, revision: str, fetched_at: str, size: int = 3) -> CacheMetadata:
    return CacheMetadata(
        remote_path=remote_path,
        revision=revision,
        server_modified="2024-03-01T10:00:00Z",
        last_fetched_at=fetched_at,
        size_bytes=size,
    )


class CacheKeyTests(unittest.TestCase):
    def test_hash_is_deterministic_and_path_specific(self) -> None:
        self.assertEqual(hash_remote_path("/a/b.txt"), hash_remote_path("/a/b.txt"))
        self.assertNotEqual(hash_remote_path("/a/b.txt"), hash_remote_path("/a/B.txt"))

    def test_hash_is_sha256_of_path(self) -> None:
        key = hash_remote_path("/a/b.txt")
        self.assertEqual(key, hashlib.sha256(b"/a/b.txt").hexdigest())
        self.assertEqual(len(key), 64)

    def test_entry_paths_are_named_after_key(self) -> None:
        store = CacheStore(Path("/cache"))
        entry = store.entry_for("/docs/report.pdf")
        self.assertEqual(entry.content_path, Path("/cache") / entry.key)
        self.assertEqual(entry.meta_path, Path("/cache") / f"{entry.key}.meta.json")


class CacheStoreWriteTests(unittest.TestCase):
    def test_write_persists_content_and_metadata(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            store = CacheStore(Path(tmp))
            entry = store.entry_for("/a/b.txt")

            asyncio.run(store.write(entry, b"abc", _metadata("/a/b.txt", "rev1", "2024-03-01T10:00:00Z")))

            self.assertTrue(store.has_complete_entry(entry))
            self.assertEqual(entry.content_path.read_bytes(), b"abc")
            self.assertEqual(store.read_metadata(entry).revision, "rev1")
            self.assertEqual(sorted(p.name for p in Path(tmp).iterdir()), sorted([entry.key, entry.meta_path.name]))

    def test_atomic_write_leaves_no_temp_file_on_failure(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            target = Path(tmp) / "blob"
            target.mkdir()  # replacing a directory with a file fails

            with self.assertRaises(OSError):
                atomic_write_bytes(target, b"data")

            self.assertEqual([p.name for p in Path(tmp).iterdir()], ["blob"])


class MetadataReadTests(unittest.TestCase):
    def test_corrupt_metadata_raises(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            meta_path = Path(tmp) / "key.meta.json"
            meta_path.write_text("{not json", encoding="utf-8")
            with self.assertRaises(MetadataCheckError):
                read_metadata_file(meta_path)

    def test_metadata_without_revision_raises(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            meta_path = Path(tmp) / "key.meta.json"
            meta_path.write_text(json.dumps({"schema_version": 1, "server_modified": "x"}), encoding="utf-8")
            with self.assertRaises(MetadataCheckError):
                read_metadata_file(meta_path)

    def test_schema_mismatch_raises(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            meta_path = Path(tmp) / "key.meta.json"
            meta_path.write_text(json.dumps({"schema_version": 99, "revision": "rev1"}), encoding="utf-8")
            with self.assertRaises(MetadataCheckError):
                read_metadata_file(meta_path)


class PruneTests(unittest.TestCase):
    def test_prune_keeps_most_recently_fetched_entries(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            store = CacheStore(Path(tmp))
            fetched = {
                "/old.txt": "2024-01-01T00:00:00Z",
                "/middle.txt": "2024-02-01T00:00:00Z",
                "/new.txt": "2024-03-01T00:00:00Z",
            }
            for remote_path, fetched_at in fetched.items():
                entry = store.entry_for(remote_path)
                asyncio.run(store.write(entry, b"abc", _metadata(remote_path, "rev1", fetched_at)))

            removed = store.prune(2)

            self.assertEqual(removed, 1)
            self.assertFalse(store.has_complete_entry(store.entry_for("/old.txt")))
            self.assertFalse(store.entry_for("/old.txt").content_path.exists())
            self.assertTrue(store.has_complete_entry(store.entry_for("/middle.txt")))
            self.assertTrue(store.has_complete_entry(store.entry_for("/new.txt")))

    def test_prune_tolerates_timestamps_without_offset(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            store = CacheStore(Path(tmp))
            older = store.entry_for("/older.txt")
            newer = store.entry_for("/newer.txt")
            asyncio.run(store.write(older, b"abc", _metadata("/older.txt", "rev1", "2024-01-01T00:00:00Z")))
            asyncio.run(store.write(newer, b"abc", _metadata("/newer.txt", "rev1", "2024-01-02T00:00:00")))

            removed = store.prune(1)

            self.assertEqual(removed, 1)
            self.assertFalse(store.has_complete_entry(older))
            self.assertTrue(store.has_complete_entry(newer))

    def test_prune_never_evicts_kept_entry(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            store = CacheStore(Path(tmp))
            kept = store.entry_for("/kept.txt")
            asyncio.run(store.write(kept, b"abc", _metadata("/kept.txt", "rev1", "2024-01-01T00:00:00Z")))

            removed = store.prune(0, keep=kept.key)

            self.assertEqual(removed, 0)
            self.assertTrue(store.has_complete_entry(kept))

    def test_write_prunes_when_bounded(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            store = CacheStore(Path(tmp), max_entries=1)
            first = store.entry_for("/first.txt")
            second = store.entry_for("/second.txt")

            asyncio.run(store.write(first, b"abc", _metadata("/first.txt", "rev1", "2024-01-01T00:00:00Z")))
            asyncio.run(store.write(second, b"abc", _metadata("/second.txt", "rev1", "2024-01-02T00:00:00Z")))

            self.assertFalse(store.has_complete_entry(first))
            self.assertTrue(store.has_complete_entry(second))

    def test_unbounded_store_never_prunes_on_write(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            store = CacheStore(Path(tmp))
            for index in range(5):
                remote_path = f"/file-{index}.txt"
                asyncio.run(
                    store.write(
                        store.entry_for(remote_path),
                        b"abc",
                        _metadata(remote_path, "rev1", f"2024-01-0{index + 1}T00:00:00Z"),
                    )
                )
            self.assertEqual(len(list(Path(tmp).glob("*.meta.json"))), 5)


if __name__ == "__main__":
    unittest.main()
