import os
import tempfile
from pathlib import Path
from unittest import IsolatedAsyncioTestCase, TestCase
from unittest.mock import patch

os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017")

from filehost.errors import (  # noqa: E402
    NotFound,
    StorageIOError,
    UploadError,
    ValidationError,
    UPLOAD_IO_FAILURE,
    UPLOAD_PERSISTENCE_FAILURE,
    UPLOAD_TOO_LARGE,
)
from filehost.models.file_record import FileRecord  # noqa: E402
from filehost.services.cache import FileCache  # noqa: E402
from filehost.services.storage import Storage, UploadDescriptor  # noqa: E402

from tests.fakes import _DummyDB  # noqa: E402


class StorageTestCase(IsolatedAsyncioTestCase):
    max_size = 100

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.storage_dir = self.root / "storage"
        self.incoming = self.root / "incoming"
        self.incoming.mkdir()

        self.db = _DummyDB()
        self._patch = patch("filehost.repositories.files_repo.get_db", return_value=self.db)
        self._patch.start()

        self.storage = Storage(
            storage_dir=str(self.storage_dir),
            upload_max_size=self.max_size,
            cache=FileCache(max_size=5, evict_batch=3),
        )
        self.storage.ensure_storage_dir()

    def tearDown(self):
        self._patch.stop()
        self._tmp.cleanup()

    def landed(self, name: str, data: bytes) -> str:
        p = self.incoming / name
        p.write_bytes(data)
        return str(p)

    def descriptor(self, name: str, data: bytes, declared=None, preserve=False) -> UploadDescriptor:
        return UploadDescriptor(
            original_filename=name,
            declared_size=len(data) if declared is None else declared,
            source_path=self.landed(name, data),
            preserve_source=preserve,
            uploader_ip="127.0.0.1",
        )


class AddFileTests(StorageTestCase):
    async def test_stat_size_overrides_declared_size(self):
        rec = await self.storage.add_file(self.descriptor("note.txt", b"0123456789", declared=3))
        self.assertEqual(rec.size, 10)
        self.assertEqual(self.db.files.docs[0]["size"], 10)

        await self.storage.cache.clear()
        again = await self.storage.get_file_by_id(rec.id)
        self.assertIsNot(again, rec)
        self.assertEqual(again.size, os.path.getsize(again.path))

    async def test_record_fields(self):
        rec = await self.storage.add_file(self.descriptor("note.txt", b"hello"))
        self.assertEqual(rec.path, self.storage_dir / rec.id)
        self.assertEqual(rec.mime_type, "text/plain")
        self.assertEqual(rec.get_public_url(), "/" + rec.id)
        self.assertTrue(rec.is_visible())
        self.assertGreater(rec.upload_time, 0)

        doc = self.db.files.docs[0]
        self.assertEqual(doc["v"], 1)
        self.assertEqual(doc["id"], rec.id)
        self.assertEqual(doc["name"], "note.txt")
        self.assertEqual(doc["uploader_ip"], "127.0.0.1")
        self.assertFalse(doc["deleted"])
        self.assertNotIn("path", doc)

    async def test_rename_consumes_source(self):
        d = self.descriptor("a.bin", b"abc")
        rec = await self.storage.add_file(d)
        self.assertFalse(os.path.exists(d.source_path))
        self.assertEqual(rec.path.read_bytes(), b"abc")

    async def test_preserve_copies_source(self):
        d = self.descriptor("a.bin", b"abc", preserve=True)
        rec = await self.storage.add_file(d)
        self.assertTrue(os.path.exists(d.source_path))
        self.assertEqual(rec.path.read_bytes(), b"abc")

    async def test_too_large_leaves_nothing_behind(self):
        d = self.descriptor("big.bin", b"x" * 10, declared=self.max_size + 1)
        with self.assertRaises(UploadError) as ctx:
            await self.storage.add_file(d)
        self.assertEqual(ctx.exception.reason, UPLOAD_TOO_LARGE)
        self.assertEqual(self.db.files.docs, [])
        self.assertEqual(os.listdir(self.storage_dir), [])
        self.assertEqual(len(self.storage.cache), 0)

    async def test_exactly_max_size_is_accepted(self):
        rec = await self.storage.add_file(self.descriptor("edge.bin", b"x" * self.max_size))
        self.assertEqual(rec.size, self.max_size)

    async def test_missing_declared_size(self):
        d = self.descriptor("a.bin", b"abc")
        d.declared_size = None
        with self.assertRaises(ValidationError):
            await self.storage.add_file(d)

    async def test_missing_source_is_io_failure(self):
        d = UploadDescriptor("gone.txt", 4, str(self.incoming / "gone.txt"))
        with self.assertRaises(UploadError) as ctx:
            await self.storage.add_file(d)
        self.assertEqual(ctx.exception.reason, UPLOAD_IO_FAILURE)
        self.assertEqual(self.db.files.docs, [])

    async def test_persistence_failure_orphans_bytes(self):
        self.db.files.fail_writes = True
        with self.assertRaises(UploadError) as ctx:
            await self.storage.add_file(self.descriptor("a.bin", b"abc"))
        self.assertEqual(ctx.exception.reason, UPLOAD_PERSISTENCE_FAILURE)
        self.assertEqual(len(os.listdir(self.storage_dir)), 1)
        self.assertEqual(len(self.storage.cache), 0)


class BatchUploadTests(StorageTestCase):
    async def test_one_failure_does_not_abort_the_rest(self):
        good = self.descriptor("good.txt", b"ok")
        big = self.descriptor("big.bin", b"x", declared=self.max_size * 2)
        gone = UploadDescriptor("gone.txt", 1, str(self.incoming / "gone.txt"))
        good2 = self.descriptor("good2.png", b"png")

        outcomes = await self.storage.add_files([good, big, gone, good2])

        self.assertEqual([o.status for o in outcomes], ["ok", "error", "error", "ok"])
        self.assertEqual(outcomes[1].reason, UPLOAD_TOO_LARGE)
        self.assertEqual(outcomes[2].reason, UPLOAD_IO_FAILURE)
        self.assertIs(outcomes[0].descriptor, good)
        self.assertEqual(outcomes[3].file.mime_type, "image/png")
        self.assertEqual(len(self.db.files.docs), 2)


class GetFileTests(StorageTestCase):
    async def test_unknown_id(self):
        with self.assertRaises(NotFound):
            await self.storage.get_file_by_id("nothere1")

    async def test_store_error_is_not_found(self):
        self.db.files.fail_reads = True
        with self.assertRaises(NotFound):
            await self.storage.get_file_by_id("nothere1")

    async def test_malformed_document_is_not_found(self):
        self.db.files.docs.append({"id": "broken01", "deleted": False})
        with self.assertRaises(NotFound):
            await self.storage.get_file_by_id("broken01")

    async def test_cache_hit_returns_same_instance(self):
        rec = await self.storage.add_file(self.descriptor("a.txt", b"abc"))
        self.assertIs(await self.storage.get_file_by_id(rec.id), rec)

    async def test_deleted_in_store_hidden_from_fresh_lookup(self):
        rec = await self.storage.add_file(self.descriptor("a.txt", b"abc"))
        self.db.files.update({"id": rec.id}, deleted=True, delete_time=1)
        await self.storage.cache.clear()
        with self.assertRaises(NotFound):
            await self.storage.get_file_by_id(rec.id)

    async def test_deleted_in_store_still_served_from_cache(self):
        # no targeted invalidation: a cached handle stays until FIFO evicts it
        rec = await self.storage.add_file(self.descriptor("a.txt", b"abc"))
        self.db.files.update({"id": rec.id}, deleted=True, delete_time=1)
        cached = await self.storage.get_file_by_id(rec.id)
        self.assertIs(cached, rec)
        self.assertTrue(cached.is_visible())

    async def test_evicted_ids_resolve_through_store(self):
        recs = []
        for i in range(6):
            recs.append(await self.storage.add_file(self.descriptor(f"{i}.txt", b"%d" % i)))
        for r in recs[:3]:
            self.assertNotIn(r.id, self.storage.cache)
        for r in recs[3:]:
            self.assertIn(r.id, self.storage.cache)

        again = await self.storage.get_file_by_id(recs[0].id)
        self.assertIsNot(again, recs[0])
        self.assertEqual(again.id, recs[0].id)
        self.assertIn(recs[0].id, self.storage.cache)

    async def test_get_buffer(self):
        rec = await self.storage.add_file(self.descriptor("a.txt", b"payload"))
        self.assertEqual(await rec.get_buffer(), b"payload")

    async def test_get_buffer_missing_bytes(self):
        rec = await self.storage.add_file(self.descriptor("a.txt", b"payload"))
        os.remove(rec.path)
        with self.assertRaises(StorageIOError):
            await rec.get_buffer()
        # metadata is left alone
        self.assertIs(await self.storage.get_file_by_id(rec.id), rec)


class FileRecordSchemaTests(TestCase):
    def test_document_roundtrip_recomputes_path(self):
        rec = FileRecord(id="abcdefg", name="x.txt", storage_dir=Path("/data"), size=3, upload_time=5)
        doc = rec.to_document()
        back = FileRecord.from_document(dict(doc, _id="mongo-id"), Path("/elsewhere"))
        self.assertEqual(back.path, Path("/elsewhere/abcdefg"))
        self.assertEqual(back.size, 3)

    def test_unknown_version_rejected(self):
        from filehost.errors import RecordSchemaError

        doc = FileRecord(id="abcdefg", name="x", storage_dir=Path("/d"), size=1).to_document()
        doc["v"] = 2
        with self.assertRaises(RecordSchemaError):
            FileRecord.from_document(doc, Path("/d"))
