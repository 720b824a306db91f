import asyncio
import shutil
import tempfile
import unittest
from unittest.mock import AsyncMock, MagicMock

from tests.helpers import DbTestCase, utc

from app.api.tasks import read_upload
from app.crud.tasks import Upload, get_completed_task, plan_task, upload_completion
from app.crud.user import update_deadline
from app.errors import (
    AlreadyPlannedToday,
    AlreadyUpdatedToday,
    AlreadyUploadedToday,
    DeadlineNotSet,
    FileTooLarge,
    NoPlanExists,
    NotFound,
    OutsidePlanningWindow,
    PermissionDenied,
    UnsupportedFileType,
    UpstreamFailure,
    ValidationError,
)
from app.models import CompletedTask, PlannedTask
from app.storage import BlobStore, LocalBlobStore


class DeadlineGateTest(DbTestCase):
    def test_second_update_same_day_is_rejected(self) -> None:
        user = self.make_user("alice")

        update_deadline(self.db, user, "18:00", utc(8))
        with self.assertRaises(AlreadyUpdatedToday):
            update_deadline(self.db, user, "19:00", utc(20))

        self.assertEqual(self.reload(user).deadline, "18:00")

    def test_next_day_update_is_allowed(self) -> None:
        user = self.make_user("alice")
        update_deadline(self.db, user, "18:00", utc(8))

        update_deadline(self.db, user, "7:30", utc(8, day=20))

        self.assertEqual(self.reload(user).deadline, "07:30")

    def test_day_is_the_users_local_day(self) -> None:
        user = self.make_user("kenji", tz="Asia/Tokyo")
        update_deadline(self.db, user, "18:00", utc(10))

        # 16:00 UTC is already the next day in Tokyo
        update_deadline(self.db, user, "19:00", utc(16))

        self.assertEqual(self.reload(user).deadline, "19:00")

    def test_invalid_deadline_does_not_consume_the_daily_change(self) -> None:
        user = self.make_user("alice")
        with self.assertRaises(ValidationError):
            update_deadline(self.db, user, "23:45", utc(8))

        update_deadline(self.db, user, "23:30", utc(8))
        self.assertEqual(self.reload(user).deadline, "23:30")


class PlanTest(DbTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.alice = self.make_user("alice", deadline="18:00")
        self.bob = self.make_user("bob", deadline="18:00")
        self.pairing = self.make_pairing(self.alice, self.bob, utc(9))

    def test_plan_once_per_day(self) -> None:
        task = plan_task(self.db, self.pairing, self.alice, "Read a chapter", "Chapter four", utc(10))
        self.assertEqual(task.status, "planned")

        with self.assertRaises(AlreadyPlannedToday):
            plan_task(self.db, self.pairing, self.alice, "Read again", "Chapter five", utc(11))
        self.assertEqual(self.db.query(PlannedTask).count(), 1)

    def test_plan_requires_deadline(self) -> None:
        carol = self.make_user("carol")
        dave = self.make_user("dave", deadline="18:00")
        pairing = self.make_pairing(dave, carol, utc(9))

        with self.assertRaises(DeadlineNotSet):
            plan_task(self.db, pairing, carol, "Run 5k", "Morning run", utc(10))

    def test_plan_after_deadline_is_rejected(self) -> None:
        with self.assertRaises(OutsidePlanningWindow):
            plan_task(self.db, self.pairing, self.alice, "Read a chapter", "Chapter four", utc(18, 5))

    def test_plan_on_yesterdays_pairing_is_rejected(self) -> None:
        with self.assertRaises(OutsidePlanningWindow):
            plan_task(self.db, self.pairing, self.alice, "Read a chapter", "Chapter four", utc(10, day=20))

    def test_outsider_cannot_plan(self) -> None:
        eve = self.make_user("eve", deadline="18:00")
        with self.assertRaises(PermissionDenied):
            plan_task(self.db, self.pairing, eve, "Read a chapter", "Chapter four", utc(10))


class UploadTest(DbTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.alice = self.make_user("alice", deadline="18:00")
        self.bob = self.make_user("bob", deadline="18:00")
        self.pairing = self.make_pairing(self.alice, self.bob, utc(9))
        self.upload_dir = tempfile.mkdtemp()
        self.store = LocalBlobStore(self.upload_dir, "http://files.test")

    def tearDown(self) -> None:
        shutil.rmtree(self.upload_dir, ignore_errors=True)
        super().tearDown()

    def plan(self) -> PlannedTask:
        return plan_task(self.db, self.pairing, self.alice, "Read a chapter", "Chapter four", utc(10))

    def test_upload_without_plan(self) -> None:
        with self.assertRaises(NoPlanExists):
            upload_completion(self.db, self.pairing, self.alice, "Done reading", "All of it", utc(12))
        self.assertEqual(self.db.query(CompletedTask).count(), 0)

    def test_upload_once_per_day(self) -> None:
        planned = self.plan()
        task = upload_completion(self.db, self.pairing, self.alice, "Done reading", "All of it", utc(12))

        self.assertFalse(task.verified)
        self.assertIsNone(task.file_url)
        self.assertEqual(task.planned_task_id, planned.id)
        self.assertEqual(get_completed_task(self.db, self.pairing.id, self.alice.id, utc(12).date()).id, task.id)
        with self.assertRaises(AlreadyUploadedToday):
            upload_completion(self.db, self.pairing, self.alice, "Done reading", "All of it", utc(13))

    def test_upload_after_deadline_is_rejected(self) -> None:
        self.plan()
        with self.assertRaises(OutsidePlanningWindow):
            upload_completion(self.db, self.pairing, self.alice, "Done reading", "All of it", utc(18, 1))

    def test_upload_with_pdf_stores_the_file(self) -> None:
        self.plan()
        upload = Upload(data=b"%PDF" + b"x" * (500 * 1024), content_type="application/pdf", filename="proof.pdf")

        task = upload_completion(
            self.db, self.pairing, self.alice, "Done reading", "All of it", utc(12), upload=upload, blob_store=self.store
        )

        self.assertTrue(task.file_url.startswith("http://files.test/files/"))
        self.assertTrue(task.file_url.endswith(".pdf"))
        self.assertEqual(task.file_type, "application/pdf")
        self.assertTrue(self.store.path_for(task.file_url.rsplit("/", 1)[1]).is_file())

    def test_rejected_file_writes_nothing(self) -> None:
        self.plan()
        big = Upload(data=b"x" * (2 * 1024 * 1024), content_type="application/pdf")
        exe = Upload(data=b"MZ" * 10, content_type="application/x-msdownload")

        with self.assertRaises(FileTooLarge):
            upload_completion(self.db, self.pairing, self.alice, "Done", "Proof", utc(12), upload=big, blob_store=self.store)
        with self.assertRaises(UnsupportedFileType):
            upload_completion(self.db, self.pairing, self.alice, "Done", "Proof", utc(12), upload=exe, blob_store=self.store)
        self.assertEqual(self.db.query(CompletedTask).count(), 0)

    def test_storage_failure_leaves_no_record(self) -> None:
        self.plan()
        store = MagicMock(spec=BlobStore)
        store.put.side_effect = UpstreamFailure("Failed to store the uploaded file")
        upload = Upload(data=b"hello", content_type="text/plain")

        with self.assertRaises(UpstreamFailure):
            upload_completion(self.db, self.pairing, self.alice, "Done", "Proof", utc(12), upload=upload, blob_store=store)
        self.assertEqual(self.db.query(CompletedTask).count(), 0)

    def test_blob_names_are_not_paths(self) -> None:
        for name in ("../secret", ".env", "a/b"):
            with self.subTest(name=name):
                with self.assertRaises(NotFound):
                    self.store.path_for(name)



def fake_upload_file(data: bytes, size=None):
    file = MagicMock()
    file.size = size
    file.filename = "proof.pdf"
    file.content_type = "application/pdf"
    file.read = AsyncMock(side_effect=lambda n=-1: data if n < 0 else data[:n])
    return file


class ReadUploadTest(unittest.TestCase):
    def test_reads_at_most_one_byte_past_the_limit(self) -> None:
        file = fake_upload_file(b"x" * 5000)

        with self.assertRaises(FileTooLarge):
            asyncio.run(read_upload(file, 1024))
        file.read.assert_awaited_once_with(1025)

    def test_declared_size_is_rejected_before_reading(self) -> None:
        file = fake_upload_file(b"", size=10 * 1024 * 1024)

        with self.assertRaises(FileTooLarge):
            asyncio.run(read_upload(file, 1024))
        file.read.assert_not_awaited()

    def test_small_file_is_kept_whole(self) -> None:
        upload = asyncio.run(read_upload(fake_upload_file(b"%PDF-1.4", size=8), 1024))

        self.assertEqual(upload.data, b"%PDF-1.4")
        self.assertEqual(upload.content_type, "application/pdf")
        self.assertEqual(upload.filename, "proof.pdf")
