from tests.helpers import DbTestCase, utc

from app.crud.pairings import send_request
from app.crud.sweep import midnight_sweep
from app.crud.tasks import plan_task, upload_completion
from app.crud.verification import verify
from app.events import change_feed
from app.models import CompletedTask, Pairing, PairingRequest, PlannedTask, RatingEvent, User, Verification


class MidnightSweepTest(DbTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.alice = self.make_user("alice", deadline="09:00")
        self.bob = self.make_user("bob", deadline="09:00")
        self.pairing = self.make_pairing(self.alice, self.bob, utc(7))
        plan_task(self.db, self.pairing, self.alice, "Write the report", "First draft", utc(7, 30))
        upload_completion(self.db, self.pairing, self.alice, "Report written", "Draft attached", utc(8, 30))
        verify(self.db, self.pairing, self.bob, self.alice.id, True, utc(9, 10))

    def test_clears_the_day(self) -> None:
        counts = midnight_sweep(self.db, utc(0, day=20))

        for model in (Verification, CompletedTask, PlannedTask, PairingRequest, Pairing):
            self.assertEqual(self.db.query(model).count(), 0, model.__tablename__)
        self.assertEqual(counts["pairings"], 1)
        self.assertEqual(counts["verifications"], 1)

    def test_settles_before_deleting(self) -> None:
        midnight_sweep(self.db, utc(0, day=20))

        self.assertEqual(self.reload(self.alice).rating, 1)
        self.assertEqual(self.reload(self.bob).rating, -2)
        self.assertEqual(self.db.query(RatingEvent).count(), 2)

    def test_keeps_users_and_ratings(self) -> None:
        midnight_sweep(self.db, utc(0, day=20))
        midnight_sweep(self.db, utc(0, day=21))

        self.assertEqual(self.db.query(User).count(), 2)
        self.assertEqual(self.reload(self.alice).rating, 1)

    def test_pending_request_senders_become_available(self) -> None:
        carol = self.make_user("carol")
        dave = self.make_user("dave")
        send_request(self.db, carol, dave.id, utc(10))
        self.assertFalse(self.reload(carol).is_available)

        midnight_sweep(self.db, utc(0, day=20))

        self.assertTrue(self.reload(carol).is_available)

    def test_publishes_reset_for_each_collection(self) -> None:
        seen = []
        subs = [
            change_feed.on_change(name, {"pairing_id": 12345}, lambda c: seen.append((c.collection, c.action)))
            for name in ("planned_tasks", "completed_tasks", "verifications")
        ]
        try:
            midnight_sweep(self.db, utc(0, day=20))
        finally:
            for sub in subs:
                sub.cancel()

        self.assertIn(("planned_tasks", "reset"), seen)
        self.assertIn(("completed_tasks", "reset"), seen)
        self.assertIn(("verifications", "reset"), seen)


class TimezoneSweepTest(DbTestCase):
    """New York runs four hours behind the server's UTC midnight in October."""

    NY = "America/New_York"

    def setUp(self) -> None:
        super().setUp()
        self.alice = self.make_user("alice", deadline="09:00")
        self.bob = self.make_user("bob", deadline="09:00")
        self.utc_pairing = self.make_pairing(self.alice, self.bob, utc(7))

        self.carol = self.make_user("carol", tz=self.NY, deadline="21:00")
        self.dave = self.make_user("dave", tz=self.NY, deadline="21:00")
        # 09:00 in New York
        self.ny_pairing = self.make_pairing(self.carol, self.dave, utc(13))
        plan_task(self.db, self.ny_pairing, self.carol, "Write the report", "First draft", utc(14))
        upload_completion(self.db, self.ny_pairing, self.carol, "Report written", "Draft attached", utc(15))

    def test_keeps_a_day_still_running_elsewhere(self) -> None:
        # 20:00 in New York, before carol's deadline
        counts = midnight_sweep(self.db, utc(0, day=20))

        self.assertEqual(counts["pairings"], 1)
        self.assertIsNone(self.db.get(Pairing, self.utc_pairing.id))
        self.assertIsNotNone(self.db.get(Pairing, self.ny_pairing.id))
        self.assertEqual(self.db.query(PlannedTask).count(), 1)
        self.assertEqual(self.db.query(CompletedTask).count(), 1)
        self.assertEqual(self.reload(self.carol).rating, 0)
        self.assertEqual(self.db.query(RatingEvent).filter(RatingEvent.user_id == self.carol.id).count(), 0)

    def test_settles_and_clears_after_local_midnight(self) -> None:
        midnight_sweep(self.db, utc(0, day=20))
        # 01:00 on the next day in New York
        counts = midnight_sweep(self.db, utc(5, day=20))

        self.assertEqual(counts["pairings"], 1)
        self.assertEqual(self.db.query(Pairing).count(), 0)
        self.assertEqual(self.reload(self.carol).rating, 1)
        self.assertEqual(self.reload(self.dave).rating, -2)
        self.assertEqual(self.db.query(RatingEvent).filter(RatingEvent.user_id == self.carol.id).count(), 1)

    def test_pending_request_waits_for_the_senders_midnight(self) -> None:
        erin = self.make_user("erin", tz=self.NY)
        frank = self.make_user("frank", tz=self.NY)
        send_request(self.db, erin, frank.id, utc(13))

        midnight_sweep(self.db, utc(0, day=20))
        self.assertEqual(self.db.query(PairingRequest).filter(PairingRequest.from_user_id == erin.id).count(), 1)
        self.assertFalse(self.reload(erin).is_available)

        midnight_sweep(self.db, utc(5, day=20))
        self.assertEqual(self.db.query(PairingRequest).filter(PairingRequest.from_user_id == erin.id).count(), 0)
        self.assertTrue(self.reload(erin).is_available)
