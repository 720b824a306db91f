from tests.helpers import DbTestCase, utc

from app.crud.notifications import list_notifications
from app.crud.tasks import plan_task, upload_completion
from app.crud.verification import (
    PairingState,
    is_settlement_due,
    pairing_state,
    settle_due_pairings,
    settle_pairing,
    verify,
)
from app.errors import AlreadyVerified, NotInVerificationWindow, NothingToVerify, PermissionDenied
from app.models import Notification, RatingEvent


class SettlementTest(DbTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.alice = self.make_user("alice", deadline="09:00")
        self.bob = self.make_user("bob", deadline="09:00")
        self.pairing = self.make_pairing(self.alice, self.bob, utc(7))

    def submit(self, user) -> None:
        plan_task(self.db, self.pairing, user, "Write the report", "First draft", utc(7, 30))
        upload_completion(self.db, self.pairing, user, "Report written", "Draft attached", utc(8, 30))

    def ratings(self) -> tuple:
        return self.reload(self.alice).rating, self.reload(self.bob).rating

    def test_no_submission_and_unverified_submission(self) -> None:
        self.submit(self.bob)

        outcome = settle_pairing(self.db, self.pairing, utc(9, 31))

        self.assertEqual(outcome.deltas, {self.alice.id: -2, self.bob.id: 1})
        self.assertEqual(self.ratings(), (-2, 1))
        self.assertEqual(pairing_state(self.db, self.reload(self.pairing), utc(9, 31)), PairingState.SETTLED)

    def test_verified_completion_before_window_closes(self) -> None:
        self.submit(self.alice)

        verify(self.db, self.pairing, self.bob, self.alice.id, True, utc(9, 10))
        self.assertIsNone(self.reload(self.pairing).settled_at)

        settle_pairing(self.db, self.pairing, utc(9, 31))
        self.assertEqual(self.ratings(), (1, -2))

    def test_not_completed_verdict(self) -> None:
        self.submit(self.alice)
        verify(self.db, self.pairing, self.bob, self.alice.id, False, utc(9, 5))

        settle_pairing(self.db, self.pairing, utc(9, 31))

        self.assertEqual(self.ratings(), (-1, -2))

    def test_both_verified_settles_immediately(self) -> None:
        self.submit(self.alice)
        self.submit(self.bob)

        verify(self.db, self.pairing, self.bob, self.alice.id, True, utc(9, 5))
        verify(self.db, self.pairing, self.alice, self.bob.id, False, utc(9, 6))

        self.assertIsNotNone(self.reload(self.pairing).settled_at)
        self.assertEqual(self.ratings(), (1, -1))

    def test_settlement_is_idempotent(self) -> None:
        self.submit(self.bob)

        first = settle_pairing(self.db, self.pairing, utc(9, 31))
        second = settle_pairing(self.db, self.reload(self.pairing), utc(9, 45))

        self.assertIsNotNone(first)
        self.assertIsNone(second)
        self.assertEqual(self.ratings(), (-2, 1))
        self.assertEqual(self.db.query(RatingEvent).count(), 2)
        self.assertEqual(self.db.query(Notification).count(), 2)

    def test_not_due_while_a_window_is_open(self) -> None:
        self.submit(self.alice)

        self.assertFalse(is_settlement_due(self.db, self.pairing, utc(9, 10)))
        self.assertIsNone(settle_pairing(self.db, self.pairing, utc(9, 10)))
        self.assertEqual(self.ratings(), (0, 0))

    def test_waits_for_the_later_deadline(self) -> None:
        bob = self.reload(self.bob)
        bob.deadline = "10:00"
        self.db.commit()

        self.assertFalse(is_settlement_due(self.db, self.pairing, utc(9, 31)))
        self.assertTrue(is_settlement_due(self.db, self.pairing, utc(10, 31)))

    def test_member_without_deadline_is_not_waited_for(self) -> None:
        bob = self.reload(self.bob)
        bob.deadline = None
        self.db.commit()

        self.assertTrue(is_settlement_due(self.db, self.pairing, utc(9, 31)))

    def test_notifications_describe_the_change(self) -> None:
        self.submit(self.bob)
        settle_pairing(self.db, self.pairing, utc(9, 31))

        alice_note = list_notifications(self.db, self.alice)[0]
        bob_note = list_notifications(self.db, self.bob)[0]
        self.assertEqual(alice_note.delta, -2)
        self.assertIn("decreased by 2 points", alice_note.message)
        self.assertIn("increased by 1 point", bob_note.message)

    def test_rating_events_record_the_running_total(self) -> None:
        self.submit(self.bob)
        settle_pairing(self.db, self.pairing, utc(9, 31))

        event = self.db.query(RatingEvent).filter_by(user_id=self.bob.id).one()
        self.assertEqual((event.delta, event.reason, event.rating_after), (1, "unverified", 1))

    def test_settle_due_pairings_skips_open_ones(self) -> None:
        carol = self.make_user("carol", deadline="20:00")
        dave = self.make_user("dave", deadline="20:00")
        self.make_pairing(carol, dave, utc(7))

        outcomes = settle_due_pairings(self.db, utc(9, 31))

        self.assertEqual([o.pairing_id for o in outcomes], [self.pairing.id])


class VerifyRulesTest(DbTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.alice = self.make_user("alice", deadline="09:00")
        self.bob = self.make_user("bob", deadline="09:00")
        self.pairing = self.make_pairing(self.alice, self.bob, utc(7))
        plan_task(self.db, self.pairing, self.alice, "Write the report", "First draft", utc(7, 30))
        upload_completion(self.db, self.pairing, self.alice, "Report written", "Draft attached", utc(8, 30))

    def test_only_inside_the_window(self) -> None:
        with self.assertRaises(NotInVerificationWindow):
            verify(self.db, self.pairing, self.bob, self.alice.id, True, utc(8, 59))
        with self.assertRaises(NotInVerificationWindow):
            verify(self.db, self.pairing, self.bob, self.alice.id, True, utc(9, 31))

    def test_only_the_partner(self) -> None:
        with self.assertRaises(PermissionDenied):
            verify(self.db, self.pairing, self.alice, self.alice.id, True, utc(9, 10))
        eve = self.make_user("eve", deadline="09:00")
        with self.assertRaises(PermissionDenied):
            verify(self.db, self.pairing, eve, self.alice.id, True, utc(9, 10))

    def test_nothing_to_verify(self) -> None:
        with self.assertRaises(NothingToVerify):
            verify(self.db, self.pairing, self.alice, self.bob.id, True, utc(9, 10))

    def test_verify_once(self) -> None:
        verify(self.db, self.pairing, self.bob, self.alice.id, True, utc(9, 10))
        with self.assertRaises(AlreadyVerified):
            verify(self.db, self.pairing, self.bob, self.alice.id, False, utc(9, 12))
