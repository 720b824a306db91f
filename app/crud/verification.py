"""Verification and settlement of a day's pairing.

A pairing moves AWAITING_SUBMISSIONS -> AWAITING_VERIFICATION -> SETTLED.
Settlement happens once per pairing: either both partners verified each other
or every partner's verification window has closed. The ``settled_at`` column
is claimed with a conditional UPDATE; only the writer that flips it from NULL
applies rating deltas, so concurrent or repeated settlement attempts are
no-ops.
"""

import enum
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional

from sqlalchemy import and_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.crud.tasks import get_completed_task, get_planned_task
from app.crud.user import adjust_rating
from app.errors import AlreadyVerified, DeadlineNotSet, NotInVerificationWindow, NothingToVerify, PermissionDenied
from app.events import Change, change_feed
from app.models import CompletedTask, Notification, Pairing, RatingEvent, User, Verification
from app.rules.phase import Phase, local_day, phase_for_user, to_db_time
from app.rules.rating import Verdict, delta_reason, notification_message, rating_delta

logger = logging.getLogger(__name__)


class PairingState(str, enum.Enum):
    AWAITING_SUBMISSIONS = "AWAITING_SUBMISSIONS"
    AWAITING_VERIFICATION = "AWAITING_VERIFICATION"
    SETTLED = "SETTLED"


@dataclass
class SettlementOutcome:
    pairing_id: int
    cycle_date: date
    deltas: Dict[int, int] = field(default_factory=dict)
    reasons: Dict[int, str] = field(default_factory=dict)


def get_verification(db: Session, pairing_id: int, verifier_id: int, cycle_date: date) -> Optional[Verification]:
    return db.scalar(
        select(Verification).where(
            and_(
                Verification.pairing_id == pairing_id,
                Verification.verifier_id == verifier_id,
                Verification.cycle_date == cycle_date,
            )
        )
    )


def _members(db: Session, pairing: Pairing) -> List[User]:
    return list(db.scalars(select(User).where(User.id.in_(pairing.member_ids)).order_by(User.id)))


def pairing_state(db: Session, pairing: Pairing, now: datetime) -> PairingState:
    if pairing.settled_at is not None:
        return PairingState.SETTLED
    for member in _members(db, pairing):
        if phase_for_user(member.deadline, member.timezone, now) in (Phase.VERIFYING, Phase.CLOSED):
            return PairingState.AWAITING_VERIFICATION
        if local_day(member.timezone, now) > pairing.cycle_date:
            return PairingState.AWAITING_VERIFICATION
    return PairingState.AWAITING_SUBMISSIONS


def verify(
    db: Session,
    pairing: Pairing,
    verifier: User,
    verified_user_id: int,
    is_completed: bool,
    now: datetime,
) -> Verification:
    if not pairing.has_member(verifier.id):
        raise PermissionDenied("You are not part of this pairing")
    if verified_user_id == verifier.id or not pairing.has_member(verified_user_id):
        raise PermissionDenied("You can only verify your partner")

    phase = phase_for_user(verifier.deadline, verifier.timezone, now)
    if phase is None:
        raise DeadlineNotSet()
    if phase != Phase.VERIFYING:
        raise NotInVerificationWindow()

    today = local_day(verifier.timezone, now)
    if get_verification(db, pairing.id, verifier.id, today):
        raise AlreadyVerified()

    completed = get_completed_task(db, pairing.id, verified_user_id, today)
    if not completed:
        raise NothingToVerify()
    if completed.verified:
        raise AlreadyVerified()

    verdict = Verdict.COMPLETED if is_completed else Verdict.NOT_COMPLETED
    record = Verification(
        pairing_id=pairing.id,
        task_id=completed.id,
        planned_task_id=completed.planned_task_id,
        verifier_id=verifier.id,
        verified_user_id=verified_user_id,
        is_completed=bool(is_completed),
        cycle_date=today,
    )
    db.add(record)
    completed.verified = True
    completed.verification_result = verdict.value
    completed.verified_at = to_db_time(now)
    db.add(completed)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise AlreadyVerified() from exc
    db.refresh(record)

    settle_pairing(db, pairing, now)
    return record


def _both_verified(db: Session, pairing: Pairing) -> bool:
    count = len(
        db.scalars(
            select(Verification.verifier_id)
            .where(Verification.pairing_id == pairing.id)
            .where(Verification.cycle_date == pairing.cycle_date)
            .distinct()
        ).all()
    )
    return count >= 2


def _window_closed_for_all(members: List[User], pairing: Pairing, now: datetime) -> bool:
    closed_any = False
    for member in members:
        if local_day(member.timezone, now) > pairing.cycle_date:
            closed_any = True
            continue
        phase = phase_for_user(member.deadline, member.timezone, now)
        if phase is None:
            # no deadline, nothing to wait for
            continue
        if phase != Phase.CLOSED:
            return False
        closed_any = True
    return closed_any


def is_settlement_due(db: Session, pairing: Pairing, now: datetime) -> bool:
    if pairing.settled_at is not None:
        return False
    if _both_verified(db, pairing):
        return True
    return _window_closed_for_all(_members(db, pairing), pairing, now)


def compute_outcome(db: Session, pairing: Pairing) -> SettlementOutcome:
    outcome = SettlementOutcome(pairing_id=pairing.id, cycle_date=pairing.cycle_date)
    for user_id in pairing.member_ids:
        completed: Optional[CompletedTask] = get_completed_task(db, pairing.id, user_id, pairing.cycle_date)
        verdict = None
        if completed is not None and completed.verification_result:
            verdict = Verdict(completed.verification_result)
        submitted = completed is not None
        outcome.deltas[user_id] = rating_delta(submitted, verdict)
        outcome.reasons[user_id] = delta_reason(submitted, verdict)
    return outcome


def settle_pairing(db: Session, pairing: Pairing, now: datetime) -> Optional[SettlementOutcome]:
    if not is_settlement_due(db, pairing, now):
        return None

    outcome = compute_outcome(db, pairing)
    claimed = db.execute(
        update(Pairing)
        .where(Pairing.id == pairing.id)
        .where(Pairing.settled_at.is_(None))
        .values(settled_at=to_db_time(now))
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount != 1:
        db.rollback()
        return None

    for user_id, delta in outcome.deltas.items():
        adjust_rating(db, user_id, delta)
    db.flush()

    ratings = dict(db.execute(select(User.id, User.rating).where(User.id.in_(list(outcome.deltas)))).all())
    for user_id, delta in outcome.deltas.items():
        reason = outcome.reasons[user_id]
        db.add(
            RatingEvent(
                user_id=user_id,
                pairing_id=pairing.id,
                cycle_date=pairing.cycle_date,
                delta=delta,
                reason=reason,
                rating_after=ratings.get(user_id, 0),
            )
        )
        db.add(Notification(user_id=user_id, kind="rating", message=notification_message(delta, reason), delta=delta))
    db.commit()
    db.refresh(pairing)

    change_feed.publish(Change("pairings", "settled", {"id": pairing.id, "deltas": dict(outcome.deltas)}))
    logger.info("settled pairing=%s day=%s deltas=%s", pairing.id, pairing.cycle_date, outcome.deltas)
    return outcome


def settle_due_pairings(db: Session, now: datetime) -> List[SettlementOutcome]:
    pairing_ids = list(db.scalars(select(Pairing.id).where(Pairing.settled_at.is_(None)).order_by(Pairing.id)))
    results: List[SettlementOutcome] = []
    for pairing_id in pairing_ids:
        pairing = db.scalar(select(Pairing).where(Pairing.id == pairing_id))
        if pairing is None:
            continue
        outcome = settle_pairing(db, pairing, now)
        if outcome:
            results.append(outcome)
    return results


def verification_view(db: Session, pairing: Pairing, viewer: User, now: datetime) -> Dict[str, object]:
    partner_id = pairing.partner_of(viewer.id)
    today = local_day(viewer.timezone, now)
    phase = phase_for_user(viewer.deadline, viewer.timezone, now)
    return {
        "pairing_id": pairing.id,
        "partner_id": partner_id,
        "phase": phase.value if phase else None,
        "state": pairing_state(db, pairing, now).value,
        "partner_planned": get_planned_task(db, pairing.id, partner_id, today),
        "partner_completed": get_completed_task(db, pairing.id, partner_id, today),
        "my_verification": get_verification(db, pairing.id, viewer.id, today),
    }
