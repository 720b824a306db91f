"""Midnight reset of the daily ledgers.

Each user's day ends at midnight in their own timezone, so a pairing is swept
only once its ``cycle_date`` is over for both members, and a request only once
its sender's day has rolled over. Due pairings are settled first; users and
ratings are never touched.
"""

import logging
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session, aliased

from app.crud.verification import settle_due_pairings
from app.events import Change, change_feed
from app.models import REQUEST_PENDING, CompletedTask, Pairing, PairingRequest, PlannedTask, User, Verification
from app.rules.phase import local_day

logger = logging.getLogger(__name__)

# children first, pairings last
SWEEP_ORDER = (Verification, CompletedTask, PlannedTask, PairingRequest, Pairing)


def _day_is_over(cycle_date: date, tz_names: Iterable[Optional[str]], now: datetime) -> bool:
    return all(local_day(tz_name, now) > cycle_date for tz_name in tz_names)


def stale_pairing_ids(db: Session, now: datetime) -> List[int]:
    first, second = aliased(User), aliased(User)
    rows = db.execute(
        select(Pairing.id, Pairing.cycle_date, Pairing.settled_at, first.timezone, second.timezone)
        .join(first, first.id == Pairing.user1_id)
        .join(second, second.id == Pairing.user2_id)
        .order_by(Pairing.id)
    ).all()
    stale = []
    for pairing_id, cycle_date, settled_at, tz1, tz2 in rows:
        if not _day_is_over(cycle_date, (tz1, tz2), now):
            continue
        if settled_at is None:
            logger.warning("sweep skipped unsettled pairing=%s day=%s", pairing_id, cycle_date)
            continue
        stale.append(pairing_id)
    return stale


def stale_requests(db: Session, now: datetime) -> List[Tuple[int, int, str]]:
    """(id, sender id, status) of requests sent before the sender's current day."""
    rows = db.execute(
        select(
            PairingRequest.id, PairingRequest.from_user_id, PairingRequest.status, PairingRequest.created_at, User.timezone
        ).join(User, User.id == PairingRequest.from_user_id)
    ).all()
    return [
        (request_id, sender_id, status)
        for request_id, sender_id, status, created_at, tz_name in rows
        if local_day(tz_name, created_at) < local_day(tz_name, now)
    ]


def midnight_sweep(db: Session, now: datetime) -> Dict[str, int]:
    settled = settle_due_pairings(db, now)

    pairing_ids = stale_pairing_ids(db, now)
    requests = stale_requests(db, now)

    counts: Dict[str, int] = {model.__tablename__: 0 for model in SWEEP_ORDER}
    if pairing_ids:
        for model in (Verification, CompletedTask, PlannedTask):
            result = db.execute(
                delete(model).where(model.pairing_id.in_(pairing_ids)).execution_options(synchronize_session=False)
            )
            counts[model.__tablename__] = result.rowcount or 0
        result = db.execute(
            delete(Pairing).where(Pairing.id.in_(pairing_ids)).execution_options(synchronize_session=False)
        )
        counts[Pairing.__tablename__] = result.rowcount or 0
    if requests:
        result = db.execute(
            delete(PairingRequest)
            .where(PairingRequest.id.in_([request_id for request_id, _, _ in requests]))
            .execution_options(synchronize_session=False)
        )
        counts[PairingRequest.__tablename__] = result.rowcount or 0

        # senders of dropped pending requests are free again unless another request is still pending
        waiting_senders = sorted({sender_id for _, sender_id, status in requests if status == REQUEST_PENDING})
        if waiting_senders:
            still_waiting = select(PairingRequest.from_user_id).where(PairingRequest.status == REQUEST_PENDING)
            db.execute(
                update(User)
                .where(User.id.in_(waiting_senders))
                .where(User.id.not_in(still_waiting))
                .values(is_available=True)
                .execution_options(synchronize_session=False)
            )
    db.commit()

    for model in SWEEP_ORDER:
        change_feed.publish(Change(model.__tablename__, "reset"))
    logger.info("midnight sweep settled=%s deleted=%s", len(settled), counts)
    return counts
