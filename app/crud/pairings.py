from datetime import datetime
from typing import Optional

from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import DuplicateRequest, NotFound, PermissionDenied, RequestAlreadyResolved, ValidationError
from app.models import REQUEST_ACCEPTED, REQUEST_PENDING, REQUEST_REJECTED, Pairing, PairingRequest, User
from app.rules.phase import local_day, to_db_time


def _between(a_col, b_col, first: int, second: int):
    return or_(
        and_(a_col == first, b_col == second),
        and_(a_col == second, b_col == first),
    )


def _involving(a_col, b_col, user_id: int):
    return or_(a_col == user_id, b_col == user_id)


def list_pairings_for(db: Session, user: User, now: datetime) -> list[Pairing]:
    today = local_day(user.timezone, now)
    return list(
        db.scalars(
            select(Pairing)
            .where(_involving(Pairing.user1_id, Pairing.user2_id, user.id))
            .where(Pairing.cycle_date == today)
            .order_by(Pairing.id)
        )
    )


def find_pairing_between(db: Session, first: int, second: int, cycle_date) -> Optional[Pairing]:
    return db.scalar(
        select(Pairing)
        .where(_between(Pairing.user1_id, Pairing.user2_id, first, second))
        .where(Pairing.cycle_date == cycle_date)
        .order_by(Pairing.id)
        .limit(1)
    )


def get_pairing_for_member(db: Session, pairing_id: int, user: User) -> Pairing:
    pairing = db.scalar(select(Pairing).where(Pairing.id == pairing_id))
    if not pairing:
        raise NotFound("Pairing not found")
    if not pairing.has_member(user.id):
        raise PermissionDenied("You are not part of this pairing")
    return pairing


def pending_request_between(db: Session, first: int, second: int) -> Optional[PairingRequest]:
    return db.scalar(
        select(PairingRequest)
        .where(_between(PairingRequest.from_user_id, PairingRequest.to_user_id, first, second))
        .where(PairingRequest.status == REQUEST_PENDING)
        .limit(1)
    )


def list_available_candidates(db: Session, user: User, now: datetime) -> list[User]:
    today = local_day(user.timezone, now)

    paired_rows = db.execute(
        select(Pairing.user1_id, Pairing.user2_id)
        .where(_involving(Pairing.user1_id, Pairing.user2_id, user.id))
        .where(Pairing.cycle_date == today)
    ).all()
    request_rows = db.execute(
        select(PairingRequest.from_user_id, PairingRequest.to_user_id)
        .where(_involving(PairingRequest.from_user_id, PairingRequest.to_user_id, user.id))
        .where(PairingRequest.status == REQUEST_PENDING)
    ).all()

    excluded = {user.id}
    for first, second in list(paired_rows) + list(request_rows):
        excluded.add(first)
        excluded.add(second)

    return list(
        db.scalars(
            select(User)
            .where(User.is_available.is_(True))
            .where(User.timezone == user.timezone)
            .where(User.id.not_in(excluded))
            .order_by(User.username, User.id)
        )
    )


def send_request(db: Session, sender: User, to_user_id: int, now: datetime) -> PairingRequest:
    if to_user_id == sender.id:
        raise ValidationError("You cannot pair with yourself")

    recipient = db.scalar(select(User).where(User.id == to_user_id))
    if not recipient:
        raise NotFound("User not found")
    if find_pairing_between(db, sender.id, recipient.id, local_day(sender.timezone, now)):
        raise DuplicateRequest("You are already paired with this user today")
    if pending_request_between(db, sender.id, recipient.id):
        raise DuplicateRequest()

    request = PairingRequest(
        from_user_id=sender.id,
        to_user_id=recipient.id,
        status=REQUEST_PENDING,
        created_at=to_db_time(now),
    )
    db.add(request)
    sender.is_available = False
    db.add(sender)
    db.commit()
    db.refresh(request)
    return request


def list_incoming_requests(db: Session, user: User) -> list[PairingRequest]:
    return list(
        db.scalars(
            select(PairingRequest)
            .where(PairingRequest.to_user_id == user.id)
            .where(PairingRequest.status == REQUEST_PENDING)
            .order_by(PairingRequest.created_at, PairingRequest.id)
        )
    )


def list_outgoing_requests(db: Session, user: User) -> list[PairingRequest]:
    return list(
        db.scalars(
            select(PairingRequest)
            .where(PairingRequest.from_user_id == user.id)
            .where(PairingRequest.status == REQUEST_PENDING)
            .order_by(PairingRequest.created_at, PairingRequest.id)
        )
    )


def respond_request(db: Session, request_id: int, responder: User, accept: bool, now: datetime) -> Optional[Pairing]:
    request = db.scalar(select(PairingRequest).where(PairingRequest.id == request_id))
    if not request:
        raise NotFound("Pairing request not found")
    if request.to_user_id != responder.id:
        raise PermissionDenied("Only the recipient can answer this request")
    if request.status != REQUEST_PENDING:
        raise RequestAlreadyResolved()

    new_status = REQUEST_ACCEPTED if accept else REQUEST_REJECTED
    # conditional write: a second responder racing on the same request updates nothing
    claimed = db.execute(
        update(PairingRequest)
        .where(PairingRequest.id == request.id)
        .where(PairingRequest.status == REQUEST_PENDING)
        .values(status=new_status)
    )
    if claimed.rowcount != 1:
        db.rollback()
        raise RequestAlreadyResolved()

    if not accept:
        still_waiting = db.scalar(
            select(PairingRequest.id)
            .where(PairingRequest.from_user_id == request.from_user_id)
            .where(PairingRequest.status == REQUEST_PENDING)
            .limit(1)
        )
        if still_waiting is None:
            db.execute(update(User).where(User.id == request.from_user_id).values(is_available=True))
        db.commit()
        return None

    today = local_day(responder.timezone, now)
    pairing = find_pairing_between(db, request.from_user_id, request.to_user_id, today)
    if pairing:
        db.commit()
        return pairing

    pairing = Pairing(
        user1_id=request.from_user_id,
        user2_id=request.to_user_id,
        request_id=request.id,
        cycle_date=today,
    )
    db.add(pairing)
    db.execute(
        update(User)
        .where(User.id.in_([request.from_user_id, request.to_user_id]))
        .values(total_pairs=User.total_pairs + 1)
    )
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise RequestAlreadyResolved()
    db.refresh(pairing)
    return pairing
