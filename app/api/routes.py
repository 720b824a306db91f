from datetime import datetime
from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, get_now, get_storage
from app.crud import (
    create_link_code,
    get_pairing_for_member,
    leaderboard,
    list_available_candidates,
    list_incoming_requests,
    list_notifications,
    list_outgoing_requests,
    list_pairings_for,
    mark_read,
    pairing_state,
    respond_request,
    send_request,
    set_availability,
    unlink,
    update_deadline,
)
from app.crud.user import get_user
from app.models import Pairing, User
from app.rules.phase import deadline_bounds, local_now, phase_for_user
from app.schemas import (
    AvailabilityIn,
    DeadlineIn,
    NotificationOut,
    PairingOut,
    PairingRequestIn,
    PairingRequestOut,
    PublicUserOut,
    RespondIn,
    UserOut,
)
from app.storage import BlobStore

router = APIRouter()


def phase_payload(user: User, now: datetime) -> Dict[str, Any]:
    phase = phase_for_user(user.deadline, user.timezone, now)
    if phase is None:
        return {"deadline": None, "phase": None, "deadline_at": None, "verification_ends_at": None}
    start, end = deadline_bounds(user.deadline, local_now(user.timezone, now))
    return {
        "deadline": user.deadline,
        "phase": phase.value,
        "deadline_at": start.isoformat(),
        "verification_ends_at": end.isoformat(),
    }


def pairing_payload(db: Session, pairing: Pairing, viewer: User, now: datetime) -> Dict[str, Any]:
    partner = get_user(db, pairing.partner_of(viewer.id))
    return {
        **PairingOut.model_validate(pairing).model_dump(mode="json"),
        "state": pairing_state(db, pairing, now).value,
        "partner": PublicUserOut.model_validate(partner).model_dump() if partner else None,
    }


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/v1/profile", response_model=UserOut)
def profile(user: User = Depends(get_current_user)) -> User:
    return user


@router.post("/v1/profile/deadline", response_model=UserOut)
def profile_deadline(
    payload: DeadlineIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> User:
    return update_deadline(db, user, payload.deadline, now)


@router.post("/v1/profile/availability", response_model=UserOut)
def profile_availability(
    payload: AvailabilityIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> User:
    return set_availability(db, user, payload.available)


@router.post("/v1/profile/telegram")
def profile_telegram_link(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> Dict[str, Any]:
    code = create_link_code(db, user, now)
    return {"code": code.code, "expires_at": code.expires_at.isoformat(), "command": f"/link {code.code}"}


@router.delete("/v1/profile/telegram", response_model=UserOut)
def profile_telegram_unlink(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> User:
    return unlink(db, user)


@router.get("/v1/phase")
def current_phase(user: User = Depends(get_current_user), now: datetime = Depends(get_now)) -> Dict[str, Any]:
    return phase_payload(user, now)


@router.get("/v1/candidates", response_model=List[PublicUserOut])
def candidates(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> List[User]:
    return list_available_candidates(db, user, now)


@router.post("/v1/requests", response_model=PairingRequestOut)
def create_request(
    payload: PairingRequestIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    return send_request(db, user, payload.to_user_id, now)


@router.get("/v1/requests/incoming")
def incoming_requests(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> Dict[str, Any]:
    items = []
    for req in list_incoming_requests(db, user):
        sender = get_user(db, req.from_user_id)
        items.append(
            {
                **PairingRequestOut.model_validate(req).model_dump(mode="json"),
                "from_username": sender.username if sender else None,
                "from_rating": sender.rating if sender else None,
            }
        )
    return {"count": len(items), "items": items}


@router.get("/v1/requests/outgoing", response_model=List[PairingRequestOut])
def outgoing_requests(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return list_outgoing_requests(db, user)


@router.post("/v1/requests/{request_id}/respond")
def answer_request(
    request_id: int,
    payload: RespondIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> Dict[str, Any]:
    pairing = respond_request(db, request_id, user, payload.accept, now)
    return {
        "ok": True,
        "status": "accepted" if payload.accept else "rejected",
        "pairing": pairing_payload(db, pairing, user, now) if pairing else None,
    }


@router.get("/v1/pairings")
def my_pairings(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> Dict[str, Any]:
    items = [pairing_payload(db, p, user, now) for p in list_pairings_for(db, user, now)]
    return {"count": len(items), "items": items}


@router.get("/v1/pairings/{pairing_id}")
def pairing_detail(
    pairing_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> Dict[str, Any]:
    pairing = get_pairing_for_member(db, pairing_id, user)
    return pairing_payload(db, pairing, user, now)


@router.get("/v1/notifications", response_model=List[NotificationOut])
def notifications(
    unread: bool = False,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return list_notifications(db, user, unread_only=unread)


@router.post("/v1/notifications/{notification_id}/read", response_model=NotificationOut)
def notification_read(notification_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return mark_read(db, user, notification_id)


@router.get("/v1/leaderboard")
def app_leaderboard(limit: int = 10, db: Session = Depends(get_db)) -> Dict[str, Any]:
    users = leaderboard(db, limit)
    return {
        "count": len(users),
        "items": [
            {
                "rank": idx + 1,
                "id": u.id,
                "username": u.username,
                "rating": u.rating,
                "total_pairs": u.total_pairs,
            }
            for idx, u in enumerate(users)
        ],
    }


@router.get("/files/{name}")
def download_file(name: str, store: BlobStore = Depends(get_storage)) -> FileResponse:
    return FileResponse(store.path_for(name))

