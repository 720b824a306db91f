import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from app.api.deps import SESSION_COOKIE, get_current_user, get_db, get_now, get_storage
from app.crud import (
    Upload,
    get_pairing_for_member,
    pairing_state,
    plan_task,
    resolve_session,
    settle_pairing,
    upload_completion,
    verification_view,
    verify,
)
from app.config import settings
from app.errors import AppError, FileTooLarge
from app.events import Change, change_feed
from app.models import Pairing, User
from app.schemas import CompletedTaskOut, PlanIn, PlannedTaskOut, VerificationOut, VerifyIn
from app.storage import BlobStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/pairings", tags=["tasks"])

# collections a pairing's event stream follows, keyed by the column holding the pairing id
STREAMED = {
    "pairings": "id",
    "planned_tasks": "pairing_id",
    "completed_tasks": "pairing_id",
    "verifications": "pairing_id",
}


async def read_upload(file: UploadFile, limit: int) -> Upload:
    # never buffer more than one byte past the limit
    if file.size is not None and file.size > limit:
        raise FileTooLarge()
    data = await file.read(limit + 1)
    if len(data) > limit:
        raise FileTooLarge()
    return Upload(data=data, content_type=file.content_type, filename=file.filename)


def verification_payload(db: Session, pairing: Pairing, user: User, now: datetime) -> Dict[str, Any]:
    view = verification_view(db, pairing, user, now)
    planned = view["partner_planned"]
    completed = view["partner_completed"]
    mine = view["my_verification"]
    return {
        **view,
        "partner_planned": PlannedTaskOut.model_validate(planned).model_dump(mode="json") if planned else None,
        "partner_completed": CompletedTaskOut.model_validate(completed).model_dump(mode="json") if completed else None,
        "my_verification": VerificationOut.model_validate(mine).model_dump(mode="json") if mine else None,
    }


@router.post("/{pairing_id}/plan", response_model=PlannedTaskOut)
def plan(
    pairing_id: int,
    payload: PlanIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    pairing = get_pairing_for_member(db, pairing_id, user)
    return plan_task(db, pairing, user, payload.title, payload.description, now)


@router.post("/{pairing_id}/complete", response_model=CompletedTaskOut)
async def complete(
    pairing_id: int,
    title: str = Form(...),
    description: str = Form(...),
    file: Optional[UploadFile] = File(default=None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    store: BlobStore = Depends(get_storage),
):
    pairing = get_pairing_for_member(db, pairing_id, user)
    upload = None
    if file is not None and file.filename:
        upload = await read_upload(file, settings.MAX_UPLOAD_BYTES)
    return upload_completion(db, pairing, user, title, description, now, upload=upload, blob_store=store)


@router.get("/{pairing_id}/verification")
def verification_status(
    pairing_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> Dict[str, Any]:
    pairing = get_pairing_for_member(db, pairing_id, user)
    return verification_payload(db, pairing, user, now)


@router.post("/{pairing_id}/verify", response_model=VerificationOut)
def verify_partner(
    pairing_id: int,
    payload: VerifyIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    pairing = get_pairing_for_member(db, pairing_id, user)
    verified_user_id = payload.verified_user_id or pairing.partner_of(user.id)
    return verify(db, pairing, user, verified_user_id, payload.is_completed, now)


@router.post("/{pairing_id}/settle")
def settle(
    pairing_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> Dict[str, Any]:
    pairing = get_pairing_for_member(db, pairing_id, user)
    outcome = settle_pairing(db, pairing, now)
    return {
        "pairing_id": pairing.id,
        "state": pairing_state(db, pairing, now).value,
        "settled": outcome is not None,
        "deltas": {str(k): v for k, v in outcome.deltas.items()} if outcome else {},
    }


@router.websocket("/{pairing_id}/events")
async def pairing_events(
    websocket: WebSocket,
    pairing_id: int,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> None:
    token = websocket.query_params.get("token") or websocket.cookies.get(SESSION_COOKIE)
    user = resolve_session(db, token, now)
    if user is None or not _is_member(db, pairing_id, user):
        await websocket.close(code=1008)
        return

    await websocket.accept()
    loop = asyncio.get_running_loop()
    queue: "asyncio.Queue[Change]" = asyncio.Queue()

    def forward(change: Change) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, change)

    subscriptions = [
        change_feed.on_change(collection, {column: pairing_id}, forward) for collection, column in STREAMED.items()
    ]

    async def pump() -> None:
        while True:
            change = await queue.get()
            await websocket.send_json(
                {"collection": change.collection, "action": change.action, "record": jsonable_encoder(change.record)}
            )

    sender = asyncio.create_task(pump())
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("event stream closed pairing=%s user=%s", pairing_id, user.id)
    finally:
        sender.cancel()
        _cancel_all(subscriptions)


def _is_member(db: Session, pairing_id: int, user: User) -> bool:
    try:
        get_pairing_for_member(db, pairing_id, user)
    except AppError:
        return False
    return True


def _cancel_all(subscriptions: List[Any]) -> None:
    for sub in subscriptions:
        sub.cancel()
