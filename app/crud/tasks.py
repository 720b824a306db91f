import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import (
    AlreadyPlannedToday,
    AlreadyUploadedToday,
    DeadlineNotSet,
    NoPlanExists,
    OutsidePlanningWindow,
    PermissionDenied,
)
from app.models import CompletedTask, Pairing, PlannedTask, User
from app.rules.files import validate_upload
from app.rules.phase import Phase, local_day, phase_for_user
from app.rules.validation import validate_description, validate_title
from app.storage import BlobStore

logger = logging.getLogger(__name__)


@dataclass
class Upload:
    data: bytes
    content_type: Optional[str]
    filename: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


def get_planned_task(db: Session, pairing_id: int, user_id: int, cycle_date: date) -> Optional[PlannedTask]:
    return db.scalar(
        select(PlannedTask).where(
            and_(
                PlannedTask.pairing_id == pairing_id,
                PlannedTask.user_id == user_id,
                PlannedTask.cycle_date == cycle_date,
            )
        )
    )


def get_completed_task(db: Session, pairing_id: int, user_id: int, cycle_date: date) -> Optional[CompletedTask]:
    return db.scalar(
        select(CompletedTask).where(
            and_(
                CompletedTask.pairing_id == pairing_id,
                CompletedTask.user_id == user_id,
                CompletedTask.cycle_date == cycle_date,
            )
        )
    )


def _require_planning_phase(user: User, now: datetime) -> None:
    phase = phase_for_user(user.deadline, user.timezone, now)
    if phase is None:
        raise DeadlineNotSet()
    if phase != Phase.PLANNING:
        raise OutsidePlanningWindow()


def _require_member(pairing: Pairing, user: User) -> None:
    if not pairing.has_member(user.id):
        raise PermissionDenied("You are not part of this pairing")


def _require_current(pairing: Pairing, today: date) -> None:
    if pairing.cycle_date != today:
        raise OutsidePlanningWindow("This pairing has ended. Find a new partner for today.")


def plan_task(db: Session, pairing: Pairing, user: User, title: str, description: str, now: datetime) -> PlannedTask:
    _require_member(pairing, user)
    title = validate_title(title)
    description = validate_description(description)
    _require_planning_phase(user, now)

    today = local_day(user.timezone, now)
    _require_current(pairing, today)
    if get_planned_task(db, pairing.id, user.id, today):
        raise AlreadyPlannedToday()

    task = PlannedTask(
        pairing_id=pairing.id,
        user_id=user.id,
        title=title,
        description=description,
        status="planned",
        cycle_date=today,
    )
    db.add(task)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise AlreadyPlannedToday() from exc
    db.refresh(task)
    return task


def upload_completion(
    db: Session,
    pairing: Pairing,
    user: User,
    title: str,
    description: str,
    now: datetime,
    upload: Optional[Upload] = None,
    blob_store: Optional[BlobStore] = None,
) -> CompletedTask:
    _require_member(pairing, user)
    today = local_day(user.timezone, now)

    planned = get_planned_task(db, pairing.id, user.id, today)
    if not planned:
        raise NoPlanExists()
    _require_planning_phase(user, now)
    if get_completed_task(db, pairing.id, user.id, today):
        raise AlreadyUploadedToday()

    title = validate_title(title)
    description = validate_description(description)

    file_url = None
    file_type = None
    if upload is not None and upload.size > 0:
        file_type = validate_upload(upload.size, upload.content_type)
        if blob_store is None:
            raise ValueError("blob_store is required when a file is attached")
        file_url = blob_store.put(f"p{pairing.id}-u{user.id}", upload.data, file_type)

    task = CompletedTask(
        pairing_id=pairing.id,
        user_id=user.id,
        planned_task_id=planned.id,
        title=title,
        description=description,
        file_url=file_url,
        file_type=file_type,
        status="completed",
        verified=False,
        verification_result=None,
        cycle_date=today,
    )
    db.add(task)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise AlreadyUploadedToday() from exc
    db.refresh(task)
    logger.info("completion uploaded pairing=%s user=%s file=%s", pairing.id, user.id, bool(file_url))
    return task
