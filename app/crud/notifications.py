from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import NotFound
from app.models import Notification, User
from app.rules.phase import to_db_time


def list_notifications(db: Session, user: User, unread_only: bool = False, limit: int = 50) -> list[Notification]:
    query = select(Notification).where(Notification.user_id == user.id)
    if unread_only:
        query = query.where(Notification.is_read.is_(False))
    return list(db.scalars(query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)))


def mark_read(db: Session, user: User, notification_id: int) -> Notification:
    item = db.scalar(
        select(Notification).where(Notification.id == notification_id).where(Notification.user_id == user.id)
    )
    if not item:
        raise NotFound("Notification not found")
    item.is_read = True
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def pending_deliveries(db: Session, limit: int = 200) -> list[tuple[Notification, int]]:
    rows = db.execute(
        select(Notification, User.tg_chat_id)
        .join(User, User.id == Notification.user_id)
        .where(Notification.delivered_at.is_(None))
        .where(User.tg_chat_id.is_not(None))
        .order_by(Notification.id)
        .limit(limit)
    ).all()
    return [(notification, chat_id) for notification, chat_id in rows]


def mark_delivered(db: Session, notification: Notification, now: datetime) -> None:
    notification.delivered_at = to_db_time(now)
    db.add(notification)
    db.commit()


def latest_for_user(db: Session, user_id: int) -> Optional[Notification]:
    return db.scalar(
        select(Notification).where(Notification.user_id == user_id).order_by(Notification.id.desc()).limit(1)
    )
