import secrets
import string
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import NotFound, ValidationError
from app.models import TelegramLinkCode, User
from app.rules.phase import to_db_time


def _gen_code(length: int = 8) -> str:
    alphabet = string.ascii_uppercase + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def create_link_code(db: Session, user: User, now: datetime) -> TelegramLinkCode:
    code = _gen_code()
    while db.scalar(select(TelegramLinkCode.id).where(TelegramLinkCode.code == code)):
        code = _gen_code()
    item = TelegramLinkCode(
        code=code,
        user_id=user.id,
        expires_at=to_db_time(now) + timedelta(minutes=settings.LINK_CODE_TTL_MINUTES),
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def redeem_link_code(db: Session, code: str, chat_id: int, now: datetime) -> User:
    code = (code or "").strip().upper()
    item = db.scalar(select(TelegramLinkCode).where(TelegramLinkCode.code == code))
    if not item:
        raise NotFound("Link code not found")
    if item.is_used:
        raise ValidationError("Link code already used")
    if item.expires_at <= to_db_time(now):
        raise ValidationError("Link code expired")

    user = db.scalar(select(User).where(User.id == item.user_id))
    if not user:
        raise NotFound("User not found")

    previous: Optional[User] = db.scalar(select(User).where(User.tg_chat_id == chat_id))
    if previous and previous.id != user.id:
        previous.tg_chat_id = None
        db.add(previous)
        db.flush()

    user.tg_chat_id = chat_id
    item.is_used = True
    item.used_by_chat_id = chat_id
    item.used_at = to_db_time(now)
    db.add(user)
    db.add(item)
    db.commit()
    db.refresh(user)
    return user


def unlink(db: Session, user: User) -> User:
    user.tg_chat_id = None
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
