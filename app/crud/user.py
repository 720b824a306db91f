from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import AlreadyUpdatedToday, NotFound, UpstreamFailure, ValidationError
from app.models import User
from app.rules.phase import local_day, to_db_time
from app.rules.validation import validate_deadline, validate_timezone, validate_username


def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.scalar(select(User).where(User.id == user_id))


def get_user_or_404(db: Session, user_id: int) -> User:
    user = get_user(db, user_id)
    if not user:
        raise NotFound("User not found")
    return user


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.scalar(select(User).where(User.email == (email or "").strip().lower()))


def get_user_by_chat_id(db: Session, chat_id: int) -> Optional[User]:
    return db.scalar(select(User).where(User.tg_chat_id == chat_id))


def create_user(db: Session, email: str, password_hash: str, username: str, timezone: str) -> User:
    username = validate_username(username)
    timezone = validate_timezone(timezone)
    email = (email or "").strip().lower()

    if get_user_by_email(db, email):
        raise ValidationError("Email already registered")
    if db.scalar(select(User.id).where(User.username == username)):
        raise ValidationError("Username already taken")

    user = User(
        email=email,
        password_hash=password_hash,
        username=username,
        timezone=timezone,
        is_available=True,
        rating=0,
        total_pairs=0,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def update_deadline(db: Session, user: User, new_deadline: str, now: datetime) -> User:
    new_deadline = validate_deadline(new_deadline)

    if user.last_deadline_update is not None:
        if local_day(user.timezone, user.last_deadline_update) == local_day(user.timezone, now):
            raise AlreadyUpdatedToday()

    previous = (user.deadline, user.last_deadline_update)
    user.deadline = new_deadline
    user.last_deadline_update = to_db_time(now)
    db.add(user)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        user.deadline, user.last_deadline_update = previous
        raise UpstreamFailure("Failed to update deadline") from exc
    db.refresh(user)
    return user


def set_availability(db: Session, user: User, available: bool) -> User:
    user.is_available = bool(available)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def set_timezone(db: Session, user: User, timezone: str) -> User:
    user.timezone = validate_timezone(timezone)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def adjust_rating(db: Session, user_id: int, delta: int) -> None:
    # single UPDATE so concurrent settlements cannot overwrite each other
    db.execute(update(User).where(User.id == user_id).values(rating=User.rating + delta))


def leaderboard(db: Session, limit: int = 10) -> list[User]:
    limit = max(3, min(limit, 50))
    return list(
        db.scalars(
            select(User).order_by(User.rating.desc(), User.total_pairs.desc(), User.id).limit(limit)
        )
    )
