import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.config import settings
from app.crud.user import create_user, get_user_by_email
from app.errors import NotAuthenticated
from app.models import AuthSession, User
from app.rules.phase import to_db_time
from app.rules.validation import validate_password

logger = logging.getLogger(__name__)

PBKDF2_ROUNDS = 240_000


def hash_password(password: str, salt: Optional[str] = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), PBKDF2_ROUNDS)
    return f"pbkdf2_sha256${PBKDF2_ROUNDS}${salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        _, rounds, salt, expected = stored.split("$", 3)
    except ValueError:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), int(rounds))
    return hmac.compare_digest(digest.hex(), expected)


def register(db: Session, email: str, password: str, username: str, timezone: str) -> User:
    validate_password(password)
    return create_user(db, email, hash_password(password), username, timezone)


def open_session(db: Session, user: User, now: datetime) -> AuthSession:
    session = AuthSession(
        token=secrets.token_urlsafe(32),
        user_id=user.id,
        expires_at=to_db_time(now) + timedelta(hours=settings.SESSION_TTL_HOURS),
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    return session


def login(db: Session, email: str, password: str, now: datetime) -> AuthSession:
    user = get_user_by_email(db, email)
    if not user or not verify_password(password or "", user.password_hash):
        logger.info("rejected login for %s", (email or "").strip().lower())
        raise NotAuthenticated("Invalid email or password")
    return open_session(db, user, now)


def logout(db: Session, token: str) -> None:
    db.execute(delete(AuthSession).where(AuthSession.token == token))
    db.commit()


def resolve_session(db: Session, token: Optional[str], now: datetime) -> Optional[User]:
    if not token:
        return None
    session = db.scalar(select(AuthSession).where(AuthSession.token == token))
    if not session:
        return None
    if session.expires_at <= to_db_time(now):
        db.delete(session)
        db.commit()
        return None
    return db.scalar(select(User).where(User.id == session.user_id))
