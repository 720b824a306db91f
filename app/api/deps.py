from datetime import datetime
from typing import Generator, Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from app.config import settings
from app.crud.auth import resolve_session
from app.crud.rate_limit import check_rate_limit, is_ip_allowed
from app.db import SessionLocal
from app.errors import NotAuthenticated, PermissionDenied, RateLimited
from app.models import User
from app.rules.phase import utcnow
from app.storage import BlobStore, get_blob_store

SESSION_COOKIE = "session"


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_now() -> datetime:
    return utcnow()


def get_storage() -> BlobStore:
    return get_blob_store()


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        return forwarded.split(",", 1)[0].strip()
    return request.client.host if request.client else "unknown"


def session_token(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    x_session_token: Optional[str] = Header(default=None),
) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization.split(" ", 1)[1].strip()
    if x_session_token:
        return x_session_token.strip()
    return request.cookies.get(SESSION_COOKIE)


def get_optional_user(
    token: Optional[str] = Depends(session_token),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> Optional[User]:
    return resolve_session(db, token, now)


def get_current_user(
    request: Request,
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> User:
    if user is None:
        raise NotAuthenticated()
    ip = client_ip(request)
    if not is_ip_allowed(db, ip, now):
        raise RateLimited("Access denied. Please try again later.")
    check_rate_limit(db, user.id, ip, now)
    return user


def require_admin(x_admin_token: Optional[str] = Header(default=None)) -> None:
    if not settings.ADMIN_API_TOKEN:
        raise PermissionDenied("Admin token is not configured")
    if x_admin_token != settings.ADMIN_API_TOKEN:
        raise PermissionDenied("Invalid admin token")
