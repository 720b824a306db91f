from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from app.api.deps import SESSION_COOKIE, client_ip, get_current_user, get_db, get_now, session_token
from app.config import settings
from app.crud import login, logout, open_session, register
from app.crud.rate_limit import is_ip_allowed, update_ip_reputation
from app.errors import NotAuthenticated, RateLimited
from app.models import User
from app.schemas import LoginIn, RegisterIn, SessionOut, UserOut

router = APIRouter(prefix="/v1/auth", tags=["auth"])


def _session_response(response: Response, session, user: User) -> SessionOut:
    response.set_cookie(
        SESSION_COOKIE,
        session.token,
        max_age=settings.SESSION_TTL_HOURS * 3600,
        httponly=True,
        samesite="lax",
    )
    return SessionOut(token=session.token, expires_at=session.expires_at, user=UserOut.model_validate(user))


@router.post("/register", response_model=SessionOut)
def auth_register(
    payload: RegisterIn,
    response: Response,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> SessionOut:
    user = register(db, payload.email, payload.password, payload.username, payload.timezone)
    session = open_session(db, user, now)
    return _session_response(response, session, user)


@router.post("/login", response_model=SessionOut)
def auth_login(
    payload: LoginIn,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> SessionOut:
    ip = client_ip(request)
    if not is_ip_allowed(db, ip, now):
        raise RateLimited("Access denied. Please try again later.")
    try:
        session = login(db, payload.email, payload.password, now)
    except NotAuthenticated:
        update_ip_reputation(db, ip, -1, now)
        raise
    user = db.get(User, session.user_id)
    return _session_response(response, session, user)


@router.post("/logout")
def auth_logout(
    response: Response,
    token: Optional[str] = Depends(session_token),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    if token:
        logout(db, token)
    response.delete_cookie(SESSION_COOKIE)
    return {"ok": True}


@router.get("/me", response_model=UserOut)
def auth_me(user: User = Depends(get_current_user)) -> User:
    return user
