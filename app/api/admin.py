from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_now, require_admin
from app.crud import midnight_sweep, settle_due_pairings
from app.models import Pairing, User

router = APIRouter(prefix="/v1/admin", tags=["admin"])


@router.get("/users")
def admin_users(
    limit: int = 100,
    q: Optional[str] = None,
    available: Optional[bool] = None,
    _: None = Depends(require_admin),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    limit = max(1, min(limit, 500))

    query = select(User).order_by(User.created_at.desc(), User.id.desc()).limit(limit)
    if available is not None:
        query = query.where(User.is_available.is_(available))
    if q:
        needle = f"%{q.strip().lower()}%"
        query = query.where(func.lower(User.username).like(needle) | func.lower(User.email).like(needle))

    users = list(db.scalars(query))
    return {
        "count": len(users),
        "items": [
            {
                "id": u.id,
                "username": u.username,
                "email": u.email,
                "timezone": u.timezone,
                "deadline": u.deadline,
                "is_available": u.is_available,
                "rating": u.rating,
                "total_pairs": u.total_pairs,
                "telegram_linked": u.telegram_linked,
                "created_at": u.created_at.isoformat() if u.created_at else None,
            }
            for u in users
        ],
    }


@router.get("/overview")
def admin_overview(_: None = Depends(require_admin), db: Session = Depends(get_db)) -> Dict[str, Any]:
    return {
        "users": db.scalar(select(func.count(User.id))) or 0,
        "available": db.scalar(select(func.count(User.id)).where(User.is_available.is_(True))) or 0,
        "pairings": db.scalar(select(func.count(Pairing.id))) or 0,
        "unsettled": db.scalar(select(func.count(Pairing.id)).where(Pairing.settled_at.is_(None))) or 0,
    }


@router.post("/settle")
def admin_settle(
    _: None = Depends(require_admin),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> Dict[str, Any]:
    outcomes = settle_due_pairings(db, now)
    return {
        "ok": True,
        "settled": [
            {"pairing_id": o.pairing_id, "deltas": {str(k): v for k, v in o.deltas.items()}} for o in outcomes
        ],
    }


@router.post("/sweep")
def admin_sweep(
    _: None = Depends(require_admin),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> Dict[str, Any]:
    return {"ok": True, "deleted": midnight_sweep(db, now)}
