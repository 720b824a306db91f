"""Fixed-window request limits per (user, ip) and a reputation score per ip."""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import RateLimited
from app.models import IpReputation, RateLimitBlock, RateLimitWindow
from app.rules.phase import to_db_time

logger = logging.getLogger(__name__)


def _window_key(user_id: int, ip: str) -> str:
    return f"rateLimit:{user_id}:{ip}"


def _block_key(user_id: int, ip: str) -> str:
    return f"block:{user_id}:{ip}"


def check_rate_limit(
    db: Session,
    user_id: int,
    ip: str,
    now: datetime,
    max_requests: Optional[int] = None,
    window_minutes: Optional[int] = None,
    block_minutes: Optional[int] = None,
) -> int:
    max_requests = settings.RATE_LIMIT_MAX_REQUESTS if max_requests is None else max_requests
    window = timedelta(minutes=settings.RATE_LIMIT_WINDOW_MINUTES if window_minutes is None else window_minutes)
    block_for = timedelta(minutes=settings.RATE_LIMIT_BLOCK_MINUTES if block_minutes is None else block_minutes)
    moment = to_db_time(now)

    block = db.scalar(select(RateLimitBlock).where(RateLimitBlock.key == _block_key(user_id, ip)))
    if block:
        if block.expires_at > moment:
            raise RateLimited(f"Too many requests. Please try again after {block.expires_at.isoformat()} UTC")
        db.delete(block)
        db.flush()

    row = db.scalar(select(RateLimitWindow).where(RateLimitWindow.key == _window_key(user_id, ip)))
    if row is None:
        row = RateLimitWindow(key=_window_key(user_id, ip), count=0, window_start=moment, last_request=moment)
    elif row.window_start < moment - window:
        row.count = 0
        row.window_start = moment

    remaining = max(0, max_requests - row.count)
    if remaining <= 0:
        db.add(RateLimitBlock(key=_block_key(user_id, ip), expires_at=moment + block_for))
        db.commit()
        logger.warning("rate limit exceeded user=%s ip=%s", user_id, ip)
        raise RateLimited()

    row.count += 1
    row.last_request = moment
    db.add(row)
    db.commit()
    return remaining - 1


def is_ip_allowed(db: Session, ip: str, now: datetime) -> bool:
    moment = to_db_time(now)
    rep = db.scalar(select(IpReputation).where(IpReputation.ip == ip))
    if rep is None:
        db.add(IpReputation(ip=ip, score=0, blocked=False, last_updated=moment))
        db.commit()
        return True

    if rep.blocked:
        if rep.block_expires_at and rep.block_expires_at > moment:
            return False
        rep.blocked = False
        rep.block_expires_at = None
        rep.score = 0
        rep.last_updated = moment
        db.add(rep)
        db.commit()
        return True

    return rep.score >= settings.IP_REPUTATION_THRESHOLD


def update_ip_reputation(db: Session, ip: str, score_change: int, now: datetime) -> IpReputation:
    moment = to_db_time(now)
    rep = db.scalar(select(IpReputation).where(IpReputation.ip == ip))
    if rep is None:
        rep = IpReputation(ip=ip, score=0, blocked=False)
    rep.score = (rep.score or 0) + score_change
    rep.last_updated = moment
    if rep.score < settings.IP_REPUTATION_THRESHOLD:
        rep.blocked = True
        rep.block_expires_at = moment + timedelta(hours=settings.IP_BLOCK_HOURS)
        logger.warning("ip %s blocked, reputation %s", ip, rep.score)
    db.add(rep)
    db.commit()
    return rep


def cleanup_rate_limits(db: Session, now: datetime, window_minutes: Optional[int] = None) -> int:
    moment = to_db_time(now)
    window_start = moment - timedelta(minutes=settings.RATE_LIMIT_WINDOW_MINUTES if window_minutes is None else window_minutes)
    removed = db.execute(delete(RateLimitWindow).where(RateLimitWindow.window_start < window_start)).rowcount or 0
    removed += db.execute(delete(RateLimitBlock).where(RateLimitBlock.expires_at < moment)).rowcount or 0
    db.commit()
    return removed
