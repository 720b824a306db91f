from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, db_now


class RateLimitWindow(Base):
    __tablename__ = "rate_limit_windows"
    __table_args__ = (UniqueConstraint("key", name="uq_rate_limit_window_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    key: Mapped[str] = mapped_column(String(255), index=True)
    count: Mapped[int] = mapped_column(Integer, default=0)
    window_start: Mapped[datetime] = mapped_column(DateTime, index=True)
    last_request: Mapped[datetime] = mapped_column(DateTime, default=db_now)


class RateLimitBlock(Base):
    __tablename__ = "rate_limit_blocks"
    __table_args__ = (UniqueConstraint("key", name="uq_rate_limit_block_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    key: Mapped[str] = mapped_column(String(255), index=True)
    reason: Mapped[str] = mapped_column(String(64), default="Rate limit exceeded")
    expires_at: Mapped[datetime] = mapped_column(DateTime, index=True)


class IpReputation(Base):
    __tablename__ = "ip_reputation"

    ip: Mapped[str] = mapped_column(String(64), primary_key=True)
    score: Mapped[int] = mapped_column(Integer, default=0)
    blocked: Mapped[bool] = mapped_column(Boolean, default=False)
    block_expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_updated: Mapped[datetime] = mapped_column(DateTime, default=db_now)
