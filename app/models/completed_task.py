from datetime import date, datetime
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, db_now


class CompletedTask(Base):
    __tablename__ = "completed_tasks"
    __table_args__ = (UniqueConstraint("pairing_id", "user_id", "cycle_date", name="uq_completed_task_per_day"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    pairing_id: Mapped[int] = mapped_column(ForeignKey("pairings.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    planned_task_id: Mapped[int] = mapped_column(ForeignKey("planned_tasks.id", ondelete="CASCADE"), index=True)
    title: Mapped[str] = mapped_column(String(100))
    description: Mapped[str] = mapped_column(Text)
    file_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    file_type: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="completed")
    verified: Mapped[bool] = mapped_column(Boolean, default=False)
    verification_result: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    cycle_date: Mapped[date] = mapped_column(Date, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=db_now)
