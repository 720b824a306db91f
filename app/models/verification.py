from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, db_now


class Verification(Base):
    __tablename__ = "verifications"
    __table_args__ = (UniqueConstraint("pairing_id", "verifier_id", "cycle_date", name="uq_verification_per_day"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    pairing_id: Mapped[int] = mapped_column(ForeignKey("pairings.id", ondelete="CASCADE"), index=True)
    task_id: Mapped[int] = mapped_column(ForeignKey("completed_tasks.id", ondelete="CASCADE"), index=True)
    planned_task_id: Mapped[int] = mapped_column(ForeignKey("planned_tasks.id", ondelete="CASCADE"), index=True)
    verifier_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    verified_user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    is_completed: Mapped[bool] = mapped_column(Boolean)
    cycle_date: Mapped[date] = mapped_column(Date, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=db_now)
