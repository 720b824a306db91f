from datetime import date, datetime
from typing import Optional, Tuple

from sqlalchemy import Date, DateTime, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, db_now


class Pairing(Base):
    __tablename__ = "pairings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user1_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    user2_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    request_id: Mapped[Optional[int]] = mapped_column(Integer, unique=True, nullable=True)
    cycle_date: Mapped[date] = mapped_column(Date, index=True)
    settled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=db_now)

    @property
    def member_ids(self) -> Tuple[int, int]:
        return (self.user1_id, self.user2_id)

    def has_member(self, user_id: int) -> bool:
        return user_id in self.member_ids

    def partner_of(self, user_id: int) -> int:
        return self.user2_id if user_id == self.user1_id else self.user1_id
