from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel


class PairingRequestIn(BaseModel):
    to_user_id: int


class RespondIn(BaseModel):
    accept: bool


class PairingRequestOut(BaseModel):
    id: int
    from_user_id: int
    to_user_id: int
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class PairingOut(BaseModel):
    id: int
    user1_id: int
    user2_id: int
    cycle_date: date
    settled_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
