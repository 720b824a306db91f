from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr


class RegisterIn(BaseModel):
    email: EmailStr
    password: str
    username: str
    timezone: str


class LoginIn(BaseModel):
    email: EmailStr
    password: str


class DeadlineIn(BaseModel):
    deadline: str


class AvailabilityIn(BaseModel):
    available: bool


class UserOut(BaseModel):
    id: int
    username: str
    email: str
    timezone: str
    deadline: Optional[str] = None
    last_deadline_update: Optional[datetime] = None
    is_available: bool
    rating: int
    total_pairs: int
    telegram_linked: bool = False

    class Config:
        from_attributes = True


class PublicUserOut(BaseModel):
    id: int
    username: str
    timezone: str
    rating: int
    total_pairs: int

    class Config:
        from_attributes = True


class SessionOut(BaseModel):
    token: str
    expires_at: datetime
    user: UserOut
