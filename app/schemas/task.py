from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel


class PlanIn(BaseModel):
    title: str
    description: str


class VerifyIn(BaseModel):
    verified_user_id: Optional[int] = None
    is_completed: bool


class PlannedTaskOut(BaseModel):
    id: int
    pairing_id: int
    user_id: int
    title: str
    description: str
    status: str
    cycle_date: date
    created_at: datetime

    class Config:
        from_attributes = True


class CompletedTaskOut(BaseModel):
    id: int
    pairing_id: int
    user_id: int
    planned_task_id: int
    title: str
    description: str
    file_url: Optional[str] = None
    status: str
    verified: bool
    verification_result: Optional[str] = None
    cycle_date: date
    created_at: datetime

    class Config:
        from_attributes = True


class VerificationOut(BaseModel):
    id: int
    pairing_id: int
    task_id: int
    planned_task_id: int
    verifier_id: int
    verified_user_id: int
    is_completed: bool
    cycle_date: date
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationOut(BaseModel):
    id: int
    kind: str
    message: str
    delta: Optional[int] = None
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True
