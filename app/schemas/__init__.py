from app.schemas.pairing import PairingOut, PairingRequestIn, PairingRequestOut, RespondIn
from app.schemas.task import CompletedTaskOut, NotificationOut, PlannedTaskOut, PlanIn, VerificationOut, VerifyIn
from app.schemas.user import AvailabilityIn, DeadlineIn, LoginIn, PublicUserOut, RegisterIn, SessionOut, UserOut

__all__ = [
    "RegisterIn",
    "LoginIn",
    "DeadlineIn",
    "AvailabilityIn",
    "UserOut",
    "PublicUserOut",
    "SessionOut",
    "PairingRequestIn",
    "RespondIn",
    "PairingRequestOut",
    "PairingOut",
    "PlanIn",
    "VerifyIn",
    "PlannedTaskOut",
    "CompletedTaskOut",
    "VerificationOut",
    "NotificationOut",
]
