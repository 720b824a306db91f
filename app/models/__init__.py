from app.models.base import Base
from app.models.auth_session import AuthSession
from app.models.completed_task import CompletedTask
from app.models.notification import Notification
from app.models.pairing import Pairing
from app.models.pairing_request import REQUEST_ACCEPTED, REQUEST_PENDING, REQUEST_REJECTED, PairingRequest
from app.models.planned_task import PlannedTask
from app.models.rate_limit import IpReputation, RateLimitBlock, RateLimitWindow
from app.models.rating_event import RatingEvent
from app.models.telegram_link import TelegramLinkCode
from app.models.user import User
from app.models.verification import Verification

__all__ = [
    "Base",
    "AuthSession",
    "CompletedTask",
    "IpReputation",
    "Notification",
    "Pairing",
    "PairingRequest",
    "PlannedTask",
    "RateLimitBlock",
    "RateLimitWindow",
    "RatingEvent",
    "TelegramLinkCode",
    "User",
    "Verification",
    "REQUEST_PENDING",
    "REQUEST_ACCEPTED",
    "REQUEST_REJECTED",
]
