from app.rules.files import ALLOWED_MIME_TYPES, validate_upload
from app.rules.phase import Phase, evaluate_phase, local_day, local_now, parse_deadline, user_zone
from app.rules.rating import Verdict, notification_message, rating_delta

__all__ = [
    "ALLOWED_MIME_TYPES",
    "validate_upload",
    "Phase",
    "evaluate_phase",
    "local_day",
    "local_now",
    "parse_deadline",
    "user_zone",
    "Verdict",
    "rating_delta",
    "notification_message",
]
