import re
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.config import settings
from app.errors import ValidationError

USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]{3,20}$")
TIMEZONE_RE = re.compile(r"^[A-Za-z]+/[A-Za-z_]+$")
DEADLINE_RE = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")
TITLE_RE = re.compile(r"^[a-zA-Z0-9\s.,!?-]{3,100}$")
MAX_DESCRIPTION = 500
MIN_PASSWORD = 8


def sanitize(value: Optional[str]) -> str:
    return re.sub(r"[<>]", "", value or "").strip()


def validate_username(username: str) -> str:
    username = (username or "").strip()
    if not USERNAME_RE.match(username):
        raise ValidationError("Username must be 3-20 characters: letters, digits or underscores")
    return username


def validate_timezone(tz_name: str) -> str:
    tz_name = (tz_name or "").strip()
    if not TIMEZONE_RE.match(tz_name):
        raise ValidationError("Timezone must look like Region/City")
    try:
        ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValidationError(f"Unknown timezone: {tz_name}") from exc
    return tz_name


def _minutes(value: str) -> int:
    hours, minutes = value.split(":", 1)
    return int(hours) * 60 + int(minutes)


def validate_deadline(value: str) -> str:
    value = (value or "").strip()
    if not DEADLINE_RE.match(value):
        raise ValidationError("Please enter a valid time in 24-hour format (HH:MM)")
    if _minutes(value) > _minutes(settings.MAX_DEADLINE):
        raise ValidationError(f"Deadline cannot be later than {settings.MAX_DEADLINE}")
    hours, minutes = value.split(":", 1)
    return f"{int(hours):02d}:{minutes}"


def validate_title(title: str) -> str:
    title = sanitize(title)
    if not title:
        raise ValidationError("Title is required")
    if not TITLE_RE.match(title):
        raise ValidationError("Title must be 3-100 characters without special symbols")
    return title


def validate_description(description: str) -> str:
    description = sanitize(description)
    if not description:
        raise ValidationError("Description is required")
    if len(description) > MAX_DESCRIPTION:
        raise ValidationError(f"Description must be at most {MAX_DESCRIPTION} characters")
    return description


def validate_password(password: str) -> str:
    if not password or len(password) < MIN_PASSWORD:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD} characters")
    return password
