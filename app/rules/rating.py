import enum
from typing import Optional

NO_SUBMISSION_DELTA = -2
UNVERIFIED_DELTA = 1
COMPLETED_DELTA = 1
NOT_COMPLETED_DELTA = -1


class Verdict(str, enum.Enum):
    COMPLETED = "completed"
    NOT_COMPLETED = "not_completed"


def rating_delta(submitted: bool, verdict: Optional[Verdict]) -> int:
    if not submitted:
        return NO_SUBMISSION_DELTA
    if verdict is None:
        return UNVERIFIED_DELTA
    if verdict == Verdict.COMPLETED:
        return COMPLETED_DELTA
    return NOT_COMPLETED_DELTA


def delta_reason(submitted: bool, verdict: Optional[Verdict]) -> str:
    if not submitted:
        return "no_submission"
    if verdict is None:
        return "unverified"
    return verdict.value


def notification_message(delta: int, reason: str) -> str:
    direction = "increased" if delta > 0 else "decreased"
    points = abs(delta)
    unit = "point" if points == 1 else "points"
    base = f"Your rating has been {direction} by {points} {unit}."
    if reason == "no_submission":
        return f"{base} Be sincere with your responsibilities! You did not submit your task."
    if reason == Verdict.NOT_COMPLETED.value:
        return f"{base} Your partner marked your task as not completed."
    if reason == "unverified":
        return f"{base} Your partner did not verify in time, your submission counts."
    return f"{base} Congratulations! You completed your task successfully!"
