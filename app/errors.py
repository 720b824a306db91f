"""Error taxonomy shared by the domain layer and the HTTP surface.

Every error carries an HTTP ``status_code`` and a stable ``code`` so the API
can answer with ``{"detail": ..., "code": ...}`` and clients can branch on the
code without parsing messages.
"""

from typing import Optional


class AppError(Exception):
    status_code = 500
    code = "app_error"
    default_message = "Unexpected error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self) -> dict[str, str]:
        return {"detail": self.message, "code": self.code}


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"
    default_message = "Invalid input"


class FileTooLarge(ValidationError):
    code = "file_too_large"
    default_message = "File exceeds the 1MB limit"


class UnsupportedFileType(ValidationError):
    code = "unsupported_file_type"
    default_message = (
        "File type not supported. Allowed types: PDF, Images (JPEG, PNG), "
        "Office Documents (DOC, DOCX, XLS, XLSX, PPT, PPTX), Text, CSV, ZIP, RAR"
    )


class DeadlineNotSet(ValidationError):
    code = "deadline_not_set"
    default_message = "Please set your deadline first"


class WindowViolation(AppError):
    status_code = 409
    code = "window_violation"
    default_message = "Action is not allowed at this time"


class OutsidePlanningWindow(WindowViolation):
    code = "outside_planning_window"
    default_message = "Your deadline has passed. You can only verify tasks now."


class NotInVerificationWindow(WindowViolation):
    code = "not_in_verification_window"
    default_message = "Verification is only available in the 30 minutes after your deadline"


class DuplicateSubmission(AppError):
    status_code = 409
    code = "duplicate_submission"
    default_message = "Already submitted today"


class AlreadyUpdatedToday(DuplicateSubmission):
    code = "already_updated_today"
    default_message = "Deadline can only be changed once per day"


class AlreadyPlannedToday(DuplicateSubmission):
    code = "already_planned_today"
    default_message = "You have already planned a task for today"


class AlreadyUploadedToday(DuplicateSubmission):
    code = "already_uploaded_today"
    default_message = "You have already uploaded a completed task for today"


class AlreadyVerified(DuplicateSubmission):
    code = "already_verified"
    default_message = "You have already verified your partner today"


class RequestAlreadyResolved(DuplicateSubmission):
    code = "request_already_resolved"
    default_message = "Pairing request was already handled"


class DuplicateRequest(DuplicateSubmission):
    code = "duplicate_request"
    default_message = "A pairing request between you is already pending"


class NotFound(AppError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class NoPlanExists(NotFound):
    code = "no_plan_exists"
    default_message = "Plan a task before uploading its completion"


class NothingToVerify(NotFound):
    code = "nothing_to_verify"
    default_message = "Your partner has not submitted a task today"


class PermissionDenied(AppError):
    status_code = 403
    code = "permission_denied"
    default_message = "You are not allowed to do this"


class NotAuthenticated(AppError):
    status_code = 401
    code = "not_authenticated"
    default_message = "Not authenticated"


class RateLimited(AppError):
    status_code = 429
    code = "rate_limited"
    default_message = "Too many requests. Please try again later."


class UpstreamFailure(AppError):
    status_code = 502
    code = "upstream_failure"
    default_message = "Storage is temporarily unavailable, please retry"
