from typing import Optional

from app.config import settings
from app.errors import FileTooLarge, UnsupportedFileType

ALLOWED_MIME_TYPES = frozenset(
    {
        "application/pdf",
        "image/jpeg",
        "image/png",
        "text/plain",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.ms-powerpoint",
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
        "text/csv",
        "application/zip",
        "application/x-rar-compressed",
    }
)


def _base_type(content_type: Optional[str]) -> str:
    # "text/plain; charset=utf-8" -> "text/plain"
    return (content_type or "").split(";", 1)[0].strip().lower()


def validate_upload(size: int, content_type: Optional[str], max_bytes: Optional[int] = None) -> str:
    limit = settings.MAX_UPLOAD_BYTES if max_bytes is None else max_bytes
    if size > limit:
        raise FileTooLarge(
            f"File size ({size / (1024 * 1024):.2f}MB) exceeds the {limit / (1024 * 1024):g}MB limit. "
            "Please choose a smaller file."
        )
    base = _base_type(content_type)
    if base not in ALLOWED_MIME_TYPES:
        raise UnsupportedFileType()
    return base
