import logging
import secrets
from pathlib import Path
from typing import Optional

from app.config import settings
from app.errors import NotFound, UpstreamFailure

logger = logging.getLogger(__name__)

EXTENSIONS = {
    "application/pdf": ".pdf",
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "text/plain": ".txt",
    "application/msword": ".doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
    "application/vnd.ms-excel": ".xls",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": ".xlsx",
    "application/vnd.ms-powerpoint": ".ppt",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": ".pptx",
    "text/csv": ".csv",
    "application/zip": ".zip",
    "application/x-rar-compressed": ".rar",
}


class BlobStore:
    def put(self, prefix: str, data: bytes, content_type: str) -> str:
        raise NotImplementedError

    def path_for(self, name: str) -> Path:
        raise NotImplementedError


class LocalBlobStore(BlobStore):
    """Stores uploads on local disk and hands out URLs served by the API."""

    def __init__(self, root: Optional[str] = None, public_url: Optional[str] = None) -> None:
        self.root = Path(root or settings.UPLOAD_DIR)
        self.public_url = (public_url or settings.API_PUBLIC_URL).rstrip("/")

    def put(self, prefix: str, data: bytes, content_type: str) -> str:
        name = f"{prefix}-{secrets.token_hex(8)}{EXTENSIONS.get(content_type, '')}"
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            (self.root / name).write_bytes(data)
        except OSError as exc:
            logger.error("blob upload failed for %s: %s", name, exc)
            raise UpstreamFailure("Failed to store the uploaded file") from exc
        return f"{self.public_url}/files/{name}"

    def path_for(self, name: str) -> Path:
        # names are generated by put(); anything with a separator is not ours
        if not name or "/" in name or "\\" in name or name.startswith("."):
            raise NotFound("File not found")
        path = self.root / name
        if not path.is_file():
            raise NotFound("File not found")
        return path


_default_store: Optional[BlobStore] = None


def get_blob_store() -> BlobStore:
    global _default_store
    if _default_store is None:
        _default_store = LocalBlobStore()
    return _default_store
