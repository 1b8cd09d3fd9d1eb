"""Upload storage - validates and persists uploaded media files on local disk."""

import logging
import random
import re
import time
from dataclasses import dataclass
from pathlib import Path

from fastapi import UploadFile

from edutrack.config import settings
from edutrack.exceptions import ValidationError

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024

ALLOWED_MIME_TYPES: dict[str, str] = {
    "video/mp4": ".mp4",
    "video/avi": ".avi",
    "video/mov": ".mov",
    "video/wmv": ".wmv",
    "video/webm": ".webm",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "application/pdf": ".pdf",
    "application/msword": ".doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
    "text/plain": ".txt",
}

UPLOAD_SUBDIRS = ("videos", "images", "documents", "thumbnails")

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9]")


@dataclass
class StoredFile:
    path: str
    original_name: str
    mime_type: str
    size: int


def upload_subdir(mime_type: str) -> str:
    if mime_type.startswith("video/"):
        return "videos"
    if mime_type.startswith("image/"):
        return "images"
    return "documents"


def media_type_for(mime_type: str) -> str:
    """Map a MIME type to the Media.type enum."""
    if mime_type.startswith("video/"):
        return "video"
    if mime_type.startswith("image/"):
        return "image"
    if mime_type.startswith("audio/"):
        return "audio"
    return "document"


def unique_filename(original_name: str) -> str:
    """``<sanitized stem>_<epoch ms>-<random><ext>``"""
    original = Path(original_name or "upload")
    stem = _UNSAFE_CHARS.sub("_", original.stem)
    suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    return f"{stem}_{suffix}{original.suffix}"


class UploadStorage:
    """Stores uploads under a per-type directory below ``root``."""

    def __init__(self, root: Path, max_bytes: int) -> None:
        self._root = Path(root)
        self._max_bytes = max_bytes

    @property
    def root(self) -> Path:
        return self._root

    def ensure_dirs(self) -> None:
        for sub in UPLOAD_SUBDIRS:
            (self._root / sub).mkdir(parents=True, exist_ok=True)

    async def save(self, upload: UploadFile) -> StoredFile:
        mime_type = upload.content_type or ""
        if mime_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                f"File type {mime_type} is not allowed. "
                f"Allowed types: {', '.join(ALLOWED_MIME_TYPES)}"
            )

        content = await self._read_capped(upload)

        relative = Path(upload_subdir(mime_type)) / unique_filename(upload.filename or "")
        target = self._root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        logger.info("Stored upload %s (%d bytes)", relative, len(content))

        return StoredFile(
            path=relative.as_posix(),
            original_name=upload.filename or relative.name,
            mime_type=mime_type,
            size=len(content),
        )

    async def _read_capped(self, upload: UploadFile) -> bytes:
        """Read the upload in chunks, stopping once it exceeds the size cap."""
        if upload.size is not None and upload.size > self._max_bytes:
            self._too_large()
        chunks = []
        received = 0
        while True:
            chunk = await upload.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            received += len(chunk)
            if received > self._max_bytes:
                self._too_large()
            chunks.append(chunk)
        return b"".join(chunks)

    def _too_large(self) -> None:
        limit_mb = self._max_bytes // (1024 * 1024)
        raise ValidationError(f"File too large. Maximum size is {limit_mb}MB.")

    def delete(self, relative_path: str) -> bool:
        """Remove a stored file; returns False when it could not be removed."""
        try:
            (self._root / relative_path).unlink()
            return True
        except FileNotFoundError:
            logger.warning("File not found: %s", relative_path)
            return False
        except OSError as e:
            logger.error("Error deleting file %s: %s", relative_path, e)
            return False


# Singleton instance
_upload_storage: UploadStorage | None = None


def get_upload_storage() -> UploadStorage:
    """Factory / FastAPI dependency returning the configured upload storage."""
    global _upload_storage
    if _upload_storage is None:
        logger.info("Using UploadStorage -> %s", settings.UPLOAD_DIR)
        _upload_storage = UploadStorage(settings.UPLOAD_DIR, settings.MAX_UPLOAD_BYTES)
    return _upload_storage
