"""Service layer - scoring, aggregation, auth and upload storage."""

from edutrack.services.storage import UploadStorage, get_upload_storage

__all__ = [
    "UploadStorage",
    "get_upload_storage",
]
