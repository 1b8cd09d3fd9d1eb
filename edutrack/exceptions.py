"""
Domain exceptions raised by services and mapped to HTTP responses in main.py.
"""


class EduTrackError(Exception):
    """Base exception for all EduTrack application errors."""


class ValidationError(EduTrackError):
    """Raised when input fails a domain rule."""


class NotFoundError(EduTrackError):
    """Raised when a referenced record is absent."""


class ConflictError(EduTrackError):
    """Raised on a uniqueness or state conflict."""


class AuthenticationError(EduTrackError):
    """Raised when a bearer credential is missing or invalid."""


class AuthorizationError(EduTrackError):
    """Raised when the caller may not act on a resource."""
