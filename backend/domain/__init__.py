"""Domain layer definitions."""

from .sessions import SessionState, UploadRecord

__all__ = [
    "SessionState",
    "UploadRecord",
]
