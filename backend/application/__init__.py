"""Application services."""

from .sessions import SessionService, get_session_service, reset_session_state

__all__ = [
    "SessionService",
    "get_session_service",
    "reset_session_state",
]
