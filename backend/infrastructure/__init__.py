"""Infrastructure layer exports."""

from .sessions import InMemorySessionRepository, SessionRepository

__all__ = [
    "InMemorySessionRepository",
    "SessionRepository",
]
