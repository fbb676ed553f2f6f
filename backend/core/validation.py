"""Error taxonomy shared by the matching pipeline and the API layer.

Every error is raised at the boundary where it happens and carries the
HTTP status the API should answer with, so routes never need to translate
individual failures themselves.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for recoverable operator-facing failures."""

    status_code = 400
    error_code = "PIPELINE_ERROR"

    def __init__(self, message: str, *, detail: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class InputIncompleteError(PipelineError):
    """Raised when a required field or selection is missing."""

    error_code = "INPUT_INCOMPLETE"


class LookupMissError(PipelineError):
    """Raised when a requested key has no matching record."""

    status_code = 404
    error_code = "NOT_FOUND"


class SessionNotFoundError(LookupMissError):
    error_code = "SESSION_NOT_FOUND"

    def __init__(self, session_id: str) -> None:
        super().__init__("session not found", detail={"session_id": session_id})


class AmbiguityError(PipelineError):
    """Raised when several catalog entries match where exactly one is required."""

    status_code = 409
    error_code = "AMBIGUOUS_MATCH"


class AssignmentConflictError(PipelineError):
    """Raised when a CAID is placed in more than one block."""

    status_code = 409
    error_code = "CAID_ALREADY_ASSIGNED"


class ParseFailureError(PipelineError):
    """Raised when an uploaded file cannot be decoded."""

    status_code = 422
    error_code = "PARSE_FAILURE"


def require_text(value: str | None, message: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise InputIncompleteError(message)
    return cleaned


def require_quantity(value: object, message: str = "quantity must be at least 1") -> int:
    try:
        quantity = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise InputIncompleteError(message) from exc
    if quantity < 1:
        raise InputIncompleteError(message)
    return quantity
