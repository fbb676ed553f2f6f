"""Infrastructure layer for session state."""
from __future__ import annotations

import threading
from dataclasses import asdict
from typing import Any, Protocol

from backend.domain import SessionState, UploadRecord


class SessionRepository(Protocol):
    """Storage contract for session state."""

    def create_session(self) -> str: ...

    def get_session(self, session_id: str) -> SessionState | None: ...

    def list_sessions(self) -> list[dict[str, object]]: ...

    def next_job_id(self) -> str: ...

    def register_upload(self, session_id: str, upload: UploadRecord) -> None: ...

    def update_upload(self, session_id: str, job_id: str, status: str, *, records: int = 0, error: str | None = None) -> None: ...

    def list_uploads(self, session_id: str) -> list[dict[str, object]]: ...

    def commit(self, session_id: str, **changes: Any) -> SessionState: ...

    def reset(self) -> None: ...


class InMemorySessionRepository:
    """Process-local repository; state lives only as long as the process."""

    def __init__(self) -> None:
        self._sessions: dict[str, SessionState] = {}
        self._session_counter = 0
        self._job_counter = 0
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # sessions
    # ------------------------------------------------------------------
    def create_session(self) -> str:
        with self._lock:
            self._session_counter += 1
            session_id = f"session-{self._session_counter:05d}"
            self._sessions[session_id] = SessionState(session_id=session_id)
            return session_id

    def get_session(self, session_id: str) -> SessionState | None:
        return self._sessions.get(session_id)

    def list_sessions(self) -> list[dict[str, object]]:
        summaries: list[dict[str, object]] = []
        for state in self._sessions.values():
            summaries.append(
                {
                    "session_id": state.session_id,
                    "uploads": len(state.uploads),
                    "sites": len(state.sites),
                    "matched": len(state.matched),
                    "catalog": len(state.catalog),
                    "templates": len(state.templates),
                    "blocks": len(state.blocks),
                    "pattern": state.pattern.kind if state.pattern is not None else None,
                }
            )
        summaries.sort(key=lambda item: str(item["session_id"]))
        return summaries

    def commit(self, session_id: str, **changes: Any) -> SessionState:
        """Apply all ``changes`` to the session together."""

        with self._lock:
            state = self._sessions[session_id]
            for name in changes:
                if not hasattr(state, name):
                    raise AttributeError(f"SessionState has no field {name!r}")
            for name, value in changes.items():
                setattr(state, name, value)
            return state

    # ------------------------------------------------------------------
    # uploads
    # ------------------------------------------------------------------
    def next_job_id(self) -> str:
        with self._lock:
            self._job_counter += 1
            return f"job-{self._job_counter:05d}"

    def register_upload(self, session_id: str, upload: UploadRecord) -> None:
        with self._lock:
            self._sessions[session_id].uploads.append(upload)

    def update_upload(
        self,
        session_id: str,
        job_id: str,
        status: str,
        *,
        records: int = 0,
        error: str | None = None,
    ) -> None:
        with self._lock:
            for upload in self._sessions[session_id].uploads:
                if upload.job_id == job_id:
                    upload.status = status
                    upload.records = records
                    upload.error = error
                    break

    def list_uploads(self, session_id: str) -> list[dict[str, object]]:
        state = self._sessions.get(session_id)
        return [asdict(upload) for upload in state.uploads] if state else []

    def reset(self) -> None:
        with self._lock:
            self._sessions.clear()
            self._session_counter = 0
            self._job_counter = 0
