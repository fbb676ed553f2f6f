from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from backend.application import SessionService, get_session_service
from backend.core.settings import log_event
from backend.core.validation import PipelineError
from backend.extractors import catalog_sheet, detect, text_lists

logger = logging.getLogger("caid_matcher.worker")


@dataclass
class UploadRequest:
    session_id: str
    kind: str
    filename: str
    content: bytes


@dataclass
class UploadJob:
    job_id: str
    status: str
    kind: str
    filename: str
    records: int = 0


class UploadWorker:
    """Parses uploads off the event loop and commits the parsed snapshot."""

    def __init__(self, service: SessionService | None = None) -> None:
        self._lock = asyncio.Lock()
        self._service = service

    @property
    def service(self) -> SessionService:
        return self._service or get_session_service()

    async def enqueue(self, payload: UploadRequest) -> UploadJob:
        async with self._lock:
            service = self.service
            detected = detect.detect(payload.filename, payload.kind)
            job_id = service.begin_upload(payload.session_id, payload.kind, detected.filename)
            try:
                parsed = await asyncio.to_thread(self._parse, payload, detected.format)
                records = self._commit(payload, parsed)
            except PipelineError as exc:
                service.fail_upload(payload.session_id, job_id, exc.message)
                log_event(
                    logger,
                    logging.WARNING,
                    "upload_failed",
                    session_id=payload.session_id,
                    job_id=job_id,
                    kind=payload.kind,
                    error=exc.error_code,
                )
                raise
            service.finish_upload(payload.session_id, job_id, records=records)
            log_event(
                logger,
                logging.INFO,
                "upload_completed",
                session_id=payload.session_id,
                job_id=job_id,
                kind=payload.kind,
                records=records,
            )
            return UploadJob(
                job_id=job_id,
                status="completed",
                kind=payload.kind,
                filename=detected.filename,
                records=records,
            )

    @staticmethod
    def _parse(payload: UploadRequest, fmt: str) -> Any:
        if payload.kind == "sites":
            return text_lists.parse_sites(payload.content, fmt, payload.filename)
        if payload.kind == "caids":
            return text_lists.parse_pairs(payload.content, fmt, payload.filename)
        return catalog_sheet.parse(payload.content, fmt, payload.filename)

    def _commit(self, payload: UploadRequest, parsed: Any) -> int:
        service = self.service
        if payload.kind == "sites":
            service.apply_sites(payload.session_id, parsed)
        elif payload.kind == "caids":
            service.apply_pairs(payload.session_id, parsed)
        else:
            service.apply_catalog(payload.session_id, parsed)
        return len(parsed)


_worker: UploadWorker | None = None


def get_upload_worker() -> UploadWorker:
    global _worker
    if _worker is None:
        _worker = UploadWorker()
    return _worker
