from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, File, HTTPException, Request, UploadFile

from backend.workers.pipeline import UploadRequest, get_upload_worker

router = APIRouter(prefix="/sessions", tags=["upload"])


@router.post("/{session_id}/upload/{kind}")
async def upload_file(session_id: str, kind: str, request: Request, file: UploadFile = File(...)) -> dict:
    """Upload a site list, a CAID correspondence table or an OAID catalog."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="Uploaded file must have a filename")

    max_bytes = request.app.state.settings.max_upload_bytes
    try:
        content = await file.read()
    finally:
        await file.close()
    if len(content) > max_bytes:
        raise HTTPException(status_code=413, detail=f"Upload exceeds {max_bytes} bytes")

    worker = get_upload_worker()
    job = await worker.enqueue(
        UploadRequest(
            session_id=session_id,
            kind=kind,
            filename=Path(file.filename).name,
            content=content,
        )
    )
    return {
        "job_id": job.job_id,
        "status": job.status,
        "kind": job.kind,
        "filename": job.filename,
        "records": job.records,
    }
