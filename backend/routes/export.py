from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response

from backend.application import get_session_service

router = APIRouter(prefix="/sessions", tags=["export"])


@router.get("/{session_id}/export/{fmt}")
async def export_results(session_id: str, fmt: str) -> Response:
    service = get_session_service()
    content, media_type, filename = service.export(session_id, fmt)
    if fmt == "clipboard":
        return Response(content=content, media_type=media_type)
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
