from __future__ import annotations

from fastapi import APIRouter

from backend.application import get_session_service

router = APIRouter(prefix="/sessions", tags=["pattern"])


@router.post("/{session_id}/pattern/duplicate")
async def set_duplication(session_id: str, payload: dict) -> dict:
    service = get_session_service()
    pattern = service.set_duplication(session_id, payload.get("count"))
    return {"pattern": pattern.model_dump()}


@router.post("/{session_id}/pattern/direct")
async def set_direct(session_id: str, payload: dict) -> dict:
    service = get_session_service()
    pattern = service.set_direct(session_id, payload.get("items") or [], payload.get("reference_caid"))
    return {"pattern": pattern.model_dump()}


@router.post("/{session_id}/pattern/referenced/search")
async def resolve_reference_slot(session_id: str, payload: dict) -> dict:
    """Search the catalog for one slot; a single hit is selected straight away."""
    service = get_session_service()
    return service.resolve_slot(session_id, payload)


@router.post("/{session_id}/pattern/referenced")
async def set_referenced(session_id: str, payload: dict) -> dict:
    service = get_session_service()
    pattern = service.set_referenced(session_id, payload.get("slots") or [], payload.get("reference_caid"))
    return {"pattern": pattern.model_dump()}


@router.post("/{session_id}/pattern/blocks")
async def finish_blocks(session_id: str) -> dict:
    service = get_session_service()
    return service.finish_blocks(session_id)


@router.get("/{session_id}/results")
async def get_results(session_id: str) -> dict:
    service = get_session_service()
    result = service.get_results(session_id)
    return {
        "items": [row.model_dump() for row in result.rows],
        "summary": result.summary.model_dump(),
    }
