from __future__ import annotations

from fastapi import APIRouter

from backend.application import get_session_service

router = APIRouter(prefix="/sessions", tags=["blocks"])


@router.get("/{session_id}/templates")
async def list_templates(session_id: str) -> dict:
    service = get_session_service()
    return {"items": service.list_templates(session_id)}


@router.post("/{session_id}/templates")
async def add_template(session_id: str, payload: dict) -> dict:
    service = get_session_service()
    return service.add_template(session_id, payload)


@router.put("/{session_id}/templates/{template_id}")
async def update_template(session_id: str, template_id: str, payload: dict) -> dict:
    service = get_session_service()
    return service.update_template(session_id, template_id, payload)


@router.delete("/{session_id}/templates/{template_id}")
async def delete_template(session_id: str, template_id: str) -> dict:
    service = get_session_service()
    service.delete_template(session_id, template_id)
    return {"template_id": template_id, "deleted": True}


@router.get("/{session_id}/blocks/available")
async def available_caids(session_id: str) -> dict:
    service = get_session_service()
    return {"items": service.available_caids(session_id)}


@router.post("/{session_id}/blocks/range")
async def select_range(session_id: str, payload: dict) -> dict:
    service = get_session_service()
    return service.select_range(
        session_id,
        str(payload.get("start") or ""),
        str(payload.get("end") or ""),
        payload.get("selected") or [],
    )


@router.get("/{session_id}/blocks")
async def list_blocks(session_id: str) -> dict:
    service = get_session_service()
    return {"items": service.list_blocks(session_id)}


@router.post("/{session_id}/blocks")
async def create_block(session_id: str, payload: dict) -> dict:
    service = get_session_service()
    return service.create_block(session_id, payload)


@router.delete("/{session_id}/blocks/{block_id}")
async def delete_block(session_id: str, block_id: str) -> dict:
    service = get_session_service()
    service.delete_block(session_id, block_id)
    return {"block_id": block_id, "deleted": True}
