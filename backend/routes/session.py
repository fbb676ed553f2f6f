from __future__ import annotations

from fastapi import APIRouter, Query

from backend.application import get_session_service

router = APIRouter(prefix="/sessions", tags=["session"])


@router.get("")
async def list_sessions() -> dict:
    service = get_session_service()
    return {"items": service.list_sessions()}


@router.post("")
async def create_session() -> dict:
    service = get_session_service()
    return {"session_id": service.create_session()}


@router.get("/{session_id}")
async def get_session(session_id: str) -> dict:
    service = get_session_service()
    return service.get_overview(session_id)


@router.get("/{session_id}/progress")
async def get_session_progress(session_id: str) -> dict:
    service = get_session_service()
    return service.get_progress(session_id)


@router.post("/{session_id}/sites")
async def submit_sites(session_id: str, payload: dict) -> dict:
    """Store the pasted SITE ID list, one identifier per line."""
    service = get_session_service()
    sites = service.submit_sites(session_id, payload.get("text"))
    return {"count": len(sites), "items": [site.model_dump() for site in sites]}


@router.post("/{session_id}/caids")
async def submit_caids(session_id: str, payload: dict) -> dict:
    service = get_session_service()
    pairs = service.submit_caids(session_id, payload.get("text"))
    return {"count": len(pairs), "matches": service.get_matches(session_id)["summary"]}


@router.get("/{session_id}/matches")
async def get_matches(session_id: str) -> dict:
    service = get_session_service()
    return service.get_matches(session_id)


@router.get("/{session_id}/catalog/regions")
async def list_regions(session_id: str) -> dict:
    service = get_session_service()
    return service.list_regions(session_id)


@router.put("/{session_id}/regions")
async def select_regions(session_id: str, payload: dict) -> dict:
    service = get_session_service()
    selected = service.select_regions(session_id, payload.get("regions") or [])
    return {"selected": list(selected)}


@router.get("/{session_id}/catalog/search")
async def search_catalog(
    session_id: str,
    q: str = Query(default=""),
    region: list[str] | None = Query(default=None),
) -> dict:
    service = get_session_service()
    entries = service.search_catalog(session_id, q, region)
    return {"items": [entry.model_dump() for entry in entries]}
