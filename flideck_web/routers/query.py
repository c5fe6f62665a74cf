"""
FliDeck Query Router - read-only state for external tools

Lists the presentation roots (current root plus history) and describes
presentations with per-asset position and size.
"""

from typing import Any, Dict

from fastapi import APIRouter

from flideck_web.routers.presentations import _get_service

router = APIRouter(prefix="/api/query", tags=["query"])


@router.get("/routes")
async def list_routes() -> Dict[str, Any]:
    return await _get_service().list_routes()


@router.get("/routes/{route}")
async def get_route(route: str) -> Dict[str, Any]:
    return await _get_service().get_route(route)


@router.get("/presentations/{presentation_id}")
async def describe_presentation(presentation_id: str) -> Dict[str, Any]:
    return await _get_service().describe_presentation(presentation_id)
