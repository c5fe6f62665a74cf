"""
FliDeck Templates Router - built-in manifest templates
"""

from typing import Any, Dict, List

from fastapi import APIRouter

from flideck_core.templates import get_template, get_templates

router = APIRouter(prefix="/api/templates", tags=["templates"])


@router.get("/manifest")
async def list_manifest_templates() -> List[Dict[str, Any]]:
    return [t.to_dict() for t in get_templates()]


@router.get("/manifest/{template_id}")
async def get_manifest_template(template_id: str) -> Dict[str, Any]:
    return get_template(template_id).to_dict()
