"""
FliDeck Schema Router - JSON Schema of the manifest
"""

from typing import Any, Dict

from fastapi import APIRouter

from flideck_core.schema import manifest_schema

router = APIRouter(prefix="/api/schema", tags=["schema"])


@router.get("/manifest")
async def get_manifest_schema() -> Dict[str, Any]:
    return manifest_schema()
