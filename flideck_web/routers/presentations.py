"""
FliDeck Presentations Router - presentation and manifest API endpoints

Thin HTTP layer over ``PresentationService``. Domain errors propagate as
``ManifestError`` subclasses and are turned into 400/404/409 responses by the
exception handlers registered in ``server.create_app``.
"""

from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Body, HTTPException, Query
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel

from flideck_core.errors import ValidationError
from flideck_core.service import PresentationService
from flideck_core.slides import BulkAddOptions

router = APIRouter(prefix="/api/presentations", tags=["presentations"])
assets_router = APIRouter(prefix="/api/assets", tags=["assets"])

# Set by server.create_app
_service: Optional[PresentationService] = None


def set_presentation_service(service: PresentationService):
    """Set the presentation service from server.py."""
    global _service
    _service = service


def _get_service() -> PresentationService:
    if _service is None:
        raise HTTPException(status_code=503, detail="Presentation service not initialized")
    return _service


# Request Models

class CreatePresentationRequest(BaseModel):
    id: str
    name: Optional[str] = None
    slides: Optional[List[Any]] = None


class OrderRequest(BaseModel):
    """Explicit ordering of ids or file names."""
    order: Optional[List[str]] = None


class ValidateRequest(BaseModel):
    manifest: Optional[Any] = None
    checkFiles: bool = False


class BulkSlidesRequest(BaseModel):
    slides: Optional[List[Any]] = None
    createGroups: bool = False
    position: Optional[Union[str, Dict[str, str]]] = None
    onConflict: Optional[Dict[str, str]] = None
    dryRun: bool = False


class BulkGroupsRequest(BaseModel):
    groups: Optional[List[Any]] = None
    dryRun: bool = False


class SyncRequest(BaseModel):
    strategy: Optional[str] = None
    inferGroups: Optional[bool] = None
    inferTitles: Optional[bool] = None


class SyncFromIndexRequest(BaseModel):
    strategy: Optional[str] = None
    inferTabs: bool = True
    parseCards: bool = True


class TemplateRequest(BaseModel):
    templateId: Optional[str] = None
    merge: bool = True


class GroupCreateRequest(BaseModel):
    id: str
    label: str
    order: Optional[float] = None
    tab: bool = False
    parent: Optional[str] = None
    tabId: Optional[str] = None


class GroupUpdateRequest(BaseModel):
    label: Optional[str] = None
    tabId: Optional[str] = None


class GroupParentRequest(BaseModel):
    parent: str


class TabCreateRequest(BaseModel):
    id: str
    label: str
    subtitle: Optional[str] = None
    file: Optional[str] = None


class TabUpdateRequest(BaseModel):
    label: Optional[str] = None
    subtitle: Optional[str] = None


def _missing(field: str):
    raise ValidationError(f"Missing required field: {field}")


# =============================================================================
# Presentations
# =============================================================================

@router.get("")
async def list_presentations() -> List[Dict[str, Any]]:
    presentations = await _get_service().discover_all()
    return [p.to_dict() for p in presentations]


@router.post("/refresh")
async def refresh_presentations() -> Dict[str, Any]:
    """Drop every cached presentation and tell clients to reload."""
    await _get_service().refresh()
    return {"success": True}


@router.post("", status_code=201)
async def create_presentation(request: CreatePresentationRequest) -> Dict[str, Any]:
    presentation = await _get_service().create_presentation(request.id, request.name, request.slides)
    return presentation.to_dict()


@router.get("/{presentation_id}")
async def get_presentation(presentation_id: str) -> Dict[str, Any]:
    presentation = await _get_service().get_by_id(presentation_id)
    return presentation.to_dict()


@router.get("/{presentation_id}/order")
async def get_order(presentation_id: str, tab: Optional[str] = Query(None)) -> Dict[str, Any]:
    """Navigation order, the same sequence the sidebar renders."""
    assets = await _get_service().get_order(presentation_id, tab)
    return {
        "order": [a.filename for a in assets],
        "assets": [a.to_dict() for a in assets],
    }


@router.put("/{presentation_id}/order")
async def save_order(presentation_id: str, request: OrderRequest) -> Dict[str, Any]:
    if request.order is None:
        _missing("order")
    order = await _get_service().save_order(presentation_id, request.order)
    return {"success": True, "order": order}


# =============================================================================
# Manifest
# =============================================================================

@router.get("/{presentation_id}/manifest")
async def get_manifest(presentation_id: str):
    manifest = await _get_service().get_manifest(presentation_id)
    return JSONResponse(content=manifest)


@router.put("/{presentation_id}/manifest")
async def replace_manifest(presentation_id: str, document: Any = Body(...)) -> Dict[str, Any]:
    await _get_service().set_manifest(presentation_id, document)
    return {"success": True}


@router.patch("/{presentation_id}/manifest")
async def patch_manifest(presentation_id: str, updates: Any = Body(...)) -> Dict[str, Any]:
    await _get_service().patch_manifest(presentation_id, updates)
    return {"success": True}


@router.post("/{presentation_id}/manifest/validate")
async def validate_manifest(presentation_id: str, request: ValidateRequest) -> Dict[str, Any]:
    if request.manifest is None:
        _missing("manifest")
    report = await _get_service().validate_manifest(
        presentation_id, request.manifest, check_files=request.checkFiles
    )
    return report.to_dict()


@router.post("/{presentation_id}/manifest/slides/bulk")
async def bulk_add_slides(
    presentation_id: str,
    request: BulkSlidesRequest,
    dry_run: bool = Query(False, alias="dryRun"),
):
    options = BulkAddOptions.from_dict({
        "createGroups": request.createGroups,
        "position": request.position,
        "onConflict": request.onConflict,
    })
    is_dry_run = request.dryRun or dry_run
    result = await _get_service().bulk_add_slides(
        presentation_id, request.slides, options, dry_run=is_dry_run
    )
    return JSONResponse(status_code=200 if is_dry_run else 201, content=result.to_dict())


@router.post("/{presentation_id}/manifest/groups/bulk")
async def bulk_add_groups(
    presentation_id: str,
    request: BulkGroupsRequest,
    dry_run: bool = Query(False, alias="dryRun"),
):
    is_dry_run = request.dryRun or dry_run
    result = await _get_service().bulk_add_groups(presentation_id, request.groups, dry_run=is_dry_run)
    return JSONResponse(status_code=200 if is_dry_run else 201, content=result.to_dict())


@router.put("/{presentation_id}/manifest/sync")
async def sync_manifest(presentation_id: str, request: Optional[SyncRequest] = None) -> Dict[str, Any]:
    request = request or SyncRequest()
    report = await _get_service().sync_manifest(
        presentation_id,
        strategy=request.strategy,
        infer_groups=request.inferGroups,
        infer_titles=request.inferTitles,
    )
    return report.to_dict()


@router.put("/{presentation_id}/manifest/sync-from-index")
async def sync_from_index(
    presentation_id: str,
    request: Optional[SyncFromIndexRequest] = None,
) -> Dict[str, Any]:
    request = request or SyncFromIndexRequest()
    report = await _get_service().sync_from_index(
        presentation_id,
        strategy=request.strategy,
        infer_tabs=request.inferTabs,
        parse_cards=request.parseCards,
    )
    return report.to_dict()


@router.post("/{presentation_id}/manifest/template")
async def apply_template(presentation_id: str, request: TemplateRequest) -> Dict[str, Any]:
    if not request.templateId:
        _missing("templateId")
    await _get_service().apply_template(presentation_id, request.templateId, merge=request.merge)
    return {"success": True}


# =============================================================================
# Slides
# =============================================================================

@router.post("/{presentation_id}/slides", status_code=201)
async def add_slide(presentation_id: str, slide: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
    metadata = dict(slide)
    file = metadata.pop("file", None)
    if not file:
        _missing("file")
    created = await _get_service().add_slide(presentation_id, file, metadata)
    return {"success": True, "slide": created.to_dict()}


@router.put("/{presentation_id}/slides/{slide_id}")
async def update_slide(
    presentation_id: str,
    slide_id: str,
    changes: Dict[str, Any] = Body(...),
) -> Dict[str, Any]:
    updated = await _get_service().update_slide(presentation_id, slide_id, changes)
    return {"success": True, "slide": updated.to_dict()}


@router.delete("/{presentation_id}/slides/{slide_id}")
async def remove_slide(presentation_id: str, slide_id: str) -> Dict[str, Any]:
    removed = await _get_service().remove_slide(presentation_id, slide_id)
    return {"success": True, "slide": removed.to_dict()}


# =============================================================================
# Groups (order route first so "order" is not captured as a group id)
# =============================================================================

@router.put("/{presentation_id}/groups/order")
async def reorder_groups(presentation_id: str, request: OrderRequest) -> Dict[str, Any]:
    if request.order is None:
        _missing("order")
    groups = await _get_service().reorder_groups(presentation_id, request.order)
    return {"success": True, "order": [g.id for g in groups]}


@router.post("/{presentation_id}/groups", status_code=201)
async def create_group(presentation_id: str, request: GroupCreateRequest) -> Dict[str, Any]:
    group = await _get_service().create_group(
        presentation_id,
        request.id,
        request.label,
        order=request.order,
        tab=request.tab,
        parent=request.parent,
        tab_id=request.tabId,
    )
    return {"success": True, "group": dict(group.to_dict(), id=group.id)}


@router.put("/{presentation_id}/groups/{group_id}")
async def update_group(presentation_id: str, group_id: str, request: GroupUpdateRequest) -> Dict[str, Any]:
    group = await _get_service().update_group(
        presentation_id, group_id, label=request.label, tab_id=request.tabId
    )
    return {"success": True, "group": dict(group.to_dict(), id=group.id)}


@router.delete("/{presentation_id}/groups/{group_id}")
async def delete_group(presentation_id: str, group_id: str) -> Dict[str, Any]:
    moved = await _get_service().delete_group(presentation_id, group_id)
    return {"success": True, "ungroupedSlides": moved}


@router.put("/{presentation_id}/groups/{group_id}/parent")
async def set_group_parent(
    presentation_id: str,
    group_id: str,
    request: GroupParentRequest,
) -> Dict[str, Any]:
    group = await _get_service().set_group_parent(presentation_id, group_id, request.parent)
    return {"success": True, "group": dict(group.to_dict(), id=group.id)}


@router.delete("/{presentation_id}/groups/{group_id}/parent")
async def remove_group_parent(presentation_id: str, group_id: str) -> Dict[str, Any]:
    group = await _get_service().remove_group_parent(presentation_id, group_id)
    return {"success": True, "group": dict(group.to_dict(), id=group.id)}


# =============================================================================
# Tabs
# =============================================================================

@router.put("/{presentation_id}/tabs/order")
async def reorder_tabs(presentation_id: str, request: OrderRequest) -> Dict[str, Any]:
    if request.order is None:
        _missing("order")
    tabs = await _get_service().reorder_tabs(presentation_id, request.order)
    return {"success": True, "order": [t.id for t in tabs]}


@router.post("/{presentation_id}/tabs", status_code=201)
async def create_tab(presentation_id: str, request: TabCreateRequest) -> Dict[str, Any]:
    tab = await _get_service().create_tab(
        presentation_id, request.id, request.label, subtitle=request.subtitle, file=request.file
    )
    return {"success": True, "tab": tab.to_dict()}


@router.put("/{presentation_id}/tabs/{tab_id}")
async def update_tab(presentation_id: str, tab_id: str, request: TabUpdateRequest) -> Dict[str, Any]:
    tab = await _get_service().update_tab(
        presentation_id, tab_id, label=request.label, subtitle=request.subtitle
    )
    return {"success": True, "tab": tab.to_dict()}


@router.delete("/{presentation_id}/tabs/{tab_id}")
async def delete_tab(
    presentation_id: str,
    tab_id: str,
    strategy: str = Query("orphan", description="orphan | cascade | reparent:<tabId>"),
) -> Dict[str, Any]:
    affected = await _get_service().delete_tab(presentation_id, tab_id, strategy)
    return {"success": True, "strategy": strategy, "affectedGroups": affected}


# =============================================================================
# Assets
# =============================================================================

@assets_router.get("/{presentation_id}/{asset_id}", response_class=HTMLResponse)
async def get_asset(presentation_id: str, asset_id: str) -> HTMLResponse:
    """Raw HTML of one asset, for the viewer iframe."""
    content = await _get_service().read_asset(presentation_id, asset_id)
    return HTMLResponse(content=content)
