"""
Ordering Resolver
=================

Computes the canonical navigation order of a presentation and its display
mode. The sidebar and keyboard navigation both consume ``resolve_order``;
nothing else in the code base is allowed to sort assets.

Order:
1. Root-level assets (no group) in discovery order
2. Grouped assets, groups by ascending ``order`` (declaration order on ties)
3. Orphan groups (referenced by a slide, absent from the group table), by id

The index asset and tab index files never appear in the result.
"""

import dataclasses
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Set

from flideck_core.models import (
    Asset,
    DisplayMode,
    Group,
    Manifest,
    ManifestMeta,
    Slide,
    Tab,
    coerce_display_mode,
    tab_id_from_filename,
)

logger = logging.getLogger(__name__)

DEFAULT_GROUPED_THRESHOLD = 15


# -----------------------------------------------------------------------------
# Group graph helpers
# -----------------------------------------------------------------------------

def effective_tab_id(group_id: Optional[str], groups: Dict[str, Group]) -> Optional[str]:
    """Resolve the tab a group belongs to, following ``parent`` links.

    Returns None for universal groups, unknown ids and cyclic chains.
    """
    seen: Set[str] = set()
    current = group_id
    while current is not None and current in groups:
        if current in seen:
            logger.warning(f"Parent cycle detected while resolving tab for group '{group_id}'")
            return None
        seen.add(current)
        group = groups[current]
        if group.tab_id:
            return group.tab_id
        current = group.parent
    return None


def _sorted_items(groups: Dict[str, Group], keep) -> List[Group]:
    # sorted() is stable, so dict insertion order breaks ties
    return sorted((g for g in groups.values() if keep(g)), key=lambda g: g.order)


def tab_groups(groups: Dict[str, Group]) -> List[Group]:
    """Groups flagged ``tab: true``, by order."""
    return _sorted_items(groups, lambda g: g.tab)


def child_groups(groups: Dict[str, Group], parent_id: str) -> List[Group]:
    return _sorted_items(groups, lambda g: g.parent == parent_id)


def top_level_groups(groups: Dict[str, Group]) -> List[Group]:
    """Groups that are neither tabs nor children of another group."""
    return _sorted_items(groups, lambda g: not g.tab and not g.parent)


def orphan_group_ids(assets: Iterable[Asset], groups: Dict[str, Group]) -> List[str]:
    """Group ids referenced by assets but missing from the group table."""
    return sorted({a.group for a in assets if a.group and a.group not in groups})


def ordered_tabs(tabs: Sequence[Tab]) -> List[Tab]:
    return sorted(tabs, key=lambda t: t.order)


# -----------------------------------------------------------------------------
# Ordering
# -----------------------------------------------------------------------------

def annotate_assets(assets: Sequence[Asset], slides: Sequence[Slide]) -> List[Asset]:
    """Copy slide metadata (group, title, ...) onto the matching assets."""
    by_file = {s.file: s for s in slides}
    result = []
    for asset in assets:
        slide = by_file.get(asset.filename)
        if slide is None or asset.is_index:
            result.append(asset)
            continue
        result.append(dataclasses.replace(
            asset,
            group=slide.group,
            title=slide.title,
            description=slide.description,
            recommended=slide.recommended,
            name=slide.title or asset.name,
        ))
    return result


def _is_navigable(asset: Asset, tab_files: Set[str]) -> bool:
    if asset.is_index:
        return False
    return asset.filename not in tab_files and tab_id_from_filename(asset.filename) is None


def resolve_order(
    assets: Sequence[Asset],
    groups: Dict[str, Group],
    slides: Optional[Sequence[Slide]] = None,
    tabs: Optional[Sequence[Tab]] = None,
    active_tab_id: Optional[str] = None,
) -> List[Asset]:
    """
    Compute the single navigation order for a presentation.

    Args:
        assets: Assets in discovery order
        groups: Group table
        slides: Manifest slide entries to merge onto the assets
        tabs: Container tabs; their index files are excluded
        active_tab_id: Restrict to groups affiliated with this tab or universal

    Returns:
        Ordered list of assets (index and tab index files excluded)
    """
    if slides:
        assets = annotate_assets(assets, slides)
    tab_files = {t.file for t in (tabs or [])}

    def visible(group_id: Optional[str]) -> bool:
        if not active_tab_id or not group_id or group_id not in groups:
            return True
        tab_id = effective_tab_id(group_id, groups)
        return tab_id is None or tab_id == active_tab_id

    root: List[Asset] = []
    by_group: Dict[str, List[Asset]] = {}
    for asset in assets:
        if not _is_navigable(asset, tab_files):
            continue
        if not asset.group:
            root.append(asset)
        elif visible(asset.group):
            by_group.setdefault(asset.group, []).append(asset)

    result = list(root)
    for group in sorted(groups.values(), key=lambda g: g.order):
        result.extend(by_group.pop(group.id, []))
    for group_id in sorted(by_group):
        result.extend(by_group[group_id])
    return result


# -----------------------------------------------------------------------------
# Display mode
# -----------------------------------------------------------------------------

def count_slides(assets: Iterable[Asset]) -> int:
    return sum(1 for a in assets if not a.is_index)


def detect_display_mode(
    meta: Optional[ManifestMeta],
    assets: Sequence[Asset],
    groups: Dict[str, Group],
    tabs: Optional[Sequence[Tab]] = None,
    grouped_threshold: int = DEFAULT_GROUPED_THRESHOLD,
) -> DisplayMode:
    """
    Pick the sidebar display mode.

    Precedence: explicit mode (``tabbed`` coerced to grouped), then container
    tabs (grouped when any group exists), then group count and size, then flat.
    The result is always a ``DisplayMode`` member; ``tabbed`` is not one.
    """
    explicit = coerce_display_mode(meta.display_mode) if meta is not None else None
    if explicit is not None:
        return explicit

    if tabs:
        return DisplayMode.GROUPED if groups else DisplayMode.FLAT

    if groups and count_slides(assets) > grouped_threshold:
        return DisplayMode.GROUPED

    return DisplayMode.FLAT


# -----------------------------------------------------------------------------
# Manifest / filesystem merge
# -----------------------------------------------------------------------------

def merge_assets_with_manifest(assets: Sequence[Asset], manifest: Optional[Manifest]) -> List[Asset]:
    """
    Put discovered assets in manifest order and attach slide metadata.

    The index asset comes first, then assets listed by the manifest (slides,
    or the legacy ``assets.order`` list when there are no slides), then any
    remaining assets in discovery order. Manifest entries without a file on
    disk are ignored.
    """
    if manifest is None:
        listed: List[str] = []
    elif manifest.slides:
        listed = manifest.slide_files()
    else:
        listed = list(manifest.asset_order)

    by_name = {a.filename: a for a in assets}
    ordered: List[Asset] = [a for a in assets if a.is_index]
    placed = {a.filename for a in ordered}
    for filename in listed:
        asset = by_name.get(filename)
        if asset is not None and filename not in placed:
            ordered.append(asset)
            placed.add(filename)
    ordered.extend(a for a in assets if a.filename not in placed)

    if manifest is not None and manifest.slides:
        ordered = annotate_assets(ordered, manifest.slides)
    return ordered
