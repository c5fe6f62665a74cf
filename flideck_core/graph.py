"""
Tab/Group Graph Manager
=======================

CRUD over the tab and group tables of a ``Manifest``, keeping the
parent/tabId invariants intact.

Every function checks all of its preconditions before it touches the
manifest, so a raised error always leaves the manifest unchanged. Functions
mutate the manifest they are given; the service hands them a private copy.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from flideck_core.errors import ConflictError, CycleDetectedError, NotFoundError, ValidationError
from flideck_core.models import (
    BulkOperationResult,
    DeleteTabMode,
    DeleteTabStrategy,
    Group,
    Manifest,
    Tab,
    format_name,
    is_html_file,
    is_valid_id,
)
from flideck_core.ordering import effective_tab_id

logger = logging.getLogger(__name__)


# =============================================================================
# Shared checks
# =============================================================================

def _check_id(kind: str, item_id: Any) -> None:
    if not is_valid_id(item_id):
        raise ValidationError(
            f"Invalid {kind} id {item_id!r}: must be lowercase kebab-case (e.g. 'my-{kind}')"
        )


def _check_label(kind: str, label: Any) -> str:
    if not isinstance(label, str) or not label.strip():
        raise ValidationError(f"Missing required field: {kind} label")
    return label.strip()


def _check_permutation(kind: str, ordered_ids: Sequence[str], existing: Sequence[str]) -> None:
    """A reorder must name every existing id exactly once."""
    if not isinstance(ordered_ids, (list, tuple)):
        raise ValidationError(f"{kind} order must be an array of ids")
    unknown = [i for i in ordered_ids if i not in existing]
    if unknown:
        raise NotFoundError(
            f"Unknown {kind} id(s) in reorder",
            [f"{kind} not found: {i}" for i in unknown],
        )
    problems: List[str] = []
    duplicates = sorted({i for i in ordered_ids if list(ordered_ids).count(i) > 1})
    problems.extend(f"duplicate {kind} id: {i}" for i in duplicates)
    missing = [i for i in existing if i not in ordered_ids]
    problems.extend(f"missing {kind} id: {i}" for i in missing)
    if problems:
        raise ValidationError(
            f"{kind.capitalize()} order must be a full permutation of existing ids",
            problems,
        )


def _require_group(manifest: Manifest, group_id: str) -> Group:
    group = manifest.groups.get(group_id)
    if group is None:
        raise NotFoundError(f"Group not found: {group_id}")
    return group


def _require_tab(manifest: Manifest, tab_id: str) -> Tab:
    tab = manifest.get_tab(tab_id)
    if tab is None:
        raise NotFoundError(f"Tab not found: {tab_id}")
    return tab


# =============================================================================
# Tabs
# =============================================================================

def create_tab(
    manifest: Manifest,
    tab_id: str,
    label: str,
    subtitle: Optional[str] = None,
    file: Optional[str] = None,
) -> Tab:
    _check_id("tab", tab_id)
    label = _check_label("tab", label)
    if file is not None and not is_html_file(file):
        raise ValidationError(f"Invalid tab file name: {file!r}")
    if manifest.get_tab(tab_id) is not None:
        raise ConflictError(f"Tab already exists: {tab_id}")

    tab = Tab(id=tab_id, label=label, file=file or "", order=manifest.next_tab_order(), subtitle=subtitle)
    manifest.tabs.append(tab)
    logger.debug(f"Created tab '{tab_id}' (order={tab.order})")
    return tab


def update_tab(
    manifest: Manifest,
    tab_id: str,
    label: Optional[str] = None,
    subtitle: Optional[str] = None,
) -> Tab:
    tab = _require_tab(manifest, tab_id)
    if label is not None:
        tab.label = _check_label("tab", label)
    if subtitle is not None:
        tab.subtitle = subtitle or None
    return tab


def reorder_tabs(manifest: Manifest, ordered_ids: Sequence[str]) -> List[Tab]:
    _check_permutation("tab", ordered_ids, [t.id for t in manifest.tabs])
    by_id = {t.id: t for t in manifest.tabs}
    manifest.tabs = [by_id[i] for i in ordered_ids]
    for position, tab in enumerate(manifest.tabs, start=1):
        tab.order = position
    return manifest.tabs


def delete_tab(manifest: Manifest, tab_id: str, strategy: Any = "orphan") -> List[str]:
    """
    Delete a tab and deal with the groups that resolve to it.

    Strategies:
        orphan            clear tabId/parent on the affected groups
        cascade           delete the affected groups, ungroup their slides
        reparent:<tabId>  move direct affiliations to another tab

    Returns:
        Ids of the affected groups
    """
    if not isinstance(strategy, DeleteTabStrategy):
        strategy = DeleteTabStrategy.parse(strategy)
    _require_tab(manifest, tab_id)
    if strategy.mode == DeleteTabMode.REPARENT:
        if strategy.target == tab_id:
            raise ValidationError(f"Cannot reparent groups of tab '{tab_id}' onto itself")
        if manifest.get_tab(strategy.target) is None:
            raise NotFoundError(f"Target tab not found: {strategy.target}")

    affected = [gid for gid in manifest.groups if effective_tab_id(gid, manifest.groups) == tab_id]

    if strategy.mode == DeleteTabMode.ORPHAN:
        for gid in affected:
            group = manifest.groups[gid]
            group.tab_id = None
            group.parent = None
    elif strategy.mode == DeleteTabMode.CASCADE:
        removed = set(affected)
        for gid in affected:
            del manifest.groups[gid]
        for group in manifest.groups.values():
            if group.parent in removed:
                group.parent = None
        for slide in manifest.slides:
            if slide.group in removed:
                slide.group = None
    else:
        for gid in affected:
            group = manifest.groups[gid]
            if group.tab_id == tab_id:
                group.tab_id = strategy.target

    manifest.tabs = [t for t in manifest.tabs if t.id != tab_id]
    logger.info(f"Deleted tab '{tab_id}' ({strategy}), {len(affected)} group(s) affected")
    return affected


# =============================================================================
# Groups
# =============================================================================

def _would_cycle(groups: Dict[str, Group], group_id: str, parent_id: str) -> bool:
    seen = set()
    current: Optional[str] = parent_id
    while current is not None and current in groups:
        if current == group_id or current in seen:
            return True
        seen.add(current)
        current = groups[current].parent
    return False


def create_group(
    manifest: Manifest,
    group_id: str,
    label: str,
    order: Optional[float] = None,
    tab: bool = False,
    parent: Optional[str] = None,
    tab_id: Optional[str] = None,
) -> Group:
    _check_id("group", group_id)
    label = _check_label("group", label)
    if group_id in manifest.groups:
        raise ConflictError(f"Group already exists: {group_id}")
    if parent is not None:
        if parent == group_id:
            raise CycleDetectedError(f"Group '{group_id}' cannot be its own parent")
        _require_group(manifest, parent)
    if tab_id is not None and manifest.get_tab(tab_id) is None:
        raise NotFoundError(f"Tab not found: {tab_id}")

    group = Group(
        id=group_id,
        label=label,
        order=order if order is not None else manifest.next_group_order(),
        tab=tab,
        parent=parent,
        tab_id=tab_id,
    )
    manifest.groups[group_id] = group
    logger.debug(f"Created group '{group_id}' (order={group.order})")
    return group


def update_group(
    manifest: Manifest,
    group_id: str,
    label: Optional[str] = None,
    tab_id: Optional[str] = None,
) -> Group:
    group = _require_group(manifest, group_id)
    if label is not None:
        label = _check_label("group", label)
    if tab_id is not None and tab_id != "" and manifest.get_tab(tab_id) is None:
        raise NotFoundError(f"Tab not found: {tab_id}")
    if label is not None:
        group.label = label
    if tab_id is not None:
        group.tab_id = tab_id or None
    return group


def delete_group(manifest: Manifest, group_id: str) -> int:
    """Remove a group; returns the number of slides moved to ungrouped."""
    _require_group(manifest, group_id)
    del manifest.groups[group_id]
    for group in manifest.groups.values():
        if group.parent == group_id:
            group.parent = None
    moved = 0
    for slide in manifest.slides:
        if slide.group == group_id:
            slide.group = None
            moved += 1
    logger.debug(f"Deleted group '{group_id}', {moved} slide(s) ungrouped")
    return moved


def reorder_groups(manifest: Manifest, ordered_ids: Sequence[str]) -> List[Group]:
    _check_permutation("group", ordered_ids, list(manifest.groups))
    manifest.groups = {gid: manifest.groups[gid] for gid in ordered_ids}
    for position, group in enumerate(manifest.groups.values(), start=1):
        group.order = position
    return list(manifest.groups.values())


def set_group_parent(manifest: Manifest, group_id: str, parent_id: str) -> Group:
    group = _require_group(manifest, group_id)
    if parent_id == group_id:
        raise CycleDetectedError(f"Group '{group_id}' cannot be its own parent")
    _require_group(manifest, parent_id)
    if _would_cycle(manifest.groups, group_id, parent_id):
        raise CycleDetectedError(
            f"Setting parent of '{group_id}' to '{parent_id}' would create a cycle"
        )
    group.parent = parent_id
    return group


def remove_group_parent(manifest: Manifest, group_id: str) -> Group:
    group = _require_group(manifest, group_id)
    group.parent = None
    return group


def bulk_add_groups(
    manifest: Manifest,
    items: Sequence[Dict[str, Any]],
    dry_run: bool = False,
) -> BulkOperationResult:
    """
    Add several groups at once. Existing ids are skipped, never overwritten.

    Raises:
        ValidationError: listing every malformed item
    """
    if not isinstance(items, (list, tuple)):
        raise ValidationError("Missing required field: groups (array)")

    errors: List[str] = []
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            errors.append(f"groups[{i}]: must be an object")
            continue
        if not is_valid_id(item.get("id")):
            errors.append(f"groups[{i}].id: invalid id {item.get('id')!r}")
        label = item.get("label")
        if label is not None and (not isinstance(label, str) or not label.strip()):
            errors.append(f"groups[{i}].label: must be a non-empty string")
        order = item.get("order")
        if order is not None and (isinstance(order, bool) or not isinstance(order, (int, float))):
            errors.append(f"groups[{i}].order: must be a number")
    if errors:
        raise ValidationError("Invalid bulk group request", errors)

    result = BulkOperationResult(dry_run=dry_run)
    for item in items:
        gid = item["id"]
        if gid in manifest.groups:
            result.skip(gid, "group already exists")
            continue
        parent = item.get("parent")
        if parent and parent not in manifest.groups:
            result.skip(gid, f"unknown parent group '{parent}'")
            continue
        tab_id = item.get("tabId")
        if tab_id and manifest.get_tab(tab_id) is None:
            result.skip(gid, f"unknown tab '{tab_id}'")
            continue
        manifest.groups[gid] = Group(
            id=gid,
            label=(item.get("label") or format_name(gid)).strip(),
            order=item["order"] if item.get("order") is not None else manifest.next_group_order(),
            tab=bool(item.get("tab", False)),
            parent=parent or None,
            tab_id=tab_id or None,
        )
        result.added += 1
        result.created_groups.append(gid)
    return result
