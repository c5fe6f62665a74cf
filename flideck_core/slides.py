"""
Slide Mutation Engine
=====================

Single-slide add/update/remove and the bulk upsert with conflict policies.

Individual conflicts in a bulk request are reported in the returned
``BulkOperationResult``; only a malformed request raises.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from flideck_core.errors import ConflictError, NotFoundError, ValidationError
from flideck_core.models import (
    BulkOperationResult,
    DuplicateFilePolicy,
    GroupMismatchPolicy,
    Group,
    Manifest,
    Slide,
    file_stem,
    format_name,
    is_html_file,
    is_valid_id,
    parse_enum,
)

logger = logging.getLogger(__name__)

Position = Union[str, Dict[str, str]]


# =============================================================================
# Options
# =============================================================================

@dataclass
class BulkAddOptions:
    """Options for ``bulk_add_slides``."""
    create_groups: bool = False
    position: Position = "end"
    duplicate_file: DuplicateFilePolicy = DuplicateFilePolicy.SKIP
    group_mismatch: GroupMismatchPolicy = GroupMismatchPolicy.SKIP

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "BulkAddOptions":
        d = d or {}
        on_conflict = d.get("onConflict") or {}
        if not isinstance(on_conflict, dict):
            raise ValidationError("onConflict must be an object")
        return cls(
            create_groups=bool(d.get("createGroups", False)),
            position=d.get("position") or "end",
            duplicate_file=parse_enum(
                DuplicateFilePolicy, on_conflict.get("duplicateFile"),
                "onConflict.duplicateFile", DuplicateFilePolicy.SKIP,
            ),
            group_mismatch=parse_enum(
                GroupMismatchPolicy, on_conflict.get("groupMismatch"),
                "onConflict.groupMismatch", GroupMismatchPolicy.SKIP,
            ),
        )


# =============================================================================
# Single-slide operations
# =============================================================================

def _check_metadata(metadata: Dict[str, Any], where: str = "slide") -> List[str]:
    errors = []
    for key in ("title", "description", "group", "notes"):
        value = metadata.get(key)
        if value is not None and not isinstance(value, str):
            errors.append(f"{where}.{key}: must be a string")
    recommended = metadata.get("recommended")
    if recommended is not None and not isinstance(recommended, bool):
        errors.append(f"{where}.recommended: must be a boolean")
    tags = metadata.get("tags")
    if tags is not None and not (isinstance(tags, list) and all(isinstance(t, str) for t in tags)):
        errors.append(f"{where}.tags: must be an array of strings")
    return errors


def add_slide(manifest: Manifest, file: str, metadata: Optional[Dict[str, Any]] = None) -> Slide:
    """Append a slide entry for *file*."""
    metadata = dict(metadata or {})
    if not is_html_file(file):
        raise ValidationError(f"Invalid slide file {file!r}: expected a bare .html or .htm file name")
    errors = _check_metadata(metadata)
    if errors:
        raise ValidationError("Invalid slide metadata", errors)
    if file in manifest.slide_files():
        raise ConflictError(f"Slide already exists: {file}")

    metadata["file"] = file
    slide = Slide.from_dict(metadata)
    manifest.slides.append(slide)
    if slide.group and slide.group not in manifest.groups:
        logger.warning(f"Slide '{file}' references unknown group '{slide.group}'")
    return slide


def update_slide(manifest: Manifest, slide_id: str, changes: Dict[str, Any]) -> Slide:
    if not isinstance(changes, dict):
        raise ValidationError("Slide update must be an object")
    slide = manifest.get_slide(slide_id)
    if slide is None:
        raise NotFoundError(f"Slide not found: {slide_id}")
    errors = _check_metadata(changes)
    if errors:
        raise ValidationError("Invalid slide metadata", errors)
    slide.apply(changes)
    return slide


def remove_slide(manifest: Manifest, slide_id: str) -> Slide:
    """Drop the manifest entry. The file on disk is left alone."""
    idx = manifest.find_slide_index(slide_id)
    if idx is None:
        raise NotFoundError(f"Slide not found: {slide_id}")
    return manifest.slides.pop(idx)


# =============================================================================
# Bulk add
# =============================================================================

def _unique_name(file: str, taken: set) -> str:
    stem = file_stem(file)
    ext = file[len(stem):]
    n = 1
    while f"{stem}-{n}{ext}" in taken:
        n += 1
    return f"{stem}-{n}{ext}"


def _insertion_index(manifest: Manifest, position: Position) -> int:
    if position == "start":
        return 0
    if position == "end" or position is None:
        return len(manifest.slides)
    if isinstance(position, dict) and "after" in position:
        target = position["after"]
        for i, slide in enumerate(manifest.slides):
            if slide.file == target:
                return i + 1
        raise ValidationError(f"Invalid position: slide '{target}' not found for 'after'")
    raise ValidationError(
        f"Invalid position {position!r} (expected 'start', 'end' or {{'after': file}})"
    )


def _check_items(items: Any) -> None:
    if not isinstance(items, (list, tuple)):
        raise ValidationError("Missing required field: slides (array)")
    errors: List[str] = []
    for i, item in enumerate(items):
        where = f"slides[{i}]"
        if not isinstance(item, dict):
            errors.append(f"{where}: must be an object")
            continue
        file = item.get("file")
        if not file:
            errors.append(f"{where}.file: missing required field")
        elif not is_html_file(file):
            errors.append(f"{where}.file: invalid file {file!r}, must be a bare .html or .htm name")
        errors.extend(_check_metadata(item, where))
    if errors:
        raise ValidationError("Invalid bulk slide request", errors)


def bulk_add_slides(
    manifest: Manifest,
    items: Sequence[Dict[str, Any]],
    options: Optional[BulkAddOptions] = None,
    dry_run: bool = False,
) -> BulkOperationResult:
    """
    Insert many slides at once, resolving conflicts item by item.

    Args:
        manifest: Manifest to mutate
        items: Slide dicts, each with at least ``file``
        options: Group creation, insertion point and conflict policies
        dry_run: Only recorded on the result; callers pass a copy

    Returns:
        BulkOperationResult

    Raises:
        ValidationError: malformed items or an unknown ``after`` target
    """
    options = options or BulkAddOptions()
    _check_items(items)
    insert_at = _insertion_index(manifest, options.position)

    result = BulkOperationResult(dry_run=dry_run)
    taken = set(manifest.slide_files())

    for item in items:
        file = item["file"]
        existing = next((i for i, s in enumerate(manifest.slides) if s.file == file), None)

        replace_at: Optional[int] = None
        if existing is not None:
            if options.duplicate_file == DuplicateFilePolicy.SKIP:
                result.skip(file, "file already in manifest")
                continue
            if options.duplicate_file == DuplicateFilePolicy.REPLACE:
                replace_at = existing
            else:
                file = _unique_name(file, taken)

        group = item.get("group") or None
        if group and group not in manifest.groups:
            if options.create_groups or options.group_mismatch == GroupMismatchPolicy.CREATE:
                if not is_valid_id(group):
                    result.skip(item["file"], f"invalid group id '{group}' (expected kebab-case)")
                    continue
                manifest.groups[group] = Group(
                    id=group, label=format_name(group), order=manifest.next_group_order()
                )
                result.created_groups.append(group)
            elif options.group_mismatch == GroupMismatchPolicy.UNGROUP:
                group = None
            else:
                result.skip(item["file"], f"unknown group '{group}'")
                continue

        data = dict(item, file=file)
        data.pop("group", None)
        slide = Slide.from_dict(data)
        slide.group = group

        if replace_at is not None:
            manifest.slides[replace_at] = slide
            result.updated += 1
        else:
            manifest.slides.insert(insert_at, slide)
            insert_at += 1
            taken.add(file)
            result.added += 1
        result.files.append(file)

    logger.debug(
        f"Bulk add: added={result.added} updated={result.updated} "
        f"skipped={result.skipped} dry_run={dry_run}"
    )
    return result
