"""
Manifest Validator
==================

Structural and referential validation of a raw manifest document.

The validator works on the JSON-shaped dict (not the normalized ``Manifest``)
so that it can report problems the loader would otherwise smooth over. Every
violation is collected; nothing stops at the first error.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from flideck_core.models import (
    INDEX_FILENAME,
    RETIRED_DISPLAY_MODE,
    DisplayMode,
    ValidationReport,
    is_html_file,
    is_valid_id,
    tab_id_from_filename,
)

logger = logging.getLogger(__name__)

_DISPLAY_MODES = {m.value for m in DisplayMode}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_str_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


# =============================================================================
# Structural checks
# =============================================================================

def _check_meta(meta: Any, report: ValidationReport) -> None:
    if meta is None:
        return
    if not isinstance(meta, dict):
        report.error("meta", "must be an object")
        return
    for key in ("name", "purpose", "created", "updated"):
        if key in meta and meta[key] is not None and not isinstance(meta[key], str):
            report.error(f"meta.{key}", "must be a string")
    mode = meta.get("displayMode")
    if mode is None:
        return
    if mode == RETIRED_DISPLAY_MODE:
        report.warn("meta.displayMode", "'tabbed' is retired and will be treated as 'grouped'")
    elif mode not in _DISPLAY_MODES:
        report.error(
            "meta.displayMode",
            f"invalid value {mode!r} (expected one of: {', '.join(sorted(_DISPLAY_MODES))})",
        )


def _check_tabs(tabs: Any, report: ValidationReport) -> Set[str]:
    tab_ids: Set[str] = set()
    if tabs is None:
        return tab_ids
    if not isinstance(tabs, list):
        report.error("tabs", "must be an array")
        return tab_ids

    for i, tab in enumerate(tabs):
        path = f"tabs[{i}]"
        if not isinstance(tab, dict):
            report.error(path, "must be an object")
            continue
        tab_id = tab.get("id")
        if not is_valid_id(tab_id):
            report.error(f"{path}.id", f"invalid id {tab_id!r} (expected kebab-case)")
        elif tab_id in tab_ids:
            report.error(f"{path}.id", f"duplicate tab id '{tab_id}'")
        else:
            tab_ids.add(tab_id)
        if not isinstance(tab.get("label"), str) or not tab.get("label"):
            report.error(f"{path}.label", "required string")
        if "file" in tab and not is_html_file(tab["file"]):
            report.error(f"{path}.file", f"malformed file name {tab['file']!r}")
        if "order" in tab and not _is_number(tab["order"]):
            report.error(f"{path}.order", "must be a number")
        if "subtitle" in tab and tab["subtitle"] is not None and not isinstance(tab["subtitle"], str):
            report.error(f"{path}.subtitle", "must be a string")
    return tab_ids


def _find_parent_cycles(parents: Dict[str, Optional[str]]) -> List[str]:
    """Return group ids that sit on a parent cycle."""
    on_cycle: Set[str] = set()
    for start in parents:
        seen: List[str] = []
        current: Optional[str] = start
        while current is not None and current in parents:
            if current in seen:
                on_cycle.update(seen[seen.index(current):])
                break
            seen.append(current)
            current = parents[current]
    return sorted(on_cycle)


def _check_groups(groups: Any, tab_ids: Set[str], report: ValidationReport) -> Set[str]:
    group_ids: Set[str] = set()
    if groups is None:
        return group_ids
    if not isinstance(groups, dict):
        report.error("groups", "must be an object keyed by group id")
        return group_ids

    group_ids = set(groups)
    parents: Dict[str, Optional[str]] = {}
    for gid, group in groups.items():
        path = f"groups.{gid}"
        if not is_valid_id(gid):
            report.error(path, f"invalid group id {gid!r} (expected kebab-case)")
        if not isinstance(group, dict):
            report.error(path, "must be an object")
            continue
        if not isinstance(group.get("label"), str) or not group.get("label"):
            report.error(f"{path}.label", "required string")
        if "order" in group and not _is_number(group["order"]):
            report.error(f"{path}.order", "must be a number")
        if "tab" in group and not isinstance(group["tab"], bool):
            report.error(f"{path}.tab", "must be a boolean")

        parent = group.get("parent")
        if parent is not None:
            if parent == gid:
                report.error(f"{path}.parent", "group cannot be its own parent")
            elif parent not in groups:
                report.error(f"{path}.parent", f"unknown parent group '{parent}'")
            else:
                parents[gid] = parent

        tab_ref = group.get("tabId")
        if tab_ref is not None:
            if not isinstance(tab_ref, str):
                report.error(f"{path}.tabId", "must be a string")
            elif tab_ref not in tab_ids:
                report.warn(f"{path}.tabId", f"references unknown tab '{tab_ref}'")

    for gid in _find_parent_cycles(parents):
        report.error(f"groups.{gid}.parent", "parent chain forms a cycle")
    return group_ids


def _check_slides(slides: Any, group_ids: Set[str], report: ValidationReport) -> Set[str]:
    files: Set[str] = set()
    if slides is None:
        return files
    if not isinstance(slides, list):
        report.error("slides", "must be an array")
        return files

    for i, slide in enumerate(slides):
        path = f"slides[{i}]"
        if not isinstance(slide, dict):
            report.error(path, "must be an object")
            continue
        file = slide.get("file")
        if not isinstance(file, str) or not file:
            report.error(f"{path}.file", "required string")
        elif not is_html_file(file):
            report.error(f"{path}.file", f"malformed file name {file!r} (expected a bare .html or .htm name)")
        elif file in files:
            report.error(f"{path}.file", f"duplicate slide file '{file}'")
        else:
            files.add(file)

        for key in ("title", "description", "notes"):
            if key in slide and slide[key] is not None and not isinstance(slide[key], str):
                report.error(f"{path}.{key}", "must be a string")
        if "recommended" in slide and slide["recommended"] is not None \
                and not isinstance(slide["recommended"], bool):
            report.error(f"{path}.recommended", "must be a boolean")
        if "tags" in slide and not _is_str_list(slide["tags"]):
            report.error(f"{path}.tags", "must be an array of strings")

        group = slide.get("group")
        if group is not None:
            if not isinstance(group, str):
                report.error(f"{path}.group", "must be a string")
            elif group not in group_ids:
                report.warn(f"{path}.group", f"references unknown group '{group}'")
    return files


# =============================================================================
# Referential pass
# =============================================================================

def _check_files(
    doc: Dict[str, Any],
    slide_files: Set[str],
    on_disk: Iterable[str],
    report: ValidationReport,
) -> None:
    disk = set(on_disk)

    for i, slide in enumerate(doc.get("slides") or []):
        if isinstance(slide, dict) and slide.get("file") in slide_files \
                and slide["file"] not in disk:
            report.error(f"slides[{i}].file", f"file not found: {slide['file']}")

    tab_files: Set[str] = set()
    for i, tab in enumerate(doc.get("tabs") or []):
        if not isinstance(tab, dict) or not tab.get("id"):
            continue
        target = tab.get("file") or f"index-{tab['id']}.html"
        tab_files.add(target)
        if target not in disk:
            report.warn(f"tabs[{i}].file", f"tab file not found: {target}")

    for filename in sorted(disk):
        if not filename.lower().endswith((".html", ".htm")):
            continue
        if filename == INDEX_FILENAME or filename in tab_files or tab_id_from_filename(filename):
            continue
        if filename not in slide_files:
            report.warn("slides", f"orphan file not referenced by any slide: {filename}")


# =============================================================================
# Public API
# =============================================================================

def validate(candidate: Any, files: Optional[Iterable[str]] = None) -> ValidationReport:
    """
    Validate a raw manifest document.

    Args:
        candidate: Parsed JSON document
        files: Filenames present on disk; enables the referential pass

    Returns:
        ValidationReport with every error and warning found
    """
    report = ValidationReport()
    if not isinstance(candidate, dict):
        report.error("", "manifest must be an object")
        return report

    _check_meta(candidate.get("meta"), report)
    tab_ids = _check_tabs(candidate.get("tabs"), report)
    group_ids = _check_groups(candidate.get("groups"), tab_ids, report)
    slide_files = _check_slides(candidate.get("slides"), group_ids, report)

    stats = candidate.get("stats")
    if stats is not None and not isinstance(stats, dict):
        report.error("stats", "must be an object")

    assets = candidate.get("assets")
    if assets is not None:
        if not isinstance(assets, dict):
            report.error("assets", "must be an object")
        elif "order" in assets and not _is_str_list(assets["order"]):
            report.error("assets.order", "must be an array of strings")

    if files is not None:
        _check_files(candidate, slide_files, files, report)

    if report.errors:
        logger.debug(f"Manifest validation failed with {len(report.errors)} error(s)")
    return report
