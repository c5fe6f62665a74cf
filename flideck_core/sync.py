"""
Filesystem Reconciliation
=========================

Brings a manifest in line with the HTML files actually present in a
presentation folder.

Two entry points:

- ``sync_manifest``: slide list vs. discovered files (merge / replace / addOnly)
- ``sync_from_index``: tabs and slide assignment recovered from
  ``index-<tab>.html`` documents and the cards they link to

Both are pure: file contents arrive already parsed, and the caller decides
whether to commit the mutated manifest. A crash or cancellation before the
commit therefore leaves the stored manifest untouched.
"""

import logging
import re
from typing import Dict, List, Optional, Sequence, Set, Tuple

from flideck_core.models import (
    INDEX_FILENAME,
    Asset,
    Group,
    Manifest,
    ParsedDocument,
    Slide,
    SyncFromIndexReport,
    SyncReport,
    SyncStrategy,
    Tab,
    TabSyncInfo,
    file_stem,
    format_name,
    is_html_file,
    is_valid_id,
    tab_id_from_filename,
)

logger = logging.getLogger(__name__)

_PREFIX_SPLIT = re.compile(r"[-_]")


# =============================================================================
# Helpers
# =============================================================================

def infer_group_id(filename: str) -> Optional[str]:
    """
    Group id from a file name prefix: ``api-auth.html`` -> ``api``.

    Names without a ``-``/``_`` separator, or whose prefix is not a valid id,
    stay ungrouped.
    """
    parts = _PREFIX_SPLIT.split(file_stem(filename), maxsplit=1)
    if len(parts) < 2 or not parts[0] or not parts[1]:
        return None
    token = parts[0].lower()
    return token if is_valid_id(token) else None


def slide_candidates(assets: Sequence[Asset], manifest: Manifest) -> List[str]:
    """Files that may be slides: everything but the index and tab indexes."""
    tab_files = set(manifest.tab_files())
    return [
        a.filename
        for a in assets
        if not a.is_index
        and a.filename != INDEX_FILENAME
        and a.filename not in tab_files
        and tab_id_from_filename(a.filename) is None
        and is_html_file(a.filename)
    ]


def unusable_files(assets: Sequence[Asset]) -> List[str]:
    """Discovered files whose names a manifest cannot reference."""
    return [a.filename for a in assets if not is_html_file(a.filename)]


def index_documents(assets: Sequence[Asset]) -> List[Tuple[str, str]]:
    """(tab id, filename) for every ``index-<tab>.html`` in discovery order."""
    found = []
    for asset in assets:
        tab_id = tab_id_from_filename(asset.filename)
        if tab_id:
            found.append((tab_id, asset.filename))
    return found


def _ensure_group(manifest: Manifest, group_id: str, created: List[str]) -> None:
    if group_id not in manifest.groups:
        manifest.groups[group_id] = Group(
            id=group_id, label=format_name(group_id), order=manifest.next_group_order()
        )
        created.append(group_id)


# =============================================================================
# sync_manifest
# =============================================================================

def sync_manifest(
    manifest: Manifest,
    assets: Sequence[Asset],
    strategy: SyncStrategy = SyncStrategy.MERGE,
    infer_groups: bool = False,
    infer_titles: bool = True,
    titles: Optional[Dict[str, Optional[str]]] = None,
) -> SyncReport:
    """
    Reconcile the slide list with discovered files.

    Args:
        manifest: Manifest to mutate
        assets: Discovered assets in discovery order
        strategy: merge, replace or addOnly
        infer_groups: Derive groups from file name prefixes
        infer_titles: Fill titles from ``titles``
        titles: Parsed document titles by file name

    Returns:
        SyncReport
    """
    titles = titles or {}
    report = SyncReport(strategy=strategy)
    for filename in unusable_files(assets):
        report.warnings.append(f"Skipped {filename}: not a usable slide file name")
    on_disk = slide_candidates(assets, manifest)
    disk_set = set(on_disk)
    existing = {s.file: s for s in manifest.slides}

    def new_slide(filename: str) -> Slide:
        slide = Slide(file=filename)
        if infer_titles and titles.get(filename):
            slide.title = titles[filename]
        if infer_groups:
            group = infer_group_id(filename)
            if group:
                _ensure_group(manifest, group, report.groups_created)
                slide.group = group
        return slide

    def refresh(slide: Slide) -> None:
        changed = False
        if infer_titles and not slide.title and titles.get(slide.file):
            slide.title = titles[slide.file]
            changed = True
        if infer_groups and not slide.group:
            group = infer_group_id(slide.file)
            if group:
                _ensure_group(manifest, group, report.groups_created)
                slide.group = group
                changed = True
        if changed:
            report.updated.append(slide.file)

    if strategy == SyncStrategy.REPLACE:
        rebuilt: List[Slide] = []
        for filename in on_disk:
            slide = existing.get(filename)
            if slide is None:
                rebuilt.append(new_slide(filename))
                report.added.append(filename)
            else:
                refresh(slide)
                rebuilt.append(slide)
        report.removed = [s.file for s in manifest.slides if s.file not in disk_set]
        manifest.slides = rebuilt
    else:
        if strategy == SyncStrategy.MERGE:
            for slide in manifest.slides:
                if slide.file in disk_set:
                    refresh(slide)
        for filename in on_disk:
            if filename not in existing:
                manifest.slides.append(new_slide(filename))
                report.added.append(filename)

    if strategy == SyncStrategy.MERGE:
        missing = [s.file for s in manifest.slides if s.file not in disk_set]
        for filename in missing:
            report.warnings.append(f"Slide file not found on disk: {filename}")

    logger.info(
        f"Sync ({strategy.value}): +{len(report.added)} -{len(report.removed)} "
        f"~{len(report.updated)} groups+{len(report.groups_created)}"
    )
    return report


# =============================================================================
# sync_from_index
# =============================================================================

def sync_from_index(
    manifest: Manifest,
    assets: Sequence[Asset],
    documents: Dict[str, ParsedDocument],
    strategy: SyncStrategy = SyncStrategy.MERGE,
    infer_tabs: bool = True,
    parse_cards: bool = True,
    parse_failures: Optional[Dict[str, str]] = None,
) -> SyncFromIndexReport:
    """
    Recover tabs and slide-to-tab assignment from tab index documents.

    Args:
        manifest: Manifest to mutate
        assets: Discovered assets
        documents: Parsed tab index documents by file name
        strategy: merge, replace or addOnly
        infer_tabs: Create/update a Tab and a tab group per index document
        parse_cards: Assign the slides linked by cards to the tab group
        parse_failures: File name -> error message for documents that failed

    Returns:
        SyncFromIndexReport; problems are reported as warnings, never raised
    """
    report = SyncFromIndexReport(strategy=strategy)
    parse_failures = parse_failures or {}
    indexes = index_documents(assets)
    if not indexes:
        report.warnings.append("No index-*.html files found; nothing to sync")
        return report

    on_disk = {a.filename for a in assets}
    for filename in unusable_files(assets):
        report.warnings.append(f"Skipped {filename}: not a usable slide file name")
    for tab_id, filename in indexes:
        if filename in parse_failures:
            report.warnings.append(f"Could not parse {filename}: {parse_failures[filename]}")

    if infer_tabs:
        for tab_id, filename in indexes:
            doc = documents.get(filename)
            tab = manifest.get_tab(tab_id)
            if tab is None:
                label = (doc.title if doc and doc.title else None) or format_name(tab_id)
                manifest.tabs.append(Tab(id=tab_id, label=label, file=filename, order=manifest.next_tab_order()))
                report.tabs_created.append(tab_id)
            else:
                tab.file = filename
                report.tabs_updated.append(tab_id)

            group = manifest.groups.get(tab_id)
            if group is None:
                manifest.groups[tab_id] = Group(
                    id=tab_id,
                    label=manifest.get_tab(tab_id).label,
                    order=manifest.next_group_order(),
                    tab=True,
                    tab_id=tab_id,
                )
                report.groups_created.append(tab_id)
            else:
                group.tab = True
                group.tab_id = tab_id
                report.groups_updated.append(tab_id)

    if not parse_cards:
        return report

    assigned: Set[str] = set()
    per_tab: Dict[str, List[str]] = {}
    candidates = slide_candidates(assets, manifest)

    for tab_id, filename in indexes:
        info = TabSyncInfo(tab_id=tab_id, file=filename)
        report.tabs.append(info)
        doc = documents.get(filename)
        if doc is None:
            continue
        group_id = tab_id if tab_id in manifest.groups else None
        if group_id is None:
            report.warnings.append(f"No group for tab '{tab_id}'; cards in {filename} left unassigned")

        for card in doc.cards:
            href = card.href
            if href == INDEX_FILENAME or tab_id_from_filename(href):
                continue
            if not is_html_file(href):
                report.slides_skipped += 1
                report.warnings.append(f"Card in {filename} references an unusable file name: {href}")
                continue
            if href not in on_disk:
                report.slides_skipped += 1
                report.warnings.append(f"Card in {filename} references missing file: {href}")
                continue
            info.slides.append(href)
            if href in assigned:
                continue
            assigned.add(href)
            per_tab.setdefault(tab_id, []).append(href)

            slide = next((s for s in manifest.slides if s.file == href), None)
            if slide is None:
                slide = Slide(file=href, title=card.title, group=group_id)
                manifest.slides.append(slide)
            elif strategy != SyncStrategy.ADD_ONLY and group_id:
                slide.group = group_id
            report.slides_assigned += 1

    for filename in candidates:
        if filename not in assigned:
            report.slides_orphaned += 1
            report.warnings.append(f"{filename} does not appear in any index file")

    if strategy == SyncStrategy.REPLACE and per_tab:
        by_file = {s.file: s for s in manifest.slides}
        ordered: List[Slide] = []
        for tab_id, _ in indexes:
            ordered.extend(by_file[f] for f in per_tab.get(tab_id, []))
        placed = {s.file for s in ordered}
        ordered.extend(s for s in manifest.slides if s.file not in placed)
        manifest.slides = ordered

    logger.info(
        f"Sync from index ({strategy.value}): tabs+{len(report.tabs_created)} "
        f"assigned={report.slides_assigned} skipped={report.slides_skipped} "
        f"orphaned={report.slides_orphaned}"
    )
    return report
