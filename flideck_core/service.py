"""
PresentationService - the presentation aggregate

Owns discovery, caching and every manifest mutation. Collaborators (manifest
store, asset source, change notifier, document parser) are injected, so
several isolated instances can coexist (tests do exactly that).

Every mutation follows the same cycle, serialized per presentation id by an
``asyncio.Lock``::

    load -> apply (on a private copy) -> validate -> save -> invalidate -> notify

A failure anywhere before ``save`` leaves the stored manifest untouched and
fires no notification.
"""

import asyncio
import html
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar, Union

from flideck_core import graph, slides as slide_ops, sync as sync_ops, templates
from flideck_core.config import FlideckConfig, collapse_path, expand_path
from flideck_core.errors import ManifestError, NotFoundError, ValidationError
from flideck_core.html_parse import SoupDocumentParser
from flideck_core.models import (
    PRESENTATION_ID_PATTERN,
    Asset,
    BulkOperationResult,
    DeleteTabStrategy,
    Group,
    Manifest,
    ParsedDocument,
    Presentation,
    Slide,
    SyncFromIndexReport,
    SyncReport,
    SyncStrategy,
    Tab,
    ValidationReport,
    format_name,
    parse_enum,
)
from flideck_core.ordering import (
    DEFAULT_GROUPED_THRESHOLD,
    detect_display_mode,
    merge_assets_with_manifest,
    resolve_order,
)
from flideck_core.ports import AssetSource, ChangeNotifier, DocumentParser, LoggingNotifier, ManifestStore
from flideck_core.storage import FileAssetSource, FileManifestStore, list_presentation_ids
from flideck_core.validator import validate

logger = logging.getLogger(__name__)

T = TypeVar("T")

INDEX_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>{title}</title>
</head>
<body>
  <h1>{title}</h1>
</body>
</html>
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, timezone.utc).isoformat()


class PresentationService:
    """Discovery, cache and mutation entry point for presentations."""

    def __init__(
        self,
        store: ManifestStore,
        assets: AssetSource,
        notifier: Optional[ChangeNotifier] = None,
        parser: Optional[DocumentParser] = None,
        config: Optional[FlideckConfig] = None,
    ):
        self.store = store
        self.assets = assets
        self.notifier = notifier or LoggingNotifier()
        self.parser = parser or SoupDocumentParser()
        self.config = config or FlideckConfig()
        self._cache: Dict[str, Presentation] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    @classmethod
    def from_config(
        cls,
        config: FlideckConfig,
        notifier: Optional[ChangeNotifier] = None,
    ) -> "PresentationService":
        """Build a service over the filesystem tree named by *config*."""
        root = config.root_path
        store = FileManifestStore(
            root,
            filename=config.manifest.filename,
            legacy_filenames=config.manifest.legacy_filenames,
        )
        return cls(store, FileAssetSource(root), notifier=notifier, config=config)

    @property
    def grouped_threshold(self) -> int:
        return self.config.display.grouped_threshold if self.config else DEFAULT_GROUPED_THRESHOLD

    def _lock_for(self, presentation_id: str) -> asyncio.Lock:
        lock = self._locks.get(presentation_id)
        if lock is None:
            lock = self._locks[presentation_id] = asyncio.Lock()
        return lock

    # -------------------------------------------------------------------------
    # Cache
    # -------------------------------------------------------------------------

    def invalidate_cache(self, presentation_id: Optional[str] = None) -> None:
        """Drop one cached presentation, or all of them."""
        if presentation_id is None:
            logger.debug(f"Cache cleared ({len(self._cache)} entries)")
            self._cache.clear()
        elif self._cache.pop(presentation_id, None) is not None:
            logger.debug(f"Cache invalidated: {presentation_id}")

    async def refresh(self) -> None:
        self.invalidate_cache()
        await self._notify(None, "manual-refresh")

    async def change_root(self, root: Union[str, Path]) -> None:
        """Point the service at another presentations folder."""
        root = Path(root).resolve()
        if not root.is_dir():
            raise NotFoundError(f"Directory not found: {root}")
        self.store = FileManifestStore(
            root,
            filename=self.config.manifest.filename,
            legacy_filenames=self.config.manifest.legacy_filenames,
        )
        self.assets = FileAssetSource(root)
        self.config.presentations_root = str(root)
        self.invalidate_cache()
        logger.info(f"Presentations root changed to {root}")
        await self._notify(None, "config-changed")

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def _load_manifest(self, presentation_id: str) -> Optional[Manifest]:
        raw = await self.store.load(presentation_id)
        return Manifest.from_dict(raw) if raw is not None else None

    async def _build(self, presentation_id: str) -> Presentation:
        discovered = await self.assets.discover(presentation_id)
        try:
            manifest = await self._load_manifest(presentation_id)
        except ValidationError as e:
            logger.warning(f"Ignoring unreadable manifest for '{presentation_id}': {e}")
            manifest = None

        ordered = merge_assets_with_manifest(discovered, manifest)
        effective = manifest or Manifest()
        mode = detect_display_mode(
            effective.meta, ordered, effective.groups, effective.tabs, self.grouped_threshold
        )
        return Presentation(
            id=presentation_id,
            name=effective.meta.name or format_name(presentation_id),
            path=self.assets.path_for(presentation_id),
            assets=ordered,
            last_modified=max((a.last_modified for a in discovered), default=0.0),
            tabs=list(effective.tabs),
            groups=dict(effective.groups),
            meta=effective.meta,
            display_mode=mode,
            ordered_assets=resolve_order(ordered, effective.groups, tabs=effective.tabs),
            has_manifest=manifest is not None,
        )

    async def get_by_id(self, presentation_id: str) -> Presentation:
        """
        Return one presentation, from the cache when possible.

        Raises:
            NotFoundError: no such folder or no index.html
        """
        cached = self._cache.get(presentation_id)
        if cached is not None:
            logger.debug(f"Cache hit: {presentation_id}")
            return cached
        presentation = await self._build(presentation_id)
        self._cache[presentation_id] = presentation
        return presentation

    async def discover_all(self) -> List[Presentation]:
        ids = await self.assets.list_presentations()
        result = []
        for presentation_id in ids:
            try:
                result.append(await self.get_by_id(presentation_id))
            except NotFoundError:
                # folder vanished between listing and discovery
                logger.debug(f"Presentation disappeared during discovery: {presentation_id}")
        return result

    async def get_order(self, presentation_id: str, active_tab_id: Optional[str] = None) -> List[Asset]:
        """Navigation order, optionally restricted to one container tab."""
        presentation = await self.get_by_id(presentation_id)
        if active_tab_id is None:
            return list(presentation.ordered_assets)
        return resolve_order(
            presentation.assets, presentation.groups, tabs=presentation.tabs, active_tab_id=active_tab_id
        )

    async def get_manifest(self, presentation_id: str) -> Optional[Dict[str, Any]]:
        await self.assets.discover(presentation_id)
        manifest = await self._load_manifest(presentation_id)
        return manifest.to_dict() if manifest is not None else None

    async def read_asset(self, presentation_id: str, asset_id: str) -> str:
        """HTML content of an asset given its id (file stem) or file name."""
        discovered = await self.assets.discover(presentation_id)
        for asset in discovered:
            if asset_id in (asset.id, asset.filename):
                return await self.assets.read(presentation_id, asset.filename)
        raise NotFoundError(f"Asset not found: {presentation_id}/{asset_id}")

    async def validate_manifest(
        self,
        presentation_id: str,
        candidate: Any,
        check_files: bool = False,
    ) -> ValidationReport:
        files = None
        if check_files:
            files = [a.filename for a in await self.assets.discover(presentation_id)]
        return validate(candidate, files)

    # -------------------------------------------------------------------------
    # Queries (read-only views for external tools)
    # -------------------------------------------------------------------------

    async def _count_presentations(self, root: Path) -> int:
        loop = asyncio.get_running_loop()
        try:
            ids = await loop.run_in_executor(None, list_presentation_ids, root)
        except OSError as e:
            logger.warning(f"Cannot list presentations in {root}: {e}")
            return 0
        return len(ids)

    async def list_routes(self) -> Dict[str, Any]:
        """The current presentations root first, then the other roots in the history."""
        root = self.config.root_path
        presentations = await self.discover_all()
        routes = [{
            "name": root.name,
            "path": collapse_path(str(root)),
            "presentationCount": len(presentations),
            "isCurrent": True,
        }]
        for entry in self.config.history:
            path = Path(expand_path(entry)).resolve()
            if path == root:
                continue
            routes.append({
                "name": path.name,
                "path": collapse_path(str(path)),
                "presentationCount": await self._count_presentations(path),
                "isCurrent": False,
            })
        return {"routes": routes, "currentRoute": root.name}

    async def get_route(self, route: str) -> Dict[str, Any]:
        """Presentations of the current root. Only the active route can be queried."""
        root = self.config.root_path
        if route != root.name:
            raise NotFoundError(f"Route '{route}' not found. Available: {root.name}")
        presentations = await self.discover_all()
        return {
            "name": root.name,
            "path": str(root),
            "presentations": [
                {
                    "id": p.id,
                    "name": p.name,
                    "assetCount": len(p.assets),
                    "lastModified": _iso(p.last_modified),
                }
                for p in presentations
            ],
        }

    async def describe_presentation(self, presentation_id: str) -> Dict[str, Any]:
        """Assets of one presentation with their position and size on disk."""
        presentation = await self.get_by_id(presentation_id)
        assets = [
            {
                "id": asset.id,
                "name": asset.filename,
                "order": position,
                "size": asset.size,
                "lastModified": _iso(asset.last_modified),
            }
            for position, asset in enumerate(presentation.assets, start=1)
        ]
        return {
            "id": presentation.id,
            "name": presentation.name,
            "route": self.config.root_path.name,
            "assets": assets,
            "totalAssets": len(assets),
        }

    # -------------------------------------------------------------------------
    # Commit cycle
    # -------------------------------------------------------------------------

    async def _notify(self, presentation_id: Optional[str], reason: str) -> None:
        try:
            await self.notifier.notify(presentation_id, reason)
        except Exception as e:
            # delivery is best effort once the change is on disk
            logger.error(f"Change notification failed ({reason}, {presentation_id}): {e}")

    def _prepare(self, manifest: Manifest) -> Dict[str, Any]:
        """Stamp and validate *manifest*, returning the document to store."""
        stamp = _now()
        if not manifest.meta.created:
            manifest.meta.created = stamp
        manifest.meta.updated = stamp
        manifest.refresh_stats()

        document = manifest.to_dict()
        report = validate(document)
        if not report.valid:
            raise ValidationError("Manifest validation failed", report.messages())
        return document

    async def _commit(self, presentation_id: str, manifest: Manifest, reason: str) -> None:
        document = self._prepare(manifest)
        await self.store.save(presentation_id, document)
        self.invalidate_cache(presentation_id)
        logger.info(f"Manifest committed: {presentation_id} ({reason})")
        await self._notify(presentation_id, reason)

    async def _mutate(
        self,
        presentation_id: str,
        reason: str,
        apply: Callable[[Manifest], T],
        dry_run: bool = False,
    ) -> T:
        async with self._lock_for(presentation_id):
            await self.assets.discover(presentation_id)
            current = await self._load_manifest(presentation_id) or Manifest()
            working = current.copy()
            result = apply(working)
            if dry_run:
                self._prepare(working)
            else:
                await self._commit(presentation_id, working, reason)
            return result

    # -------------------------------------------------------------------------
    # Whole-manifest operations
    # -------------------------------------------------------------------------

    async def set_manifest(self, presentation_id: str, document: Any) -> Manifest:
        """Replace the manifest with *document* after validating it."""
        report = validate(document)
        if not report.valid:
            raise ValidationError("Manifest validation failed", report.messages())
        manifest = Manifest.from_dict(document)
        async with self._lock_for(presentation_id):
            await self.assets.discover(presentation_id)
            await self._commit(presentation_id, manifest, "manifest-replaced")
        return manifest

    async def patch_manifest(self, presentation_id: str, updates: Any) -> Manifest:
        """Deep-merge *updates* into the manifest; arrays are replaced."""
        if not isinstance(updates, dict):
            raise ValidationError("Manifest patch must be an object")
        async with self._lock_for(presentation_id):
            await self.assets.discover(presentation_id)
            current = await self._load_manifest(presentation_id) or Manifest()
            merged = templates.deep_merge(current.to_dict(), updates)
            report = validate(merged)
            if not report.valid:
                raise ValidationError("Manifest validation failed after merge", report.messages())
            manifest = Manifest.from_dict(merged)
            await self._commit(presentation_id, manifest, "manifest-patched")
            return manifest

    async def save_order(self, presentation_id: str, order: Sequence[str]) -> List[str]:
        """Persist an explicit asset order (drag and drop in the sidebar)."""
        if not isinstance(order, (list, tuple)) or not all(isinstance(f, str) for f in order):
            raise ValidationError("order must be an array of file names")
        on_disk = {a.filename for a in await self.assets.discover(presentation_id)}
        missing = [f for f in order if f not in on_disk]
        if missing:
            raise NotFoundError("Unknown file(s) in order", [f"file not found: {f}" for f in missing])

        def apply(manifest: Manifest) -> List[str]:
            if not manifest.slides:
                manifest.asset_order = list(dict.fromkeys(order))
                return manifest.asset_order
            by_file = {s.file: s for s in manifest.slides}
            reordered = [by_file.get(f) or Slide(file=f) for f in dict.fromkeys(order)]
            placed = {s.file for s in reordered}
            manifest.slides = reordered + [s for s in manifest.slides if s.file not in placed]
            return manifest.slide_files()

        return await self._mutate(presentation_id, "order-changed", apply)

    async def create_presentation(
        self,
        presentation_id: str,
        name: Optional[str] = None,
        slides: Optional[Sequence[Any]] = None,
    ) -> Presentation:
        """Create a folder with an index.html and a manifest."""
        if not isinstance(presentation_id, str) or not PRESENTATION_ID_PATTERN.match(presentation_id):
            raise ValidationError(
                f"Invalid presentation id {presentation_id!r}: use letters, digits, '-' or '_'"
            )
        manifest = Manifest()
        manifest.meta.name = name or format_name(presentation_id)
        errors = []
        for i, item in enumerate(slides or []):
            entry = {"file": item} if isinstance(item, str) else item
            if not isinstance(entry, dict) or not entry.get("file"):
                errors.append(f"slides[{i}]: missing required field: file")
                continue
            manifest.slides.append(Slide.from_dict(entry))
        if errors:
            raise ValidationError("Invalid presentation request", errors)
        report = validate(manifest.to_dict())
        if not report.valid:
            raise ValidationError("Manifest validation failed", report.messages())

        async with self._lock_for(presentation_id):
            title = html.escape(manifest.meta.name)
            await self.assets.create_presentation(presentation_id, INDEX_TEMPLATE.format(title=title))
            await self._commit(presentation_id, manifest, "presentation-created")
        return await self.get_by_id(presentation_id)

    async def apply_template(self, presentation_id: str, template_id: str, merge: bool = True) -> Manifest:
        template = templates.get_template(template_id)
        return await self._mutate(
            presentation_id,
            "template-applied",
            lambda m: templates.apply_template(m, template, merge=merge),
        )

    # -------------------------------------------------------------------------
    # Slides
    # -------------------------------------------------------------------------

    async def add_slide(self, presentation_id: str, file: str, metadata: Optional[Dict[str, Any]] = None) -> Slide:
        return await self._mutate(
            presentation_id, "slide-added", lambda m: slide_ops.add_slide(m, file, metadata)
        )

    async def update_slide(self, presentation_id: str, slide_id: str, changes: Dict[str, Any]) -> Slide:
        return await self._mutate(
            presentation_id, "slide-updated", lambda m: slide_ops.update_slide(m, slide_id, changes)
        )

    async def remove_slide(self, presentation_id: str, slide_id: str) -> Slide:
        return await self._mutate(
            presentation_id, "slide-removed", lambda m: slide_ops.remove_slide(m, slide_id)
        )

    async def bulk_add_slides(
        self,
        presentation_id: str,
        items: Sequence[Dict[str, Any]],
        options: Union[slide_ops.BulkAddOptions, Dict[str, Any], None] = None,
        dry_run: bool = False,
    ) -> BulkOperationResult:
        if not isinstance(options, slide_ops.BulkAddOptions):
            options = slide_ops.BulkAddOptions.from_dict(options)
        return await self._mutate(
            presentation_id,
            "slides-bulk-added",
            lambda m: slide_ops.bulk_add_slides(m, items, options, dry_run=dry_run),
            dry_run=dry_run,
        )

    async def bulk_add_groups(
        self,
        presentation_id: str,
        items: Sequence[Dict[str, Any]],
        dry_run: bool = False,
    ) -> BulkOperationResult:
        return await self._mutate(
            presentation_id,
            "groups-bulk-added",
            lambda m: graph.bulk_add_groups(m, items, dry_run=dry_run),
            dry_run=dry_run,
        )

    # -------------------------------------------------------------------------
    # Tabs
    # -------------------------------------------------------------------------

    async def create_tab(
        self,
        presentation_id: str,
        tab_id: str,
        label: str,
        subtitle: Optional[str] = None,
        file: Optional[str] = None,
    ) -> Tab:
        return await self._mutate(
            presentation_id, "tab-created",
            lambda m: graph.create_tab(m, tab_id, label, subtitle=subtitle, file=file),
        )

    async def update_tab(
        self,
        presentation_id: str,
        tab_id: str,
        label: Optional[str] = None,
        subtitle: Optional[str] = None,
    ) -> Tab:
        return await self._mutate(
            presentation_id, "tab-updated",
            lambda m: graph.update_tab(m, tab_id, label=label, subtitle=subtitle),
        )

    async def delete_tab(self, presentation_id: str, tab_id: str, strategy: str = "orphan") -> List[str]:
        parsed = DeleteTabStrategy.parse(strategy)
        return await self._mutate(
            presentation_id, "tab-deleted", lambda m: graph.delete_tab(m, tab_id, parsed)
        )

    async def reorder_tabs(self, presentation_id: str, ordered_ids: Sequence[str]) -> List[Tab]:
        return await self._mutate(
            presentation_id, "tabs-reordered", lambda m: graph.reorder_tabs(m, ordered_ids)
        )

    # -------------------------------------------------------------------------
    # Groups
    # -------------------------------------------------------------------------

    async def create_group(
        self,
        presentation_id: str,
        group_id: str,
        label: str,
        order: Optional[float] = None,
        tab: bool = False,
        parent: Optional[str] = None,
        tab_id: Optional[str] = None,
    ) -> Group:
        return await self._mutate(
            presentation_id, "group-created",
            lambda m: graph.create_group(m, group_id, label, order=order, tab=tab, parent=parent, tab_id=tab_id),
        )

    async def update_group(
        self,
        presentation_id: str,
        group_id: str,
        label: Optional[str] = None,
        tab_id: Optional[str] = None,
    ) -> Group:
        return await self._mutate(
            presentation_id, "group-updated",
            lambda m: graph.update_group(m, group_id, label=label, tab_id=tab_id),
        )

    async def delete_group(self, presentation_id: str, group_id: str) -> int:
        return await self._mutate(
            presentation_id, "group-deleted", lambda m: graph.delete_group(m, group_id)
        )

    async def reorder_groups(self, presentation_id: str, ordered_ids: Sequence[str]) -> List[Group]:
        return await self._mutate(
            presentation_id, "groups-reordered", lambda m: graph.reorder_groups(m, ordered_ids)
        )

    async def set_group_parent(self, presentation_id: str, group_id: str, parent_id: str) -> Group:
        return await self._mutate(
            presentation_id, "group-parent-set",
            lambda m: graph.set_group_parent(m, group_id, parent_id),
        )

    async def remove_group_parent(self, presentation_id: str, group_id: str) -> Group:
        return await self._mutate(
            presentation_id, "group-parent-removed",
            lambda m: graph.remove_group_parent(m, group_id),
        )

    # -------------------------------------------------------------------------
    # Filesystem sync
    # -------------------------------------------------------------------------

    async def _parse(self, presentation_id: str, filename: str) -> Tuple[Optional[ParsedDocument], Optional[str]]:
        """Read and parse one file; failures come back as a message."""
        try:
            content = await self.assets.read(presentation_id, filename)
        except ManifestError as e:
            return None, str(e)
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self.parser.parse, content), None
        except Exception as e:
            logger.warning(f"Could not parse {presentation_id}/{filename}: {e}")
            return None, str(e)

    async def sync_manifest(
        self,
        presentation_id: str,
        strategy: Union[SyncStrategy, str, None] = None,
        infer_groups: Optional[bool] = None,
        infer_titles: Optional[bool] = None,
    ) -> SyncReport:
        """
        Reconcile the slide list with the HTML files on disk.

        Unset arguments fall back to the ``sync`` section of the config.
        Titles are parsed before the manifest is touched, so cancelling the
        call mid-way commits nothing.
        """
        defaults = self.config.sync
        strategy = parse_enum(SyncStrategy, strategy, "strategy", SyncStrategy(defaults.strategy))
        infer_groups = defaults.infer_groups if infer_groups is None else infer_groups
        infer_titles = defaults.infer_titles if infer_titles is None else infer_titles

        async with self._lock_for(presentation_id):
            discovered = await self.assets.discover(presentation_id)
            current = await self._load_manifest(presentation_id) or Manifest()
            working = current.copy()

            titles: Dict[str, Optional[str]] = {}
            warnings: List[str] = []
            if infer_titles:
                known = {s.file: s for s in working.slides}
                for filename in sync_ops.slide_candidates(discovered, working):
                    slide = known.get(filename)
                    if slide is not None and slide.title:
                        continue
                    doc, error = await self._parse(presentation_id, filename)
                    if error:
                        warnings.append(f"Could not parse {filename}: {error}")
                    titles[filename] = doc.title if doc else None

            report = sync_ops.sync_manifest(
                working, discovered, strategy,
                infer_groups=infer_groups, infer_titles=infer_titles, titles=titles,
            )
            report.warnings = warnings + report.warnings
            await self._commit(presentation_id, working, "manifest-synced")
            return report

    async def sync_from_index(
        self,
        presentation_id: str,
        strategy: Union[SyncStrategy, str, None] = None,
        infer_tabs: bool = True,
        parse_cards: bool = True,
    ) -> SyncFromIndexReport:
        """Recover tabs and slide assignment from ``index-<tab>.html`` files."""
        strategy = parse_enum(SyncStrategy, strategy, "strategy", SyncStrategy.MERGE)

        async with self._lock_for(presentation_id):
            discovered = await self.assets.discover(presentation_id)
            current = await self._load_manifest(presentation_id) or Manifest()
            working = current.copy()

            documents: Dict[str, ParsedDocument] = {}
            failures: Dict[str, str] = {}
            for _, filename in sync_ops.index_documents(discovered):
                doc, error = await self._parse(presentation_id, filename)
                if doc is not None:
                    documents[filename] = doc
                else:
                    failures[filename] = error or "unknown error"

            report = sync_ops.sync_from_index(
                working, discovered, documents, strategy,
                infer_tabs=infer_tabs, parse_cards=parse_cards, parse_failures=failures,
            )
            await self._commit(presentation_id, working, "manifest-synced-from-index")
            return report
