"""
Core data models for the FliDeck manifest engine.

Every on-disk manifest shape (the legacy ``assets.order`` document, the rich
``tabs``/``groups``/``slides`` schema, or a mix of both) is normalized into the
canonical ``Manifest`` dataclass at load time. Downstream code never branches
on the raw JSON shape.

Follows the presenter models pattern: enums, dataclasses with
to_dict()/from_dict(), and small utility functions.
"""

from __future__ import annotations

import copy
import logging
import math
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional, Type, TypeVar

from flideck_core.errors import ValidationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Naming rules
# ---------------------------------------------------------------------------

ID_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")
FILENAME_PATTERN = re.compile(r"^[^\s./\\\x00-\x1f][^/\\\x00-\x1f]*(?<!\s)$")
TAB_INDEX_PATTERN = re.compile(r"^index-([a-z0-9]+(?:-[a-z0-9]+)*)\.html?$")
PRESENTATION_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")

INDEX_FILENAME = "index.html"
ARTIFACT_EXTENSION = ".html"
RETIRED_DISPLAY_MODE = "tabbed"


def is_valid_id(value: Any) -> bool:
    """True for lowercase kebab-case identifiers (``my-group``)."""
    return isinstance(value, str) and bool(ID_PATTERN.match(value))


def is_valid_filename(value: Any) -> bool:
    """True for a bare file name (spaces allowed): no directory part, no traversal."""
    return (
        isinstance(value, str)
        and bool(FILENAME_PATTERN.match(value))
        and ".." not in value
    )


def is_html_file(value: Any) -> bool:
    return is_valid_filename(value) and value.lower().endswith((".html", ".htm"))


def file_stem(filename: str) -> str:
    return PurePosixPath(filename).stem


def format_name(name: str) -> str:
    """Format a kebab-case or snake_case string as a title."""
    spaced = re.sub(r"[-_]+", " ", name).strip()
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), spaced)


def tab_id_from_filename(filename: str) -> Optional[str]:
    """Return ``intro`` for ``index-intro.html``, None for anything else."""
    m = TAB_INDEX_PATTERN.match(filename)
    return m.group(1) if m else None


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class DisplayMode(str, Enum):
    """Sidebar rendering strategy. The legacy ``tabbed`` value is retired."""
    FLAT = "flat"
    GROUPED = "grouped"


class SyncStrategy(str, Enum):
    """How filesystem state is reconciled into the manifest."""
    MERGE = "merge"         # keep entries, refresh stale ones, append new files
    REPLACE = "replace"     # rebuild the slide list from discovered files
    ADD_ONLY = "addOnly"    # append undiscovered files only

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            normalized = value.replace("-", "").replace("_", "").lower()
            for member in cls:
                if member.value.lower() == normalized:
                    return member
        return None


class DuplicateFilePolicy(str, Enum):
    """Bulk add: what to do when a file is already in the manifest."""
    SKIP = "skip"
    REPLACE = "replace"
    RENAME = "rename"


class GroupMismatchPolicy(str, Enum):
    """Bulk add: what to do with an unknown group when groups are not auto-created."""
    SKIP = "skip"           # skip the item
    UNGROUP = "ungroup"     # add the slide without a group
    CREATE = "create"       # create the group anyway


class DeleteTabMode(str, Enum):
    ORPHAN = "orphan"
    CASCADE = "cascade"
    REPARENT = "reparent"


E = TypeVar("E", bound=Enum)


def parse_enum(enum_cls: Type[E], value: Any, field_name: str, default: Optional[E] = None) -> E:
    """Parse *value* into *enum_cls*, raising ValidationError on a bad value."""
    if value is None or value == "":
        if default is None:
            raise ValidationError(f"Missing required field: {field_name}")
        return default
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(
            f"Invalid {field_name}: {value!r} (expected one of: {allowed})"
        ) from None


def coerce_display_mode(value: Any) -> Optional[DisplayMode]:
    """Normalize a raw ``displayMode`` value; ``tabbed`` becomes ``grouped``."""
    if value is None or value == "":
        return None
    if isinstance(value, DisplayMode):
        return value
    if value == RETIRED_DISPLAY_MODE:
        logger.info("Retired display mode 'tabbed' coerced to 'grouped'")
        return DisplayMode.GROUPED
    try:
        return DisplayMode(value)
    except ValueError:
        logger.warning(f"Ignoring unknown display mode: {value!r}")
        return None


def _numeric_order(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
        if math.isfinite(number):
            return int(number) if number.is_integer() else number
    return None


def parse_order(value: Any, where: str, default: float = 0) -> Optional[float]:
    """
    Read an ``order`` value from disk.

    Numbers pass through and numeric strings (``"2"``) are converted. Anything
    else is logged and returns None so the caller can move the item last.
    """
    if value is None:
        return default
    number = _numeric_order(value)
    if number is None:
        logger.warning(f"Non-numeric order {value!r} for {where}; moved to the end")
    return number


def trailing_order(raw_items: Any) -> int:
    """One past the largest usable ``order`` among raw tab or group dicts."""
    orders = [
        number
        for number in (_numeric_order(raw.get("order")) for raw in raw_items if isinstance(raw, dict))
        if number is not None
    ]
    return int(max(orders)) + 1 if orders else 1


@dataclass
class DeleteTabStrategy:
    """Parsed form of ``orphan`` | ``cascade`` | ``reparent:<tabId>``."""
    mode: DeleteTabMode
    target: Optional[str] = None

    @classmethod
    def parse(cls, raw: Optional[str]) -> DeleteTabStrategy:
        raw = (raw or DeleteTabMode.ORPHAN.value).strip()
        if raw.startswith(f"{DeleteTabMode.REPARENT.value}:"):
            target = raw.split(":", 1)[1].strip()
            if not target:
                raise ValidationError("Invalid strategy: reparent requires a target tab id")
            return cls(mode=DeleteTabMode.REPARENT, target=target)
        if raw == DeleteTabMode.REPARENT.value:
            raise ValidationError("Invalid strategy: use 'reparent:<tabId>'")
        mode = parse_enum(DeleteTabMode, raw, "strategy")
        return cls(mode=mode)

    def __str__(self) -> str:
        if self.mode == DeleteTabMode.REPARENT:
            return f"reparent:{self.target}"
        return self.mode.value


# ---------------------------------------------------------------------------
# Manifest entities
# ---------------------------------------------------------------------------

@dataclass
class Tab:
    """A container tab bound to its own index document."""
    id: str
    label: str
    file: str = ""
    order: float = 0
    subtitle: Optional[str] = None

    def __post_init__(self):
        if not self.file:
            self.file = f"index-{self.id}.html"

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "id": self.id,
            "label": self.label,
            "file": self.file,
            "order": self.order,
        }
        if self.subtitle:
            d["subtitle"] = self.subtitle
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any], fallback_order: float = 0) -> Tab:
        order = parse_order(d.get("order"), f"tab '{d['id']}'")
        return cls(
            id=d["id"],
            label=d.get("label") or format_name(d["id"]),
            file=d.get("file", ""),
            order=fallback_order if order is None else order,
            subtitle=d.get("subtitle"),
        )


@dataclass
class Group:
    """A named section of slides, optionally tab-affiliated."""
    id: str
    label: str
    order: float = 0
    tab: bool = False
    parent: Optional[str] = None
    tab_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = dict(self.extra)
        d["label"] = self.label
        d["order"] = self.order
        if self.tab:
            d["tab"] = True
        if self.parent:
            d["parent"] = self.parent
        if self.tab_id:
            d["tabId"] = self.tab_id
        return d

    @classmethod
    def from_dict(cls, group_id: str, d: Dict[str, Any], fallback_order: float = 0) -> Group:
        known = {"id", "label", "order", "tab", "parent", "tabId"}
        order = parse_order(d.get("order"), f"group '{group_id}'")
        return cls(
            id=group_id,
            label=d.get("label") or format_name(group_id),
            order=fallback_order if order is None else order,
            tab=bool(d.get("tab", False)),
            parent=d.get("parent") or None,
            tab_id=d.get("tabId") or None,
            extra={k: v for k, v in d.items() if k not in known},
        )


@dataclass
class Slide:
    """A manifest entry referencing one HTML asset by filename."""
    file: str
    title: Optional[str] = None
    description: Optional[str] = None
    group: Optional[str] = None
    recommended: Optional[bool] = None
    tags: List[str] = field(default_factory=list)
    notes: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)   # type, structure, preview, ...

    EDITABLE = ("title", "description", "group", "recommended", "tags", "notes")

    @property
    def id(self) -> str:
        return file_stem(self.file)

    def matches(self, slide_id: str) -> bool:
        return slide_id in (self.file, self.id)

    def apply(self, changes: Dict[str, Any]) -> None:
        """Apply a partial metadata update; unknown keys go to ``extra``."""
        for key, value in changes.items():
            if key == "file":
                continue
            if key in self.EDITABLE:
                if key == "tags":
                    value = list(value or [])
                elif key == "group":
                    value = value or None
                setattr(self, key, value)
            else:
                self.extra[key] = value

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"file": self.file}
        for key in ("title", "description"):
            value = getattr(self, key)
            if value is not None:
                d[key] = value
        d.update(self.extra)
        if self.group:
            d["group"] = self.group
        if self.tags:
            d["tags"] = list(self.tags)
        if self.recommended is not None:
            d["recommended"] = self.recommended
        if self.notes is not None:
            d["notes"] = self.notes
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> Slide:
        known = {"file", "title", "description", "group", "recommended", "tags", "notes"}
        return cls(
            file=d["file"],
            title=d.get("title"),
            description=d.get("description"),
            group=d.get("group") or None,
            recommended=d.get("recommended"),
            tags=list(d.get("tags") or []),
            notes=d.get("notes"),
            extra={k: v for k, v in d.items() if k not in known},
        )


@dataclass
class ManifestMeta:
    """Presentation-level metadata."""
    name: Optional[str] = None
    purpose: Optional[str] = None
    display_mode: Optional[DisplayMode] = None
    created: Optional[str] = None
    updated: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)   # collection_source, component_library, ...

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {}
        if self.name is not None:
            d["name"] = self.name
        if self.purpose is not None:
            d["purpose"] = self.purpose
        if self.display_mode is not None:
            d["displayMode"] = self.display_mode.value
        if self.created is not None:
            d["created"] = self.created
        if self.updated is not None:
            d["updated"] = self.updated
        d.update(self.extra)
        return d

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> ManifestMeta:
        d = d or {}
        known = {"name", "purpose", "displayMode", "created", "updated"}
        return cls(
            name=d.get("name"),
            purpose=d.get("purpose"),
            display_mode=coerce_display_mode(d.get("displayMode")),
            created=d.get("created"),
            updated=d.get("updated"),
            extra={k: v for k, v in d.items() if k not in known},
        )


@dataclass
class Manifest:
    """Canonical in-memory manifest for one presentation."""
    meta: ManifestMeta = field(default_factory=ManifestMeta)
    stats: Dict[str, Any] = field(default_factory=dict)
    tabs: List[Tab] = field(default_factory=list)
    groups: Dict[str, Group] = field(default_factory=dict)
    slides: List[Slide] = field(default_factory=list)
    asset_order: List[str] = field(default_factory=list)     # legacy assets.order
    extra: Dict[str, Any] = field(default_factory=dict)

    # -- lookups -----------------------------------------------------------

    def copy(self) -> Manifest:
        return copy.deepcopy(self)

    def slide_files(self) -> List[str]:
        return [s.file for s in self.slides]

    def find_slide_index(self, slide_id: str) -> Optional[int]:
        for i, slide in enumerate(self.slides):
            if slide.file == slide_id:
                return i
        for i, slide in enumerate(self.slides):
            if slide.matches(slide_id):
                return i
        return None

    def get_slide(self, slide_id: str) -> Optional[Slide]:
        idx = self.find_slide_index(slide_id)
        return self.slides[idx] if idx is not None else None

    def get_tab(self, tab_id: str) -> Optional[Tab]:
        for tab in self.tabs:
            if tab.id == tab_id:
                return tab
        return None

    def tab_files(self) -> List[str]:
        return [t.file for t in self.tabs]

    def next_group_order(self) -> int:
        orders = [g.order for g in self.groups.values() if isinstance(g.order, (int, float))]
        return int(max(orders)) + 1 if orders else 1

    def next_tab_order(self) -> int:
        orders = [t.order for t in self.tabs if isinstance(t.order, (int, float))]
        return int(max(orders)) + 1 if orders else 1

    def refresh_stats(self) -> None:
        self.stats["total_slides"] = len(self.slides)
        self.stats["groups"] = len(self.groups)

    # -- serialization -----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = dict(self.extra)
        meta = self.meta.to_dict()
        if meta:
            d["meta"] = meta
        if self.stats:
            d["stats"] = dict(self.stats)
        if self.tabs:
            d["tabs"] = [t.to_dict() for t in self.tabs]
        d["groups"] = {gid: g.to_dict() for gid, g in self.groups.items()}
        d["slides"] = [s.to_dict() for s in self.slides]
        if self.asset_order:
            d["assets"] = {"order": list(self.asset_order)}
        return d

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Manifest:
        """Normalize any supported on-disk shape into a Manifest.

        Malformed entries are dropped with a warning; callers that need a
        strict answer run the validator on the raw document first.
        """
        if not data:
            return cls()
        if not isinstance(data, dict):
            raise ValidationError("Manifest must be a JSON object")

        known = {"meta", "stats", "tabs", "groups", "slides", "assets"}
        manifest = cls(
            meta=ManifestMeta.from_dict(data.get("meta") if isinstance(data.get("meta"), dict) else None),
            stats=dict(data.get("stats") or {}) if isinstance(data.get("stats"), dict) else {},
            extra={k: v for k, v in data.items() if k not in known},
        )

        raw_tabs = data.get("tabs") or []
        if isinstance(raw_tabs, dict):
            raw_tabs = [dict(v, id=k) for k, v in raw_tabs.items() if isinstance(v, dict)]
        last_tab = trailing_order(raw_tabs)
        for raw in raw_tabs:
            if isinstance(raw, dict) and raw.get("id"):
                manifest.tabs.append(Tab.from_dict(raw, fallback_order=last_tab))
            else:
                logger.warning(f"Dropping malformed tab entry: {raw!r}")

        raw_groups = data.get("groups") or {}
        if isinstance(raw_groups, list):
            raw_groups = {g["id"]: g for g in raw_groups if isinstance(g, dict) and g.get("id")}
        if isinstance(raw_groups, dict):
            last_group = trailing_order(raw_groups.values())
            for gid, raw in raw_groups.items():
                if isinstance(raw, dict):
                    manifest.groups[gid] = Group.from_dict(gid, raw, fallback_order=last_group)
                elif isinstance(raw, str):
                    # Legacy shorthand: {"intro": "Introduction"}
                    manifest.groups[gid] = Group(id=gid, label=raw, order=len(manifest.groups) + 1)
                else:
                    logger.warning(f"Dropping malformed group entry: {gid}")

        for raw in data.get("slides") or []:
            if isinstance(raw, dict) and isinstance(raw.get("file"), str) and raw["file"]:
                manifest.slides.append(Slide.from_dict(raw))
            elif isinstance(raw, str) and raw:
                manifest.slides.append(Slide(file=raw))
            else:
                logger.warning(f"Dropping malformed slide entry: {raw!r}")

        assets = data.get("assets")
        if isinstance(assets, dict) and isinstance(assets.get("order"), list):
            manifest.asset_order = [f for f in assets["order"] if isinstance(f, str)]

        return manifest


# ---------------------------------------------------------------------------
# Filesystem-side entities
# ---------------------------------------------------------------------------

@dataclass
class Asset:
    """A physical HTML file inside a presentation folder."""
    id: str
    name: str
    filename: str
    relative_path: str = ""
    is_index: bool = False
    created_at: float = 0.0
    last_modified: float = 0.0
    size: int = 0
    url: Optional[str] = None
    group: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    recommended: Optional[bool] = None

    @classmethod
    def from_filename(
        cls, filename: str, created_at: float = 0.0, last_modified: float = 0.0, size: int = 0
    ) -> Asset:
        stem = file_stem(filename)
        is_index = filename == INDEX_FILENAME
        return cls(
            id=stem,
            name="Index" if is_index else format_name(stem),
            filename=filename,
            relative_path=filename,
            is_index=is_index,
            created_at=created_at,
            last_modified=last_modified,
            size=size,
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "filename": self.filename,
            "relativePath": self.relative_path,
            "isIndex": self.is_index,
            "createdAt": self.created_at,
            "lastModified": self.last_modified,
            "size": self.size,
        }
        for key, value in (
            ("url", self.url),
            ("group", self.group),
            ("title", self.title),
            ("description", self.description),
            ("recommended", self.recommended),
        ):
            if value is not None:
                d[key] = value
        return d


@dataclass
class Presentation:
    """A discovered presentation folder with its resolved manifest view."""
    id: str
    name: str
    path: str
    assets: List[Asset] = field(default_factory=list)
    last_modified: float = 0.0
    tabs: List[Tab] = field(default_factory=list)
    groups: Dict[str, Group] = field(default_factory=dict)
    meta: ManifestMeta = field(default_factory=ManifestMeta)
    display_mode: DisplayMode = DisplayMode.FLAT
    ordered_assets: List[Asset] = field(default_factory=list)
    has_manifest: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "path": self.path,
            "assets": [a.to_dict() for a in self.assets],
            "lastModified": self.last_modified,
            "tabs": [t.to_dict() for t in self.tabs],
            "groups": {gid: g.to_dict() for gid, g in self.groups.items()},
            "meta": self.meta.to_dict(),
            "displayMode": self.display_mode.value,
            "order": [a.filename for a in self.ordered_assets],
            "hasManifest": self.has_manifest,
        }


# ---------------------------------------------------------------------------
# Document parsing
# ---------------------------------------------------------------------------

@dataclass
class CardElement:
    """A card-like link found inside an index document."""
    href: str
    title: Optional[str] = None


@dataclass
class ParsedDocument:
    title: Optional[str] = None
    cards: List[CardElement] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Operation results
# ---------------------------------------------------------------------------

@dataclass
class ValidationIssue:
    path: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"path": self.path, "message": self.message}


@dataclass
class ValidationReport:
    """Outcome of a manifest validation pass."""
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def error(self, path: str, message: str) -> None:
        self.errors.append(ValidationIssue(path, message))

    def warn(self, path: str, message: str) -> None:
        self.warnings.append(ValidationIssue(path, message))

    def messages(self) -> List[str]:
        return [f"{e.path}: {e.message}" for e in self.errors]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }


@dataclass
class SkippedItem:
    file: str
    reason: str

    def to_dict(self) -> Dict[str, str]:
        return {"file": self.file, "reason": self.reason}


@dataclass
class BulkOperationResult:
    """Itemized outcome of a bulk slide or group operation."""
    added: int = 0
    updated: int = 0
    skipped: int = 0
    skipped_items: List[SkippedItem] = field(default_factory=list)
    created_groups: List[str] = field(default_factory=list)
    files: List[str] = field(default_factory=list)
    dry_run: bool = False

    def skip(self, item: str, reason: str) -> None:
        self.skipped += 1
        self.skipped_items.append(SkippedItem(item, reason))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "dryRun": self.dry_run,
            "added": self.added,
            "updated": self.updated,
            "skipped": self.skipped,
            "skippedItems": [s.to_dict() for s in self.skipped_items],
            "createdGroups": list(self.created_groups),
            "files": list(self.files),
        }


@dataclass
class SyncReport:
    """Outcome of a filesystem-to-manifest sync."""
    strategy: SyncStrategy
    added: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    groups_created: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.updated or self.removed or self.groups_created)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "strategy": self.strategy.value,
            "added": list(self.added),
            "updated": list(self.updated),
            "removed": list(self.removed),
            "groupsCreated": list(self.groups_created),
            "warnings": list(self.warnings),
        }


@dataclass
class TabSyncInfo:
    tab_id: str
    file: str
    slides: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"tabId": self.tab_id, "file": self.file, "slides": list(self.slides)}


@dataclass
class SyncFromIndexReport:
    """Structured report of an index-driven sync."""
    strategy: SyncStrategy
    tabs_created: List[str] = field(default_factory=list)
    tabs_updated: List[str] = field(default_factory=list)
    groups_created: List[str] = field(default_factory=list)
    groups_updated: List[str] = field(default_factory=list)
    slides_assigned: int = 0
    slides_skipped: int = 0
    slides_orphaned: int = 0
    tabs: List[TabSyncInfo] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "strategy": self.strategy.value,
            "tabsCreated": len(self.tabs_created),
            "tabsUpdated": len(self.tabs_updated),
            "groupsCreated": len(self.groups_created),
            "groupsUpdated": len(self.groups_updated),
            "slidesAssigned": self.slides_assigned,
            "slidesSkipped": self.slides_skipped,
            "slidesOrphaned": self.slides_orphaned,
            "tabs": [t.to_dict() for t in self.tabs],
            "warnings": list(self.warnings),
        }
