"""
Manifest Templates
==================

Built-in starting structures for new presentations and the logic that
applies them to an existing manifest.

Templates only ever carry ``meta`` and ``groups``. Applying one never touches
slides, in either mode.
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from flideck_core.errors import NotFoundError
from flideck_core.models import Group, Manifest, ManifestMeta

logger = logging.getLogger(__name__)


@dataclass
class ManifestTemplate:
    """A named manifest skeleton."""
    id: str
    name: str
    description: str
    meta: Dict[str, Any] = field(default_factory=dict)
    groups: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def structure(self) -> Dict[str, Any]:
        return {"meta": copy.deepcopy(self.meta), "groups": copy.deepcopy(self.groups), "slides": []}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "structure": self.structure(),
        }


def _groups(*labels: str, tab: bool = False) -> Dict[str, Dict[str, Any]]:
    result: Dict[str, Dict[str, Any]] = {}
    for order, label in enumerate(labels, start=1):
        entry: Dict[str, Any] = {"label": label, "order": order}
        if tab:
            entry["tab"] = True
        result[label.lower()] = entry
    return result


BUILTIN_TEMPLATES: List[ManifestTemplate] = [
    ManifestTemplate(
        id="simple",
        name="Simple Presentation",
        description="Flat list with no grouping - ideal for small presentations",
        meta={"displayMode": "flat"},
    ),
    ManifestTemplate(
        id="tutorial",
        name="Tutorial Series",
        description="Grouped by chapter - ideal for step-by-step guides",
        meta={"displayMode": "grouped"},
        groups={
            "intro": {"label": "Introduction", "order": 1},
            "basics": {"label": "Basics", "order": 2},
            "advanced": {"label": "Advanced", "order": 3},
            "summary": {"label": "Summary", "order": 4},
        },
    ),
    ManifestTemplate(
        id="persona-tabs",
        name="Persona-Based Tabs",
        description="Tab groups by persona/audience - ideal for multi-audience content",
        meta={"displayMode": "grouped"},
        groups=_groups("Developer", "Designer", "Manager", tab=True),
    ),
    ManifestTemplate(
        id="api-docs",
        name="API Documentation",
        description="Structured for API reference documentation",
        meta={"displayMode": "grouped"},
        groups=_groups("Overview", "Authentication", "Endpoints", "Examples", "Reference"),
    ),
    ManifestTemplate(
        id="component-library",
        name="Component Library",
        description="Organized for UI component showcases",
        meta={"displayMode": "grouped"},
        groups=_groups("Foundation", "Components", "Patterns", "Templates"),
    ),
]


def get_templates() -> List[ManifestTemplate]:
    return list(BUILTIN_TEMPLATES)


def get_template(template_id: str) -> ManifestTemplate:
    for template in BUILTIN_TEMPLATES:
        if template.id == template_id:
            return template
    raise NotFoundError(f"Template not found: {template_id}")


def deep_merge(target: Any, source: Any) -> Any:
    """
    Recursively merge *source* into a copy of *target*.

    Objects merge key by key with *source* winning; lists and scalars from
    *source* replace the target value outright.
    """
    if not isinstance(source, dict):
        return copy.deepcopy(source)
    result = copy.deepcopy(target) if isinstance(target, dict) else {}
    for key, value in source.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def apply_template(manifest: Manifest, template: ManifestTemplate, merge: bool = True) -> Manifest:
    """
    Apply *template* to *manifest* in place.

    merge=False replaces ``meta`` and ``groups`` wholesale. merge=True lays the
    template underneath the current values, so existing keys win. Slides,
    tabs and stats are kept in both modes.
    """
    current_groups = {gid: g.to_dict() for gid, g in manifest.groups.items()}
    if merge:
        meta = deep_merge(template.meta, manifest.meta.to_dict())
        groups = deep_merge(template.groups, current_groups)
    else:
        meta = copy.deepcopy(template.meta)
        groups = copy.deepcopy(template.groups)

    manifest.meta = ManifestMeta.from_dict(meta)
    manifest.groups = {gid: Group.from_dict(gid, g) for gid, g in groups.items()}
    logger.debug(f"Applied template '{template.id}' (merge={merge}), {len(manifest.groups)} group(s)")
    return manifest
