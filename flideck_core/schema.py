"""
Manifest JSON Schema
====================

JSON Schema (draft-07) describing ``index.json``, served to editors and
external tools. It mirrors the rules ``validator.validate`` enforces; the
referential checks (unknown groups, parent cycles, files on disk) cannot be
expressed in JSON Schema and stay in the validator.
"""

from typing import Any, Dict

from flideck_core.models import ID_PATTERN, DisplayMode

SCHEMA_DRAFT = "http://json-schema.org/draft-07/schema#"

# Portable form of models.FILENAME_PATTERN for ECMA-262 regex engines.
FILE_NAME_PATTERN = r"^[^\s./\\][^/\\]*\.[hH][tT][mM][lL]?$"


def _id_schema(description: str) -> Dict[str, Any]:
    return {"type": "string", "pattern": ID_PATTERN.pattern, "description": description}


def _file_schema(description: str) -> Dict[str, Any]:
    return {
        "type": "string",
        "pattern": FILE_NAME_PATTERN,
        "not": {"pattern": r"\.\."},
        "description": description,
    }


def _string_list() -> Dict[str, Any]:
    return {"type": "array", "items": {"type": "string"}}


def manifest_schema() -> Dict[str, Any]:
    """Build the manifest schema. A fresh dict is returned on every call."""
    tab = {
        "type": "object",
        "required": ["id", "label"],
        "properties": {
            "id": _id_schema("Tab id (kebab-case)"),
            "label": {"type": "string", "minLength": 1},
            "file": _file_schema("Tab index document, defaults to index-<id>.html"),
            "order": {"type": "number"},
            "subtitle": {"type": "string"},
        },
    }
    group = {
        "type": "object",
        "required": ["label"],
        "properties": {
            "label": {"type": "string", "minLength": 1},
            "order": {"type": "number"},
            "tab": {"type": "boolean", "description": "Group is the root group of a tab"},
            "parent": _id_schema("Parent group id; one level of nesting is followed"),
            "tabId": _id_schema("Tab this group belongs to"),
        },
    }
    slide = {
        "type": "object",
        "required": ["file"],
        "properties": {
            "file": _file_schema("Slide file, relative to the presentation folder"),
            "title": {"type": "string"},
            "description": {"type": "string"},
            "group": {"type": "string"},
            "recommended": {"type": "boolean"},
            "tags": _string_list(),
            "notes": {"type": "string"},
        },
    }
    return {
        "$schema": SCHEMA_DRAFT,
        "title": "FliDeck presentation manifest",
        "type": "object",
        "properties": {
            "meta": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "purpose": {"type": "string"},
                    "created": {"type": "string"},
                    "updated": {"type": "string"},
                    "displayMode": {"enum": [m.value for m in DisplayMode]},
                },
            },
            "stats": {"type": "object"},
            "tabs": {"type": "array", "items": tab},
            "groups": {
                "type": "object",
                "propertyNames": {"pattern": ID_PATTERN.pattern},
                "additionalProperties": group,
            },
            "slides": {"type": "array", "items": slide},
            "assets": {
                "type": "object",
                "description": "Legacy flat ordering",
                "properties": {"order": _string_list()},
            },
        },
    }
