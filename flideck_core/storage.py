"""
Filesystem Storage
==================

File-backed implementations of the ``ManifestStore`` and ``AssetSource``
ports. Layout::

    <root>/
        <presentation-id>/
            index.html          # required, makes the folder a presentation
            index.json          # manifest (flideck.json accepted as legacy)
            index-<tab>.html    # optional tab index documents
            *.html              # slides

Blocking calls run in the default executor so the event loop never waits on
disk.
"""

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from flideck_core.errors import ConflictError, NotFoundError, ValidationError
from flideck_core.models import (
    INDEX_FILENAME,
    PRESENTATION_ID_PATTERN,
    Asset,
    is_valid_filename,
)
from flideck_core.ports import AssetSource, ManifestStore

logger = logging.getLogger(__name__)

DEFAULT_MANIFEST_FILENAME = "index.json"
LEGACY_MANIFEST_FILENAMES = ("flideck.json",)
HTML_EXTENSIONS = (".html", ".htm")


async def _run(func, *args):
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, func, *args)


def list_presentation_ids(root: Path) -> List[str]:
    """Folders under *root* that hold an ``index.html``, sorted by name."""
    root = Path(root)
    if not root.is_dir():
        return []
    ids = []
    for entry in sorted(root.iterdir(), key=lambda p: p.name):
        if entry.name.startswith(".") or not entry.is_dir():
            continue
        if not PRESENTATION_ID_PATTERN.match(entry.name):
            continue
        if (entry / INDEX_FILENAME).is_file():
            ids.append(entry.name)
    return ids


def presentation_dir(root: Path, presentation_id: str) -> Path:
    """Resolve a presentation folder, rejecting ids that could escape *root*."""
    if not isinstance(presentation_id, str) or not PRESENTATION_ID_PATTERN.match(presentation_id):
        raise ValidationError(f"Invalid presentation id: {presentation_id!r}")
    return root / presentation_id


# =============================================================================
# Manifest store
# =============================================================================

class FileManifestStore(ManifestStore):
    """Reads and atomically writes ``<root>/<id>/index.json``."""

    def __init__(
        self,
        root: Path,
        filename: str = DEFAULT_MANIFEST_FILENAME,
        legacy_filenames: Sequence[str] = LEGACY_MANIFEST_FILENAMES,
    ):
        self.root = Path(root)
        self.filename = filename
        self.legacy_filenames = list(legacy_filenames)

    def manifest_path(self, presentation_id: str) -> Optional[Path]:
        """Path of the manifest actually present on disk, if any."""
        folder = presentation_dir(self.root, presentation_id)
        for name in [self.filename, *self.legacy_filenames]:
            candidate = folder / name
            if candidate.is_file():
                return candidate
        return None

    def _load_sync(self, presentation_id: str) -> Optional[Dict[str, Any]]:
        path = self.manifest_path(presentation_id)
        if path is None:
            return None
        if path.name != self.filename:
            logger.debug(f"Using legacy manifest {path.name} for '{presentation_id}'")
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Manifest for '{presentation_id}' is not valid JSON: {e}") from e
        if data is not None and not isinstance(data, dict):
            raise ValidationError(f"Manifest for '{presentation_id}' must be a JSON object")
        return data

    def _save_sync(self, presentation_id: str, document: Dict[str, Any]) -> None:
        folder = presentation_dir(self.root, presentation_id)
        if not folder.is_dir():
            raise NotFoundError(f"Presentation not found: {presentation_id}")
        target = folder / self.filename
        fd, tmp_path = tempfile.mkstemp(prefix=f".{self.filename}.", suffix=".tmp", dir=folder)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, ensure_ascii=False)
                f.write("\n")
            os.replace(tmp_path, target)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        logger.debug(f"Manifest written: {target}")

    async def load(self, presentation_id: str) -> Optional[Dict[str, Any]]:
        return await _run(self._load_sync, presentation_id)

    async def save(self, presentation_id: str, document: Dict[str, Any]) -> None:
        await _run(self._save_sync, presentation_id, document)


# =============================================================================
# Asset source
# =============================================================================

class FileAssetSource(AssetSource):
    """Lists presentation folders and the HTML files inside them."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def path_for(self, presentation_id: str) -> str:
        return str(presentation_dir(self.root, presentation_id))

    def _list_sync(self) -> List[str]:
        if not self.root.is_dir():
            logger.warning(f"Presentations root does not exist: {self.root}")
        return list_presentation_ids(self.root)

    def _discover_sync(self, presentation_id: str) -> List[Asset]:
        folder = presentation_dir(self.root, presentation_id)
        if not (folder / INDEX_FILENAME).is_file():
            raise NotFoundError(f"Presentation not found: {presentation_id}")
        assets = []
        for entry in sorted(folder.iterdir(), key=lambda p: p.name):
            if not entry.is_file() or entry.name.startswith("."):
                continue
            if entry.suffix.lower() not in HTML_EXTENSIONS:
                continue
            st = entry.stat()
            created = getattr(st, "st_birthtime", st.st_ctime)
            assets.append(Asset.from_filename(
                entry.name, created_at=created, last_modified=st.st_mtime, size=st.st_size
            ))
        return assets

    def _read_sync(self, presentation_id: str, filename: str) -> str:
        if not is_valid_filename(filename):
            raise ValidationError(f"Invalid file name: {filename!r}")
        path = presentation_dir(self.root, presentation_id) / filename
        if not path.is_file():
            raise NotFoundError(f"Asset not found: {presentation_id}/{filename}")
        return path.read_text(encoding="utf-8", errors="replace")

    def _create_sync(self, presentation_id: str, index_html: str) -> None:
        folder = presentation_dir(self.root, presentation_id)
        if folder.exists():
            raise ConflictError(f"Presentation already exists: {presentation_id}")
        folder.mkdir(parents=True)
        (folder / INDEX_FILENAME).write_text(index_html, encoding="utf-8")
        logger.info(f"Created presentation folder: {folder}")

    async def list_presentations(self) -> List[str]:
        return await _run(self._list_sync)

    async def discover(self, presentation_id: str) -> List[Asset]:
        return await _run(self._discover_sync, presentation_id)

    async def read(self, presentation_id: str, filename: str) -> str:
        return await _run(self._read_sync, presentation_id, filename)

    async def create_presentation(self, presentation_id: str, index_html: str) -> None:
        await _run(self._create_sync, presentation_id, index_html)
