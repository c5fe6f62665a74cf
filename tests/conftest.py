"""
Pytest Configuration and Fixtures
"""

import json
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, Generator, Iterable, Optional

import pytest

from flideck_core.config import FlideckConfig
from flideck_core.models import Asset
from flideck_core.ports import LoggingNotifier
from flideck_core.service import PresentationService
from flideck_core.storage import FileAssetSource, FileManifestStore


def slide_html(title: str, body: str = "") -> str:
    return f"<!DOCTYPE html><html><head><title>{title}</title></head><body>{body}</body></html>"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def presentations_root(temp_dir: Path) -> Path:
    root = temp_dir / "presentations"
    root.mkdir()
    return root


@pytest.fixture
def make_presentation(presentations_root: Path) -> Callable[..., Path]:
    """
    Factory writing a presentation folder.

    ``files`` maps file names to HTML content (None gets a generated page);
    ``manifest`` is written as index.json when given.
    """
    def _make(
        presentation_id: str,
        files: Optional[Iterable[str]] = None,
        manifest: Optional[Dict[str, Any]] = None,
        contents: Optional[Dict[str, str]] = None,
    ) -> Path:
        folder = presentations_root / presentation_id
        folder.mkdir()
        (folder / "index.html").write_text(slide_html(presentation_id))
        for name in files or []:
            (folder / name).write_text(slide_html(name.rsplit(".", 1)[0].title()))
        for name, content in (contents or {}).items():
            (folder / name).write_text(content)
        if manifest is not None:
            (folder / "index.json").write_text(json.dumps(manifest, indent=2))
        return folder

    return _make


@pytest.fixture
def notifier() -> LoggingNotifier:
    return LoggingNotifier()


@pytest.fixture
def service(presentations_root: Path, notifier: LoggingNotifier) -> PresentationService:
    config = FlideckConfig(presentations_root=str(presentations_root))
    return PresentationService(
        FileManifestStore(presentations_root),
        FileAssetSource(presentations_root),
        notifier=notifier,
        config=config,
    )


@pytest.fixture
def make_assets() -> Callable[..., list]:
    """Build Asset lists straight from file names (index.html included as given)."""
    def _make(*filenames: str, groups: Optional[Dict[str, str]] = None) -> list:
        groups = groups or {}
        assets = []
        for name in filenames:
            asset = Asset.from_filename(name)
            asset.group = groups.get(name)
            assets.append(asset)
        return assets

    return _make


def read_manifest(folder: Path) -> Dict[str, Any]:
    return json.loads((folder / "index.json").read_text())


@pytest.fixture
def load_manifest() -> Callable[[Path], Dict[str, Any]]:
    return read_manifest
