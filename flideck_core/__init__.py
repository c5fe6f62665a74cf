"""
FliDeck Core - Presentation manifest resolution engine

Discovers folders of HTML slides, reconciles them with their JSON manifest,
computes the navigation order and display mode, and applies conflict-safe
manifest mutations.
"""

from .version import __version__

from .errors import (
    ManifestError,
    ValidationError,
    NotFoundError,
    ConflictError,
    CycleDetectedError,
)
from .models import (
    Asset,
    BulkOperationResult,
    DeleteTabStrategy,
    DisplayMode,
    DuplicateFilePolicy,
    Group,
    GroupMismatchPolicy,
    Manifest,
    ManifestMeta,
    ParsedDocument,
    Presentation,
    Slide,
    SyncFromIndexReport,
    SyncReport,
    SyncStrategy,
    Tab,
    ValidationReport,
)
from .validator import validate
from .ordering import (
    detect_display_mode,
    effective_tab_id,
    merge_assets_with_manifest,
    resolve_order,
)
from .slides import BulkAddOptions
from .templates import ManifestTemplate, get_template, get_templates
from .ports import AssetSource, ChangeNotifier, DocumentParser, LoggingNotifier, ManifestStore
from .storage import FileAssetSource, FileManifestStore
from .html_parse import SoupDocumentParser
from .config import FlideckConfig, get_config, load_config
from .service import PresentationService

__all__ = [
    "__version__",
    # errors
    "ManifestError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "CycleDetectedError",
    # models
    "Asset",
    "BulkOperationResult",
    "DeleteTabStrategy",
    "DisplayMode",
    "DuplicateFilePolicy",
    "Group",
    "GroupMismatchPolicy",
    "Manifest",
    "ManifestMeta",
    "ParsedDocument",
    "Presentation",
    "Slide",
    "SyncFromIndexReport",
    "SyncReport",
    "SyncStrategy",
    "Tab",
    "ValidationReport",
    # engine
    "validate",
    "detect_display_mode",
    "effective_tab_id",
    "merge_assets_with_manifest",
    "resolve_order",
    "BulkAddOptions",
    "ManifestTemplate",
    "get_template",
    "get_templates",
    # ports and adapters
    "AssetSource",
    "ChangeNotifier",
    "DocumentParser",
    "LoggingNotifier",
    "ManifestStore",
    "FileAssetSource",
    "FileManifestStore",
    "SoupDocumentParser",
    # service and config
    "FlideckConfig",
    "get_config",
    "load_config",
    "PresentationService",
]
