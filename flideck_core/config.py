"""
FliDeck Configuration System
============================

Loads and manages configuration from flideck.yaml with environment variable
overrides, plus the presentations-root history kept for the config page.
"""

import os
import yaml
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "flideck.yaml"
MAX_HISTORY = 10


# =============================================================================
# Configuration Data Classes
# =============================================================================

@dataclass
class ServerConfig:
    """HTTP server configuration."""
    host: str = "127.0.0.1"
    port: int = 5201
    client_url: str = "http://localhost:5200"  # CORS origin of the browser client


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class DisplayConfig:
    """Display-mode detection."""
    grouped_threshold: int = 15  # slides above which a grouped manifest renders grouped


@dataclass
class ManifestConfig:
    """Manifest file naming."""
    filename: str = "index.json"
    legacy_filenames: List[str] = field(default_factory=lambda: ["flideck.json"])
    artifact_extension: str = ".html"


@dataclass
class SyncConfig:
    """Defaults for filesystem sync."""
    strategy: str = "merge"
    infer_groups: bool = False
    infer_titles: bool = True


@dataclass
class FlideckConfig:
    """Root configuration container."""
    presentations_root: str = "./presentations"
    history: List[str] = field(default_factory=list)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    manifest: ManifestConfig = field(default_factory=ManifestConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    config_path: Optional[str] = None  # where the config was loaded from, never saved

    @property
    def root_path(self) -> Path:
        return Path(expand_path(self.presentations_root)).resolve()


# =============================================================================
# Path helpers
# =============================================================================

def expand_path(path: str) -> str:
    """Expand a leading ``~`` to the user's home directory."""
    if path == "~" or path.startswith("~/"):
        return str(Path.home()) + path[1:]
    return path


def collapse_path(path: str) -> str:
    """Replace the home directory prefix with ``~`` for display."""
    home = str(Path.home())
    if path == home:
        return "~"
    if path.startswith(home + os.sep):
        return "~" + path[len(home):]
    return path


def add_to_history(config: FlideckConfig, path: str) -> List[str]:
    """Put *path* at the front of the history, deduplicated, 10 entries max."""
    collapsed = collapse_path(path)
    history = [collapsed] + [p for p in config.history if p != collapsed]
    config.history = history[:MAX_HISTORY]
    return config.history


# =============================================================================
# Configuration Loader
# =============================================================================

def find_config_file(start_path: Optional[Path] = None) -> Optional[Path]:
    """
    Find flideck.yaml by searching upward from start_path.

    Search order:
    1. start_path / flideck.yaml
    2. start_path / .flideck / flideck.yaml
    3. Parent directories (recursive)
    4. ~/.config/flideck/flideck.yaml

    Args:
        start_path: Starting directory (defaults to cwd)

    Returns:
        Path to config file or None if not found
    """
    if start_path is None:
        start_path = Path.cwd()

    start_path = Path(start_path).resolve()

    current = start_path
    for _ in range(10):  # Max 10 levels up
        candidates = [
            current / CONFIG_FILENAME,
            current / ".flideck" / CONFIG_FILENAME,
        ]
        for candidate in candidates:
            if candidate.exists():
                return candidate

        parent = current.parent
        if parent == current:
            break
        current = parent

    user_config = Path.home() / ".config" / "flideck" / CONFIG_FILENAME
    if user_config.exists():
        return user_config

    return None


def load_config(config_path: Optional[Path] = None) -> FlideckConfig:
    """
    Load configuration from YAML file with environment variable overrides.

    Environment variables override config file values:
    - FLIDECK_PRESENTATIONS_ROOT -> presentations_root
    - FLIDECK_HOST -> server.host
    - FLIDECK_PORT -> server.port
    - FLIDECK_LOG_LEVEL -> logging.level
    - FLIDECK_GROUPED_THRESHOLD -> display.grouped_threshold

    Args:
        config_path: Path to config file (auto-detected if None)

    Returns:
        FlideckConfig instance
    """
    config = FlideckConfig()

    if config_path is None:
        config_path = find_config_file()

    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        try:
            with open(config_path, 'r') as f:
                data = yaml.safe_load(f) or {}
            config = _parse_config_dict(data)
            config.config_path = str(config_path)
        except (OSError, yaml.YAMLError, AttributeError, TypeError) as e:
            logger.warning(f"Failed to load config: {e}, using defaults")
    else:
        logger.info("No config file found, using defaults")

    config = _apply_env_overrides(config)

    _validate_config(config)

    return config


def _parse_config_dict(data: Dict[str, Any]) -> FlideckConfig:
    """Parse configuration dictionary into FlideckConfig."""
    config = FlideckConfig()

    if "server" in data:
        server = data["server"]
        config.server = ServerConfig(
            host=server.get("host", config.server.host),
            port=server.get("port", config.server.port),
            client_url=server.get("client_url", config.server.client_url),
        )

    if "logging" in data:
        log = data["logging"]
        config.logging = LoggingConfig(
            level=log.get("level", config.logging.level),
            format=log.get("format", config.logging.format),
        )

    if "display" in data:
        display = data["display"]
        config.display = DisplayConfig(
            grouped_threshold=display.get("grouped_threshold", config.display.grouped_threshold),
        )

    if "manifest" in data:
        manifest = data["manifest"]
        config.manifest = ManifestConfig(
            filename=manifest.get("filename", config.manifest.filename),
            legacy_filenames=manifest.get("legacy_filenames", config.manifest.legacy_filenames),
            artifact_extension=manifest.get("artifact_extension", config.manifest.artifact_extension),
        )

    if "sync" in data:
        sync = data["sync"]
        config.sync = SyncConfig(
            strategy=sync.get("strategy", config.sync.strategy),
            infer_groups=sync.get("infer_groups", config.sync.infer_groups),
            infer_titles=sync.get("infer_titles", config.sync.infer_titles),
        )

    # Root level
    config.presentations_root = data.get("presentations_root", config.presentations_root)
    config.history = list(data.get("history") or [])

    return config


def _apply_env_overrides(config: FlideckConfig) -> FlideckConfig:
    """Apply environment variable overrides to config."""

    if os.environ.get("FLIDECK_PRESENTATIONS_ROOT"):
        config.presentations_root = os.environ["FLIDECK_PRESENTATIONS_ROOT"]

    if os.environ.get("FLIDECK_HOST"):
        config.server.host = os.environ["FLIDECK_HOST"]

    if os.environ.get("FLIDECK_PORT"):
        try:
            config.server.port = int(os.environ["FLIDECK_PORT"])
        except ValueError:
            logger.warning(f"Ignoring non-numeric FLIDECK_PORT '{os.environ['FLIDECK_PORT']}'")

    if os.environ.get("FLIDECK_LOG_LEVEL"):
        config.logging.level = os.environ["FLIDECK_LOG_LEVEL"]

    if os.environ.get("FLIDECK_GROUPED_THRESHOLD"):
        try:
            config.display.grouped_threshold = int(os.environ["FLIDECK_GROUPED_THRESHOLD"])
        except ValueError:
            logger.warning(
                f"Ignoring non-numeric FLIDECK_GROUPED_THRESHOLD "
                f"'{os.environ['FLIDECK_GROUPED_THRESHOLD']}'"
            )

    return config


def _validate_config(config: FlideckConfig) -> None:
    """Validate configuration and log warnings."""

    valid_levels = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
    if str(config.logging.level).upper() not in valid_levels:
        logger.warning(f"Unknown log level '{config.logging.level}', defaulting to 'INFO'")
        config.logging.level = "INFO"
    else:
        config.logging.level = str(config.logging.level).upper()

    valid_strategies = ("merge", "replace", "addOnly")
    if config.sync.strategy not in valid_strategies:
        logger.warning(f"Unknown sync strategy '{config.sync.strategy}', defaulting to 'merge'")
        config.sync.strategy = "merge"

    if not isinstance(config.display.grouped_threshold, int) or config.display.grouped_threshold < 0:
        logger.warning(
            f"Invalid grouped_threshold '{config.display.grouped_threshold}', defaulting to 15"
        )
        config.display.grouped_threshold = 15

    if not isinstance(config.server.port, int) or not 0 < config.server.port < 65536:
        logger.warning(f"Invalid port '{config.server.port}', defaulting to 5201")
        config.server.port = 5201

    if len(config.history) > MAX_HISTORY:
        config.history = config.history[:MAX_HISTORY]


def save_config(config: FlideckConfig, path: Path) -> None:
    """
    Save configuration to YAML file.

    Args:
        config: FlideckConfig instance
        path: Output path
    """
    data = {
        "presentations_root": config.presentations_root,
        "history": list(config.history),
        "server": {
            "host": config.server.host,
            "port": config.server.port,
            "client_url": config.server.client_url,
        },
        "logging": {
            "level": config.logging.level,
            "format": config.logging.format,
        },
        "display": {
            "grouped_threshold": config.display.grouped_threshold,
        },
        "manifest": {
            "filename": config.manifest.filename,
            "legacy_filenames": list(config.manifest.legacy_filenames),
            "artifact_extension": config.manifest.artifact_extension,
        },
        "sync": {
            "strategy": config.sync.strategy,
            "infer_groups": config.sync.infer_groups,
            "infer_titles": config.sync.infer_titles,
        },
    }

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    logger.info(f"Configuration saved to: {path}")


def configure_logging(config: FlideckConfig) -> None:
    """Apply the configured level and format to the root logger."""
    logging.basicConfig(
        level=getattr(logging, config.logging.level, logging.INFO),
        format=config.logging.format,
    )
    logging.getLogger().setLevel(getattr(logging, config.logging.level, logging.INFO))


# =============================================================================
# Global Config Instance
# =============================================================================

_global_config: Optional[FlideckConfig] = None


def get_config() -> FlideckConfig:
    """Get the global configuration instance (lazy-loaded)."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def reload_config(config_path: Optional[Path] = None) -> FlideckConfig:
    """Reload configuration from file."""
    global _global_config
    _global_config = load_config(config_path)
    return _global_config
