"""
FliDeck Config Router - presentations root and its history
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import APIRouter
from pydantic import BaseModel

from flideck_core.config import FlideckConfig, add_to_history, collapse_path, expand_path, save_config
from flideck_core.errors import NotFoundError, ValidationError
from flideck_web.routers.presentations import _get_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/config", tags=["config"])

# Set by server.create_app
_config: Optional[FlideckConfig] = None


def set_config_store(config: FlideckConfig):
    """Set the live configuration from server.py."""
    global _config
    _config = config


class ConfigUpdateRequest(BaseModel):
    presentationsRoot: Optional[str] = None


def _snapshot(config: FlideckConfig) -> Dict[str, Any]:
    return {
        "success": True,
        "data": {
            "presentationsRoot": collapse_path(str(config.root_path)),
            "history": [collapse_path(p) for p in config.history],
        },
    }


@router.get("")
async def get_current_config() -> Dict[str, Any]:
    return _snapshot(_config or FlideckConfig())


@router.put("")
async def update_config(request: ConfigUpdateRequest) -> Dict[str, Any]:
    """Switch the presentations root; the previous root goes to the history."""
    if not request.presentationsRoot:
        raise ValidationError("presentationsRoot is required")
    config = _config or FlideckConfig()

    target = Path(expand_path(request.presentationsRoot)).resolve()
    if not target.exists():
        raise NotFoundError(f"Directory does not exist: {request.presentationsRoot}")
    if not target.is_dir():
        raise ValidationError(f"Path is not a directory: {request.presentationsRoot}")

    previous = config.root_path
    if target != previous:
        add_to_history(config, str(previous))
        await _get_service().change_root(target)
        if config.config_path:
            save_config(config, Path(config.config_path))
        logger.info(f"Presentations root: {previous} -> {target}")

    return _snapshot(config)
