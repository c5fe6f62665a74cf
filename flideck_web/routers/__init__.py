"""
FliDeck Web Routers - Modular API endpoints

    - presentations_router: presentations, manifests, slides, groups and tabs
    - assets_router: raw HTML slide content
    - templates_router: built-in manifest templates
    - config_router: presentations root and history
    - query_router: read-only roots and presentation summaries
    - schema_router: manifest JSON Schema
"""

from .presentations import router as presentations_router, assets_router, set_presentation_service
from .templates import router as templates_router
from .config import router as config_router, set_config_store
from .query import router as query_router
from .schema import router as schema_router

__all__ = [
    "presentations_router",
    "assets_router",
    "templates_router",
    "config_router",
    "query_router",
    "schema_router",
    "set_presentation_service",
    "set_config_store",
]
