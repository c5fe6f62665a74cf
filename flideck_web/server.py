"""
FastAPI Server for FliDeck

Serves the presentation manifest API and pushes ``presentations:updated``
events over a WebSocket whenever a manifest changes.
"""

import argparse
import logging
from pathlib import Path
from typing import Dict, Optional, Type

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from flideck_core.config import FlideckConfig, configure_logging, load_config
from flideck_core.errors import (
    ConflictError,
    CycleDetectedError,
    ManifestError,
    NotFoundError,
    ValidationError,
)
from flideck_core.service import PresentationService
from flideck_core.version import __version__ as FLIDECK_VERSION, get_short_banner

from .notifier import WebSocketNotifier
from .routers import (
    assets_router,
    config_router,
    presentations_router,
    query_router,
    schema_router,
    set_config_store,
    set_presentation_service,
    templates_router,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR: Dict[Type[ManifestError], int] = {
    ValidationError: 400,
    CycleDetectedError: 400,
    NotFoundError: 404,
    ConflictError: 409,
}


def status_for(error: ManifestError) -> int:
    for cls in type(error).__mro__:
        if cls in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[cls]
    return 500


def create_app(
    config: Optional[FlideckConfig] = None,
    service: Optional[PresentationService] = None,
) -> FastAPI:
    """
    Build the FliDeck application.

    Args:
        config: Loaded configuration (defaults to the service's, then to defaults)
        service: Pre-built service; one is created from *config* if omitted

    Returns:
        FastAPI app with routers, error handlers and the ``/ws`` endpoint
    """
    notifier = WebSocketNotifier()
    if service is None:
        config = config or FlideckConfig()
        service = PresentationService.from_config(config, notifier=notifier)
    else:
        config = config or service.config
        if isinstance(service.notifier, WebSocketNotifier):
            notifier = service.notifier
        else:
            service.notifier = notifier

    app = FastAPI(
        title="FliDeck",
        description="Presentation manifest resolution engine",
        version=FLIDECK_VERSION,
    )

    # Local viewer only
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ManifestError)
    async def manifest_error_handler(request: Request, exc: ManifestError):
        status = status_for(exc)
        if status >= 500:
            logger.error(f"{request.method} {request.url.path}: {exc}")
        else:
            logger.debug(f"{request.method} {request.url.path} -> {status}: {exc}")
        return JSONResponse(status_code=status, content=exc.to_dict())

    set_presentation_service(service)
    set_config_store(config)

    app.include_router(presentations_router)
    app.include_router(assets_router)
    app.include_router(templates_router)
    app.include_router(config_router)
    app.include_router(query_router)
    app.include_router(schema_router)

    app.state.service = service
    app.state.notifier = notifier
    app.state.config = config

    @app.get("/api/health")
    async def health():
        return {
            "status": "ok",
            "version": FLIDECK_VERSION,
            "presentationsRoot": str(config.root_path),
        }

    @app.websocket("/ws")
    async def websocket_events(websocket: WebSocket):
        await websocket.accept()
        notifier.register(websocket)
        try:
            while True:
                # Clients only listen; inbound frames are ignored
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            notifier.unregister(websocket)

    return app


def main():
    """Main entry point for flideck-web CLI."""
    parser = argparse.ArgumentParser(
        prog="flideck-web",
        description="FliDeck - presentation manifest server",
    )
    parser.add_argument("--host", default=None, help="Host to bind to (default: from config, 127.0.0.1)")
    parser.add_argument("--port", type=int, default=None, help="Port to bind to (default: from config, 5201)")
    parser.add_argument("-r", "--root", default=None, help="Presentations root folder")
    parser.add_argument("-c", "--config", default=None, help="Path to flideck.yaml")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Override the configured log level",
    )

    args = parser.parse_args()

    config = load_config(Path(args.config) if args.config else None)
    if args.root:
        config.presentations_root = args.root
    if args.log_level:
        config.logging.level = args.log_level
    configure_logging(config)

    host = args.host or config.server.host
    port = args.port or config.server.port

    print("=" * 60)
    print(get_short_banner())
    print("=" * 60)
    print(f"Server: http://{host}:{port}")
    print(f"Presentations: {config.root_path}")
    print("=" * 60)
    print("\nPress Ctrl+C to stop")
    print()

    uvicorn.run(
        create_app(config),
        host=host,
        port=port,
        log_level=config.logging.level.lower(),
    )


if __name__ == "__main__":
    main()
