#!/usr/bin/env python3
"""FastAPI annotation server.

This server stores projects, images, labels and annotations for the image
annotation editor and exports projects as COCO datasets.
"""

import logging
from pathlib import Path
from typing import Optional

import yaml
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.auth import AuthService
from .core.config import ServerConfig, get_default_config, load_config, resolve_config_path
from .core.errors import AnnotationServerError, AuthenticationError
from .core.media import MediaStore
from .core.repository import Repository
from .core.store import DocumentStore
from .exporters import CocoExporter
from .models.response import HealthResponse, VersionInfo
from .routes import ROUTERS

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"

logger = logging.getLogger(__name__)


def load_server_config(config_path: Optional[Path] = None) -> ServerConfig:
    """Load configuration, falling back to defaults when the file is unusable."""
    config_path = config_path or resolve_config_path()
    try:
        config = load_config(config_path)
        logger.info(f"Loaded configuration from: {config_path}")
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        logger.warning(f"Error loading config {config_path}: {e}")
        logger.warning("Using default configuration")
        config = get_default_config()
    return config


def create_app(config: Optional[ServerConfig] = None) -> FastAPI:
    """Build the application.

    Args:
        config: Server configuration; loaded from YAML when omitted

    Returns:
        FastAPI: Application with services attached on startup
    """
    config = config or load_server_config()

    app = FastAPI(
        title="Image Annotation Server",
        description="Projects, images, labels and annotations with COCO export",
        version=config.server.version,
    )
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors.allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Export-Warnings"],
    )

    @app.exception_handler(AnnotationServerError)
    async def domain_exception_handler(request: Request, exc: AnnotationServerError):
        """Translate domain errors to JSON responses."""
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")

        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message},
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Log validation errors with request body for debugging."""
        body = (await request.body()).decode("utf-8", errors="replace")
        logger.warning(f"Validation error on {request.url}")
        logger.debug(f"Request body: {body}")
        logger.warning(f"Validation errors: {exc.errors()}")
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": jsonable_encoder(exc.errors())},
        )

    @app.on_event("startup")
    async def startup_event():
        """Initialize services on startup."""
        logging.basicConfig(level=config.server.log_level.upper(), format=LOG_FORMAT)

        store = DocumentStore(Path(config.storage.data_dir), persist=config.storage.persist)
        logger.info(f"Document store initialized: persist={store.persist}, dir={store.data_dir}")

        media = MediaStore(
            Path(config.storage.uploads_dir),
            allowed_extensions=config.uploads.allowed_extensions,
            lqip_width=config.uploads.lqip_width,
            lqip_blur_radius=config.uploads.lqip_blur_radius,
        )
        logger.info(f"Media store initialized: dir={media.uploads_dir}")

        app.state.store = store
        app.state.auth = AuthService(store, config.auth)
        app.state.repository = Repository(store, media, page_size=config.uploads.page_size)
        app.state.exporter = CocoExporter(store, config.export)
        logger.info(f"Exporter initialized: {app.state.exporter.get_version()}")

        logger.info("Server startup complete")

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        return HealthResponse(status="UP")

    @app.get("/version", response_model=VersionInfo)
    async def version_info():
        """Get server and exporter version information."""
        exporter_info = app.state.exporter.get_info()
        return VersionInfo(
            version=config.server.version,
            exporter=exporter_info["type"],
            exporter_version=exporter_info["version"],
            config={
                "polygon_area": config.export.polygon_area,
                "persist": config.storage.persist,
                "page_size": config.uploads.page_size,
            },
        )

    @app.get("/info")
    async def server_info():
        """Server information endpoint."""
        return {
            "name": "Image Annotation Server",
            "version": config.server.version,
            "endpoints": sorted(app.openapi()["paths"]),
        }

    for router in ROUTERS:
        app.include_router(router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    # For local development
    uvicorn.run(
        "annotation_server.main:app",
        host=app.state.config.server.host,
        port=app.state.config.server.port,
        reload=True,
        log_level="info",
    )
