"""FastAPI web application for the cluster manager."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

import structlog
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cluster_manager import __version__
from cluster_manager.api.v1.router import api_router
from cluster_manager.config import ControlPlaneConfig, Settings
from cluster_manager.core.control_plane import ControlPlane
from cluster_manager.errors import ControlPlaneError
from cluster_manager.reconciler.backend import InfraBackend
from cluster_manager.utils.logging import setup_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifespan."""
    # Startup
    settings: Settings = app.state.settings
    setup_logging(
        settings.logging.level,
        settings.logging.format,
        Path(settings.logging.file_path) if settings.logging.file_path else None,
    )

    control_plane: ControlPlane = app.state.control_plane
    if settings.metrics_port:
        control_plane.metrics.port = settings.metrics_port
        control_plane.metrics.start_server()
    await control_plane.start()

    yield

    # Shutdown
    await control_plane.shutdown()


async def control_plane_error_handler(request: Request, exc: ControlPlaneError) -> JSONResponse:
    return JSONResponse(status_code=exc.http_status, content={"error": exc.to_dict()})


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": {"code": "INVALID_ARGUMENT", "message": details}},
    )


def load_config(settings: Settings) -> ControlPlaneConfig:
    """Control-plane config from the file named in settings, or defaults."""
    if settings.config_path:
        return ControlPlaneConfig.from_yaml(Path(settings.config_path))
    return ControlPlaneConfig()


def create_app(
    config: Optional[ControlPlaneConfig] = None,
    backend: Optional[InfraBackend] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or Settings()
    config = config or load_config(settings)

    app = FastAPI(
        title="Cluster Manager API",
        description="Control plane for managed Kubernetes clusters and node pools",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.control_plane = ControlPlane(config, backend=backend)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ControlPlaneError, control_plane_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # Include API routes
    app.include_router(api_router, prefix=settings.api.prefix)

    # Root endpoint
    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "Cluster Manager API",
            "version": __version__,
            "docs": "/docs",
        }

    return app


def main() -> None:
    """Run the web application."""
    settings = Settings()

    uvicorn.run(
        "cluster_manager.web:create_app",
        factory=True,
        host=settings.api.host,
        port=settings.api.port,
        reload=settings.api.reload,
        log_level=settings.logging.level.lower(),
    )


if __name__ == "__main__":
    main()
