"""
Sales Ledger API - Main Application.

FastAPI application with CORS enabled for frontend communication.

Production start-up loads Settings, configures logging, checks the database
schema version and wires the service container. Tests pass a ready-made
container to `create_app` instead.

Run with: uvicorn api.main:app
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import __version__
from api.dependencies import ServiceContainer, build_container
from api.routers import margins, sales, sync, unallocated
from config import load_settings
from domain.errors import SalesOpsError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    owns_container = getattr(app.state, "container", None) is None
    if owns_container:
        settings = load_settings()
        configure_logging(settings.log_level)
        app.state.container = build_container(settings)
        logger.info("Sales ledger API %s started", __version__)
    yield
    if owns_container:
        app.state.container.close()


async def handle_sales_ops_error(request: Request, exc: SalesOpsError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s %s", request.method, request.url.path, exc.code, exc.message)
    else:
        logger.info("%s %s rejected: %s %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    app = FastAPI(
        title="Sales Ledger API",
        description="Allocation, reconciliation and margin tooling for the sales ledger",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.container = container

    # TODO: Restrict origins to the back-office frontend once its domain is fixed
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(SalesOpsError, handle_sales_ops_error)

    @app.get("/health", tags=["Health"])
    def health_check():
        """
        Health check endpoint.

        Returns the API status and version.
        """
        return {
            "status": "healthy",
            "version": __version__,
            "service": "sales-ledger-api"
        }

    app.include_router(sales.router, prefix="/api/v1", tags=["Sales"])
    app.include_router(unallocated.router, prefix="/api/v1", tags=["Unallocated"])
    app.include_router(sync.router, prefix="/api/v1", tags=["Sync"])
    app.include_router(margins.router, prefix="/api/v1", tags=["Margins"])

    return app


app = create_app()
