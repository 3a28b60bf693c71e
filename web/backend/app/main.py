"""FastAPI application for the IoD package server.

Serves the packages found in the package directory:
- Package data and signature, by package name
- Installer payload downloads
- Reloading the package directory
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from iod import __version__
from iod.catalog.store import PackageCatalog

from web.backend.app.routers import packages

logger = logging.getLogger(__name__)

# Configurable package directory.
PACKAGE_DIR = os.environ.get("IOD_PACKAGE_DIR", "packages")


def create_app(catalog: Optional[PackageCatalog] = None) -> FastAPI:
    """Build the application around a catalog.

    The catalog is loaded at startup unless it has been loaded already.
    """
    if catalog is None:
        catalog = PackageCatalog(PACKAGE_DIR)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not catalog.loaded:
            catalog.load()
        yield

    app = FastAPI(
        title="IoD Package Server",
        description="Signed packages and installers for install-on-demand clients.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.catalog = catalog

    # -----------------------------------------------------------------------
    # Routers
    # -----------------------------------------------------------------------
    app.include_router(packages.router)

    # -----------------------------------------------------------------------
    # Root and health-check endpoints
    # -----------------------------------------------------------------------

    @app.get("/", tags=["meta"])
    async def root():
        """Return basic API information."""
        return {
            "name": "IoD Package Server",
            "version": __version__,
            "docs": "/docs",
            "openapi": "/openapi.json",
        }

    @app.get("/health", tags=["meta"])
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "packages": len(catalog)}

    return app


app = create_app()
