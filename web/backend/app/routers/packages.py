"""Packages router -- package data and installer downloads."""

from __future__ import annotations

import base64
import logging
import os

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse

from iod.catalog.store import PackageCatalog, iter_installer
from iod.errors import NoInstallerError, NotFoundError, PackageIOError

from web.backend.app.models.api import LoadErrorResponse, PackageResponse, ReloadResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["packages"])

# Base of the installer links; relative links when unset.
SERVER_URL = os.environ.get("IOD_SERVER_URL", "")


def _get_catalog(request: Request) -> PackageCatalog:
    """Return the catalog owned by the application."""
    return request.app.state.catalog


@router.get("/packages", response_model=list[str], summary="List package names")
async def list_packages(request: Request):
    """List the names of every loaded package."""
    return _get_catalog(request).names()


@router.post("/packages/reload", response_model=ReloadResponse, summary="Reload the package directory")
async def reload_packages(request: Request):
    """Re-read the package directory, replacing the loaded packages."""
    catalog = _get_catalog(request)
    try:
        result = catalog.reload()
    except PackageIOError as exc:
        raise HTTPException(status_code=500, detail=exc.message)

    return ReloadResponse(
        package_count=len(result.packages),
        errors=[
            LoadErrorResponse(path=e.path, kind=e.kind, message=e.message)
            for e in result.errors
        ],
    )


@router.get(
    "/packages/{package_name}",
    response_model=PackageResponse,
    response_model_by_alias=True,
    summary="Get a package",
)
async def get_package(package_name: str, request: Request):
    """Return the signed package data of a package."""
    logger.info("package requested: %s", package_name)
    package_file = _get_catalog(request).get(package_name)
    if package_file is None:
        raise HTTPException(status_code=404, detail="No such package")

    return PackageResponse(
        package_data=package_file.package_data_json.decode("utf-8"),
        package_data_signature=base64.b64encode(package_file.signature).decode("ascii"),
        installer=f"{SERVER_URL}/installer/{package_name}" if package_file.has_installer else None,
    )


@router.get("/installer/{package_name}", summary="Download a package installer")
async def get_installer(package_name: str, request: Request):
    """Stream the installer payload of a package."""
    logger.info("installer requested: %s", package_name)
    catalog = _get_catalog(request)
    try:
        package_file = catalog.installer_info(package_name)
    except NoInstallerError:
        raise HTTPException(status_code=404, detail="No installer for this package")
    except NotFoundError:
        raise HTTPException(status_code=404, detail="No such package")

    return StreamingResponse(
        iter_installer(package_file),
        media_type="application/octet-stream",
        headers={"Content-Length": str(package_file.header.installer_length)},
    )
