"""Pydantic models for API request/response serialization.

These models mirror the iod dataclasses and fix the JSON field names the
package clients expect.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Package models
# ---------------------------------------------------------------------------


class PackageResponse(BaseModel):
    """A package's signed data, as served at ``/packages/{name}``."""

    model_config = ConfigDict(populate_by_name=True)

    package_data: str = Field(alias="packageData", description="Package data (JSON string, as signed)")
    package_data_signature: str = Field(
        alias="packageDataSignature", description="Signature of packageData (base64)"
    )
    installer: Optional[str] = Field(
        default=None, description="URL of the installer, if the package has one"
    )


# ---------------------------------------------------------------------------
# Catalog models
# ---------------------------------------------------------------------------


class LoadErrorResponse(BaseModel):
    """Mirrors iod.catalog.models.LoadError."""

    path: str
    kind: str
    message: str


class ReloadResponse(BaseModel):
    """Result of reloading the package directory."""

    package_count: int = 0
    errors: list[LoadErrorResponse] = Field(default_factory=list)
