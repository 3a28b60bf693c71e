"""Exception hierarchy for package containers and the package catalog.

Structural problems (the file is not a package, or is cut short), metadata
problems (unparseable, or disagreeing with the installer it describes),
signature failures, filesystem failures and lookups of unknown packages each
have their own class, so callers can react to the category while the
catalog loader records them per file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

__all__ = [
    "PackageError",
    "StructuralError",
    "MetadataError",
    "VerificationError",
    "PackageIOError",
    "NotFoundError",
    "NoInstallerError",
]


class PackageError(RuntimeError):
    """Base exception for package container and catalog failures."""

    kind = "package"

    def __init__(self, message: str, *, path: Optional[str | Path] = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = str(path) if path is not None else None

    def __str__(self) -> str:
        if self.path:
            return f"{self.message} ({self.path})"
        return self.message


class StructuralError(PackageError):
    """Raised when a file is not a package file, or is too short to parse."""

    kind = "structural"


class MetadataError(PackageError):
    """Raised when package data cannot be parsed or does not match reality."""

    kind = "metadata"


class VerificationError(PackageError):
    """Raised when the package data signature does not verify."""

    kind = "verification"


class PackageIOError(PackageError):
    """Raised when the filesystem cannot be read or written."""

    kind = "io"


class NotFoundError(PackageError):
    """Raised when a package name is not in the catalog."""

    kind = "not_found"


class NoInstallerError(NotFoundError):
    """Raised when a package exists but carries no installer payload."""
