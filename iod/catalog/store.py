"""Package catalog — the loaded packages, by name.

The catalog is an ordinary object owned by whoever starts the service. A
load builds a complete new index and swaps it in, so readers see either the
old set of packages or the new one, never a mix.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, Optional

from iod.catalog.loader import load_packages
from iod.catalog.models import LoadError, LoadResult
from iod.errors import NoInstallerError, NotFoundError, PackageIOError, StructuralError
from iod.package.models import PackageFile

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


class PackageCatalog:
    """In-memory index of verified package files."""

    def __init__(self, package_directory: Optional[str | Path] = None):
        self.package_directory = Path(package_directory) if package_directory else None
        self._packages: dict[str, PackageFile] = {}
        self._errors: list[LoadError] = []
        self._loaded = False
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self, package_directory: Optional[str | Path] = None) -> LoadResult:
        """Load the package directory, replacing the current index."""
        if package_directory is not None:
            self.package_directory = Path(package_directory)
        if self.package_directory is None:
            raise PackageIOError("No package directory configured")

        result = load_packages(self.package_directory)

        with self._lock:
            self._packages = dict(result.packages)
            self._errors = list(result.errors)
            self._loaded = True
        return result

    def reload(self) -> LoadResult:
        return self.load()

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def last_errors(self) -> list[LoadError]:
        return list(self._errors)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, name: str) -> PackageFile | None:
        """Get a package by name."""
        return self._packages.get(name)

    def require(self, name: str) -> PackageFile:
        """Get a package by name, raising NotFoundError if it isn't there."""
        package_file = self._packages.get(name)
        if package_file is None:
            raise NotFoundError(f"No such package: {name}")
        return package_file

    def names(self) -> list[str]:
        return sorted(self._packages)

    def __contains__(self, name: object) -> bool:
        return name in self._packages

    def __len__(self) -> int:
        return len(self._packages)

    # ------------------------------------------------------------------
    # Installer payloads
    # ------------------------------------------------------------------

    def installer_info(self, name: str) -> PackageFile:
        """Get a package that has an installer payload."""
        package_file = self.require(name)
        if not package_file.has_installer:
            raise NoInstallerError(f"No installer for package: {name}", path=package_file.path)
        return package_file

    def stream_installer(
        self, name: str, chunk_size: int = DEFAULT_CHUNK_SIZE
    ) -> Iterator[bytes]:
        """Return an iterator over the installer payload of a package.

        Unknown packages, and packages without an installer, fail here rather
        than on the first chunk. Each stream opens the package file itself
        and closes it however the stream ends.
        """
        package_file = self.installer_info(name)
        return iter_installer(package_file, chunk_size)

    @contextmanager
    def open_installer(self, name: str) -> Iterator["InstallerReader"]:
        """Open the installer payload of a package as a file-like reader."""
        package_file = self.installer_info(name)
        with open(package_file.path, "rb") as handle:
            handle.seek(package_file.header.installer_offset)
            yield InstallerReader(handle, package_file.header.installer_length)


class InstallerReader:
    """Reads no further than the end of an installer payload."""

    def __init__(self, handle: BinaryIO, length: int):
        self._handle = handle
        self.length = length
        self.remaining = length

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0 or size > self.remaining:
            size = self.remaining
        data = self._handle.read(size)
        self.remaining -= len(data)
        return data


def iter_installer(
    package_file: PackageFile, chunk_size: int = DEFAULT_CHUNK_SIZE
) -> Iterator[bytes]:
    """Yield the installer payload of an already looked-up package file."""
    header = package_file.header
    with open(package_file.path, "rb") as handle:
        handle.seek(header.installer_offset)
        remaining = header.installer_length
        while remaining:
            chunk = handle.read(min(chunk_size, remaining))
            if not chunk:
                raise StructuralError(
                    f"Installer payload ended early ({header.installer_length - remaining} "
                    f"of {header.installer_length} bytes)",
                    path=package_file.path,
                )
            remaining -= len(chunk)
            yield chunk
    logger.debug("Streamed installer of %s", package_file.path)
