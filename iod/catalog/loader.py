"""Catalog loader — read every package file under a directory.

The directory tree is walked depth first, one file at a time, in sorted name
order so that identical trees load identically. A file that cannot be read,
parsed or verified is recorded as a LoadError and skipped; it never stops the
rest of the scan.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from iod.catalog.models import LoadError, LoadResult
from iod.errors import MetadataError, PackageError, PackageIOError
from iod.package.package_file import read

logger = logging.getLogger(__name__)


def load_packages(package_directory: str | Path) -> LoadResult:
    """Load all package files from a directory (and subdirectories).

    Raises PackageIOError only if the directory itself cannot be read.
    """
    root = Path(package_directory)
    logger.info("Loading package files from %s", root)

    try:
        entries = _list_directory(root)
    except OSError as e:
        raise PackageIOError(
            f"Error loading packages from {root}: {e.strerror or e}", path=root
        ) from e

    result = LoadResult()
    visited = {_real_path(root)}
    _load_entries(entries, result, visited)

    logger.info("%s - total packages: %d", result.summary(), len(result.packages))
    return result


def load_package_file(path: str | Path, result: LoadResult) -> None:
    """Read one package file into a LoadResult, recording any failure."""
    path = Path(path)
    logger.debug("Loading package file: %s", path)
    try:
        package_file = read(path)
        name = package_file.name
        if not isinstance(name, str) or not name:
            raise MetadataError("The package data has no name", path=path)
    except PackageError as e:
        _add_error(result, path, e.kind, e.message)
        return
    except OSError as e:
        _add_error(result, path, "io", e.strerror or str(e))
        return

    previous = result.packages.get(name)
    if previous is not None:
        logger.warning(
            "Package '%s' in %s replaces the one in %s", name, path, previous.path
        )
    result.packages[name] = package_file


def _load_entries(entries: list[os.DirEntry], result: LoadResult, visited: set[str]) -> None:
    for entry in entries:
        path = Path(entry.path)
        try:
            is_dir = entry.is_dir()
        except OSError as e:
            _add_error(result, path, "io", e.strerror or str(e))
            continue

        if not is_dir:
            load_package_file(path, result)
            continue

        real_path = _real_path(path)
        if real_path in visited:
            logger.debug("Skipping already visited directory %s", path)
            continue
        visited.add(real_path)

        try:
            children = _list_directory(path)
        except OSError as e:
            _add_error(result, path, "io", e.strerror or str(e))
            continue
        _load_entries(children, result, visited)


def _list_directory(path: Path) -> list[os.DirEntry]:
    with os.scandir(path) as it:
        return sorted(it, key=lambda entry: entry.name)


def _real_path(path: Path) -> str:
    return os.path.realpath(path)


def _add_error(result: LoadResult, path: Path, kind: str, message: str) -> None:
    logger.warning("Error loading package %s: %s", path, message)
    result.errors.append(LoadError(path=str(path), kind=kind, message=message))
