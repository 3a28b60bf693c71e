"""Catalog data models — per-file load errors and load results."""

from __future__ import annotations

from dataclasses import dataclass, field

from iod.package.models import PackageFile


@dataclass
class LoadError:
    """A package file that could not be added to the catalog."""

    path: str
    kind: str  # io, structural, metadata, verification
    message: str

    def __str__(self) -> str:
        return f"{self.path}: [{self.kind}] {self.message}"


@dataclass
class LoadResult:
    """Result of loading a package directory."""

    packages: dict[str, PackageFile] = field(default_factory=dict)
    errors: list[LoadError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def summary(self) -> str:
        failed = f" ({len(self.errors)} failed)" if self.errors else ""
        return f"Loaded {len(self.packages)} packages{failed}"
