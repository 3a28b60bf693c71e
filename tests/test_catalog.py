"""Tests for the package catalog."""

import os
import tempfile
from pathlib import Path

import pytest

from iod.catalog.store import PackageCatalog
from iod.errors import NoInstallerError, NotFoundError, PackageIOError, StructuralError
from iod.package import write


def _catalog_with_installer(tmpdir: str, key, payload: bytes) -> PackageCatalog:
    root = Path(tmpdir) / "packages"
    root.mkdir()
    installer = Path(tmpdir) / "setup.msi"
    installer.write_bytes(payload)
    write({"name": "with-installer"}, installer, key, root / "with-installer.pkg")
    write({"name": "no-installer"}, None, key, root / "no-installer.pkg")

    catalog = PackageCatalog(root)
    catalog.load()
    return catalog


def test_get_and_require(test_key):
    with tempfile.TemporaryDirectory() as tmpdir:
        catalog = _catalog_with_installer(tmpdir, test_key, b"payload")

        assert catalog.loaded
        assert len(catalog) == 2
        assert catalog.names() == ["no-installer", "with-installer"]
        assert "with-installer" in catalog
        assert catalog.get("with-installer").package_data["installer"] == "setup.msi"
        assert catalog.get("non-existing-package") is None

        with pytest.raises(NotFoundError):
            catalog.require("non-existing-package")


def test_stream_installer(test_key):
    with tempfile.TemporaryDirectory() as tmpdir:
        payload = os.urandom(300000)
        catalog = _catalog_with_installer(tmpdir, test_key, payload)

        chunks = list(catalog.stream_installer("with-installer", chunk_size=4096))

        assert b"".join(chunks) == payload
        assert all(len(c) <= 4096 for c in chunks)


def test_stream_installer_errors(test_key):
    with tempfile.TemporaryDirectory() as tmpdir:
        catalog = _catalog_with_installer(tmpdir, test_key, b"payload")

        with pytest.raises(NoInstallerError):
            catalog.stream_installer("no-installer")
        with pytest.raises(NotFoundError):
            catalog.stream_installer("missing")


def test_concurrent_streams_are_independent(test_key):
    with tempfile.TemporaryDirectory() as tmpdir:
        payload = bytes(range(256)) * 100
        catalog = _catalog_with_installer(tmpdir, test_key, payload)

        first = catalog.stream_installer("with-installer", chunk_size=1000)
        second = catalog.stream_installer("with-installer", chunk_size=1000)

        a = [next(first), next(first)]
        b = [next(second)]
        a.extend(first)
        b.extend(second)

        assert b"".join(a) == payload
        assert b"".join(b) == payload


def test_stream_closed_early(test_key):
    with tempfile.TemporaryDirectory() as tmpdir:
        catalog = _catalog_with_installer(tmpdir, test_key, b"x" * 10000)

        stream = catalog.stream_installer("with-installer", chunk_size=100)
        assert next(stream) == b"x" * 100
        stream.close()

        with pytest.raises(StopIteration):
            next(stream)


def test_stream_truncated_after_load(test_key):
    with tempfile.TemporaryDirectory() as tmpdir:
        catalog = _catalog_with_installer(tmpdir, test_key, b"x" * 10000)
        path = catalog.get("with-installer").path
        path.write_bytes(path.read_bytes()[:-100])

        with pytest.raises(StructuralError):
            list(catalog.stream_installer("with-installer"))


def test_open_installer(test_key):
    with tempfile.TemporaryDirectory() as tmpdir:
        catalog = _catalog_with_installer(tmpdir, test_key, b"0123456789")

        with catalog.open_installer("with-installer") as reader:
            assert reader.length == 10
            assert reader.read(4) == b"0123"
            assert reader.read() == b"456789"
            assert reader.read() == b""


def test_reload_replaces_index(test_key):
    with tempfile.TemporaryDirectory() as tmpdir:
        catalog = _catalog_with_installer(tmpdir, test_key, b"payload")
        old = catalog.get("no-installer")

        root = catalog.package_directory
        (root / "no-installer.pkg").unlink()
        write({"name": "new-package"}, None, test_key, root / "new.pkg")
        (root / "broken.pkg").write_bytes(b"broken")

        result = catalog.reload()

        assert catalog.names() == ["new-package", "with-installer"]
        assert catalog.get("no-installer") is None
        assert old.name == "no-installer"
        assert [Path(e.path).name for e in catalog.last_errors] == ["broken.pkg"]
        assert len(result.errors) == 1


def test_reload_unchanged_is_idempotent(test_key):
    with tempfile.TemporaryDirectory() as tmpdir:
        catalog = _catalog_with_installer(tmpdir, test_key, b"payload")
        before = {n: catalog.get(n).package_data_json for n in catalog.names()}

        catalog.reload()

        assert {n: catalog.get(n).package_data_json for n in catalog.names()} == before


def test_load_failure_keeps_previous_index(test_key):
    with tempfile.TemporaryDirectory() as tmpdir:
        catalog = _catalog_with_installer(tmpdir, test_key, b"payload")

        with pytest.raises(PackageIOError):
            catalog.load(Path(tmpdir) / "missing")

        assert len(catalog) == 2


def test_no_directory_configured():
    with pytest.raises(PackageIOError):
        PackageCatalog().load()
