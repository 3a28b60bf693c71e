"""Package file creation and reading.

A package file is a fixed header, the package data (JSON), the signature of
the package data, then the installer payload (if any)::

    identity            "gpii-iod-package-v1\\0"
    packageDataLength   uint32 LE
    signatureLength     uint32 LE
    installerLength     uint32 LE
    packageData         packageDataLength bytes
    signature           signatureLength bytes
    installer           installerLength bytes

The installer payload is never read into memory when reading a package; it
starts at ``header.installer_offset`` and is streamed by the catalog.
"""

from __future__ import annotations

import copy
import hashlib
import json
import logging
import os
from pathlib import Path
from typing import Any, BinaryIO, Optional

import yaml

from iod.errors import MetadataError, PackageIOError, StructuralError
from iod.package import signing
from iod.package.models import (
    HEADER_LENGTH,
    PackageFile,
    PackageHeader,
    SignedPackageData,
    SigningKey,
)

logger = logging.getLogger(__name__)

DEFAULT_HASH_ALGORITHM = "sha512"

CHUNK_SIZE = 64 * 1024


def hash_file(path: str | Path, algorithm: str = DEFAULT_HASH_ALGORITHM) -> bytes:
    """Calculate the digest of a file."""
    digest = hashlib.new(algorithm or DEFAULT_HASH_ALGORITHM)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.digest()


def load_package_data(source: dict[str, Any] | str | Path) -> dict[str, Any]:
    """Return package data from a dict, or from a JSON or YAML file."""
    if isinstance(source, dict):
        return source

    path = Path(source)
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise MetadataError(f"Unable to parse the package data: {e}", path=path) from e

    if not isinstance(data, dict):
        raise MetadataError("The package data must be an object", path=path)
    return data


def prepare_package_data(
    package_data: dict[str, Any],
    installer_file: Optional[str | Path] = None,
    algorithm: str = DEFAULT_HASH_ALGORITHM,
) -> dict[str, Any]:
    """Add the size, hash and name of the installer file to the package data.

    Fields already present in the package data are kept when they agree with
    the installer. A field that disagrees means the package data is stale, so
    nothing is overwritten and MetadataError is raised.
    """
    data = copy.deepcopy(package_data)
    computed: dict[str, Any] = {}

    if installer_file:
        installer_path = Path(installer_file)
        try:
            installer_size = installer_path.stat().st_size
            installer_hash = hash_file(installer_path, algorithm)
        except OSError as e:
            raise PackageIOError(f"Unable to read the installer: {e}", path=installer_path) from e
        computed["installerHash"] = installer_hash.hex()
        computed["installerSize"] = installer_size

    if data.get("installer"):
        if not installer_file:
            raise MetadataError("The package data expects an installer file")
    elif installer_file:
        computed["installer"] = Path(installer_file).name

    mismatched = []
    for key, value in computed.items():
        old_value = data.get(key)
        if old_value and old_value != value:
            logger.error(
                "'%s' is already specified in the package data, but is no longer correct. "
                "Current value: '%s', New value: '%s'",
                key,
                old_value,
                value,
            )
            mismatched.append(key)
        else:
            data[key] = value

    if mismatched:
        raise MetadataError(
            "A value in the package data does not match reality: " + ", ".join(mismatched)
        )

    return data


def encode(signed: SignedPackageData, installer_file: Optional[str | Path] = None) -> bytes:
    """Build the bytes of a package file from signed package data."""
    installer = Path(installer_file).read_bytes() if installer_file else b""
    header = PackageHeader(
        package_data_length=len(signed.buffer),
        signature_length=len(signed.signature),
        installer_length=len(installer),
    )
    return header.pack() + signed.buffer + signed.signature + installer


def create(
    package_data: dict[str, Any] | str | Path,
    installer_file: Optional[str | Path],
    key: SigningKey,
) -> bytes:
    """Create a package file in memory.

    :param package_data: The package data, or a JSON/YAML file containing it.
    :param installer_file: Optional installer to embed.
    :param key: Key used to sign the package data.
    """
    data = prepare_package_data(load_package_data(package_data), installer_file)
    signed = signing.sign_package_data(data, key)
    return encode(signed, installer_file)


def write(
    package_data: dict[str, Any] | str | Path,
    installer_file: Optional[str | Path],
    key: SigningKey,
    save_as: str | Path,
) -> Path:
    """Create a package file on disk, streaming the installer into it.

    Nothing is written until the package data has been prepared and signed.
    The file appears at ``save_as`` only once it is complete.
    """
    data = prepare_package_data(load_package_data(package_data), installer_file)
    signed = signing.sign_package_data(data, key)

    installer_length = Path(installer_file).stat().st_size if installer_file else 0
    header = PackageHeader(
        package_data_length=len(signed.buffer),
        signature_length=len(signed.signature),
        installer_length=installer_length,
    )

    save_as = Path(save_as)
    partial = save_as.with_name(save_as.name + ".partial")
    try:
        fd = os.open(partial, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "wb") as out:
            out.write(header.pack())
            out.write(signed.buffer)
            out.write(signed.signature)
            if installer_file:
                with open(installer_file, "rb") as installer:
                    _copy_exactly(installer, out, installer_length)
        os.replace(partial, save_as)
    except BaseException:
        partial.unlink(missing_ok=True)
        raise

    logger.info("Created package file %s (%d bytes)", save_as, header.file_size)
    return save_as


def _copy_exactly(source: BinaryIO, dest: BinaryIO, length: int) -> None:
    remaining = length
    while remaining:
        chunk = source.read(min(CHUNK_SIZE, remaining))
        if not chunk:
            raise PackageIOError(
                f"Installer file is shorter than expected ({length - remaining} of {length} bytes)"
            )
        dest.write(chunk)
        remaining -= len(chunk)


def read(path: str | Path, keep_open: bool = False, verify: bool = True) -> PackageFile:
    """Read and parse a package file.

    :param path: The package file.
    :param keep_open: Keep the file open, in ``PackageFile.handle``, positioned
        at the beginning of the installer payload.
    :param verify: Check the signature, raising VerificationError if it fails.
    """
    path = Path(path)
    handle = open(path, "rb")
    try:
        package_file = _read_package(handle, path)
        if verify:
            signing.verify(package_file)
    except BaseException:
        handle.close()
        raise

    if keep_open:
        package_file.handle = handle
    else:
        handle.close()
    return package_file


def _read_package(handle: BinaryIO, path: Path) -> PackageFile:
    header = PackageHeader.unpack(handle.read(HEADER_LENGTH), path)

    file_size = os.fstat(handle.fileno()).st_size
    if file_size < header.installer_offset:
        raise StructuralError(
            "File is too short (truncated body, or the header is corrupted)", path=path
        )
    if file_size < header.file_size:
        raise StructuralError(
            f"File is too short (truncated installer: expected {header.file_size} bytes, "
            f"found {file_size})",
            path=path,
        )

    body_length = header.package_data_length + header.signature_length
    body = handle.read(body_length)
    if len(body) != body_length:
        raise StructuralError(
            "File is too short (truncated body, or the header is corrupted)", path=path
        )

    package_data_json = body[: header.package_data_length]
    signature = body[header.package_data_length :]

    try:
        package_data = json.loads(package_data_json.decode("utf-8"))
    except (ValueError, RecursionError) as e:
        raise MetadataError(f"Malformed metadata: {e}", path=path) from e

    if not isinstance(package_data, dict):
        raise MetadataError("Malformed metadata: package data is not an object", path=path)

    return PackageFile(
        path=path,
        header=header,
        package_data=package_data,
        package_data_json=package_data_json,
        signature=signature,
    )
