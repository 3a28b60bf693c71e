"""Package files: signed package data with an optional installer payload.

- Creation: reconcile the package data with the installer, sign it, write it
- Reading: parse the header and package data, verify the signature
- PEM helpers for the embedded public key
"""

from iod.package.models import (
    FILE_IDENTITY,
    HEADER_LENGTH,
    PackageFile,
    PackageHeader,
    SignedPackageData,
    SigningKey,
)
from iod.package.package_file import create, hash_file, prepare_package_data, read, write
from iod.package.pem import read_pem
from iod.package.signing import sign_package_data, verify_package_data

__all__ = [
    "FILE_IDENTITY",
    "HEADER_LENGTH",
    "PackageFile",
    "PackageHeader",
    "SignedPackageData",
    "SigningKey",
    "create",
    "hash_file",
    "prepare_package_data",
    "read",
    "read_pem",
    "sign_package_data",
    "verify_package_data",
    "write",
]
