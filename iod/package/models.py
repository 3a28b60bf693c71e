"""Package file data models: header, parsed package file, signing key."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO, Optional

from iod.errors import StructuralError

# Identifies the file type and format version.
FILE_IDENTITY = b"gpii-iod-package-v1\0"

# packageData length, signature length, installer length.
_LENGTHS = struct.Struct("<III")

HEADER_LENGTH = len(FILE_IDENTITY) + _LENGTHS.size


@dataclass
class PackageHeader:
    """Fixed-size header at the start of every package file."""

    package_data_length: int
    signature_length: int
    installer_length: int = 0
    identity: bytes = FILE_IDENTITY

    @property
    def installer_offset(self) -> int:
        return HEADER_LENGTH + self.package_data_length + self.signature_length

    @property
    def file_size(self) -> int:
        return self.installer_offset + self.installer_length

    def pack(self) -> bytes:
        try:
            lengths = _LENGTHS.pack(
                self.package_data_length, self.signature_length, self.installer_length
            )
        except struct.error as e:
            raise StructuralError(f"Length does not fit in the package header: {e}") from e
        return self.identity + lengths

    @classmethod
    def unpack(cls, buffer: bytes, path: Optional[str | Path] = None) -> "PackageHeader":
        """Parse a header, raising StructuralError if it is short or not a package."""
        if len(buffer) < HEADER_LENGTH:
            raise StructuralError(
                f"File is too short (truncated header: {len(buffer)} of {HEADER_LENGTH} bytes)",
                path=path,
            )

        identity = bytes(buffer[: len(FILE_IDENTITY)])
        if identity != FILE_IDENTITY:
            raise StructuralError(
                "Unrecognized format (this file isn't a recognisable package file)",
                path=path,
            )

        package_data_length, signature_length, installer_length = _LENGTHS.unpack_from(
            buffer, len(FILE_IDENTITY)
        )
        return cls(
            package_data_length=package_data_length,
            signature_length=signature_length,
            installer_length=installer_length,
            identity=identity,
        )


@dataclass
class PackageFile:
    """A package file as read from disk.

    ``package_data_json`` holds the package data exactly as stored, since the
    signature covers those bytes and not a re-serialization.
    """

    path: Path
    header: PackageHeader
    package_data: dict[str, Any]
    package_data_json: bytes
    signature: bytes
    verified: bool = False
    handle: Optional[BinaryIO] = field(default=None, repr=False, compare=False)

    @property
    def name(self) -> Any:
        return self.package_data.get("name")

    @property
    def has_installer(self) -> bool:
        return self.header.installer_length > 0

    def close(self) -> None:
        """Close the file handle kept open by ``read(..., keep_open=True)``."""
        if self.handle is not None:
            self.handle.close()
            self.handle = None


@dataclass
class SignedPackageData:
    """Serialized package data and its signature."""

    buffer: bytes
    signature: bytes


@dataclass
class SigningKey:
    """Key material used to sign package data.

    ``public_key`` is derived from the private key when it is not given.
    """

    private_key: str
    passphrase: Optional[str] = None
    public_key: Optional[str] = None

    @classmethod
    def from_files(
        cls,
        private_key_path: str | Path,
        public_key_path: Optional[str | Path] = None,
        passphrase: Optional[str] = None,
    ) -> "SigningKey":
        private_key = Path(private_key_path).read_text(encoding="ascii")
        public_key = (
            Path(public_key_path).read_text(encoding="ascii") if public_key_path else None
        )
        return cls(private_key=private_key, passphrase=passphrase, public_key=public_key)
