"""Package data signing and verification.

The package data is serialized with the signer's public key embedded in it,
and the serialized bytes are signed (RSA, PKCS#1 v1.5 over SHA-512). Because
the key is inside the signed bytes, replacing it invalidates the signature.
Verification trusts whichever key the package data carries.
"""

from __future__ import annotations

import base64
import copy
import json
import logging
from typing import Any, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from iod.errors import MetadataError, VerificationError
from iod.package.models import PackageFile, SignedPackageData, SigningKey
from iod.package.pem import read_pem, wrap_public_key

logger = logging.getLogger(__name__)

PUBLIC_KEY_FIELD = "publicKey"


def serialize_package_data(package_data: dict[str, Any]) -> bytes:
    """Compact JSON in insertion order, UTF-8 encoded."""
    return json.dumps(package_data, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def load_private_key(key: SigningKey) -> rsa.RSAPrivateKey:
    """Load the PEM private key of a SigningKey, using its passphrase."""
    password = key.passphrase.encode("utf-8") if key.passphrase else None
    try:
        private_key = serialization.load_pem_private_key(
            key.private_key.encode("ascii"), password=password
        )
    except (ValueError, TypeError) as e:
        raise ValueError(f"Unable to load the private key: {e}") from e

    if not isinstance(private_key, rsa.RSAPrivateKey):
        raise ValueError("Only RSA signing keys are supported")
    return private_key


def public_key_pem(key: SigningKey, private_key: Optional[rsa.RSAPrivateKey] = None) -> str:
    """Return the public key PEM of a SigningKey, deriving it if needed."""
    if key.public_key:
        return key.public_key
    private_key = private_key or load_private_key(key)
    return private_key.public_key().public_bytes(
        serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode("ascii")


def generate_key(bits: int = 4096, passphrase: Optional[str] = None) -> SigningKey:
    """Create a new RSA signing key."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=bits)
    encryption = (
        serialization.BestAvailableEncryption(passphrase.encode("utf-8"))
        if passphrase
        else serialization.NoEncryption()
    )
    private_pem = private_key.private_bytes(
        serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8, encryption
    ).decode("ascii")
    return SigningKey(
        private_key=private_pem,
        passphrase=passphrase,
        public_key=public_key_pem(SigningKey(private_key=private_pem), private_key),
    )


def sign_package_data(package_data: dict[str, Any], key: SigningKey) -> SignedPackageData:
    """Sign the package data.

    A copy of the package data gets the signer's public key (base64 of the
    DER SubjectPublicKeyInfo) in the ``publicKey`` field, and is serialized.
    The serialized bytes are what gets signed and stored.
    """
    private_key = load_private_key(key)

    public_der = read_pem(public_key_pem(key, private_key))
    if public_der is None:
        raise ValueError("The public key is not valid PEM")

    derived_der = private_key.public_key().public_bytes(
        serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
    )
    if public_der != derived_der:
        raise ValueError("The public key does not belong to the private key")

    data = copy.deepcopy(package_data)
    encoded = base64.b64encode(public_der).decode("ascii")

    existing = data.get(PUBLIC_KEY_FIELD)
    if existing and existing != encoded:
        raise MetadataError(
            f"'{PUBLIC_KEY_FIELD}' is already specified in the package data, "
            "but is not the key used to sign it"
        )
    data[PUBLIC_KEY_FIELD] = encoded

    buffer = serialize_package_data(data)
    signature = private_key.sign(buffer, padding.PKCS1v15(), hashes.SHA512())
    return SignedPackageData(buffer=buffer, signature=signature)


def verification_failure(
    package_data_json: bytes,
    signature: bytes,
    package_data: Optional[dict[str, Any]] = None,
) -> str | None:
    """Check a signature, returning None if good or the reason it failed."""
    try:
        if package_data is None:
            package_data = json.loads(package_data_json)
        encoded = package_data.get(PUBLIC_KEY_FIELD)
        if not encoded:
            return f"package data has no '{PUBLIC_KEY_FIELD}' field"

        public_key = serialization.load_pem_public_key(
            wrap_public_key(encoded).encode("ascii")
        )
        if not isinstance(public_key, rsa.RSAPublicKey):
            return f"unsupported public key type: {type(public_key).__name__}"

        public_key.verify(signature, package_data_json, padding.PKCS1v15(), hashes.SHA512())
    except InvalidSignature:
        return "signature does not match the package data"
    except Exception as e:
        # Anything thrown by a corrupt or hostile package is just a failure.
        return f"exception during verification: {type(e).__name__}: {e}"
    return None


def verify_package_data(
    package_data_json: bytes,
    signature: bytes,
    package_data: Optional[dict[str, Any]] = None,
) -> bool:
    """True if the signature of the serialized package data is good."""
    reason = verification_failure(package_data_json, signature, package_data)
    if reason:
        logger.debug("Package data failed verification: %s", reason)
    return reason is None


def verify(package_file: PackageFile) -> PackageFile:
    """Verify a package file in place, raising VerificationError on failure."""
    reason = verification_failure(
        package_file.package_data_json, package_file.signature, package_file.package_data
    )
    package_file.verified = reason is None
    if reason:
        raise VerificationError(f"Package data failed verification: {reason}", path=package_file.path)
    return package_file
