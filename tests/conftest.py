"""Shared fixtures: an RSA key pair for signing test packages."""

import pytest

from iod.package.signing import generate_key


@pytest.fixture(scope="session")
def test_key():
    """Passphrase-protected RSA key, like the ones the packaging tool uses."""
    return generate_key(bits=2048, passphrase="test")


@pytest.fixture(scope="session")
def other_key():
    return generate_key(bits=2048)
