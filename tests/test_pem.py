"""Tests for PEM extraction."""

import base64

import pytest

from iod.package.pem import read_pem, wrap_public_key

VALID = [
    "-----BEGIN PUBLIC KEY-----\ndGVzdCBkYXRh\n-----END PUBLIC KEY-----",
    "-----BEGIN PUBLIC KEY-----\ndGVz\ndCBk\nYXRh\n-----END PUBLIC KEY-----",
    "aaaaa\n-----BEGIN PUBLIC KEY-----\ndGVzdCBkYXRh\n-----END PUBLIC KEY-----\nzzzzz",
    "aaaaa\n-----BEGIN PUBLIC KEY-----\ndGVz\ndCBk\nYXRh\n-----END PUBLIC KEY-----\nzzzzz",
    "-----BEGIN PUBLIC KEY-----\r\ndGVzdCBk\r\nYXRh\r\n-----END PUBLIC KEY-----\r\n",
    # Only the first key is read
    "-----BEGIN PUBLIC KEY-----\ndGVzdCBkYXRh\n-----END PUBLIC KEY-----"
    "\n-----BEGIN PUBLIC KEY-----\nb3RoZXI=\n-----END PUBLIC KEY-----",
]

EMPTY = [
    "-----BEGIN PUBLIC KEY-----\n-----END PUBLIC KEY-----",
    "-----BEGIN PUBLIC KEY-----\n\n-----END PUBLIC KEY-----",
    "aaaaa\n-----BEGIN PUBLIC KEY-----\n-----END PUBLIC KEY-----\nzzzzz",
    "aaaaa\n-----BEGIN PUBLIC KEY-----\n\n\n-----END PUBLIC KEY-----\nzzzzz",
    # Only the first key is read, even when it is empty
    "-----BEGIN PUBLIC KEY-----\n-----END PUBLIC KEY-----"
    "\n-----BEGIN PUBLIC KEY-----\ndGVzdCBkYXRh\n-----END PUBLIC KEY-----",
]

INVALID = [
    "",
    # "test data" base64 encoded, but missing the header/footer
    "dGVzdCBkYXRh",
    "-----BEGIN PUBLIC KEY-----\ndGVzdCBkYXRh\n",
    "\ndGVzdCBkYXRh\n-----END PUBLIC KEY-----",
    "-----END PUBLIC KEY-----\ndGVzdCBkYXRh\n-----BEGIN PUBLIC KEY-----\n",
    "##",
    "y",
    "-----BEGIN PUBLIC KEY-----\n",
    "-----BEGIN PUBLIC KEY-----dGVzdCBkYXRh-----END PUBLIC KEY-----",
    # Not base64
    "-----BEGIN PUBLIC KEY-----\n#\n-----END PUBLIC KEY-----",
    "-----BEGIN PUBLIC KEY-----\nA\n-----END PUBLIC KEY-----",
]


@pytest.mark.parametrize("pem", VALID)
def test_read_pem(pem):
    assert read_pem(pem) == b"test data"


@pytest.mark.parametrize("pem", EMPTY)
def test_read_pem_empty(pem):
    assert read_pem(pem) == b""


@pytest.mark.parametrize("pem", INVALID)
def test_read_pem_invalid(pem):
    assert read_pem(pem) is None


def test_wrapped_and_single_line_are_equal():
    payload = base64.b64encode(bytes(range(256))).decode("ascii")
    single = f"-----BEGIN PUBLIC KEY-----\n{payload}\n-----END PUBLIC KEY-----\n"
    wrapped = wrap_public_key(payload)

    assert wrapped != single
    assert read_pem(wrapped) == read_pem(single) == bytes(range(256))


def test_read_pem_bytes_input():
    assert read_pem(b"-----BEGIN PUBLIC KEY-----\ndGVzdCBkYXRh\n-----END PUBLIC KEY-----") == b"test data"
    assert read_pem(b"\xff\xfe") is None


def test_read_real_key(test_key):
    from cryptography.hazmat.primitives import serialization

    der = read_pem(test_key.public_key)
    loaded = serialization.load_der_public_key(der)
    assert loaded.key_size == 2048
