"""PEM helpers.

PEM encoding is base64 data between a ``-----BEGIN ...`` and ``-----END ...``
line. Only the first key in the text is read.
"""

from __future__ import annotations

import base64
import binascii
import re
import textwrap

_PEM_RE = re.compile(
    r"(?:^|\n)-----BEGIN[^\n]*\n(?P<body>.*?\n)??-----END",
    re.DOTALL,
)


def read_pem(pem: str | bytes) -> bytes | None:
    """Return the bytes encoded in a PEM block, or None if the PEM is invalid."""
    if isinstance(pem, bytes):
        try:
            pem = pem.decode("ascii")
        except UnicodeDecodeError:
            return None

    match = _PEM_RE.search(pem.replace("\r\n", "\n"))
    if not match:
        return None

    body = "".join((match.group("body") or "").split())
    try:
        return base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError):
        return None


def wrap_public_key(encoded: str) -> str:
    """PEM-encode a base64 SubjectPublicKeyInfo."""
    lines = textwrap.wrap(encoded, 64) if encoded else []
    return "-----BEGIN PUBLIC KEY-----\n" + "".join(
        line + "\n" for line in lines
    ) + "-----END PUBLIC KEY-----\n"
