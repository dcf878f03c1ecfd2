"""
Binary-to-text transform used at the Key Vault boundary.

Key Vault key operations take and return values as unpadded URL-safe
base64 text. The data key is encoded with ``encode_key`` before it is sent
for wrapping and ``decode_key`` reverses it after unwrapping.
"""

from __future__ import annotations

import base64
import binascii
import re

_URLSAFE_ALPHABET = re.compile(r"[A-Za-z0-9_-]*={0,2}")


def encode_key(data: bytes) -> str:
    """URL-safe base64 encode without padding."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def decode_key(value: str) -> bytes:
    """
    URL-safe base64 decode that tolerates missing padding.

    Raises:
        binascii.Error: If the value is not valid unpadded URL-safe base64
    """
    if not _URLSAFE_ALPHABET.fullmatch(value):
        raise binascii.Error("value is not URL-safe base64")
    stripped = value.rstrip("=")
    if len(stripped) % 4 == 1:
        raise binascii.Error("invalid base64 length")
    pad = "=" * (-len(stripped) % 4)
    return base64.urlsafe_b64decode((stripped + pad).encode("ascii"))
