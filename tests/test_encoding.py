"""
Tests for the data key text encoding.
"""

from __future__ import annotations

import binascii

import pytest

from azkv import decode_key, encode_key


def test_unpadded_url_safe() -> None:
    assert encode_key(b"\xfb\xff") == "-_8"
    assert encode_key(bytes([1, 2, 3])) == "AQID"


def test_decode_tolerates_missing_padding() -> None:
    assert decode_key("-_8") == b"\xfb\xff"
    assert decode_key("-_8=") == b"\xfb\xff"


def test_empty() -> None:
    assert encode_key(b"") == ""
    assert decode_key("") == b""


@pytest.mark.parametrize("value", ["not base64!", "+/8", "A", "AQID\n"])
def test_rejects_invalid(value: str) -> None:
    with pytest.raises(binascii.Error):
        decode_key(value)
