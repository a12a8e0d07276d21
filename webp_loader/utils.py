"""Utility helpers for digest encoding and JavaScript string literals."""

from __future__ import annotations

import json

BASE_ALPHABETS = {
    26: "abcdefghijklmnopqrstuvwxyz",
    32: "123456789abcdefghjkmnpqrstuvwxyz",
    36: "0123456789abcdefghijklmnopqrstuvwxyz",
    49: "abcdefghijkmnopqrstuvwxyzABCDEFGHJKLMNPQRSTUVWXYZ",
    52: "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ",
    58: "123456789abcdefghijkmnopqrstuvwxyzABCDEFGHJKLMNPQRSTUVWXYZ",
    62: "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ",
}


def encode_base(digest: bytes, base: int) -> str:
    """Encode a digest with one of the short base-N alphabets.

    Bytes are read little-endian, matching the bundler's own file names.
    """
    alphabet = BASE_ALPHABETS[base]
    number = int.from_bytes(digest, "little")
    output = ""
    while number > 0:
        number, remainder = divmod(number, base)
        output = alphabet[remainder] + output
    return output


def js_string(value: str) -> str:
    """Render ``value`` as a JavaScript string literal."""
    return json.dumps(value, ensure_ascii=False)
