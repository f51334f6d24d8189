# -*- coding: utf-8 -*-
"""
RU: Утилиты: bech32-кодирование адресов, hex-кодеки, зануление буферов и строгие права на файлы.
EN: Helpers: bech32 address encoding, hex codecs, best-effort buffer wiping and strict file permissions.
"""
from __future__ import annotations

import logging
import os
import stat
from typing import Final, Optional, Union

from bech32 import bech32_encode, convertbits

_LOGGER: Final = logging.getLogger(__name__)

BytesLike = Union[bytes, bytearray]


def bech32_encode_address(prefix: str, data: BytesLike) -> str:
    """
    Encode address bytes with a human-readable prefix (checksummed bech32).

    Args:
        prefix: human-readable part, e.g. "cosmos".
        data: raw address bytes (usually 20 bytes).

    Returns:
        Bech32 text such as ``cosmos1...``.

    Raises:
        ValueError: on empty prefix or unconvertible data.
    """
    if not prefix:
        raise ValueError("bech32 prefix must be non-empty")
    five_bit = convertbits(bytes(data), 8, 5, True)
    if five_bit is None:
        raise ValueError("cannot convert address bytes to base32")
    encoded: Optional[str] = bech32_encode(prefix, five_bit)
    if encoded is None:
        raise ValueError("bech32 encoding failed")
    return encoded


def hex_encode(data: bytes) -> str:
    """Encode bytes to lowercase hex string."""
    return bytes(data).hex()


def hex_decode(text: str) -> bytes:
    """
    Decode hex string to bytes.

    Raises:
        ValueError: on invalid hex.
    """
    try:
        return bytes.fromhex(text)
    except (ValueError, TypeError) as exc:
        raise ValueError("Invalid hex string") from exc


def zero_memory(buf: Optional[bytearray]) -> None:
    """
    Best-effort zeroization of a mutable buffer.

    Notes:
        Only bytearray can be wiped; bytes are immutable in Python.
    """
    if buf is None:
        return
    try:
        for i in range(len(buf)):
            buf[i] = 0
    except (TypeError, AttributeError) as e:
        _LOGGER.debug("zero_memory skip (immutable): %s", e.__class__.__name__)


def set_secure_file_permissions(filepath: str) -> None:
    """
    Set strict file permissions (0600 on POSIX, best effort on Windows).

    Logs a warning on failure (non-fatal).
    """
    try:
        os.chmod(filepath, stat.S_IRUSR | stat.S_IWUSR)
        _LOGGER.debug("Applied 0600 permissions to %s", filepath)
    except OSError as e:
        _LOGGER.warning("Could not set strict permissions for %s: %s", filepath, e)


__all__ = [
    "bech32_encode_address",
    "hex_encode",
    "hex_decode",
    "zero_memory",
    "set_secure_file_permissions",
]
