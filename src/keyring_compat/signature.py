# -*- coding: utf-8 -*-
"""
RU: Нормализация ECDSA-подписей secp256k1: DER (R, S) -> 64 байта R||S в low-S форме.

EN: secp256k1 ECDSA signature normalizer: DER-encoded (R, S) -> fixed 64-byte
big-endian ``R || S`` with S canonicalized to the low-S form.

Hardware devices return DER; the rest of the keyring (and chain verification)
expects the compact form. Low-S is required because ``(R, N - S)`` verifies
as well, which would make signatures malleable.
"""
from __future__ import annotations

from typing import Final, Tuple

from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)

from keyring_compat.exceptions import SignatureNormalizationError

SECP256K1_ORDER: Final[int] = int(
    "FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16
)
SECP256K1_HALF_ORDER: Final[int] = SECP256K1_ORDER >> 1

COMPACT_SIGNATURE_SIZE: Final[int] = 64
_SCALAR_SIZE: Final[int] = 32


def is_over_half_order(s: int) -> bool:
    return s > SECP256K1_HALF_ORDER


def to_low_s(s: int) -> int:
    """Return the canonical low-S counterpart of ``s``."""
    if is_over_half_order(s):
        return SECP256K1_ORDER - s
    return s


def compact_from_scalars(r: int, s: int) -> bytes:
    """
    Serialize (R, S) as 64-byte ``R || S`` after low-S canonicalization.

    Raises:
        SignatureNormalizationError: if a scalar is out of the curve range.
    """
    if not (0 < r < SECP256K1_ORDER) or not (0 < s < SECP256K1_ORDER):
        raise SignatureNormalizationError(
            "signature scalar out of range", stage="normalize"
        )
    s = to_low_s(s)
    # 0 pad from the left if a scalar is shorter than 32 bytes
    return r.to_bytes(_SCALAR_SIZE, "big") + s.to_bytes(_SCALAR_SIZE, "big")


def convert_der_to_ber(signature_der: bytes) -> bytes:
    """
    Convert a DER-encoded ECDSA signature into the fixed-width 64-byte form.

    Despite the historical name, the output is not BER: it is the raw
    concatenation of R and S, each left-padded to 32 bytes, with S replaced
    by ``N - S`` when it exceeds half the curve order.

    Args:
        signature_der: ``0x30 <len> 0x02 <lenR> <R> 0x02 <lenS> <S>``.

    Returns:
        64-byte compact signature.

    Raises:
        SignatureNormalizationError: on malformed DER.
    """
    try:
        r, s = decode_dss_signature(bytes(signature_der))
    except (ValueError, TypeError) as exc:
        raise SignatureNormalizationError(
            "malformed DER signature", stage="normalize"
        ) from exc
    return compact_from_scalars(r, s)


def split_compact(signature: bytes) -> Tuple[int, int]:
    """
    Split a 64-byte compact signature into (R, S).

    Raises:
        SignatureNormalizationError: on wrong length.
    """
    if len(signature) != COMPACT_SIGNATURE_SIZE:
        raise SignatureNormalizationError(
            "compact signature must be 64 bytes", stage="normalize"
        )
    return (
        int.from_bytes(signature[:_SCALAR_SIZE], "big"),
        int.from_bytes(signature[_SCALAR_SIZE:], "big"),
    )


def compact_to_der(signature: bytes) -> bytes:
    """Inverse helper used for verification with ``cryptography``."""
    r, s = split_compact(signature)
    return bytes(encode_dss_signature(r, s))


__all__ = [
    "SECP256K1_ORDER",
    "SECP256K1_HALF_ORDER",
    "COMPACT_SIGNATURE_SIZE",
    "is_over_half_order",
    "to_low_s",
    "compact_from_scalars",
    "convert_der_to_ber",
    "split_compact",
    "compact_to_der",
]
