# tests/unit/keyring_compat/test_signature.py
from __future__ import annotations

import pytest

from keyring_compat.exceptions import DeviceSignError, SignatureNormalizationError
from keyring_compat.signature import (
    SECP256K1_HALF_ORDER,
    SECP256K1_ORDER,
    compact_from_scalars,
    compact_to_der,
    convert_der_to_ber,
    split_compact,
)

N_HEX = "fffffffffffffffffffffffffffffffebaaedce6af48a03bbfd25e8cd0364141"
N_MINUS_1_HEX = "fffffffffffffffffffffffffffffffebaaedce6af48a03bbfd25e8cd0364140"
N_MINUS_5_HEX = "fffffffffffffffffffffffffffffffebaaedce6af48a03bbfd25e8cd036413c"


def _pad32(value: int) -> str:
    return value.to_bytes(32, "big").hex()


def test_order_constant() -> None:
    assert SECP256K1_ORDER == int(N_HEX, 16)
    assert SECP256K1_HALF_ORDER == SECP256K1_ORDER // 2


def test_high_s_is_flipped_and_scalars_padded() -> None:
    # r = 1, s = N - 1 (over half order)
    der = bytes.fromhex("3026020101022100" + N_MINUS_1_HEX)
    out = convert_der_to_ber(der)
    assert out.hex() == _pad32(1) + _pad32(1)


def test_high_s_with_full_width_r() -> None:
    r_hex = "80" + "11" * 31
    der = bytes.fromhex("3046022100" + r_hex + "022100" + N_MINUS_5_HEX)
    out = convert_der_to_ber(der)
    assert len(out) == 64
    assert out.hex() == r_hex + _pad32(5)


def test_low_s_is_kept() -> None:
    der = bytes.fromhex("3006020101020102")
    assert convert_der_to_ber(der).hex() == _pad32(1) + _pad32(2)


def test_half_order_boundary() -> None:
    kept = compact_from_scalars(7, SECP256K1_HALF_ORDER)
    assert split_compact(kept) == (7, SECP256K1_HALF_ORDER)
    flipped = compact_from_scalars(7, SECP256K1_HALF_ORDER + 1)
    assert split_compact(flipped) == (7, SECP256K1_HALF_ORDER)


@pytest.mark.parametrize(
    "der",
    [b"", b"not a der signature", bytes.fromhex("3000"), bytes.fromhex("30060201010201")],
)
def test_malformed_der_raises(der: bytes) -> None:
    with pytest.raises(SignatureNormalizationError) as ei:
        convert_der_to_ber(der)
    assert isinstance(ei.value, DeviceSignError)
    assert ei.value.stage == "normalize"


@pytest.mark.parametrize("r,s", [(0, 1), (1, 0), (SECP256K1_ORDER, 1)])
def test_scalar_range_checked(r: int, s: int) -> None:
    with pytest.raises(SignatureNormalizationError):
        compact_from_scalars(r, s)


def test_compact_der_roundtrip_helpers() -> None:
    compact = compact_from_scalars(12345, 67890)
    assert convert_der_to_ber(compact_to_der(compact)) == compact
    with pytest.raises(SignatureNormalizationError):
        split_compact(b"\x00" * 63)
