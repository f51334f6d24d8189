# tests/unit/keyring_compat/test_hd.py
from __future__ import annotations

import pytest

from keyring_compat.hd import HARDENED, BIP44Params, new_fundraiser_params


def test_default_path_roundtrip() -> None:
    p = BIP44Params.from_string("m/44'/118'/0'/0/0")
    assert p == BIP44Params()
    assert str(p) == "m/44'/118'/0'/0/0"


def test_derivation_path_hardens_first_three_levels() -> None:
    p = new_fundraiser_params(account=2, coin_type=529, address_index=7)
    assert p.derivation_path() == [
        44 | HARDENED,
        529 | HARDENED,
        2 | HARDENED,
        0,
        7,
    ]


def test_from_string_without_m_prefix() -> None:
    p = BIP44Params.from_string("44'/118'/3'/1/9")
    assert p.account == 3 and p.change is True and p.address_index == 9


@pytest.mark.parametrize(
    "path",
    [
        "m/44'/118'/0'/0",  # too short
        "m/44/118'/0'/0/0",  # purpose not hardened
        "m/44'/118'/0'/0'/0",  # change hardened
        "m/44'/118'/0'/2/0",  # change out of range
        "m/44'/abc'/0'/0/0",
    ],
)
def test_from_string_rejects_malformed(path: str) -> None:
    with pytest.raises(ValueError):
        BIP44Params.from_string(path)


def test_out_of_range_level_rejected() -> None:
    with pytest.raises(ValueError):
        BIP44Params(account=HARDENED)
