# tests/unit/keyring_compat/conftest.py
from __future__ import annotations

from typing import Callable, List

import pytest

from keyring_compat.config import KdfAlgorithm, KdfConfig, KeyringConfig
from keyring_compat.hd import BIP44Params
from keyring_compat.keys import Ed25519PrivKey, Secp256k1PrivKey


@pytest.fixture
def fast_config() -> KeyringConfig:
    # PBKDF2 at the minimum iteration count keeps file keyring tests quick
    return KeyringConfig(
        kdf=KdfConfig(algorithm=KdfAlgorithm.PBKDF2, pbkdf2_iterations=100_000)
    )


@pytest.fixture
def ed_priv() -> Ed25519PrivKey:
    return Ed25519PrivKey.from_secret(b"secret")


@pytest.fixture
def secp_priv() -> Secp256k1PrivKey:
    return Secp256k1PrivKey.from_secret(b"ledger")


@pytest.fixture
def ledger_path() -> BIP44Params:
    return BIP44Params.from_string("m/44'/118'/0'/0/0")


@pytest.fixture
def counting_password() -> Callable[[str], str]:
    calls: List[str] = []

    def _pw(directory: str) -> str:
        calls.append(directory)
        return "test"

    _pw.calls = calls  # type: ignore[attr-defined]
    return _pw
