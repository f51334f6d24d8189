# -*- coding: utf-8 -*-
"""
Legacy (amino-encoded) keyring entries.

``LegacyInfo`` is a closed tagged union of four frozen dataclasses, one per
historical key kind. Consumers match on the concrete class; the variant's
``get_type()`` always agrees with the class.

Field order matters: it is the amino field numbering (``algo`` last for
backwards compatibility).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Union

from keyring_compat.exceptions import KeyringError
from keyring_compat.hd import BIP44Params
from keyring_compat.keys import LegacyAminoPubKey, PubKey, PubKeyType, SinglePubKey


class KeyType(str, Enum):
    """Kind of keyring entry, shared by legacy and current encodings."""

    LOCAL = "local"
    LEDGER = "ledger"
    OFFLINE = "offline"
    MULTI = "multi"

    def __str__(self) -> str:
        return self.value


def _no_path() -> BIP44Params:
    raise KeyringError("BIP44 Paths are not available for this type", stage="path")


@dataclass(frozen=True)
class LegacyLocalInfo:
    """Locally stored key: private key amino-encoded in ``priv_key_armor``."""

    name: str
    pub_key: PubKey
    priv_key_armor: bytes = field(repr=False)
    algo: str

    def get_type(self) -> KeyType:
        return KeyType.LOCAL

    def get_name(self) -> str:
        return self.name

    def get_pub_key(self) -> PubKey:
        return self.pub_key

    def get_address(self) -> bytes:
        return self.pub_key.address()

    def get_algo(self) -> str:
        return self.algo

    def get_path(self) -> BIP44Params:
        return _no_path()

    def get_priv_key_armor(self) -> bytes:
        return self.priv_key_armor


@dataclass(frozen=True)
class LegacyLedgerInfo:
    """Ledger key: only the public key and the derivation path are stored."""

    name: str
    pub_key: PubKey
    path: BIP44Params
    algo: str

    def get_type(self) -> KeyType:
        return KeyType.LEDGER

    def get_name(self) -> str:
        return self.name

    def get_pub_key(self) -> PubKey:
        return self.pub_key

    def get_address(self) -> bytes:
        return self.pub_key.address()

    def get_algo(self) -> str:
        return self.algo

    def get_path(self) -> BIP44Params:
        return self.path


@dataclass(frozen=True)
class LegacyOfflineInfo:
    """Offline key: public key only, no signing capability."""

    name: str
    pub_key: PubKey
    algo: str

    def get_type(self) -> KeyType:
        return KeyType.OFFLINE

    def get_name(self) -> str:
        return self.name

    def get_pub_key(self) -> PubKey:
        return self.pub_key

    def get_address(self) -> bytes:
        return self.pub_key.address()

    def get_algo(self) -> str:
        return self.algo

    def get_path(self) -> BIP44Params:
        return _no_path()


@dataclass(frozen=True)
class MultisigPubKeyInfo:
    pub_key: SinglePubKey
    weight: int


@dataclass(frozen=True)
class LegacyMultiInfo:
    """Multisig key: composite public key plus per-member weights."""

    name: str
    pub_key: PubKey
    threshold: int
    pub_keys: Tuple[MultisigPubKeyInfo, ...]

    def get_type(self) -> KeyType:
        return KeyType.MULTI

    def get_name(self) -> str:
        return self.name

    def get_pub_key(self) -> PubKey:
        return self.pub_key

    def get_address(self) -> bytes:
        return self.pub_key.address()

    def get_algo(self) -> str:
        return PubKeyType.MULTI.value

    def get_path(self) -> BIP44Params:
        return _no_path()


LegacyInfo = Union[LegacyLocalInfo, LegacyLedgerInfo, LegacyOfflineInfo, LegacyMultiInfo]

LEGACY_INFO_TYPES = (LegacyLocalInfo, LegacyLedgerInfo, LegacyOfflineInfo, LegacyMultiInfo)


def is_legacy_info(value: object) -> bool:
    return isinstance(value, LEGACY_INFO_TYPES)


def new_legacy_multi_info(
    name: str, threshold: int, pub_keys: Tuple[SinglePubKey, ...], weights: Optional[Tuple[int, ...]] = None
) -> LegacyMultiInfo:
    """Build a multisig info with a composite key over ``pub_keys`` (weight 1 each by default)."""
    weights = weights or tuple(1 for _ in pub_keys)
    if len(weights) != len(pub_keys):
        raise ValueError("weights and pub_keys length mismatch")
    return LegacyMultiInfo(
        name=name,
        pub_key=LegacyAminoPubKey(threshold=threshold, public_keys=tuple(pub_keys)),
        threshold=threshold,
        pub_keys=tuple(MultisigPubKeyInfo(pk, w) for pk, w in zip(pub_keys, weights)),
    )


__all__ = [
    "KeyType",
    "LegacyLocalInfo",
    "LegacyLedgerInfo",
    "LegacyOfflineInfo",
    "LegacyMultiInfo",
    "MultisigPubKeyInfo",
    "LegacyInfo",
    "is_legacy_info",
    "new_legacy_multi_info",
]
