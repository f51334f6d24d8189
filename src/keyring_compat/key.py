# -*- coding: utf-8 -*-
"""
RU: Каноническая абстракция ключа поверх двух форматов хранения (Record / LegacyInfo)
с единым контрактом: имя, публичный ключ, адрес, тип, подпись, ленивое преобразование.

EN: Canonical key abstraction over both storage encodings.

A ``Key`` wraps exactly one decoded entry: a current ``Record`` or a legacy
``LegacyInfo`` variant. The contract (name, public key, address, type,
signature) is identical for both. Conversion to the legacy form is lazy
(:meth:`Key.to_legacy_info`), so read-only inspection of current entries never
pays for it.

Signing dispatch:
- local: private key from the entry (amino armor or typed record value), signature
  returned as produced by the key algorithm;
- ledger: device discovery, device signature over the stored derivation path,
  DER -> 64-byte low-S normalization;
- anything else: unsupported, severity per ``UnsupportedKeyPolicy``.

Security:
- No key material or signature bytes are logged.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Final, NoReturn, Optional, Union

from keyring_compat.codec import amino
from keyring_compat.config import (
    DEFAULT_BECH32_PREFIX,
    INFO_SUFFIX,
    UnsupportedKeyPolicy,
)
from keyring_compat.exceptions import (
    CodecError,
    DecodeError,
    KeyringError,
    PrivKeyNotAvailableError,
    UnsupportedKeyTypeAbort,
    UnsupportedKeyTypeError,
)
from keyring_compat.hd import BIP44Params
from keyring_compat.keys import (
    PrivKey,
    PubKey,
    is_priv_key,
    is_pub_key,
    pub_key_to_proto_json,
)
from keyring_compat.ledger import (
    LedgerDevice,
    find_ledger_cosmos_app,
    sign_with_ledger,
)
from keyring_compat.legacy_info import (
    KeyType,
    LegacyInfo,
    LegacyLedgerInfo,
    LegacyLocalInfo,
    is_legacy_info,
)
from keyring_compat.record import Record, RecordLocal
from keyring_compat.utils import bech32_encode_address

_LOGGER: Final = logging.getLogger(__name__)

DeviceFinder = Callable[[], LedgerDevice]


def strip_info_suffix(name: str) -> str:
    return name[: -len(INFO_SUFFIX)] if name.endswith(INFO_SUFFIX) else name


def with_info_suffix(name: str) -> str:
    return name if name.endswith(INFO_SUFFIX) else name + INFO_SUFFIX


def raise_unsupported(
    key_type: Union[KeyType, str],
    *,
    key_name: Optional[str],
    stage: str,
    policy: UnsupportedKeyPolicy,
) -> NoReturn:
    """Raise the unsupported-key failure with the severity chosen by ``policy``."""
    type_str = str(key_type)
    _LOGGER.error(
        "Unsupported key type %s for %r at stage %s (policy=%s)",
        type_str,
        key_name,
        stage,
        policy.value,
    )
    if policy is UnsupportedKeyPolicy.ABORT:
        raise UnsupportedKeyTypeAbort(type_str, key_name=key_name, stage=stage)
    raise UnsupportedKeyTypeError(type_str, key_name=key_name, stage=stage)


def extract_priv_key_from_local(local: RecordLocal, *, key_name: Optional[str] = None) -> PrivKey:
    """
    Private key of a current local item.

    Raises:
        PrivKeyNotAvailableError: material absent.
    """
    if local.priv_key is None:
        raise PrivKeyNotAvailableError(
            "private key not available", key_name=key_name, stage="priv-key"
        )
    if not is_priv_key(local.priv_key):
        raise DecodeError(
            "unable to cast private key to a supported type", key_name=key_name
        )
    return local.priv_key


def legacy_info_from_record(
    record: Record,
    *,
    policy: UnsupportedKeyPolicy = UnsupportedKeyPolicy.RAISE,
) -> LegacyInfo:
    """
    Convert a current record into its legacy equivalent.

    Local keys get their private key re-encoded through the legacy codec into
    ``priv_key_armor``; ledger keys copy name, public key, algo and path.
    Multisig and offline records are unsupported.

    Raises:
        PrivKeyNotAvailableError: local record without private material.
        UnsupportedKeyTypeError / UnsupportedKeyTypeAbort: multisig/offline.
    """
    pk = record.get_pub_key()
    local = record.get_local()
    if local is not None:
        priv = extract_priv_key_from_local(local, key_name=record.name)
        try:
            armor = amino.marshal_bare(priv)
        except CodecError as exc:
            raise KeyringError(
                "cannot encode private key", key_name=record.name, stage="convert"
            ) from exc
        return LegacyLocalInfo(
            name=record.name,
            pub_key=pk,
            priv_key_armor=armor,
            algo=pk.type(),
        )

    ledger = record.get_ledger()
    if ledger is not None:
        if ledger.path is None:
            raise KeyringError(
                "ledger record has no derivation path",
                key_name=record.name,
                stage="convert",
            )
        return LegacyLedgerInfo(
            name=record.name,
            pub_key=pk,
            path=ledger.path,
            algo=pk.type(),
        )

    raise_unsupported(record.get_type(), key_name=record.name, stage="convert", policy=policy)


@dataclass(frozen=True)
class Key:
    """
    One keyring entry, decoded from either encoding.

    Attributes:
        entry_name: storage name including the ``.info`` suffix.
        item: the decoded ``Record`` or ``LegacyInfo``.
        policy: unsupported key type severity (not part of equality).
        device_finder: hardware device discovery (not part of equality).
    """

    entry_name: str
    item: Union[Record, LegacyInfo]
    policy: UnsupportedKeyPolicy = field(
        default=UnsupportedKeyPolicy.RAISE, compare=False, repr=False
    )
    device_finder: DeviceFinder = field(
        default=find_ledger_cosmos_app, compare=False, repr=False
    )

    def __post_init__(self) -> None:
        if not self.entry_name or self.entry_name == INFO_SUFFIX:
            raise ValueError("key name must be non-empty")
        if not isinstance(self.item, Record) and not is_legacy_info(self.item):
            raise TypeError(
                f"key item must be a Record or LegacyInfo, got {type(self.item).__name__}"
            )

    @property
    def name(self) -> str:
        """Storage name without the ``.info`` suffix."""
        return strip_info_suffix(self.entry_name)

    def is_legacy_encoded(self) -> bool:
        return not isinstance(self.item, Record)

    is_amino_encoded = is_legacy_encoded

    def type(self) -> KeyType:
        return self.item.get_type()

    def pub_key(self) -> PubKey:
        """
        Public key of the entry.

        Raises:
            DecodeError: the stored value is not a public key type.
        """
        pk = self.item.get_pub_key()
        if not is_pub_key(pk):
            raise DecodeError("can't get pubkey from Record", key_name=self.name)
        return pk

    def address(self) -> bytes:
        return self.pub_key().address()

    def bech32_address(self, prefix: str = DEFAULT_BECH32_PREFIX) -> str:
        """
        Checksummed bech32 address with human-readable ``prefix``.

        Raises:
            DecodeError: public key unavailable.
            KeyringError: encoding failure (e.g. empty prefix).
        """
        try:
            return bech32_encode_address(prefix, self.address())
        except ValueError as exc:
            raise KeyringError(
                f"cannot encode address: {exc}", key_name=self.name, stage="address"
            ) from exc

    def must_bech32_address(self, prefix: str = DEFAULT_BECH32_PREFIX) -> str:
        """Like :meth:`bech32_address` for call sites that treat failure as a bug."""
        try:
            return self.bech32_address(prefix)
        except KeyringError as exc:
            raise KeyringError(
                f"MustBech32Address: {exc.message}", key_name=self.name, stage="address"
            ) from exc

    def proto_json_pub_key(self) -> bytes:
        """Canonical ``{"@type": ..., "key": ...}`` JSON of the public key."""
        return pub_key_to_proto_json(self.pub_key())

    def to_legacy_info(self) -> LegacyInfo:
        """Legacy form of the entry (identity for legacy-encoded keys)."""
        if not isinstance(self.item, Record):
            return self.item
        return legacy_info_from_record(self.item, policy=self.policy)

    record_to_info = to_legacy_info

    def get_bip44_path(self) -> BIP44Params:
        """
        Derivation path of a ledger key.

        Raises:
            KeyringError: not a ledger key or path missing.
        """
        if isinstance(self.item, Record):
            ledger = self.item.get_ledger()
            if ledger is None or ledger.path is None:
                raise KeyringError(
                    "BIP44 Paths are not available for this type",
                    key_name=self.name,
                    stage="path",
                )
            return ledger.path
        return self.item.get_path()

    def get_priv_key(self) -> PrivKey:
        """
        Private key of a local entry.

        Raises:
            KeyringError: not a local key.
            PrivKeyNotAvailableError: material missing.
            DecodeError: legacy armor cannot be decoded.
        """
        if self.type() is not KeyType.LOCAL:
            raise KeyringError(
                "access to priv key is only for local key type",
                key_name=self.name,
                stage="priv-key",
            )
        if isinstance(self.item, Record):
            local = self.item.get_local()
            if local is None:
                raise PrivKeyNotAvailableError(
                    "private key not available", key_name=self.name, stage="priv-key"
                )
            return extract_priv_key_from_local(local, key_name=self.name)

        if not isinstance(self.item, LegacyLocalInfo):
            raise KeyringError(
                f"unexpected local entry {type(self.item).__name__}",
                key_name=self.name,
                stage="priv-key",
            )
        armor = self.item.get_priv_key_armor()
        if not armor:
            raise PrivKeyNotAvailableError(
                "private key not available", key_name=self.name, stage="priv-key"
            )
        try:
            return amino.unmarshal_priv_key(armor)
        except CodecError as exc:
            raise DecodeError(
                "cannot decode private key armor",
                key_name=self.name,
                amino_error=exc,
            ) from exc

    def sign(self, message: bytes) -> bytes:
        """
        Sign ``message`` with the entry's key.

        Returns:
            Local: the algorithm's native signature. Ledger: 64-byte low-S ``R || S``.

        Raises:
            PrivKeyNotAvailableError, DeviceNotFoundError, DeviceSignError,
            UnsupportedKeyTypeError (or UnsupportedKeyTypeAbort).
        """
        key_type = self.type()
        if key_type is KeyType.LOCAL:
            _LOGGER.debug("Signing with local key %r", self.name)
            return self.get_priv_key().sign(message)

        if key_type is KeyType.LEDGER:
            _LOGGER.debug("Signing with ledger key %r", self.name)
            path = self.get_bip44_path()
            device = self.device_finder()
            try:
                return sign_with_ledger(device, path, message, key_name=self.name)
            finally:
                close = getattr(device, "close", None)
                if close is not None:
                    close()

        raise_unsupported(key_type, key_name=self.name, stage="sign", policy=self.policy)


__all__ = [
    "Key",
    "DeviceFinder",
    "legacy_info_from_record",
    "extract_priv_key_from_local",
    "raise_unsupported",
    "strip_info_suffix",
    "with_info_suffix",
]
