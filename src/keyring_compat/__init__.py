"""
RU: Слой совместимости keyring: чтение ключей в legacy (amino) и текущей (protobuf) кодировках,
подпись локальными ключами и через Ledger, неразрушающая миграция в legacy keyring.
EN: Keyring compatibility layer. One Key abstraction over legacy and current entry
encodings, local and hardware signing, non-destructive migration to a legacy keyring.
"""

from .config import BackendType, KdfAlgorithm, KdfConfig, KeyringConfig, UnsupportedKeyPolicy
from .exceptions import (
    AddressIndexMismatchError,
    CodecError,
    DecodeError,
    DeviceError,
    DeviceNotFoundError,
    DeviceSignError,
    KeyNotFoundError,
    KeyringError,
    MigrationError,
    PrivKeyNotAvailableError,
    SignatureNormalizationError,
    StorageError,
    UnsupportedKeyTypeAbort,
    UnsupportedKeyTypeError,
)
from .hd import BIP44Params, new_fundraiser_params
from .key import Key
from .keyring import Keyring
from .keys import (
    Ed25519PrivKey,
    Ed25519PubKey,
    LegacyAminoPubKey,
    PubKeyType,
    Secp256k1PrivKey,
    Secp256k1PubKey,
)
from .legacy_info import (
    KeyType,
    LegacyLedgerInfo,
    LegacyLocalInfo,
    LegacyMultiInfo,
    LegacyOfflineInfo,
)
from .migrate import MigrationReport, migrate_proto_keys_to_amino
from .record import (
    Record,
    new_ledger_record,
    new_local_record,
    new_multi_record,
    new_offline_record,
)
from .signature import convert_der_to_ber

__all__ = [
    # Keyring
    "Keyring",
    "Key",
    "KeyType",
    "BackendType",
    "KeyringConfig",
    "KdfConfig",
    "KdfAlgorithm",
    "UnsupportedKeyPolicy",
    # Key values
    "Ed25519PrivKey",
    "Ed25519PubKey",
    "Secp256k1PrivKey",
    "Secp256k1PubKey",
    "LegacyAminoPubKey",
    "PubKeyType",
    "BIP44Params",
    "new_fundraiser_params",
    # Entries
    "Record",
    "new_local_record",
    "new_ledger_record",
    "new_offline_record",
    "new_multi_record",
    "LegacyLocalInfo",
    "LegacyLedgerInfo",
    "LegacyOfflineInfo",
    "LegacyMultiInfo",
    # Signing / migration
    "convert_der_to_ber",
    "MigrationReport",
    "migrate_proto_keys_to_amino",
    # Errors
    "KeyringError",
    "CodecError",
    "DecodeError",
    "UnsupportedKeyTypeError",
    "UnsupportedKeyTypeAbort",
    "PrivKeyNotAvailableError",
    "DeviceError",
    "DeviceNotFoundError",
    "DeviceSignError",
    "SignatureNormalizationError",
    "KeyNotFoundError",
    "AddressIndexMismatchError",
    "StorageError",
    "MigrationError",
]
