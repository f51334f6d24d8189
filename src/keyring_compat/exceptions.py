# -*- coding: utf-8 -*-
"""
RU: Централизованная иерархия исключений слоя совместимости keyring: ошибки декодирования,
неподдерживаемые типы ключей, аппаратные устройства, хранилище и миграция.

EN: Centralized exception hierarchy for the keyring compatibility layer: decoding failures,
unsupported key types, hardware devices, storage backends and migration.

Guidelines:
- Messages name the entry and the stage that failed, never key material or passwords.
- Wrap lower-level failures with ``raise ... from exc`` so the cause stays inspectable.
- ``UnsupportedKeyTypeAbort`` derives from BaseException on purpose: it is the
  "abort" severity of the unsupported-key policy and must not be caught by
  generic ``except Exception`` handlers.
"""

from __future__ import annotations

from typing import Optional


class KeyringError(Exception):
    """
    Base exception for all keyring failures.

    Attributes:
        message: human readable description.
        key_name: name of the keyring entry involved (optional).
        stage: operation stage that failed, e.g. "decode", "sign" (optional).
    """

    def __init__(
        self,
        message: str = "",
        *,
        key_name: Optional[str] = None,
        stage: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.key_name = key_name
        self.stage = stage
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        parts = [self.message]
        ctx = []
        if self.key_name:
            ctx.append(f"key={self.key_name}")
        if self.stage:
            ctx.append(f"stage={self.stage}")
        if ctx:
            parts.append(f" ({', '.join(ctx)})")
        return "".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"key_name={self.key_name!r}, "
            f"stage={self.stage!r})"
        )


# Codecs
class CodecError(KeyringError):
    """Raised when bytes cannot be decoded (or a value encoded) in one scheme."""


class DecodeError(KeyringError):
    """
    Raised when an entry decodes in neither the current nor the legacy scheme.

    Both underlying causes are kept for diagnostics.
    """

    def __init__(
        self,
        message: str = "",
        *,
        key_name: Optional[str] = None,
        proto_error: Optional[BaseException] = None,
        amino_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, key_name=key_name, stage="decode")
        self.proto_error = proto_error
        self.amino_error = amino_error

    def __str__(self) -> str:
        base = super().__str__()
        if self.proto_error is None and self.amino_error is None:
            return base
        return f"{base}: decodeProto={self.proto_error} decodeAmino={self.amino_error}"


# Key types
class UnsupportedKeyTypeError(KeyringError):
    """Raised when a multisig/offline key reaches a local/ledger-only path."""

    def __init__(
        self,
        key_type: str,
        *,
        key_name: Optional[str] = None,
        stage: Optional[str] = None,
    ) -> None:
        super().__init__(
            f"unhandled key type {key_type!r}", key_name=key_name, stage=stage
        )
        self.key_type = key_type


class UnsupportedKeyTypeAbort(BaseException):
    """
    Abort-severity variant of UnsupportedKeyTypeError.

    Raised instead of UnsupportedKeyTypeError when the keyring is configured
    with ``UnsupportedKeyPolicy.ABORT``.
    """

    def __init__(
        self,
        key_type: str,
        *,
        key_name: Optional[str] = None,
        stage: Optional[str] = None,
    ) -> None:
        super().__init__(f"record type {key_type} unhandled")
        self.key_type = key_type
        self.key_name = key_name
        self.stage = stage


class PrivKeyNotAvailableError(KeyringError):
    """Raised when local key material is missing from the stored entry."""


# Hardware devices
class DeviceError(KeyringError):
    """Base class for hardware signing device failures."""


class DeviceNotFoundError(DeviceError):
    """Raised when no hardware signing device is attached or discoverable."""


class DeviceSignError(DeviceError):
    """Raised when the device refuses or fails a sign/get-pubkey request."""

    def __init__(
        self,
        message: str = "",
        *,
        key_name: Optional[str] = None,
        stage: Optional[str] = None,
        status_word: Optional[int] = None,
    ) -> None:
        super().__init__(message, key_name=key_name, stage=stage)
        self.status_word = status_word


class SignatureNormalizationError(DeviceSignError):
    """Raised when a device signature is not a valid DER (R, S) pair."""


# Store adapter
class KeyNotFoundError(KeyringError):
    """Raised when a requested entry does not exist in the keyring."""


class AddressIndexMismatchError(KeyringError):
    """Raised when an ``.address`` entry points to a missing or wrong-typed entry."""


# Backends
class StorageError(KeyringError):
    """Base class for storage backend failures."""


class StorageReadError(StorageError):
    """Raised when reading or parsing a backend entry fails."""


class StorageWriteError(StorageError):
    """Raised when persisting a backend entry fails."""


class EncryptionError(KeyringError):
    """Raised on encryption failures (invalid parameters, provider errors)."""


class DecryptionError(KeyringError):
    """Raised on decryption failures (wrong password, corrupted payload)."""


class KdfError(KeyringError):
    """Raised on invalid KDF parameters or KDF provider failures."""


# Migration
class MigrationError(KeyringError):
    """Raised when a migration pass aborts on an entry."""


__all__ = [
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
    "StorageReadError",
    "StorageWriteError",
    "EncryptionError",
    "DecryptionError",
    "KdfError",
    "MigrationError",
]
