# -*- coding: utf-8 -*-
"""
RU: Протоколы (DI-контракты): backend хранилища, шифр записей, KDF, функция пароля.

EN: Dependency-injection Protocols: storage backend, entry cipher, KDF and
password callback.

Design notes:
- Protocols are @runtime_checkable to allow isinstance checks in tests.
- The hardware device contract lives next to its implementation
  (``keyring_compat.ledger.LedgerDevice``).
"""

from __future__ import annotations

from typing import Callable, List, Optional, Protocol, Tuple, Union, runtime_checkable

BytesLike = Union[bytes, bytearray]

# Receives the keyring directory (or a prompt string), returns the password.
PasswordFunc = Callable[[str], str]


@runtime_checkable
class StorageBackendProtocol(Protocol):
    """Flat key -> bytes store behind a keyring."""

    def keys(self) -> List[str]:
        """All entry keys, in a stable order."""
        ...

    def get(self, key: str) -> bytes:
        """
        Raw bytes of ``key``.

        Raises:
            KeyError: if the entry does not exist.
            StorageReadError: on read/decryption failure.
        """
        ...

    def set(self, key: str, data: bytes) -> None:
        """
        Create or replace ``key``.

        Raises:
            StorageWriteError: on write failure.
        """
        ...


@runtime_checkable
class SymmetricCipherProtocol(Protocol):
    """AES-GCM like interface with combined ``ciphertext || tag``."""

    def encrypt(
        self, key: bytes, plaintext: BytesLike, aad: Optional[bytes] = None
    ) -> Tuple[bytes, bytes]:
        ...

    def decrypt(
        self, key: bytes, nonce: bytes, data: bytes, aad: Optional[bytes] = None
    ) -> bytes:
        ...


@runtime_checkable
class KdfProtocol(Protocol):
    def derive_key(
        self, password: Union[str, bytes, bytearray], salt: bytes, length: int = 32
    ) -> bytes:
        ...


__all__ = [
    "BytesLike",
    "PasswordFunc",
    "StorageBackendProtocol",
    "SymmetricCipherProtocol",
    "KdfProtocol",
]
