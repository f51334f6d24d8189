# -*- coding: utf-8 -*-
"""
RU: AES-256-GCM для записей файлового keyring: случайный 96-битный nonce, имя записи как AAD.

EN: AES-256-GCM for file keyring entries.

- Fully random 96-bit nonce per encryption.
- The entry key (e.g. ``alice.info``) is bound as AAD, so a ciphertext moved
  to another file name fails authentication.
- No keys, nonces, tags or plaintext fragments are logged.
"""

from __future__ import annotations

import logging
import secrets
from typing import Final, Optional, Tuple, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from keyring_compat.exceptions import DecryptionError, EncryptionError
from keyring_compat.utils import zero_memory

_LOGGER: Final = logging.getLogger(__name__)

KEY_LEN: Final[int] = 32
NONCE_LEN: Final[int] = 12
TAG_LEN: Final[int] = 16

BytesLike = Union[bytes, bytearray]


class SymmetricCipher:
    """
    AES-256-GCM with combined ``ciphertext || tag`` output.

    Examples:
        >>> cipher = SymmetricCipher()
        >>> nonce, combined = cipher.encrypt(b"0" * 32, b"hello", b"alice.info")
        >>> cipher.decrypt(b"0" * 32, nonce, combined, b"alice.info")
        b'hello'
    """

    __slots__ = ()

    @staticmethod
    def _validate_key(key: bytes) -> None:
        if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_LEN:
            raise EncryptionError("AES-256-GCM key must be 32 bytes")

    def encrypt(
        self,
        key: bytes,
        plaintext: BytesLike,
        aad: Optional[bytes] = None,
    ) -> Tuple[bytes, bytes]:
        """
        Encrypt ``plaintext``; a bytearray input is wiped afterwards.

        Returns:
            (nonce, ciphertext || tag)

        Raises:
            EncryptionError: on invalid key or crypto failure.
        """
        self._validate_key(key)
        nonce = secrets.token_bytes(NONCE_LEN)
        try:
            encryptor = Cipher(algorithms.AES(bytes(key)), modes.GCM(nonce)).encryptor()
            if aad:
                encryptor.authenticate_additional_data(aad)
            ciphertext = encryptor.update(bytes(plaintext)) + encryptor.finalize()
        except ValueError as exc:
            _LOGGER.error("AES-GCM encryption failed: %s", exc.__class__.__name__)
            raise EncryptionError("AES-GCM encryption failed") from exc
        finally:
            if isinstance(plaintext, bytearray):
                zero_memory(plaintext)
        return nonce, ciphertext + encryptor.tag

    def decrypt(
        self,
        key: bytes,
        nonce: bytes,
        data: bytes,
        aad: Optional[bytes] = None,
    ) -> bytes:
        """
        Decrypt ``ciphertext || tag``.

        Raises:
            DecryptionError: wrong key (password), tampered data or AAD mismatch.
        """
        self._validate_key(key)
        if not isinstance(nonce, (bytes, bytearray)) or len(nonce) != NONCE_LEN:
            raise DecryptionError("GCM nonce must be 12 bytes")
        if len(data) < TAG_LEN:
            raise DecryptionError("Combined ciphertext must include 16-byte tag")
        ct, tag = data[:-TAG_LEN], data[-TAG_LEN:]
        try:
            decryptor = Cipher(algorithms.AES(bytes(key)), modes.GCM(bytes(nonce), tag)).decryptor()
            if aad:
                decryptor.authenticate_additional_data(aad)
            return decryptor.update(ct) + decryptor.finalize()
        except InvalidTag as exc:
            _LOGGER.warning("AES-GCM tag verification failed")
            raise DecryptionError("Invalid authentication tag (wrong password?)") from exc


__all__ = ["SymmetricCipher", "KEY_LEN", "NONCE_LEN", "TAG_LEN"]
