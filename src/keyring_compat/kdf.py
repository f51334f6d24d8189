# -*- coding: utf-8 -*-
"""
RU: Вывод ключа шифрования файлового keyring из пароля: Argon2id (по умолчанию) или PBKDF2-HMAC-SHA256.

EN: Keyring password -> file encryption key: Argon2id (default) or
PBKDF2-HMAC-SHA256, driven by ``KdfConfig``.
"""
from __future__ import annotations

import hashlib
import logging
import secrets
from typing import Final, Union

from argon2.exceptions import HashingError
from argon2.low_level import Type, hash_secret_raw

from keyring_compat.config import KdfAlgorithm, KdfConfig
from keyring_compat.exceptions import KdfError
from keyring_compat.utils import zero_memory

_LOGGER: Final = logging.getLogger(__name__)

_MIN_SALT_LEN: Final[int] = 8
_MAX_SALT_LEN: Final[int] = 64
_MIN_OUT_LEN: Final[int] = 16
_MAX_OUT_LEN: Final[int] = 64

Password = Union[str, bytes, bytearray]


def generate_salt(length: int = 16) -> bytes:
    """
    Random salt of ``length`` bytes.

    Raises:
        KdfError: if length out of 8..64.
    """
    if length < _MIN_SALT_LEN or length > _MAX_SALT_LEN:
        raise KdfError("Salt length must be between 8 and 64 bytes", stage="kdf")
    return secrets.token_bytes(length)


class DefaultKdfProvider:
    """
    Key derivation provider for the file backend.

    Examples:
        >>> from keyring_compat.config import KdfConfig, KdfAlgorithm
        >>> kdf = DefaultKdfProvider(KdfConfig(algorithm=KdfAlgorithm.PBKDF2))
        >>> len(kdf.derive_key("password", b"salt1234", 32))
        32
    """

    __slots__ = ("_config",)

    def __init__(self, config: KdfConfig) -> None:
        self._config = config

    @property
    def config(self) -> KdfConfig:
        return self._config

    def derive_key(self, password: Password, salt: bytes, length: int = 32) -> bytes:
        """
        Derive ``length`` key bytes from ``password`` and ``salt``.

        A bytearray password is wiped after use.

        Raises:
            KdfError: on invalid parameters or algorithm failure.
        """
        if not isinstance(salt, (bytes, bytearray)):
            raise KdfError("Salt must be bytes", stage="kdf")
        if len(salt) < _MIN_SALT_LEN or len(salt) > _MAX_SALT_LEN:
            raise KdfError("Salt length must be between 8 and 64 bytes", stage="kdf")
        if length < _MIN_OUT_LEN or length > _MAX_OUT_LEN:
            raise KdfError("Output length must be between 16 and 64 bytes", stage="kdf")

        try:
            if isinstance(password, str):
                pw_bytes = password.encode("utf-8")
            elif isinstance(password, (bytes, bytearray)):
                pw_bytes = bytes(password)
            else:
                raise KdfError("Password must be str, bytes or bytearray", stage="kdf")

            if self._config.algorithm is KdfAlgorithm.PBKDF2:
                return self._derive_pbkdf2(pw_bytes, bytes(salt), length)
            return self._derive_argon2id(pw_bytes, bytes(salt), length)
        finally:
            if isinstance(password, bytearray):
                zero_memory(password)

    def _derive_pbkdf2(self, pw: bytes, salt: bytes, length: int) -> bytes:
        iterations = self._config.pbkdf2_iterations
        dk = hashlib.pbkdf2_hmac("sha256", pw, salt, iterations, dklen=length)
        _LOGGER.debug("PBKDF2 derivation completed (iters=%d)", iterations)
        return dk

    def _derive_argon2id(self, pw: bytes, salt: bytes, length: int) -> bytes:
        cfg = self._config
        try:
            dk: bytes = hash_secret_raw(
                secret=pw,
                salt=salt,
                time_cost=cfg.time_cost,
                memory_cost=cfg.memory_cost,
                parallelism=cfg.parallelism,
                hash_len=length,
                type=Type.ID,
                version=19,
            )
        except HashingError as exc:
            _LOGGER.error("Argon2id derivation failed: %s", exc.__class__.__name__)
            raise KdfError("Argon2id failed", stage="kdf") from exc
        _LOGGER.debug(
            "Argon2id derivation completed (t=%d, m=%d)", cfg.time_cost, cfg.memory_cost
        )
        return dk


__all__ = ["DefaultKdfProvider", "generate_salt", "Password"]
