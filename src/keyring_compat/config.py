# -*- coding: utf-8 -*-
"""
RU: Конфигурация keyring: тип backend, политика для неподдерживаемых типов ключей, параметры KDF.
EN: Keyring configuration: backend type, unsupported key type policy, KDF parameters.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Final, Mapping, Optional


class BackendType(str, Enum):
    """Storage backends a keyring can be opened with."""

    # Encrypted files in the keyring directory, password prompted lazily
    FILE = "file"

    # File backend with the fixed password "test" (no prompt)
    TEST = "test"

    # Process memory only
    MEMORY = "memory"


class UnsupportedKeyPolicy(str, Enum):
    """
    Severity applied when a multisig/offline key reaches conversion or signing.

    RAISE: ordinary ``UnsupportedKeyTypeError`` (recoverable).
    ABORT: ``UnsupportedKeyTypeAbort`` (BaseException, escapes ``except Exception``).
    """

    RAISE = "raise"
    ABORT = "abort"


class KdfAlgorithm(str, Enum):
    ARGON2ID = "argon2id"
    PBKDF2 = "pbkdf2"


@dataclass(frozen=True)
class KdfConfig:
    """
    Password-to-key derivation parameters for the file backend.

    Attributes:
        algorithm: argon2id (default) or pbkdf2.
        time_cost: Argon2id iterations.
        memory_cost: Argon2id memory in KiB.
        parallelism: Argon2id lanes.
        pbkdf2_iterations: PBKDF2-HMAC-SHA256 iterations.
        salt_length: salt length in bytes.

    Examples:
        >>> KdfConfig().algorithm
        <KdfAlgorithm.ARGON2ID: 'argon2id'>
        >>> KdfConfig(algorithm=KdfAlgorithm.PBKDF2).pbkdf2_iterations
        200000
    """

    algorithm: KdfAlgorithm = KdfAlgorithm.ARGON2ID
    time_cost: int = 3
    memory_cost: int = 65536  # 64 MiB
    parallelism: int = 2
    pbkdf2_iterations: int = 200_000
    salt_length: int = 16

    def __post_init__(self) -> None:
        """Validate parameters."""
        if self.time_cost < 2:
            raise ValueError("time_cost must be >= 2")
        if self.memory_cost < 65536:
            raise ValueError("memory_cost must be >= 65536 KiB (64 MiB)")
        if self.parallelism < 1:
            raise ValueError("parallelism must be >= 1")
        if self.pbkdf2_iterations < 100_000:
            raise ValueError("pbkdf2_iterations must be >= 100000")
        if self.salt_length < 8 or self.salt_length > 64:
            raise ValueError("salt_length must be between 8 and 64 bytes")


INFO_SUFFIX: Final[str] = ".info"
ADDRESS_SUFFIX: Final[str] = ".address"
DEFAULT_BECH32_PREFIX: Final[str] = "cosmos"
DEFAULT_MIGRATION_SUBDIR: Final[str] = "amino"
TEST_BACKEND_PASSWORD: Final[str] = "test"

_ENV_POLICY: Final[str] = "KEYRING_COMPAT_UNSUPPORTED_POLICY"
_ENV_KDF: Final[str] = "KEYRING_COMPAT_KDF"


@dataclass(frozen=True)
class KeyringConfig:
    """
    Keyring-wide settings.

    Attributes:
        unsupported_policy: severity for multisig/offline keys on convert/sign.
        bech32_prefix: default human-readable prefix for addresses.
        migration_subdir: sub-directory (of the source keyring) receiving migrated keys.
        kdf: file backend KDF parameters.
    """

    unsupported_policy: UnsupportedKeyPolicy = UnsupportedKeyPolicy.RAISE
    bech32_prefix: str = DEFAULT_BECH32_PREFIX
    migration_subdir: str = DEFAULT_MIGRATION_SUBDIR
    kdf: KdfConfig = field(default_factory=KdfConfig)

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> "KeyringConfig":
        """
        Build a configuration from environment variables.

        ``KEYRING_COMPAT_UNSUPPORTED_POLICY``: "raise" | "abort".
        ``KEYRING_COMPAT_KDF``: "argon2id" | "pbkdf2".

        Raises:
            ValueError: on unknown values.
        """
        env = os.environ if environ is None else environ
        cfg = KeyringConfig()
        policy = env.get(_ENV_POLICY)
        if policy:
            cfg = replace(cfg, unsupported_policy=UnsupportedKeyPolicy(policy.lower()))
        kdf = env.get(_ENV_KDF)
        if kdf:
            cfg = replace(cfg, kdf=replace(cfg.kdf, algorithm=KdfAlgorithm(kdf.lower())))
        return cfg


__all__ = [
    "BackendType",
    "UnsupportedKeyPolicy",
    "KdfAlgorithm",
    "KdfConfig",
    "KeyringConfig",
    "INFO_SUFFIX",
    "ADDRESS_SUFFIX",
    "DEFAULT_BECH32_PREFIX",
    "DEFAULT_MIGRATION_SUBDIR",
    "TEST_BACKEND_PASSWORD",
]
