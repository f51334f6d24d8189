# -*- coding: utf-8 -*-
"""
RU: Адаптер keyring: записи ``<name>.info`` (ключ в любом из двух форматов) и индекс
``<hex(address)>.address`` -> имя записи; выбор backend, ленивый запрос пароля.

EN: Keyring store adapter.

Entries:
    ``<name>.info``          encoded key (current or legacy encoding)
    ``<hex(address)>.address`` UTF-8 name of the owning ``.info`` entry

Writes are two sequential ``set`` calls (info first, then the address index);
there is no cross-entry transaction.

Example:
    >>> kr = Keyring.new(BackendType.MEMORY, "/tmp/kr")
    >>> kr.names()
    []
"""
from __future__ import annotations

import getpass
import logging
import sys
from typing import TYPE_CHECKING, Final, List, Optional, Union

from keyring_compat.codec import amino, decode_entry, proto
from keyring_compat.config import (
    ADDRESS_SUFFIX,
    INFO_SUFFIX,
    TEST_BACKEND_PASSWORD,
    BackendType,
    KeyringConfig,
)
from keyring_compat.exceptions import (
    AddressIndexMismatchError,
    DecodeError,
    KeyNotFoundError,
    StorageError,
)
from keyring_compat.kdf import DefaultKdfProvider
from keyring_compat.key import DeviceFinder, Key, strip_info_suffix, with_info_suffix
from keyring_compat.keys import is_pub_key
from keyring_compat.ledger import find_ledger_cosmos_app
from keyring_compat.legacy_info import LegacyInfo
from keyring_compat.protocols import PasswordFunc, StorageBackendProtocol
from keyring_compat.record import Record
from keyring_compat.secure_storage import FileEncryptedStorageBackend, MemoryStorageBackend
from keyring_compat.symmetric import SymmetricCipher
from keyring_compat.utils import hex_decode, hex_encode

if TYPE_CHECKING:
    from keyring_compat.migrate import MigrationReport

_LOGGER: Final = logging.getLogger(__name__)


def prompt_password_func(directory: str) -> PasswordFunc:
    """Password callback prompting on stderr for the keyring at ``directory``."""

    def _prompt(_: str) -> str:
        return getpass.getpass(f'Enter password for keyring "{directory}": ', stream=sys.stderr)

    return _prompt


def _fixed_password(_: str) -> str:
    return TEST_BACKEND_PASSWORD


def address_index_key(address: bytes) -> str:
    return hex_encode(address) + ADDRESS_SUFFIX


class Keyring:
    """
    Keyring over a flat storage backend.

    Use :meth:`new` to open one with a standard backend; the constructor takes
    any ``StorageBackendProtocol`` implementation.
    """

    def __init__(
        self,
        directory: str,
        storage: StorageBackendProtocol,
        *,
        config: Optional[KeyringConfig] = None,
        password_func: Optional[PasswordFunc] = None,
        device_finder: Optional[DeviceFinder] = None,
        backend: Optional[BackendType] = None,
    ) -> None:
        self._dir = directory
        self._backend = backend
        self._storage = storage
        self._config = config or KeyringConfig()
        self._password_func = password_func
        self._device_finder: DeviceFinder = device_finder or find_ledger_cosmos_app

    @classmethod
    def new(
        cls,
        backend: Union[BackendType, str],
        directory: str,
        password_func: Optional[PasswordFunc] = None,
        *,
        config: Optional[KeyringConfig] = None,
        device_finder: Optional[DeviceFinder] = None,
    ) -> "Keyring":
        """
        Open a keyring rooted at ``directory``.

        Args:
            backend: "file", "test" or "memory".
            directory: keyring directory.
            password_func: file backend password callback; defaults to a stderr prompt.
                Invoked lazily on the first operation that needs the key.
            config: keyring settings (defaults to ``KeyringConfig()``).
            device_finder: hardware device discovery for ledger keys.

        Raises:
            ValueError: unknown backend.
            StorageError: invalid directory.
        """
        backend = BackendType(backend)
        cfg = config or KeyringConfig()
        storage: StorageBackendProtocol
        if backend is BackendType.MEMORY:
            storage = MemoryStorageBackend()
        else:
            if backend is BackendType.TEST:
                password_func = _fixed_password
            elif password_func is None:
                password_func = prompt_password_func(directory)
            storage = FileEncryptedStorageBackend(
                directory,
                password_func=password_func,
                kdf=DefaultKdfProvider(cfg.kdf),
                cipher=SymmetricCipher(),
                salt_length=cfg.kdf.salt_length,
            )
        _LOGGER.debug("Opened %s keyring at %s", backend.value, directory)
        return cls(
            directory,
            storage,
            config=cfg,
            password_func=password_func,
            device_finder=device_finder,
            backend=backend,
        )

    @property
    def directory(self) -> str:
        return self._dir

    @property
    def backend(self) -> Optional[BackendType]:
        """Backend chosen by :meth:`new`; None for a caller-supplied storage."""
        return self._backend

    @property
    def config(self) -> KeyringConfig:
        return self._config

    @property
    def password_func(self) -> Optional[PasswordFunc]:
        return self._password_func

    def names(self) -> List[str]:
        """Names of all key entries (``.info`` suffix stripped)."""
        return [strip_info_suffix(k) for k in self._storage.keys() if k.endswith(INFO_SUFFIX)]

    def keys(self) -> List[Key]:
        """
        Decode every ``.info`` entry; other entries are skipped.

        Raises:
            DecodeError: an entry decodes in neither scheme.
        """
        return [self.get(k) for k in self._storage.keys() if k.endswith(INFO_SUFFIX)]

    def get(self, name: str) -> Key:
        """
        Fetch and decode the entry ``name`` (suffix optional).

        Raises:
            KeyNotFoundError: no such entry.
            DecodeError: entry decodes in neither scheme.
        """
        entry_name = with_info_suffix(name)
        data = self._read(entry_name)
        item = decode_entry(entry_name, data)
        return self._make_key(entry_name, item)

    def get_by_address(self, address: Union[bytes, bytearray, str]) -> Key:
        """
        Resolve a key through the address index.

        Args:
            address: raw address bytes or their hex text.

        Raises:
            KeyNotFoundError: no index entry for the address, or malformed hex.
            AddressIndexMismatchError: index points to a missing or non ``.info`` entry.
        """
        if isinstance(address, str):
            try:
                raw = hex_decode(address)
            except ValueError as exc:
                raise KeyNotFoundError(
                    f"invalid hex address {address!r}", stage="get-by-address"
                ) from exc
        else:
            raw = bytes(address)
        index_key = address_index_key(raw)
        target = self._read(index_key).decode("utf-8", errors="replace")
        if not target.endswith(INFO_SUFFIX):
            raise AddressIndexMismatchError(
                f"address index {index_key} points to {target!r}", stage="get-by-address"
            )
        try:
            return self.get(target)
        except KeyNotFoundError as exc:
            raise AddressIndexMismatchError(
                f"address index {index_key} points to a missing entry",
                key_name=target,
                stage="get-by-address",
            ) from exc

    def add_legacy(self, name: str, info: LegacyInfo) -> None:
        """Store ``info`` in the legacy encoding and index its address."""
        entry_name = with_info_suffix(name)
        data = amino.marshal_length_prefixed(info)
        self._write(entry_name, data, info.get_address())
        _LOGGER.info("Stored legacy-encoded key %r", entry_name)

    add_amino = add_legacy

    def add_record(self, name: str, record: Record) -> None:
        """
        Store ``record`` in the current encoding and index its address.

        Raises:
            DecodeError: record public key is not a public key value.
        """
        entry_name = with_info_suffix(name)
        data = proto.marshal_record(record)
        if not is_pub_key(record.pub_key):
            raise DecodeError("can't get pubkey from Record", key_name=entry_name)
        self._write(entry_name, data, record.pub_key.address())
        _LOGGER.info("Stored current-encoded key %r", entry_name)

    add_proto = add_record

    def migrate_proto_keys_to_amino(
        self,
        *,
        destination: Optional["Keyring"] = None,
        password_func: Optional[PasswordFunc] = None,
    ) -> "MigrationReport":
        """See :func:`keyring_compat.migrate.migrate_proto_keys_to_amino`."""
        from keyring_compat.migrate import migrate_proto_keys_to_amino

        return migrate_proto_keys_to_amino(
            self, destination=destination, password_func=password_func
        )

    # Internals

    def _make_key(self, entry_name: str, item: Union[Record, LegacyInfo]) -> Key:
        return Key(
            entry_name,
            item,
            policy=self._config.unsupported_policy,
            device_finder=self._device_finder,
        )

    def _read(self, entry_name: str) -> bytes:
        try:
            return self._storage.get(entry_name)
        except KeyError as exc:
            raise KeyNotFoundError(
                f"{entry_name} not found", key_name=entry_name, stage="get"
            ) from exc

    def _write(self, entry_name: str, data: bytes, address: bytes) -> None:
        self._storage.set(entry_name, data)
        try:
            self._storage.set(address_index_key(address), entry_name.encode("utf-8"))
        except StorageError:
            _LOGGER.error("Entry %r stored but its address index was not", entry_name)
            raise


__all__ = ["Keyring", "prompt_password_func", "address_index_key"]
