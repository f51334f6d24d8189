# -*- coding: utf-8 -*-
"""
RU: Backend'ы хранилища keyring: зашифрованные файлы (AES-256-GCM, один файл на запись,
атомарная запись, ленивый запрос пароля) и хранилище в памяти процесса.

EN: Keyring storage backends: encrypted files (AES-256-GCM, one file per
entry, atomic writes, lazy password prompt) and an in-process memory store.

Design:
- Both implement StorageBackendProtocol (keys/get/set).
- On-disk entry format: JSON
  ``{"v": 2, "s": base64(salt), "n": base64(nonce), "c": base64(ciphertext||tag)}``
  in a file named after the entry key (``alice.info``, ``<hex>.address``).
  Version 1 entries (no ``"s"``) use the directory salt.
- The entry key is authenticated as AAD.
- Each entry key is derived from the keyring password and the salt stored in
  the entry. New entries take the directory salt (``.salt``, base64), so an
  entry file copied between keyrings with the same password stays readable.
- The password callback runs once, on the first operation that needs a key;
  listing entries never prompts.
- Atomic writes via temp file + os.replace, then 0600 permissions.

Thread-safety:
- A re-entrant lock (RLock) guards key derivation and read-modify-write.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
import sys
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Final, List, Optional, Tuple

from keyring_compat.exceptions import (
    DecryptionError,
    EncryptionError,
    KdfError,
    StorageError,
    StorageReadError,
    StorageWriteError,
)
from keyring_compat.kdf import generate_salt
from keyring_compat.protocols import KdfProtocol, PasswordFunc, SymmetricCipherProtocol
from keyring_compat.utils import set_secure_file_permissions

_LOGGER: Final = logging.getLogger(__name__)

_CURRENT_FORMAT_VERSION: Final[int] = 2
_KEY_LEN: Final[int] = 32
SALT_FILENAME: Final[str] = ".salt"

# Platform-specific file locking
if sys.platform == "win32":
    import msvcrt

    def _lock_file(fd: int) -> None:
        """Acquire exclusive lock on Windows."""
        msvcrt.locking(fd, msvcrt.LK_NBLCK, 1)

else:
    import fcntl

    def _lock_file(fd: int) -> None:
        """Acquire exclusive lock on POSIX."""
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)


def _b64e(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _b64d(text: str) -> bytes:
    return base64.b64decode(text.encode("ascii"), validate=True)


def _validate_entry_key(key: str) -> None:
    if not isinstance(key, str) or not key:
        raise ValueError("entry key must be a non-empty string")
    if key.startswith(".") or "/" in key or "\\" in key or "\x00" in key:
        raise ValueError(f"invalid entry key {key!r}")


def _atomic_write(path: Path, data: bytes) -> None:
    """Write to a temp file in the same directory and replace ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd: Optional[int] = None
    tmp_path: Optional[str] = None
    try:
        fd, tmp_path = tempfile.mkstemp(prefix=".entry-", suffix=".tmp", dir=str(path.parent))
        with os.fdopen(fd, "wb") as tmp_f:
            fd = None  # fd now managed by file object
            _lock_file(tmp_f.fileno())
            tmp_f.write(data)
            tmp_f.flush()
            os.fsync(tmp_f.fileno())
        Path(tmp_path).replace(path)
        tmp_path = None
        set_secure_file_permissions(str(path))
    finally:
        if fd is not None:
            os.close(fd)
        if tmp_path and Path(tmp_path).exists():
            Path(tmp_path).unlink()


class FileEncryptedStorageBackend:
    """
    Directory of encrypted entry files.

    Args:
        directory: keyring directory (created on first write).
        password_func: called with the directory path, returns the password.
        kdf: password -> 32-byte key provider.
        cipher: AES-256-GCM provider.
        salt_length: length of a newly created salt.

    Raises:
        StorageError: on invalid initialization parameters.
    """

    __slots__ = ("_dir", "_password_func", "_kdf", "_cipher", "_salt_length", "_lock", "_password", "_keys")

    def __init__(
        self,
        directory: str,
        *,
        password_func: PasswordFunc,
        kdf: KdfProtocol,
        cipher: SymmetricCipherProtocol,
        salt_length: int = 16,
    ) -> None:
        if not isinstance(directory, str) or not directory:
            raise StorageError("Invalid keyring directory")
        self._dir: Path = Path(directory).resolve()
        self._password_func = password_func
        self._kdf = kdf
        self._cipher = cipher
        self._salt_length = salt_length
        self._lock = threading.RLock()
        self._password: Optional[str] = None
        self._keys: Dict[bytes, bytes] = {}

    @property
    def directory(self) -> str:
        return str(self._dir)

    def keys(self) -> List[str]:
        """Entry keys present in the directory (hidden and temp files excluded)."""
        if not self._dir.is_dir():
            return []
        with self._lock:
            try:
                return sorted(
                    p.name
                    for p in self._dir.iterdir()
                    if p.is_file() and not p.name.startswith(".")
                )
            except OSError as exc:
                _LOGGER.error("Keyring listing failed: %s", exc.__class__.__name__)
                raise StorageReadError("Failed to list keyring directory") from exc

    def get(self, key: str) -> bytes:
        """
        Decrypt and return the entry ``key``.

        Raises:
            KeyError: entry does not exist.
            StorageReadError: malformed file, wrong password or tampered data.
        """
        try:
            _validate_entry_key(key)
        except ValueError as exc:
            raise StorageReadError(str(exc)) from exc

        path = self._dir / key
        with self._lock:
            if not path.is_file():
                raise KeyError(key)
            try:
                rec = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                _LOGGER.error("Keyring read error for '%s': %s", key, exc.__class__.__name__)
                raise StorageReadError("Failed to read keyring entry") from exc

            salt, nonce, combined = self._parse_record(key, rec)
            if salt is None:
                salt = self._load_or_create_salt()
            try:
                return self._cipher.decrypt(
                    self._encryption_key(salt), nonce, combined, key.encode("utf-8")
                )
            except DecryptionError as exc:
                _LOGGER.error("Keyring entry '%s' failed authentication", key)
                raise StorageReadError(
                    "Load operation failed (wrong password or corrupted entry)"
                ) from exc

    def set(self, key: str, data: bytes) -> None:
        """
        Encrypt and persist ``data`` under ``key``.

        Raises:
            StorageWriteError: on invalid key or write failure.
        """
        try:
            _validate_entry_key(key)
        except ValueError as exc:
            raise StorageWriteError(str(exc)) from exc
        if not isinstance(data, (bytes, bytearray)):
            raise StorageWriteError("Data must be bytes-like")

        with self._lock:
            try:
                salt = self._load_or_create_salt()
                nonce, combined = self._cipher.encrypt(
                    self._encryption_key(salt), bytes(data), key.encode("utf-8")
                )
                record = {
                    "v": _CURRENT_FORMAT_VERSION,
                    "s": _b64e(salt),
                    "n": _b64e(nonce),
                    "c": _b64e(combined),
                }
                payload = json.dumps(record, sort_keys=True, separators=(",", ":"))
                _atomic_write(self._dir / key, payload.encode("utf-8"))
            except (OSError, EncryptionError) as exc:
                _LOGGER.error("Keyring save failed for '%s': %s", key, exc.__class__.__name__)
                raise StorageWriteError("Save operation failed") from exc
        _LOGGER.info("Keyring entry '%s' saved.", key)

    # Internals

    @staticmethod
    def _parse_record(key: str, rec: Any) -> Tuple[Optional[bytes], bytes, bytes]:
        """Return (salt, nonce, ciphertext||tag); salt is None for version 1 entries."""
        if not isinstance(rec, dict):
            raise StorageReadError("Invalid keyring entry format")
        version = rec.get("v", 0)
        if not isinstance(version, int) or version > _CURRENT_FORMAT_VERSION:
            _LOGGER.error("Unsupported entry version %r for '%s'", version, key)
            raise StorageReadError(f"Unsupported entry version: {version!r}")
        nonce_str, combined_str = rec.get("n"), rec.get("c")
        if not isinstance(nonce_str, str) or not isinstance(combined_str, str):
            raise StorageReadError("Malformed keyring entry")
        salt_str = rec.get("s")
        if version >= 2 and not isinstance(salt_str, str):
            raise StorageReadError("Malformed keyring entry")
        try:
            salt = _b64d(salt_str) if isinstance(salt_str, str) else None
            return salt, _b64d(nonce_str), _b64d(combined_str)
        except (binascii.Error, ValueError) as exc:
            raise StorageReadError("Malformed keyring entry") from exc

    def _encryption_key(self, salt: bytes) -> bytes:
        # entries copied in from another directory carry their own salt
        with self._lock:
            key = self._keys.get(salt)
            if key is None:
                if self._password is None:
                    self._password = self._password_func(str(self._dir))
                try:
                    key = self._kdf.derive_key(self._password, salt, _KEY_LEN)
                except KdfError:
                    _LOGGER.error("Key derivation failed for keyring %s", self._dir)
                    raise
                self._keys[salt] = key
            return key

    def _load_or_create_salt(self) -> bytes:
        path = self._dir / SALT_FILENAME
        if path.is_file():
            try:
                return _b64d(path.read_text(encoding="ascii").strip())
            except (OSError, ValueError, binascii.Error) as exc:
                _LOGGER.error("Invalid salt file in %s", self._dir)
                raise StorageReadError("Invalid salt file") from exc
        salt = generate_salt(self._salt_length)
        try:
            _atomic_write(path, _b64e(salt).encode("ascii"))
        except OSError as exc:
            raise StorageWriteError("Failed to create salt file") from exc
        _LOGGER.debug("Created salt for keyring %s", self._dir)
        return salt


class MemoryStorageBackend:
    """
    In-process store; nothing touches disk.

    Examples:
        >>> store = MemoryStorageBackend()
        >>> store.set("a.info", b"x")
        >>> store.keys(), store.get("a.info")
        (['a.info'], b'x')
    """

    __slots__ = ("_items", "_lock")

    def __init__(self) -> None:
        self._items: Dict[str, bytes] = {}
        self._lock = threading.RLock()

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._items)

    def get(self, key: str) -> bytes:
        with self._lock:
            return self._items[key]

    def set(self, key: str, data: bytes) -> None:
        if not isinstance(data, (bytes, bytearray)):
            raise StorageWriteError("Data must be bytes-like")
        with self._lock:
            self._items[key] = bytes(data)


__all__ = [
    "FileEncryptedStorageBackend",
    "MemoryStorageBackend",
    "SALT_FILENAME",
]
