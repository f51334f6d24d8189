# tests/unit/keyring_compat/test_storage.py
from __future__ import annotations

import base64
import json
import shutil
import stat
import sys
from pathlib import Path

import pytest

from keyring_compat.config import KdfAlgorithm, KdfConfig
from keyring_compat.exceptions import (
    DecryptionError,
    EncryptionError,
    KdfError,
    StorageError,
    StorageReadError,
    StorageWriteError,
)
from keyring_compat.kdf import DefaultKdfProvider, generate_salt
from keyring_compat.secure_storage import (
    SALT_FILENAME,
    FileEncryptedStorageBackend,
    MemoryStorageBackend,
)
from keyring_compat.symmetric import NONCE_LEN, TAG_LEN, SymmetricCipher

FAST_KDF = KdfConfig(algorithm=KdfAlgorithm.PBKDF2, pbkdf2_iterations=100_000)


def _backend(directory: Path, password: str = "pw") -> FileEncryptedStorageBackend:
    return FileEncryptedStorageBackend(
        str(directory),
        password_func=lambda _: password,
        kdf=DefaultKdfProvider(FAST_KDF),
        cipher=SymmetricCipher(),
    )


# --- symmetric ---


def test_cipher_roundtrip_with_aad() -> None:
    cipher = SymmetricCipher()
    key = b"k" * 32
    nonce, combined = cipher.encrypt(key, b"payload", b"a.info")
    assert len(nonce) == NONCE_LEN
    assert len(combined) == len(b"payload") + TAG_LEN
    assert cipher.decrypt(key, nonce, combined, b"a.info") == b"payload"
    with pytest.raises(DecryptionError):
        cipher.decrypt(key, nonce, combined, b"b.info")
    with pytest.raises(DecryptionError):
        cipher.decrypt(b"x" * 32, nonce, combined, b"a.info")


def test_cipher_rejects_bad_key_and_wipes_plaintext() -> None:
    cipher = SymmetricCipher()
    with pytest.raises(EncryptionError):
        cipher.encrypt(b"short", b"data")
    buf = bytearray(b"secret")
    cipher.encrypt(b"k" * 32, buf)
    assert buf == bytearray(len(b"secret"))


# --- kdf ---


def test_pbkdf2_is_deterministic() -> None:
    kdf = DefaultKdfProvider(FAST_KDF)
    a = kdf.derive_key("password", b"saltsalt", 32)
    assert a == kdf.derive_key(b"password", b"saltsalt", 32)
    assert a != kdf.derive_key("password", b"saltsal2", 32)


def test_argon2id_derivation() -> None:
    kdf = DefaultKdfProvider(KdfConfig())
    key = kdf.derive_key("password", b"0123456789abcdef", 32)
    assert len(key) == 32
    assert key != DefaultKdfProvider(FAST_KDF).derive_key("password", b"0123456789abcdef", 32)


def test_kdf_wipes_bytearray_password() -> None:
    pw = bytearray(b"password")
    DefaultKdfProvider(FAST_KDF).derive_key(pw, b"saltsalt")
    assert pw == bytearray(8)


@pytest.mark.parametrize(
    "salt,length",
    [(b"short", 32), (b"s" * 65, 32), (b"saltsalt", 8), (b"saltsalt", 65)],
)
def test_kdf_parameter_checks(salt: bytes, length: int) -> None:
    with pytest.raises(KdfError):
        DefaultKdfProvider(FAST_KDF).derive_key("pw", salt, length)


def test_generate_salt() -> None:
    assert len(generate_salt(16)) == 16
    with pytest.raises(KdfError):
        generate_salt(4)


# --- file backend ---


def test_file_backend_roundtrip(tmp_path: Path) -> None:
    store = _backend(tmp_path / "kr")
    assert store.keys() == []
    store.set("alice.info", b"\x00\x01binary")
    assert store.get("alice.info") == b"\x00\x01binary"
    assert store.keys() == ["alice.info"]
    assert (tmp_path / "kr" / SALT_FILENAME).is_file()

    raw = json.loads((tmp_path / "kr" / "alice.info").read_text())
    assert raw["v"] == 2
    assert set(raw) == {"v", "s", "n", "c"}
    assert raw["s"] == (tmp_path / "kr" / SALT_FILENAME).read_text()

    reopened = _backend(tmp_path / "kr")
    assert reopened.get("alice.info") == b"\x00\x01binary"


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
def test_file_backend_permissions(tmp_path: Path) -> None:
    store = _backend(tmp_path)
    store.set("alice.info", b"x")
    mode = stat.S_IMODE((tmp_path / "alice.info").stat().st_mode)
    assert mode == 0o600


def test_renamed_entry_fails_authentication(tmp_path: Path) -> None:
    store = _backend(tmp_path)
    store.set("alice.info", b"x")
    (tmp_path / "alice.info").rename(tmp_path / "bob.info")
    with pytest.raises(StorageReadError):
        store.get("bob.info")


def test_wrong_password(tmp_path: Path) -> None:
    _backend(tmp_path, "right").set("alice.info", b"x")
    with pytest.raises(StorageReadError):
        _backend(tmp_path, "wrong").get("alice.info")


def test_missing_entry_is_key_error(tmp_path: Path) -> None:
    with pytest.raises(KeyError):
        _backend(tmp_path).get("nobody.info")


@pytest.mark.parametrize("name", ["", ".hidden", "a/b", "a\x00b"])
def test_invalid_entry_names(tmp_path: Path, name: str) -> None:
    store = _backend(tmp_path)
    with pytest.raises(StorageWriteError):
        store.set(name, b"x")
    with pytest.raises(StorageReadError):
        store.get(name)


@pytest.mark.parametrize(
    "content",
    ["not json", "[]", '{"v": 99, "n": "", "c": ""}', '{"v": 1, "n": 1, "c": "x"}', '{"v": 1, "n": "!!", "c": "!!"}'],
)
def test_malformed_entry_file(tmp_path: Path, content: str) -> None:
    store = _backend(tmp_path)
    store.set("alice.info", b"x")
    (tmp_path / "alice.info").write_text(content)
    with pytest.raises(StorageReadError):
        store.get("alice.info")


def test_invalid_directory() -> None:
    with pytest.raises(StorageError):
        FileEncryptedStorageBackend(
            "",
            password_func=lambda _: "pw",
            kdf=DefaultKdfProvider(FAST_KDF),
            cipher=SymmetricCipher(),
        )


def test_password_requested_once(tmp_path: Path) -> None:
    calls = []

    def _pw(directory: str) -> str:
        calls.append(directory)
        return "pw"

    store = FileEncryptedStorageBackend(
        str(tmp_path),
        password_func=_pw,
        kdf=DefaultKdfProvider(FAST_KDF),
        cipher=SymmetricCipher(),
    )
    store.set("a.info", b"1")
    store.set("b.info", b"2")
    store.get("a.info")
    assert calls == [str(tmp_path.resolve())]


def test_entry_copied_between_directories(tmp_path: Path) -> None:
    src = _backend(tmp_path / "a")
    src.set("alice.info", b"payload")
    dst = _backend(tmp_path / "b")
    dst.set("bob.info", b"other")
    assert (tmp_path / "a" / SALT_FILENAME).read_bytes() != (tmp_path / "b" / SALT_FILENAME).read_bytes()

    shutil.copy(tmp_path / "a" / "alice.info", tmp_path / "b" / "alice.info")
    assert dst.get("alice.info") == b"payload"
    assert _backend(tmp_path / "b").get("alice.info") == b"payload"


def test_copied_entry_needs_same_password(tmp_path: Path) -> None:
    _backend(tmp_path / "a", "one").set("alice.info", b"payload")
    dst = _backend(tmp_path / "b", "two")
    dst.set("bob.info", b"other")
    shutil.copy(tmp_path / "a" / "alice.info", tmp_path / "b" / "alice.info")
    with pytest.raises(StorageReadError):
        dst.get("alice.info")


def test_version_1_entry_uses_directory_salt(tmp_path: Path) -> None:
    store = _backend(tmp_path)
    store.set("bob.info", b"x")
    salt = base64.b64decode((tmp_path / SALT_FILENAME).read_text())
    key = DefaultKdfProvider(FAST_KDF).derive_key("pw", salt, 32)
    nonce, combined = SymmetricCipher().encrypt(key, b"old format", b"alice.info")
    (tmp_path / "alice.info").write_text(
        json.dumps(
            {
                "v": 1,
                "n": base64.b64encode(nonce).decode(),
                "c": base64.b64encode(combined).decode(),
            }
        )
    )
    assert _backend(tmp_path).get("alice.info") == b"old format"


def test_version_2_entry_requires_salt(tmp_path: Path) -> None:
    store = _backend(tmp_path)
    store.set("alice.info", b"x")
    raw = json.loads((tmp_path / "alice.info").read_text())
    del raw["s"]
    (tmp_path / "alice.info").write_text(json.dumps(raw))
    with pytest.raises(StorageReadError):
        store.get("alice.info")


# --- memory backend ---


def test_memory_backend() -> None:
    store = MemoryStorageBackend()
    store.set("b", b"2")
    store.set("a", bytearray(b"1"))
    assert store.keys() == ["a", "b"]
    assert store.get("a") == b"1"
    with pytest.raises(KeyError):
        store.get("c")
    with pytest.raises(StorageWriteError):
        store.set("c", "text")  # type: ignore[arg-type]
