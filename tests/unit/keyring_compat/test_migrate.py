# tests/unit/keyring_compat/test_migrate.py
from __future__ import annotations

import shutil
from pathlib import Path
from typing import Dict

import pytest

from keyring_compat.config import BackendType, KeyringConfig, UnsupportedKeyPolicy
from keyring_compat.exceptions import (
    MigrationError,
    UnsupportedKeyTypeAbort,
    UnsupportedKeyTypeError,
)
from keyring_compat.hd import BIP44Params
from keyring_compat.key import legacy_info_from_record
from keyring_compat.keyring import Keyring
from keyring_compat.keys import Ed25519PrivKey, Secp256k1PrivKey
from keyring_compat.migrate import MigrationOutcome, migrate_proto_keys_to_amino
from keyring_compat.record import new_ledger_record, new_local_record, new_offline_record


def _snapshot(directory: Path) -> Dict[str, bytes]:
    return {p.name: p.read_bytes() for p in directory.iterdir() if p.is_file()}


@pytest.fixture
def source(
    tmp_path: Path,
    fast_config: KeyringConfig,
    ed_priv: Ed25519PrivKey,
    secp_priv: Secp256k1PrivKey,
    ledger_path: BIP44Params,
) -> Keyring:
    kr = Keyring.new(BackendType.TEST, str(tmp_path), config=fast_config)
    kr.add_record("local", new_local_record("local", ed_priv, ed_priv.pub_key()))
    kr.add_record("hw", new_ledger_record("hw", secp_priv.pub_key(), ledger_path))
    legacy = Ed25519PrivKey.from_secret(b"legacy")
    kr.add_legacy("old", legacy_info_from_record(new_local_record("old", legacy, legacy.pub_key())))
    return kr


def test_migration_is_non_destructive(tmp_path: Path, source: Keyring) -> None:
    before = _snapshot(tmp_path)
    report = source.migrate_proto_keys_to_amino()
    assert _snapshot(tmp_path) == before

    assert sorted(report.migrated) == ["hw", "local"]
    assert report.already_legacy == ["old"]
    assert report.destination_dir == str(tmp_path / "amino")

    dest = Keyring.new(BackendType.TEST, str(tmp_path / "amino"), config=source.config)
    assert dest.names() == ["hw", "local"]
    for name in ("hw", "local"):
        migrated = dest.get(name)
        original = source.get(name)
        assert migrated.is_amino_encoded()
        assert migrated.address() == original.address()
        assert migrated.type() is original.type()
    assert dest.get("local").sign(b"msg") == source.get("local").sign(b"msg")
    assert dest.get("hw").get_bip44_path() == source.get("hw").get_bip44_path()


def test_report_render(source: Keyring) -> None:
    report = migrate_proto_keys_to_amino(source)
    text = report.render()
    assert "already amino encoded" in text
    assert "re-encoded to amino keyring" in text
    assert text.splitlines()[-1] == "2 migrated, 1 already legacy"
    outcomes = {e.name: e.outcome for e in report.entries}
    assert outcomes["old"] is MigrationOutcome.ALREADY_LEGACY
    assert all(e.address.startswith("cosmos1") for e in report.entries)


def test_explicit_destination(source: Keyring) -> None:
    dest = Keyring.new(BackendType.MEMORY, "/elsewhere")
    report = migrate_proto_keys_to_amino(source, destination=dest)
    assert report.destination_dir == "/elsewhere"
    assert dest.names() == ["hw", "local"]


def test_offline_key_stops_migration(tmp_path: Path, fast_config: KeyringConfig, ed_priv: Ed25519PrivKey) -> None:
    kr = Keyring.new(BackendType.TEST, str(tmp_path), config=fast_config)
    kr.add_record("watch", new_offline_record("watch", ed_priv.pub_key()))
    with pytest.raises(MigrationError) as ei:
        kr.migrate_proto_keys_to_amino()
    assert ei.value.key_name == "watch"
    assert isinstance(ei.value.__cause__, UnsupportedKeyTypeError)


def test_abort_policy_propagates(tmp_path: Path, fast_config: KeyringConfig, ed_priv: Ed25519PrivKey) -> None:
    cfg = KeyringConfig(unsupported_policy=UnsupportedKeyPolicy.ABORT, kdf=fast_config.kdf)
    kr = Keyring.new(BackendType.TEST, str(tmp_path), config=cfg)
    kr.add_record("watch", new_offline_record("watch", ed_priv.pub_key()))
    with pytest.raises(UnsupportedKeyTypeAbort):
        kr.migrate_proto_keys_to_amino()


def test_listing_failure(tmp_path: Path, fast_config: KeyringConfig) -> None:
    kr = Keyring.new(BackendType.MEMORY, str(tmp_path), config=fast_config)
    kr._storage.set("junk.info", b"\xff\xff\xff")  # type: ignore[attr-defined]
    with pytest.raises(MigrationError) as ei:
        migrate_proto_keys_to_amino(kr, destination=Keyring.new(BackendType.MEMORY, "/d"))
    assert ei.value.stage == "list"


def test_migrated_entry_copied_back_is_readable(tmp_path: Path, source: Keyring) -> None:
    original = source.get("local")
    source.migrate_proto_keys_to_amino()
    shutil.copy(tmp_path / "amino" / "local.info", tmp_path / "local.info")

    reopened = Keyring.new(BackendType.TEST, str(tmp_path), config=source.config)
    restored = reopened.get("local")
    assert restored.is_amino_encoded()
    assert restored.address() == original.address()
    assert restored.sign(b"msg") == original.sign(b"msg")
    assert reopened.get_by_address(original.address()) == reopened.get("local")


def test_memory_source_needs_destination(tmp_path: Path, ed_priv: Ed25519PrivKey) -> None:
    kr = Keyring.new(BackendType.MEMORY, str(tmp_path))
    kr.add_record("local", new_local_record("local", ed_priv, ed_priv.pub_key()))
    with pytest.raises(MigrationError) as ei:
        kr.migrate_proto_keys_to_amino()
    assert ei.value.stage == "destination"
    assert not (tmp_path / "amino").exists()
