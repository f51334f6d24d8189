# tests/unit/keyring_compat/test_amino.py
from __future__ import annotations

import pytest

from keyring_compat.codec import amino
from keyring_compat.exceptions import CodecError, KeyringError
from keyring_compat.hd import BIP44Params
from keyring_compat.keys import (
    Ed25519PrivKey,
    LegacyAminoPubKey,
    Secp256k1PrivKey,
)
from keyring_compat.legacy_info import (
    KeyType,
    LegacyLedgerInfo,
    LegacyLocalInfo,
    LegacyMultiInfo,
    LegacyOfflineInfo,
    MultisigPubKeyInfo,
    new_legacy_multi_info,
)


@pytest.mark.parametrize(
    "name,prefix",
    [
        ("tendermint/PubKeyEd25519", "1624de64"),
        ("tendermint/PrivKeyEd25519", "a3288910"),
        ("tendermint/PubKeySecp256k1", "eb5ae987"),
        ("tendermint/PrivKeySecp256k1", "e1b0f79b"),
        ("tendermint/PubKeyMultisigThreshold", "22c1f7e2"),
        ("crypto/keys/localInfo", "0dad153d"),
        ("crypto/keys/ledgerInfo", "a08cb0fb"),
        ("crypto/keys/offlineInfo", "1f4d3ed6"),
        ("crypto/keys/multiInfo", "34878fb8"),
    ],
)
def test_registered_prefixes(name: str, prefix: str) -> None:
    assert amino.name_to_prefix(name).hex() == prefix


@pytest.mark.parametrize("value", [0, 1, 127, 128, 300, 2**32, 2**63])
def test_uvarint(value: int) -> None:
    encoded = amino.encode_uvarint(value)
    assert amino.decode_uvarint(encoded, 0) == (value, len(encoded))


def test_bare_pubkey_layout(ed_priv: Ed25519PrivKey) -> None:
    pk = ed_priv.pub_key()
    bare = amino.marshal_bare(pk)
    assert bare == bytes.fromhex("1624de6420") + pk.key
    assert amino.unmarshal_bare(bare) == pk


def test_priv_key_armor(ed_priv: Ed25519PrivKey, secp_priv: Secp256k1PrivKey) -> None:
    assert amino.marshal_bare(ed_priv)[:5] == bytes.fromhex("a328891040")
    assert amino.unmarshal_priv_key(amino.marshal_bare(ed_priv)) == ed_priv
    assert amino.unmarshal_priv_key(amino.marshal_bare(secp_priv)) == secp_priv
    with pytest.raises(CodecError):
        amino.unmarshal_priv_key(amino.marshal_bare(ed_priv.pub_key()))


def test_local_info_encoding(ed_priv: Ed25519PrivKey) -> None:
    pk = ed_priv.pub_key()
    info = LegacyLocalInfo(
        name="alice",
        pub_key=pk,
        priv_key_armor=amino.marshal_bare(ed_priv),
        algo="ed25519",
    )
    data = amino.marshal_length_prefixed(info)
    bare = amino.marshal_info_bare(info)
    assert data == amino.encode_uvarint(len(bare)) + bare
    assert bare[:4].hex() == "0dad153d"
    # field 1 (name) comes first
    assert bare[4:11] == b"\x0a\x05alice"
    decoded = amino.unmarshal_length_prefixed(data)
    assert decoded == info
    assert decoded.get_type() is KeyType.LOCAL


def test_ledger_and_offline_infos(secp_priv: Secp256k1PrivKey) -> None:
    pk = secp_priv.pub_key()
    ledger = LegacyLedgerInfo("hw", pk, BIP44Params(account=4), "secp256k1")
    offline = LegacyOfflineInfo("watch", pk, "secp256k1")
    assert amino.unmarshal_length_prefixed(amino.marshal_length_prefixed(ledger)) == ledger
    assert amino.unmarshal_length_prefixed(amino.marshal_length_prefixed(offline)) == offline


def test_zero_fields_are_omitted(ed_priv: Ed25519PrivKey) -> None:
    info = LegacyOfflineInfo(name="", pub_key=ed_priv.pub_key(), algo="")
    bare = amino.marshal_info_bare(info)
    # only the pubkey field: tag 0x12, len 37, prefix+len+32 bytes
    assert bare[4] == 0x12
    assert len(bare) == 4 + 2 + 37


def test_length_prefix_must_cover_input(ed_priv: Ed25519PrivKey) -> None:
    info = LegacyOfflineInfo("watch", ed_priv.pub_key(), "ed25519")
    data = amino.marshal_length_prefixed(info)
    with pytest.raises(CodecError):
        amino.unmarshal_length_prefixed(data + b"\x00")
    with pytest.raises(CodecError):
        amino.unmarshal_length_prefixed(data[:-1])


def test_unknown_prefix_rejected() -> None:
    bare = b"\xde\xad\xbe\xef" + b"\x0a\x01x"
    with pytest.raises(CodecError):
        amino.unmarshal_length_prefixed(amino.encode_uvarint(len(bare)) + bare)


def test_multi_info_second_pass(ed_priv: Ed25519PrivKey, secp_priv: Secp256k1PrivKey) -> None:
    info = new_legacy_multi_info("multi", 1, (ed_priv.pub_key(), secp_priv.pub_key()))
    data = amino.marshal_length_prefixed(info)
    generic = amino.unmarshal_length_prefixed(data)
    assert isinstance(generic, LegacyMultiInfo)
    resolved = amino.unmarshal_multi_info(data)
    assert resolved == info
    assert isinstance(resolved.pub_key, LegacyAminoPubKey)
    assert resolved.get_algo() == "multi"
    assert resolved.get_address() == resolved.pub_key.address()


def test_multi_info_member_mismatch(ed_priv: Ed25519PrivKey, secp_priv: Secp256k1PrivKey) -> None:
    info = LegacyMultiInfo(
        name="multi",
        pub_key=LegacyAminoPubKey(threshold=1, public_keys=(ed_priv.pub_key(),)),
        threshold=1,
        pub_keys=(MultisigPubKeyInfo(secp_priv.pub_key(), 1),),
    )
    data = amino.marshal_length_prefixed(info)
    assert isinstance(amino.unmarshal_length_prefixed(data), LegacyMultiInfo)
    with pytest.raises(CodecError):
        amino.unmarshal_multi_info(data)


def test_multi_info_rejects_other_variants(ed_priv: Ed25519PrivKey) -> None:
    data = amino.marshal_length_prefixed(
        LegacyOfflineInfo("watch", ed_priv.pub_key(), "ed25519")
    )
    with pytest.raises(CodecError):
        amino.unmarshal_multi_info(data)


def test_get_path_only_for_ledger(ed_priv: Ed25519PrivKey) -> None:
    offline = LegacyOfflineInfo("watch", ed_priv.pub_key(), "ed25519")
    with pytest.raises(KeyringError):
        offline.get_path()


def test_bare_length_mismatch() -> None:
    bad = amino.name_to_prefix("tendermint/PubKeyEd25519") + b"\x20" + b"\x01" * 31
    with pytest.raises(CodecError):
        amino.unmarshal_bare(bad)
    short = amino.name_to_prefix("tendermint/PubKeyEd25519") + b"\x1f" + b"\x01" * 31
    with pytest.raises(CodecError):
        amino.unmarshal_bare(short)


def _info_bytes(info_name: str, body: bytes) -> bytes:
    bare = amino.name_to_prefix(info_name) + body
    return amino.encode_uvarint(len(bare)) + bare


def test_missing_fields_decode_to_typed_defaults(ed_priv: Ed25519PrivKey) -> None:
    pk_bare = amino.marshal_bare(ed_priv.pub_key())
    data = _info_bytes(
        "crypto/keys/localInfo", b"\x12" + amino.encode_uvarint(len(pk_bare)) + pk_bare
    )
    info = amino.unmarshal_length_prefixed(data)
    assert isinstance(info, LegacyLocalInfo)
    assert info.name == ""
    assert info.priv_key_armor == b""
    assert info.algo == ""


@pytest.mark.parametrize(
    "info_name,field",
    [
        ("crypto/keys/localInfo", b"\x18\x01"),  # armor as varint
        ("crypto/keys/ledgerInfo", b"\x18\x01"),  # path as varint
        ("crypto/keys/offlineInfo", b"\x1a\x02\xff\xfe"),  # algo not utf-8
        ("crypto/keys/multiInfo", b"\x1a\x00"),  # threshold as bytes
    ],
)
def test_wrong_wire_type_rejected(ed_priv: Ed25519PrivKey, info_name: str, field: bytes) -> None:
    pk_bare = amino.marshal_bare(ed_priv.pub_key())
    body = b"\x12" + amino.encode_uvarint(len(pk_bare)) + pk_bare + field
    with pytest.raises(CodecError):
        amino.unmarshal_length_prefixed(_info_bytes(info_name, body))
