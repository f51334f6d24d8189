# tests/unit/keyring_compat/test_keys.py
from __future__ import annotations

import hashlib

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from keyring_compat.keys import (
    Ed25519PrivKey,
    Ed25519PubKey,
    LegacyAminoPubKey,
    PubKeyType,
    Secp256k1PrivKey,
    Secp256k1PubKey,
    is_priv_key,
    is_pub_key,
    pub_key_from_proto_json,
    pub_key_to_proto_json,
)
from keyring_compat.signature import SECP256K1_HALF_ORDER, split_compact
from keyring_compat.utils import bech32_encode_address

PUBKEY_JSON = (
    b'{"@type":"/cosmos.crypto.ed25519.PubKey",'
    b'"key":"XQNqhYzon4REkXYuuJ4r+9UKSgoNpljksmKLJbEXrgk="}'
)
HELLO_SIGNATURE = bytes.fromhex(
    "e1de06494e239e95a68b74b55460d1f1f376318bbd08af8f221f102ef8bc8f6d"
    "87922d8326defe6f4c71d577a17e105bf8ea7e4428cc410999fcc214f4068503"
)


# --- ed25519 ---


def test_ed25519_from_secret_seed_is_sha256(ed_priv: Ed25519PrivKey) -> None:
    assert ed_priv.key[:32] == hashlib.sha256(b"secret").digest()
    assert ed_priv.key[32:] == ed_priv.pub_key().key
    assert ed_priv.type() == PubKeyType.ED25519.value


def test_ed25519_address_and_json(ed_priv: Ed25519PrivKey) -> None:
    pk = ed_priv.pub_key()
    assert pk.address() == hashlib.sha256(pk.key).digest()[:20]
    assert bech32_encode_address("cosmos", pk.address()) == (
        "cosmos182t3l5ptfgrlcg926xfk60936f3mjms0djnj6g"
    )
    assert pub_key_to_proto_json(pk) == PUBKEY_JSON
    assert pub_key_from_proto_json(PUBKEY_JSON) == pk


def test_ed25519_sign_known_vector(ed_priv: Ed25519PrivKey) -> None:
    sig = ed_priv.sign(b"hello world")
    assert sig == HELLO_SIGNATURE
    assert ed_priv.pub_key().verify(b"hello world", sig)
    assert not ed_priv.pub_key().verify(b"hello world!", sig)


@pytest.mark.parametrize("size", [0, 31, 33])
def test_ed25519_pubkey_size_validation(size: int) -> None:
    with pytest.raises(ValueError):
        Ed25519PubKey(b"\x01" * size)


def test_ed25519_privkey_repr_hides_material(ed_priv: Ed25519PrivKey) -> None:
    assert ed_priv.key.hex() not in repr(ed_priv)


# --- secp256k1 ---


def test_secp256k1_sign_is_deterministic_and_low_s(secp_priv: Secp256k1PrivKey) -> None:
    sig1 = secp_priv.sign(b"payload")
    sig2 = secp_priv.sign(b"payload")
    assert sig1 == sig2
    assert len(sig1) == 64
    _, s = split_compact(sig1)
    assert s <= SECP256K1_HALF_ORDER
    assert secp_priv.pub_key().verify(b"payload", sig1)
    assert not secp_priv.pub_key().verify(b"other", sig1)


def test_secp256k1_address_is_ripemd160_of_sha256(secp_priv: Secp256k1PrivKey) -> None:
    from Crypto.Hash import RIPEMD160

    pk = secp_priv.pub_key()
    expected = RIPEMD160.new(hashlib.sha256(pk.key).digest()).digest()
    assert pk.address() == expected
    assert len(pk.address()) == 20


def test_secp256k1_from_uncompressed_point(secp_priv: Secp256k1PrivKey) -> None:
    point = (
        ec.derive_private_key(int.from_bytes(secp_priv.key, "big"), ec.SECP256K1())
        .public_key()
        .public_bytes(serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint)
    )
    assert len(point) == 65
    assert Secp256k1PubKey.from_encoded_point(point) == secp_priv.pub_key()


def test_secp256k1_rejects_uncompressed_constructor() -> None:
    with pytest.raises(ValueError):
        Secp256k1PubKey(b"\x04" + b"\x01" * 32)


def test_secp256k1_privkey_range() -> None:
    with pytest.raises(ValueError):
        Secp256k1PrivKey(b"\x00" * 32)
    with pytest.raises(ValueError):
        Secp256k1PrivKey(b"\xff" * 32)


# --- multisig ---


def test_multisig_threshold_validation(ed_priv: Ed25519PrivKey) -> None:
    pk = ed_priv.pub_key()
    with pytest.raises(ValueError):
        LegacyAminoPubKey(threshold=0, public_keys=(pk,))
    with pytest.raises(ValueError):
        LegacyAminoPubKey(threshold=2, public_keys=(pk,))


def test_multisig_json_and_address(ed_priv: Ed25519PrivKey, secp_priv: Secp256k1PrivKey) -> None:
    multi = LegacyAminoPubKey(
        threshold=1, public_keys=(ed_priv.pub_key(), secp_priv.pub_key())
    )
    assert multi.type() == "PubKeyMultisigThreshold"
    assert len(multi.address()) == 20
    assert pub_key_from_proto_json(pub_key_to_proto_json(multi)) == multi


def test_multisig_key_has_no_single_signature_check(ed_priv: Ed25519PrivKey) -> None:
    multi = LegacyAminoPubKey(threshold=1, public_keys=(ed_priv.pub_key(),))
    assert not hasattr(multi, "verify")
    assert hasattr(ed_priv.pub_key(), "verify")


def test_unknown_json_type_rejected() -> None:
    with pytest.raises(ValueError):
        pub_key_from_proto_json('{"@type":"/unknown.PubKey","key":"AA=="}')


def test_type_predicates(ed_priv: Ed25519PrivKey) -> None:
    assert is_priv_key(ed_priv) and not is_pub_key(ed_priv)
    assert is_pub_key(ed_priv.pub_key()) and not is_priv_key(ed_priv.pub_key())
    assert not is_pub_key(b"raw")
