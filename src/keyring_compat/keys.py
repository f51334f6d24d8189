# -*- coding: utf-8 -*-
"""
RU: Типизированные значения ключей (закрытое множество): ed25519 и secp256k1 (публичные и
приватные) и составной multisig-ключ. Заменяют извлечение значения из обобщённой обёртки Any.

EN: Typed key values (closed set): ed25519 and secp256k1 public/private keys and the
composite multisig public key. They replace the "cached value inside a generic Any"
pattern: a decoded record always holds one of these classes, so a wrong cached type
cannot exist past decoding.

Every value knows its protobuf type URL and its amino registration name; the codecs
use the lookup tables at the bottom of this module.

Security:
- Private key bytes are excluded from ``repr``.
- Nothing in this module logs key material.
"""
from __future__ import annotations

import base64
import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Final, Optional, Tuple, Type, Union

from Crypto.Hash import RIPEMD160
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from keyring_compat.signature import (
    SECP256K1_ORDER,
    compact_to_der,
    convert_der_to_ber,
    is_over_half_order,
    split_compact,
)

ADDRESS_SIZE: Final[int] = 20


class PubKeyType(str, Enum):
    """Algorithm tag stored in legacy entries (``algo`` field)."""

    SECP256K1 = "secp256k1"
    ED25519 = "ed25519"
    SR25519 = "sr25519"
    MULTI = "multi"


def _sum_truncated(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()[:ADDRESS_SIZE]


@dataclass(frozen=True)
class Ed25519PubKey:
    """Ed25519 public key (32 bytes). Address is ``sha256(key)[:20]``."""

    key: bytes

    TYPE_URL: ClassVar[str] = "/cosmos.crypto.ed25519.PubKey"
    AMINO_NAME: ClassVar[str] = "tendermint/PubKeyEd25519"
    SIZE: ClassVar[int] = 32

    def __post_init__(self) -> None:
        if not isinstance(self.key, bytes) or len(self.key) != self.SIZE:
            raise ValueError("ed25519 public key must be 32 bytes")

    def type(self) -> str:
        return PubKeyType.ED25519.value

    def address(self) -> bytes:
        return _sum_truncated(self.key)

    def to_bytes(self) -> bytes:
        return self.key

    def verify(self, message: bytes, signature: bytes) -> bool:
        if len(signature) != 64:
            return False
        try:
            Ed25519PublicKey.from_public_bytes(self.key).verify(signature, message)
            return True
        except InvalidSignature:
            return False


@dataclass(frozen=True)
class Secp256k1PubKey:
    """
    secp256k1 public key in 33-byte compressed form.

    Address is ``ripemd160(sha256(key))``.
    """

    key: bytes

    TYPE_URL: ClassVar[str] = "/cosmos.crypto.secp256k1.PubKey"
    AMINO_NAME: ClassVar[str] = "tendermint/PubKeySecp256k1"
    SIZE: ClassVar[int] = 33

    def __post_init__(self) -> None:
        if not isinstance(self.key, bytes) or len(self.key) != self.SIZE:
            raise ValueError("secp256k1 public key must be 33 bytes (compressed)")
        if self.key[0] not in (0x02, 0x03):
            raise ValueError("secp256k1 public key must be in compressed form")

    @classmethod
    def from_encoded_point(cls, point: bytes) -> "Secp256k1PubKey":
        """
        Re-serialize a compressed or uncompressed SEC1 point into compressed form.

        Raises:
            ValueError: if the point is not on the curve.
        """
        pub = ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), bytes(point))
        return cls(
            pub.public_bytes(
                serialization.Encoding.X962, serialization.PublicFormat.CompressedPoint
            )
        )

    def type(self) -> str:
        return PubKeyType.SECP256K1.value

    def address(self) -> bytes:
        sha = hashlib.sha256(self.key).digest()
        return RIPEMD160.new(sha).digest()

    def to_bytes(self) -> bytes:
        return self.key

    def verify(self, message: bytes, signature: bytes) -> bool:
        """Verify a 64-byte low-S ``R || S`` signature over ``sha256(message)``."""
        if len(signature) != 64:
            return False
        _, s = split_compact(signature)
        if is_over_half_order(s):
            return False
        try:
            pub = ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), self.key)
            pub.verify(compact_to_der(signature), message, ec.ECDSA(hashes.SHA256()))
            return True
        except (InvalidSignature, ValueError):
            return False


@dataclass(frozen=True)
class LegacyAminoPubKey:
    """
    Composite threshold multisig public key.

    It never reduces to a single private key; signing with it is unsupported.
    """

    threshold: int
    public_keys: Tuple["SinglePubKey", ...]

    TYPE_URL: ClassVar[str] = "/cosmos.crypto.multisig.LegacyAminoPubKey"
    AMINO_NAME: ClassVar[str] = "tendermint/PubKeyMultisigThreshold"

    def __post_init__(self) -> None:
        if self.threshold <= 0:
            raise ValueError("threshold must be positive")
        if len(self.public_keys) < self.threshold:
            raise ValueError("threshold k of n multisignature: len(pubKeys) < k")

    def type(self) -> str:
        return "PubKeyMultisigThreshold"

    def address(self) -> bytes:
        from keyring_compat.codec.amino import marshal_bare

        return _sum_truncated(marshal_bare(self))

    def to_bytes(self) -> bytes:
        from keyring_compat.codec.amino import marshal_bare

        return marshal_bare(self)


SinglePubKey = Union[Ed25519PubKey, Secp256k1PubKey]
PubKey = Union[Ed25519PubKey, Secp256k1PubKey, LegacyAminoPubKey]


@dataclass(frozen=True)
class Ed25519PrivKey:
    """Ed25519 private key held as 64 bytes: ``seed || public key``."""

    key: bytes = field(repr=False)

    TYPE_URL: ClassVar[str] = "/cosmos.crypto.ed25519.PrivKey"
    AMINO_NAME: ClassVar[str] = "tendermint/PrivKeyEd25519"
    SIZE: ClassVar[int] = 64

    def __post_init__(self) -> None:
        if not isinstance(self.key, bytes) or len(self.key) != self.SIZE:
            raise ValueError("ed25519 private key must be 64 bytes")

    @classmethod
    def from_seed(cls, seed: bytes) -> "Ed25519PrivKey":
        if len(seed) != 32:
            raise ValueError("ed25519 seed must be 32 bytes")
        pub = Ed25519PrivateKey.from_private_bytes(seed).public_key().public_bytes_raw()
        return cls(bytes(seed) + pub)

    @classmethod
    def from_secret(cls, secret: bytes) -> "Ed25519PrivKey":
        """Deterministic key whose seed is ``sha256(secret)``. Test/dev helper."""
        return cls.from_seed(hashlib.sha256(secret).digest())

    @classmethod
    def generate(cls) -> "Ed25519PrivKey":
        return cls.from_seed(Ed25519PrivateKey.generate().private_bytes_raw())

    def _signer(self) -> Ed25519PrivateKey:
        return Ed25519PrivateKey.from_private_bytes(self.key[:32])

    def pub_key(self) -> Ed25519PubKey:
        return Ed25519PubKey(self._signer().public_key().public_bytes_raw())

    def type(self) -> str:
        return PubKeyType.ED25519.value

    def sign(self, message: bytes) -> bytes:
        return bytes(self._signer().sign(message))

    def to_bytes(self) -> bytes:
        return self.key


@dataclass(frozen=True)
class Secp256k1PrivKey:
    """secp256k1 private scalar (32 bytes, big-endian)."""

    key: bytes = field(repr=False)

    TYPE_URL: ClassVar[str] = "/cosmos.crypto.secp256k1.PrivKey"
    AMINO_NAME: ClassVar[str] = "tendermint/PrivKeySecp256k1"
    SIZE: ClassVar[int] = 32

    def __post_init__(self) -> None:
        if not isinstance(self.key, bytes) or len(self.key) != self.SIZE:
            raise ValueError("secp256k1 private key must be 32 bytes")
        if not 0 < int.from_bytes(self.key, "big") < SECP256K1_ORDER:
            raise ValueError("secp256k1 private key out of range")

    @classmethod
    def from_secret(cls, secret: bytes) -> "Secp256k1PrivKey":
        """
        Deterministic key from a secret: ``sha256(secret) mod (N - 1) + 1``.

        Test/dev helper; the result is always a valid scalar.
        """
        fe = int.from_bytes(hashlib.sha256(secret).digest(), "big")
        fe = fe % (SECP256K1_ORDER - 1) + 1
        return cls(fe.to_bytes(cls.SIZE, "big"))

    @classmethod
    def generate(cls) -> "Secp256k1PrivKey":
        priv = ec.generate_private_key(ec.SECP256K1())
        return cls(priv.private_numbers().private_value.to_bytes(cls.SIZE, "big"))

    def _signer(self) -> ec.EllipticCurvePrivateKey:
        return ec.derive_private_key(int.from_bytes(self.key, "big"), ec.SECP256K1())

    def pub_key(self) -> Secp256k1PubKey:
        return Secp256k1PubKey(
            self._signer()
            .public_key()
            .public_bytes(
                serialization.Encoding.X962, serialization.PublicFormat.CompressedPoint
            )
        )

    def type(self) -> str:
        return PubKeyType.SECP256K1.value

    def sign(self, message: bytes) -> bytes:
        """RFC 6979 ECDSA over ``sha256(message)``, 64-byte low-S ``R || S``."""
        der = self._signer().sign(
            message, ec.ECDSA(hashes.SHA256(), deterministic_signing=True)
        )
        return convert_der_to_ber(der)

    def to_bytes(self) -> bytes:
        return self.key


PrivKey = Union[Ed25519PrivKey, Secp256k1PrivKey]

PUB_KEY_TYPES: Final[Tuple[Type[Any], ...]] = (
    Ed25519PubKey,
    Secp256k1PubKey,
    LegacyAminoPubKey,
)
PRIV_KEY_TYPES: Final[Tuple[Type[Any], ...]] = (Ed25519PrivKey, Secp256k1PrivKey)

PUB_KEYS_BY_URL: Final[Dict[str, Type[Any]]] = {t.TYPE_URL: t for t in PUB_KEY_TYPES}
PRIV_KEYS_BY_URL: Final[Dict[str, Type[Any]]] = {t.TYPE_URL: t for t in PRIV_KEY_TYPES}


def is_pub_key(value: object) -> bool:
    return isinstance(value, PUB_KEY_TYPES)


def is_priv_key(value: object) -> bool:
    return isinstance(value, PRIV_KEY_TYPES)


def _pub_key_json_obj(pk: PubKey) -> Dict[str, Any]:
    if isinstance(pk, LegacyAminoPubKey):
        return {
            "@type": pk.TYPE_URL,
            "threshold": pk.threshold,
            "public_keys": [_pub_key_json_obj(k) for k in pk.public_keys],
        }
    return {
        "@type": pk.TYPE_URL,
        "key": base64.b64encode(pk.key).decode("ascii"),
    }


def pub_key_to_proto_json(pk: PubKey) -> bytes:
    """
    Canonical compact JSON of a public key, tagged with its type URL.

    Example:
        ``{"@type":"/cosmos.crypto.ed25519.PubKey","key":"XQNq..."}``
    """
    return json.dumps(_pub_key_json_obj(pk), separators=(",", ":")).encode("utf-8")


def pub_key_from_proto_json(data: Union[str, bytes]) -> PubKey:
    """
    Parse the output of :func:`pub_key_to_proto_json`.

    Raises:
        ValueError: on unknown ``@type`` or malformed payload.
    """
    obj = json.loads(data)
    return _pub_key_from_json_obj(obj)


def _pub_key_from_json_obj(obj: Dict[str, Any]) -> PubKey:
    url: Optional[str] = obj.get("@type")
    if url == LegacyAminoPubKey.TYPE_URL:
        return LegacyAminoPubKey(
            threshold=int(obj["threshold"]),
            public_keys=tuple(
                _single(_pub_key_from_json_obj(k)) for k in obj.get("public_keys", [])
            ),
        )
    cls = PUB_KEYS_BY_URL.get(url or "")
    if cls is None:
        raise ValueError(f"unknown public key type {url!r}")
    return cls(base64.b64decode(obj["key"], validate=True))  # type: ignore[no-any-return]


def _single(pk: PubKey) -> SinglePubKey:
    if isinstance(pk, LegacyAminoPubKey):
        raise ValueError("nested multisig public keys are not supported")
    return pk


__all__ = [
    "ADDRESS_SIZE",
    "PubKeyType",
    "Ed25519PubKey",
    "Secp256k1PubKey",
    "LegacyAminoPubKey",
    "SinglePubKey",
    "PubKey",
    "Ed25519PrivKey",
    "Secp256k1PrivKey",
    "PrivKey",
    "PUB_KEYS_BY_URL",
    "PRIV_KEYS_BY_URL",
    "is_pub_key",
    "is_priv_key",
    "pub_key_to_proto_json",
    "pub_key_from_proto_json",
]
