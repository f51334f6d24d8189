# -*- coding: utf-8 -*-
"""
Current (protobuf) codec for keyring records.

Message classes are generated at runtime from hand-built ``FileDescriptorProto``
objects mirroring the upstream ``.proto`` files:

- ``cosmos.crypto.keyring.v1.Record`` (oneof item: local/ledger/multi/offline)
- ``cosmos.crypto.hd.v1.BIP44Params``
- ed25519/secp256k1 ``PubKey``/``PrivKey`` and ``multisig.LegacyAminoPubKey``
- ``google.protobuf.Any`` (copied from the bundled well-known type)

Embedded keys travel as ``Any`` values; :func:`unpack_any` maps the type URL to
one of the typed values in :mod:`keyring_compat.keys`, so no untyped value
leaves this module.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Final, Optional, Union

from google.protobuf import any_pb2, descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.message import DecodeError as ProtoDecodeError
from google.protobuf.message import EncodeError as ProtoEncodeError

from keyring_compat.exceptions import CodecError
from keyring_compat.hd import BIP44Params
from keyring_compat.keys import (
    Ed25519PrivKey,
    Ed25519PubKey,
    LegacyAminoPubKey,
    PrivKey,
    PubKey,
    Secp256k1PrivKey,
    Secp256k1PubKey,
    is_priv_key,
    is_pub_key,
)
from keyring_compat.record import (
    Record,
    RecordItem,
    RecordLedger,
    RecordLocal,
    RecordMulti,
    RecordOffline,
)

_LOGGER: Final = logging.getLogger(__name__)

_F = descriptor_pb2.FieldDescriptorProto
_ANY_FILE: Final[str] = "google/protobuf/any.proto"

KeyValue = Union[PubKey, PrivKey]


def _add_field(
    msg: descriptor_pb2.DescriptorProto,
    *,
    name: str,
    number: int,
    field_type: int,
    label: int = _F.LABEL_OPTIONAL,
    type_name: str = "",
    oneof_index: Optional[int] = None,
) -> None:
    field = msg.field.add()
    field.name = name
    field.number = number
    field.label = label
    field.type = field_type
    if type_name:
        field.type_name = type_name
    if oneof_index is not None:
        field.oneof_index = oneof_index


def _key_file(package: str, path: str) -> descriptor_pb2.FileDescriptorProto:
    fdp = descriptor_pb2.FileDescriptorProto()
    fdp.name = path
    fdp.package = package
    fdp.syntax = "proto3"
    for name in ("PubKey", "PrivKey"):
        msg = fdp.message_type.add()
        msg.name = name
        _add_field(msg, name="key", number=1, field_type=_F.TYPE_BYTES)
    return fdp


def _multisig_file() -> descriptor_pb2.FileDescriptorProto:
    fdp = descriptor_pb2.FileDescriptorProto()
    fdp.name = "cosmos/crypto/multisig/keys.proto"
    fdp.package = "cosmos.crypto.multisig"
    fdp.syntax = "proto3"
    fdp.dependency.append(_ANY_FILE)
    msg = fdp.message_type.add()
    msg.name = "LegacyAminoPubKey"
    _add_field(msg, name="threshold", number=1, field_type=_F.TYPE_UINT32)
    _add_field(
        msg,
        name="public_keys",
        number=2,
        field_type=_F.TYPE_MESSAGE,
        label=_F.LABEL_REPEATED,
        type_name=".google.protobuf.Any",
    )
    return fdp


def _hd_file() -> descriptor_pb2.FileDescriptorProto:
    fdp = descriptor_pb2.FileDescriptorProto()
    fdp.name = "cosmos/crypto/hd/v1/hd.proto"
    fdp.package = "cosmos.crypto.hd.v1"
    fdp.syntax = "proto3"
    msg = fdp.message_type.add()
    msg.name = "BIP44Params"
    _add_field(msg, name="purpose", number=1, field_type=_F.TYPE_UINT32)
    _add_field(msg, name="coin_type", number=2, field_type=_F.TYPE_UINT32)
    _add_field(msg, name="account", number=3, field_type=_F.TYPE_UINT32)
    _add_field(msg, name="change", number=4, field_type=_F.TYPE_BOOL)
    _add_field(msg, name="address_index", number=5, field_type=_F.TYPE_UINT32)
    return fdp


def _record_file() -> descriptor_pb2.FileDescriptorProto:
    fdp = descriptor_pb2.FileDescriptorProto()
    fdp.name = "cosmos/crypto/keyring/v1/record.proto"
    fdp.package = "cosmos.crypto.keyring.v1"
    fdp.syntax = "proto3"
    fdp.dependency.append(_ANY_FILE)
    fdp.dependency.append("cosmos/crypto/hd/v1/hd.proto")

    rec = fdp.message_type.add()
    rec.name = "Record"
    rec.oneof_decl.add().name = "item"
    _add_field(rec, name="name", number=1, field_type=_F.TYPE_STRING)
    _add_field(
        rec, name="pub_key", number=2, field_type=_F.TYPE_MESSAGE,
        type_name=".google.protobuf.Any",
    )
    prefix = ".cosmos.crypto.keyring.v1.Record."
    for number, (field_name, type_name) in enumerate(
        (("local", "Local"), ("ledger", "Ledger"), ("multi", "Multi"), ("offline", "Offline")),
        start=3,
    ):
        _add_field(
            rec, name=field_name, number=number, field_type=_F.TYPE_MESSAGE,
            type_name=prefix + type_name, oneof_index=0,
        )

    local = rec.nested_type.add()
    local.name = "Local"
    _add_field(
        local, name="priv_key", number=1, field_type=_F.TYPE_MESSAGE,
        type_name=".google.protobuf.Any",
    )
    ledger = rec.nested_type.add()
    ledger.name = "Ledger"
    _add_field(
        ledger, name="path", number=1, field_type=_F.TYPE_MESSAGE,
        type_name=".cosmos.crypto.hd.v1.BIP44Params",
    )
    rec.nested_type.add().name = "Multi"
    rec.nested_type.add().name = "Offline"
    return fdp


@dataclass(frozen=True)
class ProtoMessages:
    Any: type
    Ed25519PubKey: type
    Ed25519PrivKey: type
    Secp256k1PubKey: type
    Secp256k1PrivKey: type
    LegacyAminoPubKey: type
    BIP44Params: type
    Record: type


@lru_cache(maxsize=1)
def _messages() -> ProtoMessages:
    any_fdp = descriptor_pb2.FileDescriptorProto()
    any_pb2.DESCRIPTOR.CopyToProto(any_fdp)

    pool = descriptor_pool.DescriptorPool()
    for fdp in (
        any_fdp,
        _key_file("cosmos.crypto.ed25519", "cosmos/crypto/ed25519/keys.proto"),
        _key_file("cosmos.crypto.secp256k1", "cosmos/crypto/secp256k1/keys.proto"),
        _multisig_file(),
        _hd_file(),
        _record_file(),
    ):
        pool.AddSerializedFile(fdp.SerializeToString())

    def cls(full_name: str) -> type:
        desc = pool.FindMessageTypeByName(full_name)
        if hasattr(message_factory, "GetMessageClass"):
            return message_factory.GetMessageClass(desc)  # type: ignore[no-any-return]
        return message_factory.MessageFactory(pool).GetPrototype(desc)  # type: ignore[no-any-return]

    return ProtoMessages(
        Any=cls("google.protobuf.Any"),
        Ed25519PubKey=cls("cosmos.crypto.ed25519.PubKey"),
        Ed25519PrivKey=cls("cosmos.crypto.ed25519.PrivKey"),
        Secp256k1PubKey=cls("cosmos.crypto.secp256k1.PubKey"),
        Secp256k1PrivKey=cls("cosmos.crypto.secp256k1.PrivKey"),
        LegacyAminoPubKey=cls("cosmos.crypto.multisig.LegacyAminoPubKey"),
        BIP44Params=cls("cosmos.crypto.hd.v1.BIP44Params"),
        Record=cls("cosmos.crypto.keyring.v1.Record"),
    )


def message_classes() -> ProtoMessages:
    return _messages()


# ---- Any packing ----


def _bytes_message_cls(value_type: type) -> type:
    m = _messages()
    classes = {
        Ed25519PubKey: m.Ed25519PubKey,
        Ed25519PrivKey: m.Ed25519PrivKey,
        Secp256k1PubKey: m.Secp256k1PubKey,
        Secp256k1PrivKey: m.Secp256k1PrivKey,
    }
    try:
        return classes[value_type]
    except KeyError as exc:
        raise CodecError(
            f"no protobuf message for {value_type.__name__}", stage="proto-encode"
        ) from exc


def pack_any(value: KeyValue) -> Any:
    """Wrap a typed key value into a ``google.protobuf.Any`` message."""
    m = _messages()
    if isinstance(value, LegacyAminoPubKey):
        inner = m.LegacyAminoPubKey(
            threshold=value.threshold,
            public_keys=[pack_any(k) for k in value.public_keys],
        )
    else:
        inner = _bytes_message_cls(type(value))(key=value.to_bytes())
    return m.Any(type_url=value.TYPE_URL, value=inner.SerializeToString())


_BYTES_TYPES_BY_URL: Final = {
    t.TYPE_URL: t
    for t in (Ed25519PubKey, Ed25519PrivKey, Secp256k1PubKey, Secp256k1PrivKey)
}


def unpack_any(any_msg: Any) -> KeyValue:
    """
    Resolve an ``Any`` into the typed key value named by its type URL.

    Raises:
        CodecError: unknown type URL or malformed inner message.
    """
    m = _messages()
    url = any_msg.type_url
    try:
        if url == LegacyAminoPubKey.TYPE_URL:
            inner = m.LegacyAminoPubKey.FromString(any_msg.value)
            members = []
            for member_any in inner.public_keys:
                member = unpack_any(member_any)
                if not isinstance(member, (Ed25519PubKey, Secp256k1PubKey)):
                    raise CodecError(
                        f"invalid multisig member type {member_any.type_url!r}",
                        stage="proto-decode",
                    )
                members.append(member)
            return LegacyAminoPubKey(threshold=inner.threshold, public_keys=tuple(members))
        cls = _BYTES_TYPES_BY_URL.get(url)
        if cls is None:
            raise CodecError(f"unknown Any type url {url!r}", stage="proto-decode")
        inner = _bytes_message_cls(cls).FromString(any_msg.value)
        return cls(bytes(inner.key))  # type: ignore[no-any-return]
    except ProtoDecodeError as exc:
        raise CodecError(f"malformed {url} value", stage="proto-decode") from exc
    except ValueError as exc:
        raise CodecError(str(exc), stage="proto-decode") from exc


# ---- BIP44 params ----


def _path_to_msg(path: BIP44Params) -> Any:
    return _messages().BIP44Params(
        purpose=path.purpose,
        coin_type=path.coin_type,
        account=path.account,
        change=path.change,
        address_index=path.address_index,
    )


def _path_from_msg(msg: Any) -> BIP44Params:
    try:
        return BIP44Params(
            purpose=msg.purpose,
            coin_type=msg.coin_type,
            account=msg.account,
            change=msg.change,
            address_index=msg.address_index,
        )
    except ValueError as exc:
        raise CodecError(str(exc), stage="proto-decode") from exc


# ---- Record ----


def marshal_record(record: Record) -> bytes:
    """Serialize a Record to protobuf bytes."""
    m = _messages()
    msg = m.Record(name=record.name)
    msg.pub_key.CopyFrom(pack_any(record.pub_key))
    item = record.item
    if isinstance(item, RecordLocal):
        if item.priv_key is None:
            msg.local.SetInParent()
        else:
            msg.local.priv_key.CopyFrom(pack_any(item.priv_key))
    elif isinstance(item, RecordLedger):
        if item.path is None:
            msg.ledger.SetInParent()
        else:
            msg.ledger.path.CopyFrom(_path_to_msg(item.path))
    elif isinstance(item, RecordMulti):
        msg.multi.SetInParent()
    elif isinstance(item, RecordOffline):
        msg.offline.SetInParent()
    else:
        raise CodecError(f"unknown record item {type(item).__name__}", stage="proto-encode")
    try:
        return bytes(msg.SerializeToString())
    except ProtoEncodeError as exc:
        raise CodecError("record serialization failed", stage="proto-encode") from exc


def unmarshal_record(data: bytes) -> Record:
    """
    Parse protobuf bytes into a Record.

    A parse that succeeds on the wire but yields no public key, an unknown key
    type or no item is rejected: such bytes are not a record.

    Raises:
        CodecError: on any failure.
    """
    m = _messages()
    msg = m.Record()
    try:
        msg.ParseFromString(bytes(data))
    except ProtoDecodeError as exc:
        raise CodecError(f"invalid protobuf record: {exc}", stage="proto-decode") from exc

    if not msg.HasField("pub_key"):
        raise CodecError("record has no public key", stage="proto-decode")
    pub_key = unpack_any(msg.pub_key)
    if not is_pub_key(pub_key):
        raise CodecError(
            f"record public key has non-public type {msg.pub_key.type_url!r}",
            stage="proto-decode",
        )

    which = msg.WhichOneof("item")
    item: RecordItem
    if which == "local":
        priv: Optional[PrivKey] = None
        if msg.local.HasField("priv_key"):
            value = unpack_any(msg.local.priv_key)
            if not is_priv_key(value):
                raise CodecError(
                    f"local item holds non-private type {msg.local.priv_key.type_url!r}",
                    stage="proto-decode",
                )
            priv = value  # type: ignore[assignment]
        item = RecordLocal(priv)
    elif which == "ledger":
        path = _path_from_msg(msg.ledger.path) if msg.ledger.HasField("path") else None
        item = RecordLedger(path)
    elif which == "multi":
        item = RecordMulti()
    elif which == "offline":
        item = RecordOffline()
    else:
        raise CodecError("record has no item", stage="proto-decode")

    _LOGGER.debug("Decoded protobuf record %r (%s)", msg.name, which)
    return Record(name=msg.name, pub_key=pub_key, item=item)  # type: ignore[arg-type]


__all__ = [
    "ProtoMessages",
    "message_classes",
    "pack_any",
    "unpack_any",
    "marshal_record",
    "unmarshal_record",
]
