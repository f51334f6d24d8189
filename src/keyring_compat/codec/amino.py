# -*- coding: utf-8 -*-
"""
RU: Бинарный кодек legacy-формата (amino): префиксы зарегистрированных типов, поля в стиле
protobuf, пропуск значений по умолчанию, длинный префикс для записей keyring.

EN: Legacy (amino) binary codec for keyring entries and key values.

Wire rules implemented here:
- Registered concrete types are introduced by 4 prefix bytes derived from
  ``sha256(name)``: drop leading zero bytes, drop 3 disambiguation bytes, drop
  leading zero bytes again, keep 4.
- Struct fields are numbered by declaration order and use protobuf wire types
  (0 = varint, 2 = length-delimited); zero values are omitted.
- Interface-typed fields carry ``prefix || bare value`` length-delimited.
- Byte-slice key values encode as ``prefix || uvarint(len) || bytes``.
- Keyring entries are stored length-prefixed: ``uvarint(len(bare)) || bare``.

Decoding is strict: unknown prefixes, unsupported wire types, out-of-order
fields and trailing bytes all raise ``CodecError``.
"""
from __future__ import annotations

import hashlib
import logging
from typing import Callable, Dict, Final, Iterator, List, Tuple, Type, TypeVar, Union

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
    SinglePubKey,
)
from keyring_compat.legacy_info import (
    LegacyInfo,
    LegacyLedgerInfo,
    LegacyLocalInfo,
    LegacyMultiInfo,
    LegacyOfflineInfo,
    MultisigPubKeyInfo,
)

_LOGGER: Final = logging.getLogger(__name__)

_WIRE_VARINT: Final[int] = 0
_WIRE_BYTES: Final[int] = 2
_PREFIX_LEN: Final[int] = 4

LOCAL_INFO_NAME: Final[str] = "crypto/keys/localInfo"
LEDGER_INFO_NAME: Final[str] = "crypto/keys/ledgerInfo"
OFFLINE_INFO_NAME: Final[str] = "crypto/keys/offlineInfo"
MULTI_INFO_NAME: Final[str] = "crypto/keys/multiInfo"

AminoValue = Union[PubKey, PrivKey]
_Field = Tuple[int, int, Union[int, bytes]]


def name_to_prefix(name: str) -> bytes:
    """
    Amino prefix bytes of a registered type name.

    Example:
        >>> name_to_prefix("tendermint/PubKeyEd25519").hex()
        '1624de64'
    """
    bz = hashlib.sha256(name.encode("utf-8")).digest()
    bz = bz.lstrip(b"\x00")[3:]
    bz = bz.lstrip(b"\x00")
    return bz[:_PREFIX_LEN]


# ---- varint / field primitives ----


def encode_uvarint(value: int) -> bytes:
    if value < 0:
        raise CodecError("uvarint must be non-negative", stage="amino-encode")
    out = bytearray()
    while True:
        b = value & 0x7F
        value >>= 7
        if value:
            out.append(b | 0x80)
        else:
            out.append(b)
            return bytes(out)


def decode_uvarint(data: bytes, pos: int) -> Tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if pos >= len(data):
            raise CodecError("truncated uvarint", stage="amino-decode")
        b = data[pos]
        pos += 1
        result |= (b & 0x7F) << shift
        if not b & 0x80:
            return result, pos
        shift += 7
        if shift >= 64:
            raise CodecError("uvarint overflow", stage="amino-decode")


def _key(num: int, wire: int) -> bytes:
    return encode_uvarint((num << 3) | wire)


def _put_bytes(buf: bytearray, num: int, value: bytes, *, write_empty: bool = False) -> None:
    if not value and not write_empty:
        return
    buf += _key(num, _WIRE_BYTES)
    buf += encode_uvarint(len(value))
    buf += value


def _put_string(buf: bytearray, num: int, value: str) -> None:
    _put_bytes(buf, num, value.encode("utf-8"))


def _put_uvarint(buf: bytearray, num: int, value: int) -> None:
    if not value:
        return
    buf += _key(num, _WIRE_VARINT)
    buf += encode_uvarint(value)


def _iter_fields(data: bytes) -> Iterator[_Field]:
    pos = 0
    last = 0
    while pos < len(data):
        key, pos = decode_uvarint(data, pos)
        num, wire = key >> 3, key & 0x07
        if num == 0:
            raise CodecError("invalid field number 0", stage="amino-decode")
        if num < last:
            raise CodecError(
                f"field {num} out of order (after {last})", stage="amino-decode"
            )
        last = num
        if wire == _WIRE_VARINT:
            value, pos = decode_uvarint(data, pos)
            yield num, wire, value
        elif wire == _WIRE_BYTES:
            length, pos = decode_uvarint(data, pos)
            end = pos + length
            if end > len(data):
                raise CodecError("truncated length-delimited field", stage="amino-decode")
            yield num, wire, data[pos:end]
            pos = end
        else:
            raise CodecError(f"unsupported wire type {wire}", stage="amino-decode")


def _expect_bytes(num: int, wire: int, value: Union[int, bytes]) -> bytes:
    if wire != _WIRE_BYTES or not isinstance(value, bytes):
        raise CodecError(f"field {num}: expected bytes", stage="amino-decode")
    return value


def _expect_int(num: int, wire: int, value: Union[int, bytes]) -> int:
    if wire != _WIRE_VARINT or not isinstance(value, int):
        raise CodecError(f"field {num}: expected varint", stage="amino-decode")
    return value


def _expect_str(num: int, wire: int, value: Union[int, bytes]) -> str:
    raw = _expect_bytes(num, wire, value)
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise CodecError(f"field {num}: invalid utf-8", stage="amino-decode") from exc


# ---- key values ----

_BYTES_VALUE_TYPES: Final[Tuple[Type[AminoValue], ...]] = (
    Ed25519PubKey,
    Secp256k1PubKey,
    Ed25519PrivKey,
    Secp256k1PrivKey,
)

_VALUES_BY_PREFIX: Final[Dict[bytes, Type[AminoValue]]] = {
    name_to_prefix(t.AMINO_NAME): t for t in _BYTES_VALUE_TYPES + (LegacyAminoPubKey,)
}


def marshal_bare(value: AminoValue) -> bytes:
    """Encode a registered key value as ``prefix || body``."""
    prefix = name_to_prefix(value.AMINO_NAME)
    if isinstance(value, LegacyAminoPubKey):
        body = bytearray()
        _put_uvarint(body, 1, value.threshold)
        for member in value.public_keys:
            _put_bytes(body, 2, marshal_bare(member), write_empty=True)
        return prefix + bytes(body)
    raw = value.to_bytes()
    return prefix + encode_uvarint(len(raw)) + raw


def unmarshal_bare(data: bytes) -> AminoValue:
    """
    Decode ``prefix || body`` into a typed key value.

    Raises:
        CodecError: unknown prefix or malformed body.
    """
    if len(data) < _PREFIX_LEN:
        raise CodecError("value shorter than amino prefix", stage="amino-decode")
    prefix, body = data[:_PREFIX_LEN], data[_PREFIX_LEN:]
    cls = _VALUES_BY_PREFIX.get(prefix)
    if cls is None:
        raise CodecError(
            f"unregistered amino prefix {prefix.hex()}", stage="amino-decode"
        )
    if cls is LegacyAminoPubKey:
        return _decode_multisig_pub_key(body)
    length, pos = decode_uvarint(body, 0)
    if pos + length != len(body):
        raise CodecError("byte value length mismatch", stage="amino-decode")
    try:
        return cls(body[pos:])  # type: ignore[call-arg]
    except ValueError as exc:
        raise CodecError(str(exc), stage="amino-decode") from exc


def _decode_multisig_pub_key(body: bytes) -> LegacyAminoPubKey:
    threshold = 0
    members: List[SinglePubKey] = []
    for num, wire, value in _iter_fields(body):
        if num == 1:
            threshold = _expect_int(num, wire, value)
        elif num == 2:
            members.append(_single_pub_key(_expect_bytes(num, wire, value)))
        else:
            raise CodecError(f"unknown multisig field {num}", stage="amino-decode")
    try:
        return LegacyAminoPubKey(threshold=threshold, public_keys=tuple(members))
    except ValueError as exc:
        raise CodecError(str(exc), stage="amino-decode") from exc


def _pub_key(data: bytes) -> PubKey:
    value = unmarshal_bare(data)
    if not isinstance(value, (Ed25519PubKey, Secp256k1PubKey, LegacyAminoPubKey)):
        raise CodecError("expected a public key value", stage="amino-decode")
    return value


def _single_pub_key(data: bytes) -> SinglePubKey:
    value = _pub_key(data)
    if isinstance(value, LegacyAminoPubKey):
        raise CodecError("nested multisig public key", stage="amino-decode")
    return value


def unmarshal_priv_key(armor: bytes) -> PrivKey:
    """Decode the amino ``priv_key_armor`` of a legacy local entry."""
    value = unmarshal_bare(armor)
    if not isinstance(value, (Ed25519PrivKey, Secp256k1PrivKey)):
        raise CodecError("expected a private key value", stage="amino-decode")
    return value


# ---- BIP44 params (unregistered struct, no prefix) ----


def _encode_path(path: BIP44Params) -> bytes:
    buf = bytearray()
    _put_uvarint(buf, 1, path.purpose)
    _put_uvarint(buf, 2, path.coin_type)
    _put_uvarint(buf, 3, path.account)
    _put_uvarint(buf, 4, int(path.change))
    _put_uvarint(buf, 5, path.address_index)
    return bytes(buf)


def _decode_path(body: bytes) -> BIP44Params:
    values = {1: 0, 2: 0, 3: 0, 4: 0, 5: 0}
    for num, wire, value in _iter_fields(body):
        if num not in values:
            raise CodecError(f"unknown BIP44 field {num}", stage="amino-decode")
        values[num] = _expect_int(num, wire, value)
    if values[4] not in (0, 1):
        raise CodecError("BIP44 change must be a bool", stage="amino-decode")
    try:
        return BIP44Params(values[1], values[2], values[3], bool(values[4]), values[5])
    except ValueError as exc:
        raise CodecError(str(exc), stage="amino-decode") from exc


# ---- legacy infos ----


def _encode_local(info: LegacyLocalInfo) -> bytes:
    buf = bytearray()
    _put_string(buf, 1, info.name)
    _put_bytes(buf, 2, marshal_bare(info.pub_key))
    _put_bytes(buf, 3, info.priv_key_armor)
    _put_string(buf, 4, info.algo)
    return bytes(buf)


def _encode_ledger(info: LegacyLedgerInfo) -> bytes:
    buf = bytearray()
    _put_string(buf, 1, info.name)
    _put_bytes(buf, 2, marshal_bare(info.pub_key))
    _put_bytes(buf, 3, _encode_path(info.path), write_empty=True)
    _put_string(buf, 4, info.algo)
    return bytes(buf)


def _encode_offline(info: LegacyOfflineInfo) -> bytes:
    buf = bytearray()
    _put_string(buf, 1, info.name)
    _put_bytes(buf, 2, marshal_bare(info.pub_key))
    _put_string(buf, 3, info.algo)
    return bytes(buf)


def _encode_multi(info: LegacyMultiInfo) -> bytes:
    buf = bytearray()
    _put_string(buf, 1, info.name)
    _put_bytes(buf, 2, marshal_bare(info.pub_key))
    _put_uvarint(buf, 3, info.threshold)
    for member in info.pub_keys:
        inner = bytearray()
        _put_bytes(inner, 1, marshal_bare(member.pub_key))
        _put_uvarint(inner, 2, member.weight)
        _put_bytes(buf, 4, bytes(inner), write_empty=True)
    return bytes(buf)


def _fields_by_number(body: bytes) -> Dict[int, List[Tuple[int, Union[int, bytes]]]]:
    out: Dict[int, List[Tuple[int, Union[int, bytes]]]] = {}
    for num, wire, value in _iter_fields(body):
        out.setdefault(num, []).append((wire, value))
    return out


_T = TypeVar("_T")


def _one(
    fields: Dict[int, List[Tuple[int, Union[int, bytes]]]],
    num: int,
    conv: Callable[[int, int, Union[int, bytes]], _T],
    default: _T,
) -> _T:
    entries = fields.get(num)
    if not entries:
        return default
    if len(entries) > 1:
        raise CodecError(f"field {num} repeated", stage="amino-decode")
    wire, value = entries[0]
    return conv(num, wire, value)


def _check_known(fields: Dict[int, List[Tuple[int, Union[int, bytes]]]], known: int) -> None:
    unknown = [n for n in fields if n > known]
    if unknown:
        raise CodecError(f"unknown fields {unknown}", stage="amino-decode")


def _required_pub_key(fields: Dict[int, List[Tuple[int, Union[int, bytes]]]]) -> PubKey:
    raw = _one(fields, 2, _expect_bytes, b"")
    if not raw:
        raise CodecError("missing public key", stage="amino-decode")
    return _pub_key(raw)


def _decode_local(body: bytes) -> LegacyLocalInfo:
    fields = _fields_by_number(body)
    _check_known(fields, 4)
    return LegacyLocalInfo(
        name=_one(fields, 1, _expect_str, ""),
        pub_key=_required_pub_key(fields),
        priv_key_armor=_one(fields, 3, _expect_bytes, b""),
        algo=_one(fields, 4, _expect_str, ""),
    )


def _decode_ledger(body: bytes) -> LegacyLedgerInfo:
    fields = _fields_by_number(body)
    _check_known(fields, 4)
    path_raw = _one(fields, 3, _expect_bytes, b"")
    return LegacyLedgerInfo(
        name=_one(fields, 1, _expect_str, ""),
        pub_key=_required_pub_key(fields),
        path=_decode_path(path_raw),
        algo=_one(fields, 4, _expect_str, ""),
    )


def _decode_offline(body: bytes) -> LegacyOfflineInfo:
    fields = _fields_by_number(body)
    _check_known(fields, 3)
    return LegacyOfflineInfo(
        name=_one(fields, 1, _expect_str, ""),
        pub_key=_required_pub_key(fields),
        algo=_one(fields, 3, _expect_str, ""),
    )


def _decode_multisig_member(body: bytes) -> MultisigPubKeyInfo:
    fields = _fields_by_number(body)
    _check_known(fields, 2)
    raw = _one(fields, 1, _expect_bytes, b"")
    weight = _one(fields, 2, _expect_int, 0)
    return MultisigPubKeyInfo(pub_key=_single_pub_key(raw), weight=weight)


def _decode_multi(body: bytes) -> LegacyMultiInfo:
    fields = _fields_by_number(body)
    _check_known(fields, 4)
    threshold = _one(fields, 3, _expect_int, 0)
    members = tuple(
        _decode_multisig_member(_expect_bytes(4, wire, value))
        for wire, value in fields.get(4, [])
    )
    return LegacyMultiInfo(
        name=_one(fields, 1, _expect_str, ""),
        pub_key=_required_pub_key(fields),
        threshold=threshold,
        pub_keys=members,
    )


_INFO_ENCODERS: Final[Dict[type, Tuple[str, Callable[..., bytes]]]] = {
    LegacyLocalInfo: (LOCAL_INFO_NAME, _encode_local),
    LegacyLedgerInfo: (LEDGER_INFO_NAME, _encode_ledger),
    LegacyOfflineInfo: (OFFLINE_INFO_NAME, _encode_offline),
    LegacyMultiInfo: (MULTI_INFO_NAME, _encode_multi),
}

_INFO_DECODERS: Final[Dict[bytes, Callable[[bytes], LegacyInfo]]] = {
    name_to_prefix(LOCAL_INFO_NAME): _decode_local,
    name_to_prefix(LEDGER_INFO_NAME): _decode_ledger,
    name_to_prefix(OFFLINE_INFO_NAME): _decode_offline,
    name_to_prefix(MULTI_INFO_NAME): _decode_multi,
}


def marshal_info_bare(info: LegacyInfo) -> bytes:
    try:
        name, encoder = _INFO_ENCODERS[type(info)]
    except KeyError as exc:
        raise CodecError(
            f"unregistered legacy info type {type(info).__name__}", stage="amino-encode"
        ) from exc
    return name_to_prefix(name) + encoder(info)


def marshal_length_prefixed(info: LegacyInfo) -> bytes:
    """Encode a legacy info as stored in the keyring: ``uvarint(len) || prefix || fields``."""
    bare = marshal_info_bare(info)
    return encode_uvarint(len(bare)) + bare


def _strip_length_prefix(data: bytes) -> bytes:
    length, pos = decode_uvarint(data, 0)
    if pos + length != len(data):
        raise CodecError(
            f"length prefix {length} does not match payload size {len(data) - pos}",
            stage="amino-decode",
        )
    return data[pos:]


def unmarshal_length_prefixed(data: bytes) -> LegacyInfo:
    """
    Decode a length-prefixed legacy info (any of the four variants).

    Raises:
        CodecError: on any wire or registration error.
    """
    bare = _strip_length_prefix(bytes(data))
    if len(bare) < _PREFIX_LEN:
        raise CodecError("payload shorter than amino prefix", stage="amino-decode")
    decoder = _INFO_DECODERS.get(bare[:_PREFIX_LEN])
    if decoder is None:
        raise CodecError(
            f"unregistered legacy info prefix {bare[:_PREFIX_LEN].hex()}",
            stage="amino-decode",
        )
    return decoder(bare[_PREFIX_LEN:])


def unmarshal_multi_info(data: bytes) -> LegacyMultiInfo:
    """
    Multisig-aware decode of a length-prefixed multi info.

    Besides decoding, resolves the composite key's nested member keys against
    the per-member ``pub_keys`` list: both must reference the same keys in the
    same order and agree on the threshold.

    Raises:
        CodecError: if the payload is not a consistent multi info.
    """
    bare = _strip_length_prefix(bytes(data))
    if bare[:_PREFIX_LEN] != name_to_prefix(MULTI_INFO_NAME):
        raise CodecError("payload is not a multi info", stage="amino-decode")
    info = _decode_multi(bare[_PREFIX_LEN:])
    composite = info.pub_key
    if not isinstance(composite, LegacyAminoPubKey):
        raise CodecError(
            "multi info public key is not a multisig key", stage="amino-decode"
        )
    members = tuple(m.pub_key for m in info.pub_keys)
    if members and members != composite.public_keys:
        raise CodecError(
            "multisig members do not match the composite public key",
            stage="amino-decode",
        )
    if info.threshold and info.threshold != composite.threshold:
        raise CodecError("multisig threshold mismatch", stage="amino-decode")
    _LOGGER.debug(
        "Resolved multisig info %r: %d-of-%d",
        info.name,
        composite.threshold,
        len(composite.public_keys),
    )
    return info


__all__ = [
    "name_to_prefix",
    "encode_uvarint",
    "decode_uvarint",
    "marshal_bare",
    "unmarshal_bare",
    "unmarshal_priv_key",
    "marshal_info_bare",
    "marshal_length_prefixed",
    "unmarshal_length_prefixed",
    "unmarshal_multi_info",
]
