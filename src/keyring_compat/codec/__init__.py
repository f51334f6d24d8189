# -*- coding: utf-8 -*-
"""
Dual codec: current (protobuf) and legacy (amino) encodings of keyring entries.

:func:`decode_entry` resolves bytes of unknown origin: current first, legacy
second, with a second multisig-aware pass for legacy multi entries.
"""
from __future__ import annotations

import logging
from typing import Final, Union

from keyring_compat.codec import amino, proto
from keyring_compat.exceptions import CodecError, DecodeError
from keyring_compat.legacy_info import LegacyInfo, LegacyMultiInfo
from keyring_compat.record import Record

_LOGGER: Final = logging.getLogger(__name__)

DecodedEntry = Union[Record, LegacyInfo]


def decode_entry(name: str, data: bytes) -> DecodedEntry:
    """
    Decode a stored ``.info`` payload in whichever scheme parses.

    Args:
        name: entry name, used for error context only.
        data: raw stored bytes.

    Returns:
        A ``Record`` (current encoding) or a ``LegacyInfo`` variant.

    Raises:
        DecodeError: when neither scheme parses; carries both causes.
    """
    try:
        return proto.unmarshal_record(data)
    except CodecError as exc:
        proto_error: CodecError = exc

    try:
        info = amino.unmarshal_length_prefixed(data)
    except CodecError as exc:
        _LOGGER.warning("Entry %r decodes in neither scheme", name)
        raise DecodeError(
            f"cannot decode key {name}",
            key_name=name,
            proto_error=proto_error,
            amino_error=exc,
        ) from exc

    if isinstance(info, LegacyMultiInfo):
        # the generic pass does not cross-check the nested member keys
        try:
            return amino.unmarshal_multi_info(data)
        except CodecError as exc:
            raise DecodeError(
                f"cannot decode multisig key {name}",
                key_name=name,
                proto_error=proto_error,
                amino_error=exc,
            ) from exc
    return info


def encode_entry(entry: DecodedEntry) -> bytes:
    """Encode a record or legacy info in its own scheme."""
    if isinstance(entry, Record):
        return proto.marshal_record(entry)
    return amino.marshal_length_prefixed(entry)


__all__ = ["DecodedEntry", "decode_entry", "encode_entry", "amino", "proto"]
