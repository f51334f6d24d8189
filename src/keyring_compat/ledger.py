# -*- coding: utf-8 -*-
"""
RU: Подпись на аппаратном устройстве Ledger (приложение Cosmos): обнаружение устройства по USB HID,
APDU-протокол, нормализация DER-подписи в 64-байтовую low-S форму.

EN: Ledger (Cosmos app) hardware signing: USB HID discovery, APDU framing and
DER -> 64-byte low-S signature normalization.

The private key never leaves the device. The keyring only knows the BIP44
derivation path stored with the entry and asks the device to sign over it.

Optional dependency:
    - hidapi (``import hid``): USB HID transport. Without it discovery raises
      ``DeviceNotFoundError``; signing through an injected device still works.

Security:
    - Signature bytes and messages are never logged.
"""
from __future__ import annotations

import logging
import struct
import threading
from typing import Any, Final, List, Optional, Protocol, Sequence, runtime_checkable

from keyring_compat.exceptions import (
    DeviceError,
    DeviceNotFoundError,
    DeviceSignError,
    SignatureNormalizationError,
)
from keyring_compat.hd import BIP44Params
from keyring_compat.keys import Secp256k1PubKey
from keyring_compat.signature import convert_der_to_ber

_LOGGER: Final = logging.getLogger(__name__)

try:
    import hid  # type: ignore[import-not-found]

    HAS_HID = True
except ImportError:
    hid = None  # type: ignore[assignment]
    HAS_HID = False
    _LOGGER.debug(
        "hidapi not installed, Ledger discovery unavailable. Install: pip install hidapi"
    )

LEDGER_VENDOR_ID: Final[int] = 0x2C97
LEDGER_USAGE_PAGE: Final[int] = 0xFFA0

CLA: Final[int] = 0x55
INS_GET_VERSION: Final[int] = 0x00
INS_SIGN_SECP256K1: Final[int] = 0x02
INS_GET_ADDR_SECP256K1: Final[int] = 0x04

PAYLOAD_INIT: Final[int] = 0x00
PAYLOAD_ADD: Final[int] = 0x01
PAYLOAD_LAST: Final[int] = 0x02

SIGN_MODE_JSON: Final[int] = 0x00
CHUNK_SIZE: Final[int] = 250

SW_OK: Final[int] = 0x9000
_STATUS_MESSAGES: Final = {
    0x6400: "execution error",
    0x6982: "empty buffer",
    0x6983: "output buffer too small",
    0x6984: "data is invalid",
    0x6986: "transaction rejected",
    0x6A80: "bad key handle",
    0x6B00: "invalid P1/P2",
    0x6D00: "instruction not supported",
    0x6E00: "Cosmos app does not seem to be open",
}

_HID_CHANNEL: Final[int] = 0x0101
_HID_TAG_APDU: Final[int] = 0x05
_HID_PACKET_SIZE: Final[int] = 64
_HID_READ_TIMEOUT_MS: Final[int] = 30_000


@runtime_checkable
class LedgerDevice(Protocol):
    """Minimal surface of a Cosmos-app device used by the keyring."""

    def sign_secp256k1(self, path: Sequence[int], message: bytes) -> bytes:
        """Return a DER-encoded ECDSA signature over ``message``."""
        ...

    def get_public_key_secp256k1(self, path: Sequence[int]) -> bytes:
        """Return the public key (compressed or uncompressed SEC1 point)."""
        ...


def status_message(status_word: int) -> str:
    return _STATUS_MESSAGES.get(status_word, f"unknown status 0x{status_word:04x}")


def serialize_path(path: Sequence[int]) -> bytes:
    """Five little-endian uint32 levels, as the Cosmos app expects."""
    if len(path) != 5:
        raise ValueError("derivation path must have exactly 5 levels")
    return struct.pack("<5I", *path)


def wrap_hid_command(apdu: bytes) -> List[bytes]:
    """Split an APDU into 64-byte HID packets (channel, tag, sequence, payload)."""
    data = struct.pack(">H", len(apdu)) + apdu
    packets: List[bytes] = []
    seq = 0
    offset = 0
    while offset < len(data) or not packets:
        header = struct.pack(">HBH", _HID_CHANNEL, _HID_TAG_APDU, seq)
        chunk = data[offset : offset + _HID_PACKET_SIZE - len(header)]
        offset += len(chunk)
        packets.append((header + chunk).ljust(_HID_PACKET_SIZE, b"\x00"))
        seq += 1
    return packets


def unwrap_hid_response(packets: Sequence[bytes]) -> bytes:
    """
    Reassemble an APDU response from HID packets.

    Raises:
        DeviceError: on channel/tag/sequence mismatch or truncated data.
    """
    buf = b""
    total: Optional[int] = None
    for seq, packet in enumerate(packets):
        if len(packet) < 5:
            raise DeviceError("short HID packet", stage="transport")
        channel, tag, pkt_seq = struct.unpack(">HBH", packet[:5])
        if channel != _HID_CHANNEL or tag != _HID_TAG_APDU or pkt_seq != seq:
            raise DeviceError("unexpected HID packet header", stage="transport")
        body = packet[5:]
        if total is None:
            if len(body) < 2:
                raise DeviceError("short HID packet", stage="transport")
            total = struct.unpack(">H", body[:2])[0]
            body = body[2:]
        buf += body
    if total is None or len(buf) < total:
        raise DeviceError("truncated HID response", stage="transport")
    return buf[:total]


class HidTransport:
    """Blocking APDU exchange over a hidapi device handle."""

    def __init__(self, handle: Any) -> None:
        self._handle = handle
        self._lock = threading.RLock()

    def exchange(self, apdu: bytes) -> bytes:
        """
        Send one APDU and return the response payload without the status word.

        Raises:
            DeviceSignError: non-OK status word.
            DeviceError: transport failure.
        """
        with self._lock:
            try:
                for packet in wrap_hid_command(apdu):
                    # leading 0x00 is the HID report id
                    self._handle.write(b"\x00" + packet)
                packets = [self._read_packet()]
                header_len = 7
                total = struct.unpack(">H", packets[0][5:7])[0]
                received = _HID_PACKET_SIZE - header_len
                while received < total:
                    packets.append(self._read_packet())
                    received += _HID_PACKET_SIZE - 5
            except OSError as exc:
                raise DeviceError("HID I/O failed", stage="transport") from exc

        response = unwrap_hid_response(packets)
        if len(response) < 2:
            raise DeviceError("response without status word", stage="transport")
        sw = struct.unpack(">H", response[-2:])[0]
        if sw != SW_OK:
            raise DeviceSignError(
                f"device returned 0x{sw:04x}: {status_message(sw)}",
                stage="apdu",
                status_word=sw,
            )
        return response[:-2]

    def _read_packet(self) -> bytes:
        data = bytes(self._handle.read(_HID_PACKET_SIZE, _HID_READ_TIMEOUT_MS))
        if not data:
            raise DeviceError("device read timed out", stage="transport")
        return data

    def close(self) -> None:
        with self._lock:
            self._handle.close()


class LedgerCosmosDevice:
    """Cosmos app client over any transport with ``exchange(apdu) -> bytes``."""

    def __init__(self, transport: Any) -> None:
        self._transport = transport

    def _apdu(self, ins: int, p1: int, p2: int, data: bytes = b"") -> bytes:
        if len(data) > 255:
            raise ValueError("APDU payload exceeds 255 bytes")
        return bytes([CLA, ins, p1, p2, len(data)]) + data

    def get_version(self) -> str:
        response = self._transport.exchange(self._apdu(INS_GET_VERSION, 0, 0))
        if len(response) < 4:
            raise DeviceError("short version response", stage="version")
        return f"{response[1]}.{response[2]}.{response[3]}"

    def sign_secp256k1(self, path: Sequence[int], message: bytes) -> bytes:
        chunks = [serialize_path(path)]
        chunks.extend(
            message[i : i + CHUNK_SIZE] for i in range(0, len(message), CHUNK_SIZE)
        )
        response = b""
        for index, chunk in enumerate(chunks):
            if index == 0:
                desc = PAYLOAD_INIT
            elif index == len(chunks) - 1:
                desc = PAYLOAD_LAST
            else:
                desc = PAYLOAD_ADD
            response = self._transport.exchange(
                self._apdu(INS_SIGN_SECP256K1, desc, SIGN_MODE_JSON, chunk)
            )
        return response

    def get_public_key_secp256k1(self, path: Sequence[int], hrp: str = "cosmos") -> bytes:
        hrp_bytes = hrp.encode("ascii")
        data = bytes([len(hrp_bytes)]) + hrp_bytes + serialize_path(path)
        response = self._transport.exchange(self._apdu(INS_GET_ADDR_SECP256K1, 0, 0, data))
        if len(response) < 33:
            raise DeviceError("short public key response", stage="get-pubkey")
        return response[:33]

    def close(self) -> None:
        close = getattr(self._transport, "close", None)
        if close is not None:
            close()


def find_ledger_cosmos_app() -> LedgerCosmosDevice:
    """
    Open the first attached Ledger exposing the Cosmos app.

    Raises:
        DeviceNotFoundError: hidapi missing, no device attached or app not open.
    """
    if not HAS_HID or hid is None:
        raise DeviceNotFoundError(
            "hidapi library is required for Ledger devices. Install: pip install hidapi",
            stage="discover",
        )
    candidates = [
        d
        for d in hid.enumerate(LEDGER_VENDOR_ID, 0)
        if d.get("usage_page") == LEDGER_USAGE_PAGE or d.get("interface") == 0
    ]
    if not candidates:
        raise DeviceNotFoundError("no Ledger device attached", stage="discover")

    handle = hid.device()
    try:
        handle.open_path(candidates[0]["path"])
    except OSError as exc:
        raise DeviceNotFoundError("cannot open Ledger device", stage="discover") from exc

    device = LedgerCosmosDevice(HidTransport(handle))
    try:
        version = device.get_version()
    except DeviceError as exc:
        device.close()
        raise DeviceNotFoundError(
            "Cosmos app is not open on the Ledger device", stage="discover"
        ) from exc
    _LOGGER.info("Ledger Cosmos app %s found", version)
    return device


def sign_with_ledger(
    device: LedgerDevice,
    path: BIP44Params,
    message: bytes,
    *,
    key_name: Optional[str] = None,
) -> bytes:
    """
    Sign ``message`` on ``device`` over ``path`` and normalize the result.

    Returns:
        64-byte ``R || S`` with low S.

    Raises:
        DeviceSignError: device failure (status word kept when known).
        SignatureNormalizationError: device returned malformed DER.
    """
    try:
        der = device.sign_secp256k1(path.derivation_path(), message)
    except DeviceSignError as exc:
        raise DeviceSignError(
            f"SignSECP256K1: {exc.message}",
            key_name=key_name,
            stage="sign",
            status_word=exc.status_word,
        ) from exc
    except DeviceError as exc:
        raise DeviceSignError(
            f"SignSECP256K1: {exc.message}", key_name=key_name, stage="sign"
        ) from exc

    try:
        return convert_der_to_ber(der)
    except SignatureNormalizationError as exc:
        raise SignatureNormalizationError(
            f"convertDERtoBER: {exc.message}", key_name=key_name, stage="normalize"
        ) from exc


def get_ledger_pub_key(device: LedgerDevice, bip32_path: Sequence[int]) -> Secp256k1PubKey:
    """
    Fetch the public key at ``bip32_path`` and re-serialize it compressed.

    Raises:
        DeviceError: device failure or unparsable point.
    """
    point = device.get_public_key_secp256k1(bip32_path)
    try:
        return Secp256k1PubKey.from_encoded_point(point)
    except ValueError as exc:
        raise DeviceError("error parsing public key", stage="get-pubkey") from exc


__all__ = [
    "HAS_HID",
    "LedgerDevice",
    "LedgerCosmosDevice",
    "HidTransport",
    "find_ledger_cosmos_app",
    "sign_with_ledger",
    "get_ledger_pub_key",
    "serialize_path",
    "wrap_hid_command",
    "unwrap_hid_response",
    "status_message",
]
