# -*- coding: utf-8 -*-
"""
Current (protobuf-encoded) keyring entries.

A ``Record`` holds a name, a typed public key and exactly one item describing
where the private material lives. The item classes mirror the protobuf
``oneof item``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from keyring_compat.hd import BIP44Params
from keyring_compat.keys import PrivKey, PubKey
from keyring_compat.legacy_info import KeyType


@dataclass(frozen=True)
class RecordLocal:
    # None when the entry was written without private material
    priv_key: Optional[PrivKey] = field(default=None, repr=False)


@dataclass(frozen=True)
class RecordLedger:
    path: Optional[BIP44Params] = None


@dataclass(frozen=True)
class RecordMulti:
    pass


@dataclass(frozen=True)
class RecordOffline:
    pass


RecordItem = Union[RecordLocal, RecordLedger, RecordMulti, RecordOffline]

_ITEM_TYPES = {
    RecordLocal: KeyType.LOCAL,
    RecordLedger: KeyType.LEDGER,
    RecordMulti: KeyType.MULTI,
    RecordOffline: KeyType.OFFLINE,
}


@dataclass(frozen=True)
class Record:
    name: str
    pub_key: PubKey
    item: RecordItem

    def get_type(self) -> KeyType:
        return _ITEM_TYPES[type(self.item)]

    def get_pub_key(self) -> PubKey:
        return self.pub_key

    def get_local(self) -> Optional[RecordLocal]:
        return self.item if isinstance(self.item, RecordLocal) else None

    def get_ledger(self) -> Optional[RecordLedger]:
        return self.item if isinstance(self.item, RecordLedger) else None


def new_local_record(name: str, priv_key: PrivKey, pub_key: PubKey) -> Record:
    return Record(name=name, pub_key=pub_key, item=RecordLocal(priv_key))


def new_ledger_record(name: str, pub_key: PubKey, path: BIP44Params) -> Record:
    return Record(name=name, pub_key=pub_key, item=RecordLedger(path))


def new_offline_record(name: str, pub_key: PubKey) -> Record:
    return Record(name=name, pub_key=pub_key, item=RecordOffline())


def new_multi_record(name: str, pub_key: PubKey) -> Record:
    return Record(name=name, pub_key=pub_key, item=RecordMulti())


__all__ = [
    "Record",
    "RecordItem",
    "RecordLocal",
    "RecordLedger",
    "RecordMulti",
    "RecordOffline",
    "new_local_record",
    "new_ledger_record",
    "new_offline_record",
    "new_multi_record",
]
