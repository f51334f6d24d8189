# -*- coding: utf-8 -*-
"""
BIP44 derivation parameters used by hardware-device keys.

The textual form is ``m/44'/118'/0'/0/0``; the device receives the five
indices as uint32 with the hardened bit set on purpose, coin type and account.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Final, List

HARDENED: Final[int] = 0x80000000
PURPOSE: Final[int] = 44
ATOM_COIN_TYPE: Final[int] = 118


@dataclass(frozen=True)
class BIP44Params:
    """
    BIP44 path ``m / purpose' / coin_type' / account' / change / address_index``.

    Examples:
        >>> p = BIP44Params.from_string("m/44'/118'/0'/0/3")
        >>> p.address_index
        3
        >>> str(p)
        "m/44'/118'/0'/0/3"
    """

    purpose: int = PURPOSE
    coin_type: int = ATOM_COIN_TYPE
    account: int = 0
    change: bool = False
    address_index: int = 0

    def __post_init__(self) -> None:
        for label in ("purpose", "coin_type", "account", "address_index"):
            value = getattr(self, label)
            if not isinstance(value, int) or isinstance(value, bool):
                raise ValueError(f"{label} must be an integer")
            if value < 0 or value >= HARDENED:
                raise ValueError(f"{label} out of range")

    def derivation_path(self) -> List[int]:
        """Five uint32 indices as sent to a hardware device."""
        return [
            self.purpose | HARDENED,
            self.coin_type | HARDENED,
            self.account | HARDENED,
            int(self.change),
            self.address_index,
        ]

    @classmethod
    def from_string(cls, path: str) -> "BIP44Params":
        """
        Parse ``m/44'/118'/0'/0/0``.

        Raises:
            ValueError: on malformed paths or wrong hardening.
        """
        parts = path.strip().split("/")
        if parts and parts[0] == "m":
            parts = parts[1:]
        if len(parts) != 5:
            raise ValueError(f"invalid BIP44 path {path!r}: expected 5 levels")

        hardened = [p.endswith("'") for p in parts]
        if hardened != [True, True, True, False, False]:
            raise ValueError(
                f"invalid BIP44 path {path!r}: first three levels must be hardened"
            )
        try:
            values = [int(p.rstrip("'")) for p in parts]
        except ValueError as exc:
            raise ValueError(f"invalid BIP44 path {path!r}") from exc
        if values[3] not in (0, 1):
            raise ValueError(f"invalid BIP44 path {path!r}: change must be 0 or 1")
        return cls(
            purpose=values[0],
            coin_type=values[1],
            account=values[2],
            change=bool(values[3]),
            address_index=values[4],
        )

    def __str__(self) -> str:
        return (
            f"m/{self.purpose}'/{self.coin_type}'/{self.account}'/"
            f"{int(self.change)}/{self.address_index}"
        )


def new_fundraiser_params(
    account: int, coin_type: int = ATOM_COIN_TYPE, address_index: int = 0
) -> BIP44Params:
    """Params for ``44'/coin_type'/account'/0/address_index``."""
    return BIP44Params(PURPOSE, coin_type, account, False, address_index)


__all__ = ["BIP44Params", "new_fundraiser_params", "HARDENED", "ATOM_COIN_TYPE"]
