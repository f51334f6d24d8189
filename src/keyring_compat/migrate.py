# -*- coding: utf-8 -*-
"""
RU: Неразрушающая миграция: ключи в текущей (protobuf) кодировке перекодируются в legacy
(amino) и записываются в отдельный keyring ``<dir>/amino``. Исходный keyring не изменяется.

EN: Non-destructive migration of current-encoded keys into a separate legacy keyring.

Legacy-encoded source keys are only reported. Current-encoded keys are
converted (:meth:`Key.to_legacy_info`) and stored under the same name in the
destination, ``<source dir>/amino`` by default. Once checked, the operator can
copy the ``*.info`` files back into the source directory (same password).

The pass stops at the first failing key.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Final, List, Optional

from keyring_compat.config import BackendType
from keyring_compat.exceptions import KeyringError, MigrationError
from keyring_compat.keyring import Keyring
from keyring_compat.protocols import PasswordFunc

_LOGGER: Final = logging.getLogger(__name__)


class MigrationOutcome(str, Enum):
    ALREADY_LEGACY = "already_legacy"
    MIGRATED = "migrated"


@dataclass(frozen=True)
class MigrationEntry:
    name: str
    outcome: MigrationOutcome
    key_type: str
    address: str


@dataclass
class MigrationReport:
    source_dir: str
    destination_dir: str
    entries: List[MigrationEntry] = field(default_factory=list)

    @property
    def migrated(self) -> List[str]:
        return [e.name for e in self.entries if e.outcome is MigrationOutcome.MIGRATED]

    @property
    def already_legacy(self) -> List[str]:
        return [e.name for e in self.entries if e.outcome is MigrationOutcome.ALREADY_LEGACY]

    def render(self) -> str:
        """Human-readable summary, one line per key."""
        lines = []
        for e in self.entries:
            if e.outcome is MigrationOutcome.MIGRATED:
                lines.append(
                    f"{e.name!r} ({e.key_type}, {e.address}) re-encoded to amino keyring "
                    f"{self.destination_dir!r}"
                )
            else:
                lines.append(f"{e.name!r} ({e.key_type}, {e.address}) already amino encoded")
        lines.append(
            f"{len(self.migrated)} migrated, {len(self.already_legacy)} already legacy"
        )
        return "\n".join(lines)


def migrate_proto_keys_to_amino(
    keyring: Keyring,
    *,
    destination: Optional[Keyring] = None,
    password_func: Optional[PasswordFunc] = None,
) -> MigrationReport:
    """
    Re-encode every current-encoded key of ``keyring`` into a legacy keyring.

    Args:
        keyring: source keyring (read only).
        destination: target keyring; defaults to a file keyring in
            ``<source dir>/<migration_subdir>``. Required when the source is
            not file backed (memory or caller-supplied storage).
        password_func: destination password callback; defaults to the source one.

    Returns:
        Per-key outcomes.

    Raises:
        MigrationError: no destination for a non-file source, or listing,
            conversion or write failed (cause chained).
        UnsupportedKeyTypeAbort: multisig/offline key under the abort policy.
    """
    if destination is None:
        if keyring.backend not in (BackendType.FILE, BackendType.TEST):
            raise MigrationError(
                f"keyring {keyring.directory!r} is not file backed, pass a destination",
                stage="destination",
            )
        destination = Keyring.new(
            BackendType.FILE,
            os.path.join(keyring.directory, keyring.config.migration_subdir),
            password_func or keyring.password_func,
            config=keyring.config,
        )
    report = MigrationReport(source_dir=keyring.directory, destination_dir=destination.directory)
    prefix = keyring.config.bech32_prefix

    try:
        keys = keyring.keys()
    except KeyringError as exc:
        raise MigrationError(f"cannot list keys: {exc}", stage="list") from exc

    for key in keys:
        try:
            address = key.bech32_address(prefix)
            if key.is_legacy_encoded():
                _LOGGER.info("%r (amino encoded) left as is", key.name)
                report.entries.append(
                    MigrationEntry(key.name, MigrationOutcome.ALREADY_LEGACY, str(key.type()), address)
                )
                continue
            _LOGGER.info("%r (proto encoded) migrating", key.name)
            info = key.to_legacy_info()
            destination.add_legacy(key.name, info)
        except KeyringError as exc:
            _LOGGER.error("Migration aborted at %r: %s", key.name, exc)
            raise MigrationError(
                f"cannot migrate key {key.name}: {exc}", key_name=key.name, stage="migrate"
            ) from exc
        report.entries.append(
            MigrationEntry(key.name, MigrationOutcome.MIGRATED, str(key.type()), address)
        )
        _LOGGER.info("%r re-encoded to amino keyring %s", key.name, destination.directory)

    return report


__all__ = [
    "MigrationOutcome",
    "MigrationEntry",
    "MigrationReport",
    "migrate_proto_keys_to_amino",
]
