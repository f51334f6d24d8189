#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Re-encode the current (protobuf) keys of a keyring into a separate legacy (amino) keyring.

The source keyring is never modified. Migrated keys land in ``<dir>/amino``;
check them with ``--list`` and copy the ``*.info`` files back when satisfied.

Usage:
    python migrate_keyring.py ~/.gaia/keyring-file
    python migrate_keyring.py ~/.gaia/keyring-file --list
    python migrate_keyring.py ./kr --backend test -v
"""

from __future__ import annotations

import argparse
import getpass
import logging
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional

# Add src to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root / "src"))

from keyring_compat import (
    BackendType,
    Keyring,
    KeyringConfig,
    KeyringError,
    MigrationError,
    UnsupportedKeyTypeAbort,
)


def print_banner(text: str) -> None:
    """Print section banner."""
    print()
    print("=" * 70)
    print(f"  {text}")
    print("=" * 70)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Migrate protobuf-encoded keyring entries to a legacy amino keyring."
    )
    parser.add_argument("directory", help="source keyring directory")
    parser.add_argument(
        "--backend",
        choices=[BackendType.FILE.value, BackendType.TEST.value],
        default=BackendType.FILE.value,
        help="storage backend of the source keyring (default: file)",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="only list the keys of the keyring, do not migrate",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def list_keys(keyring: Keyring, prefix: str) -> None:
    print_banner(f"Keys in {keyring.directory}")
    for key in keyring.keys():
        encoding = "amino" if key.is_legacy_encoded() else "proto"
        print(f"  {key.name:<20} {str(key.type()):<8} {encoding:<6} {key.bech32_address(prefix)}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = KeyringConfig.from_env()
    except ValueError as exc:
        print(f"❌ Invalid configuration: {exc}", file=sys.stderr)
        return 2

    password_func: Optional[Callable[[str], str]] = None
    if args.backend == BackendType.FILE.value:
        cached: Dict[str, str] = {}

        # one prompt shared by the source and the destination keyring
        def _prompt_once(directory: str) -> str:
            if "password" not in cached:
                cached["password"] = getpass.getpass(
                    f'Enter password for keyring "{args.directory}": ', stream=sys.stderr
                )
            return cached["password"]

        password_func = _prompt_once

    keyring = Keyring.new(args.backend, args.directory, password_func, config=config)

    try:
        if args.list:
            list_keys(keyring, config.bech32_prefix)
            return 0
        print_banner(f"Migrating {keyring.directory}")
        report = keyring.migrate_proto_keys_to_amino()
    except MigrationError as exc:
        print(f"❌ Migration aborted: {exc}", file=sys.stderr)
        return 1
    except UnsupportedKeyTypeAbort as exc:
        print(f"❌ Migration aborted: {exc}", file=sys.stderr)
        return 1
    except KeyringError as exc:
        print(f"❌ {exc}", file=sys.stderr)
        return 1

    print(report.render())
    print(f"✅ Done. Review the keys in {report.destination_dir} before copying them back.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
