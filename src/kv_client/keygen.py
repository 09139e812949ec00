"""
Encryption key generator CLI.

Usage:
    kv-keygen [--kid KID] [--env]
    kv-keygen --inspect EXPORTED

Or run directly:
    python -m kv_client.keygen

The printed string is what KV_ENCRYPTION_KEY expects.
"""

from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence
from uuid import uuid4

from kv_client.config import ENV_ENCRYPTION_KEY
from kv_client.errors import KvError
from kv_client.keys import export_key, generate_key, import_key


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kv-keygen",
        description="Generate or inspect client-side encryption keys.",
    )
    parser.add_argument("--kid", help="key identifier (default: random UUID)")
    parser.add_argument(
        "--env",
        action="store_true",
        help=f"print as a {ENV_ENCRYPTION_KEY}=... line",
    )
    parser.add_argument(
        "--inspect",
        metavar="EXPORTED",
        help="show the kid and size of an exported key",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.inspect is not None:
        try:
            material = import_key(args.inspect)
        except KvError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1
        print(f"kid: {material.kid}")
        print(f"size: {len(material.key) * 8} bits")
        return 0

    try:
        material = generate_key(args.kid or str(uuid4()))
    except KvError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    exported = export_key(material)
    print(f"{ENV_ENCRYPTION_KEY}={exported}" if args.env else exported)
    return 0


if __name__ == "__main__":
    sys.exit(main())
