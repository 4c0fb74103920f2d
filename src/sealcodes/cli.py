from __future__ import annotations

import argparse
import json
import mimetypes
import os
from pathlib import Path
from typing import Optional

from .attestation.compact import decode_payload
from .attestation.model import ExclusionZone
from .fingerprint.engine import compute_hashes
from .fingerprint.raster import Document
from .signing.keys import (
    SigningKey,
    SqliteKeyRegistry,
    format_timestamp,
    generate_private_key,
    parse_timestamp,
    private_key_pem,
    record_for,
    utc_now,
)
from .signing.signer import MOCK
from .verification.service import VerificationService


def _timestamp_arg(value: Optional[str]) -> Optional[str]:
    """Normalize an operator-supplied timestamp; ValueError when unparsable."""
    if value is None:
        return None
    return format_timestamp(parse_timestamp(value))


def cmd_keygen(args: argparse.Namespace) -> int:
    try:
        created = _timestamp_arg(args.created) or format_timestamp(utc_now())
        expires = _timestamp_arg(args.expires)
    except ValueError as e:
        print(f"invalid timestamp: {e}")
        return 1
    if expires is not None and parse_timestamp(expires) < parse_timestamp(created):
        print(f"expires {expires} is before created {created}")
        return 1
    registry = SqliteKeyRegistry(args.registry)
    if registry.get(args.key_id) is not None:
        print(f"key id {args.key_id} already registered")
        return 1
    if args.mock:
        registry.add(SigningKey(key_id=args.key_id, public_key="", algorithm=MOCK,
                                created_at=created, expires_at=expires))
        print(json.dumps({"key_id": args.key_id, "algorithm": MOCK}))
        return 0
    sk = generate_private_key()
    rec = record_for(args.key_id, sk, created_at=created, expires_at=expires)
    out = Path(args.out_dir)
    out.mkdir(parents=True, exist_ok=True)
    sk_path = out / f"{args.key_id}_ed25519_sk.pem"
    pk_path = out / f"{args.key_id}_ed25519_pk.pem"
    if sk_path.exists():
        print(f"refusing to overwrite {sk_path}")
        return 1
    sk_path.write_text(private_key_pem(sk))
    os.chmod(sk_path, 0o600)
    pk_path.write_text(rec.public_key)
    registry.add(rec)
    print(json.dumps({"key_id": rec.key_id, "private_key": str(sk_path), "public_key": str(pk_path),
                      "created_at": rec.created_at, "expires_at": rec.expires_at}))
    return 0


def cmd_retire(args: argparse.Namespace) -> int:
    try:
        at = _timestamp_arg(args.at)
    except ValueError as e:
        print(f"invalid timestamp: {e}")
        return 1
    registry = SqliteKeyRegistry(args.registry)
    try:
        rec = registry.retire(args.key_id, at)
    except KeyError:
        print(f"unknown key id {args.key_id}")
        return 1
    print(json.dumps({"key_id": rec.key_id, "expires_at": rec.expires_at}))
    return 0


def _parse_zone(value: str, fill: str) -> ExclusionZone:
    x, y, w, h = (int(p) for p in value.split(","))
    return ExclusionZone(x=x, y=y, width=w, height=h, fill_color=fill)


def cmd_hash(args: argparse.Namespace) -> int:
    path = Path(args.input)
    media_type = args.media_type or mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    hashes = compute_hashes(Document(path.read_bytes(), media_type), _parse_zone(args.zone, args.fill))
    print(json.dumps(hashes.wire()))
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    data = decode_payload(Path(args.input).read_text(encoding="utf-8"))
    result = VerificationService(SqliteKeyRegistry(args.registry)).verify(data)
    print(json.dumps(result.wire()))
    return 0 if result.is_valid else 2


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser("sealcodes")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_key = sub.add_parser("keygen", help="generate and register an attestation signing key")
    p_key.add_argument("--key-id", dest="key_id", required=True)
    p_key.add_argument("--out-dir", dest="out_dir", default="keys")
    p_key.add_argument("--registry", default=None)
    p_key.add_argument("--created", default=None)
    p_key.add_argument("--expires", default=None)
    p_key.add_argument("--mock", action="store_true", help="register a non-cryptographic dev key")
    p_key.set_defaults(func=cmd_keygen)

    p_ret = sub.add_parser("retire", help="set expires_at on a registered key")
    p_ret.add_argument("--key-id", dest="key_id", required=True)
    p_ret.add_argument("--at", default=None)
    p_ret.add_argument("--registry", default=None)
    p_ret.set_defaults(func=cmd_retire)

    p_hash = sub.add_parser("hash", help="fingerprint a document")
    p_hash.add_argument("--input", required=True)
    p_hash.add_argument("--zone", required=True, help="x,y,width,height")
    p_hash.add_argument("--fill", default="#FFFFFF")
    p_hash.add_argument("--media-type", dest="media_type", default=None)
    p_hash.set_defaults(func=cmd_hash)

    p_ver = sub.add_parser("verify", help="verify a seal payload against the key registry")
    p_ver.add_argument("--input", required=True)
    p_ver.add_argument("--registry", default=None)
    p_ver.set_defaults(func=cmd_verify)

    args = p.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
