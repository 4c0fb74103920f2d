"""Compact seal payload: short-keyed form of a signed attestation.

Every field of the full package is listed exactly once in ``FIELD_MAP``;
both ``compact`` and ``expand`` walk that table so a field cannot be added to
one direction only. Payload format versions:

  v1: h.c h.p.p h.p.d | i.p i.id | e.x e.y e.w e.h e.f (no '#') | t | s.k s.n? | sig | u?

A payload without ``v`` is read as v1. ``s.n`` (service name) is
informational and not part of the canonical bytes.
"""
from __future__ import annotations

import base64
import json
from typing import Any, Callable, Dict, Optional, Tuple

import cbor2
from pydantic import BaseModel, ConfigDict, ValidationError

from ..errors import MalformedAttestation
from .model import FullAttestationPackage, normalize_color

FORMAT_VERSION = 1
SUPPORTED_VERSIONS = frozenset({1})


def _strip_hash(color: str) -> str:
    return color[1:] if color.startswith("#") else color


# (compact path, full wire path, to_compact, to_full, optional)
FieldMap = Tuple[Tuple[str, ...], Tuple[str, ...], Optional[Callable], Optional[Callable], bool]

FIELD_MAP: Tuple[FieldMap, ...] = (
    (("h", "c"), ("hashes", "cryptographic"), None, None, False),
    (("h", "p", "p"), ("hashes", "pHash"), None, None, False),
    (("h", "p", "d"), ("hashes", "dHash"), None, None, False),
    (("i", "p"), ("identity", "provider"), None, None, False),
    (("i", "id"), ("identity", "identifier"), None, None, False),
    (("e", "x"), ("exclusionZone", "x"), None, None, False),
    (("e", "y"), ("exclusionZone", "y"), None, None, False),
    (("e", "w"), ("exclusionZone", "width"), None, None, False),
    (("e", "h"), ("exclusionZone", "height"), None, None, False),
    (("e", "f"), ("exclusionZone", "fillColor"), _strip_hash, normalize_color, False),
    (("t",), ("timestamp",), None, None, False),
    (("s", "k"), ("serviceInfo", "publicKeyId"), None, None, False),
    (("u",), ("userUrl",), None, None, True),
)


class _Short(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class _Perceptual(_Short):
    p: str
    d: str


class _Hashes(_Short):
    c: str
    p: _Perceptual


class _Identity(_Short):
    p: str
    id: str


class _Zone(_Short):
    x: int
    y: int
    w: int
    h: int
    f: str


class _Service(_Short):
    k: str
    n: Optional[str] = None


class CompactAttestationData(_Short):
    v: int = FORMAT_VERSION
    h: _Hashes
    i: _Identity
    e: _Zone
    t: str
    s: _Service
    sig: str
    u: Optional[str] = None

    def wire(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


def _get(obj: Dict[str, Any], path: Tuple[str, ...]) -> Any:
    cur: Any = obj
    for key in path:
        if not isinstance(cur, dict) or key not in cur:
            return None
        cur = cur[key]
    return cur


def _put(obj: Dict[str, Any], path: Tuple[str, ...], value: Any) -> None:
    cur = obj
    for key in path[:-1]:
        cur = cur.setdefault(key, {})
    cur[path[-1]] = value


def compact(
    full: FullAttestationPackage,
    signature: str,
    service_name: Optional[str] = None,
) -> CompactAttestationData:
    wire = full.model_dump(by_alias=True)
    out: Dict[str, Any] = {"v": FORMAT_VERSION}
    for c_path, f_path, to_compact, _to_full, optional in FIELD_MAP:
        value = _get(wire, f_path)
        if value is None:
            if optional:
                continue
            raise ValueError(f"missing field {'.'.join(f_path)}")
        _put(out, c_path, to_compact(value) if to_compact else value)
    if service_name:
        _put(out, ("s", "n"), service_name)
    out["sig"] = signature
    return CompactAttestationData.model_validate(out)


def parse_compact(raw: Any) -> CompactAttestationData:
    if isinstance(raw, CompactAttestationData):
        return raw
    if not isinstance(raw, dict):
        raise MalformedAttestation("attestation data must be an object")
    version = raw.get("v", FORMAT_VERSION)
    if version not in SUPPORTED_VERSIONS:
        raise MalformedAttestation(f"unsupported attestation format version: {version!r}")
    try:
        return CompactAttestationData.model_validate(raw)
    except ValidationError as e:
        raise MalformedAttestation(f"invalid attestation data: {e.error_count()} error(s)") from e


def expand(data: Any) -> Tuple[FullAttestationPackage, str]:
    """Rebuild the exact package that was canonicalized at signing time."""
    cad = parse_compact(data)
    wire = cad.wire()
    full: Dict[str, Any] = {}
    for c_path, f_path, _to_compact, to_full, optional in FIELD_MAP:
        value = _get(wire, c_path)
        if value is None:
            if optional:
                continue
            raise MalformedAttestation(f"missing field {'.'.join(c_path)}")
        try:
            _put(full, f_path, to_full(value) if to_full else value)
        except ValueError as e:
            raise MalformedAttestation(str(e)) from e
    try:
        pkg = FullAttestationPackage.model_validate(full)
    except ValidationError as e:
        raise MalformedAttestation(f"invalid attestation data: {e.error_count()} error(s)") from e
    return pkg, cad.sig


# Seal payload text encodings

def encode_payload(data: CompactAttestationData, fmt: str = "json") -> str:
    wire = data.wire()
    if fmt == "json":
        return json.dumps(wire, separators=(",", ":"), ensure_ascii=False)
    if fmt == "cbor":
        raw = cbor2.dumps(wire, canonical=True)
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")
    raise ValueError(f"unsupported payload format: {fmt}")


def decode_payload(text: str) -> CompactAttestationData:
    text = text.strip()
    try:
        if text.startswith("{"):
            obj = json.loads(text)
        else:
            padded = text + "=" * (-len(text) % 4)
            obj = cbor2.loads(base64.urlsafe_b64decode(padded))
    except (ValueError, cbor2.CBORDecodeError) as e:
        raise MalformedAttestation("undecodable seal payload") from e
    return parse_compact(obj)


__all__ = [
    "FORMAT_VERSION",
    "FIELD_MAP",
    "CompactAttestationData",
    "compact",
    "expand",
    "parse_compact",
    "encode_payload",
    "decode_payload",
]
