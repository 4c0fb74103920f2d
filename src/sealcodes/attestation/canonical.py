"""Canonical byte form of a FullAttestationPackage.

The signer and every verifier MUST produce these bytes identically. Field
order is declared once in ``CANONICAL_ORDER``, never taken from dict
iteration. Output is compact JSON (no whitespace), UTF-8, non-ASCII kept
literal. Floats are rejected because their text form is not portable.

Layout (``userUrl`` only when present, ``""`` included as-is)::

    {"hashes":{"cryptographic":..,"pHash":..,"dHash":..},
     "identity":{"provider":..,"identifier":..},
     "exclusionZone":{"x":..,"y":..,"width":..,"height":..,"fillColor":"#RRGGBB"},
     "timestamp":..,
     "serviceInfo":{"publicKeyId":..},
     "userUrl":..}
"""
from __future__ import annotations

import json
from typing import Any, Dict, List, Tuple, Union

from .model import FullAttestationPackage

# (wire name, nested order or None for a scalar, optional?)
Order = List[Tuple[str, Union["Order", None], bool]]

CANONICAL_ORDER: Order = [
    ("hashes", [("cryptographic", None, False), ("pHash", None, False), ("dHash", None, False)], False),
    ("identity", [("provider", None, False), ("identifier", None, False)], False),
    (
        "exclusionZone",
        [
            ("x", None, False),
            ("y", None, False),
            ("width", None, False),
            ("height", None, False),
            ("fillColor", None, False),
        ],
        False,
    ),
    ("timestamp", None, False),
    ("serviceInfo", [("publicKeyId", None, False)], False),
    ("userUrl", None, True),
]


def validate_no_floats(obj: Any) -> None:
    if isinstance(obj, float):
        raise ValueError("floats not allowed in canonical attestation bytes")
    if isinstance(obj, dict):
        for v in obj.values():
            validate_no_floats(v)
    elif isinstance(obj, (list, tuple)):
        for v in obj:
            validate_no_floats(v)


def _ordered(src: Dict[str, Any], order: Order) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for name, nested, optional in order:
        if name not in src or src[name] is None:
            if optional:
                continue
            raise ValueError(f"canonical field missing: {name}")
        value = src[name]
        out[name] = _ordered(value, nested) if nested is not None else value
    return out


def canonical_object(pkg: FullAttestationPackage) -> Dict[str, Any]:
    wire = pkg.model_dump(by_alias=True)
    obj = _ordered(wire, CANONICAL_ORDER)
    validate_no_floats(obj)
    return obj


def canonicalize(pkg: FullAttestationPackage) -> bytes:
    text = json.dumps(canonical_object(pkg), separators=(",", ":"), ensure_ascii=False)
    return text.encode("utf-8")


__all__ = ["CANONICAL_ORDER", "canonical_object", "canonicalize", "validate_no_floats"]
