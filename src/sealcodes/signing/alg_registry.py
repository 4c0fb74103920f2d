"""Signature verification by registry key algorithm.

Supported algorithms:
  - Ed25519 (registry ``public_key`` is an SPKI PEM)
  - mock    (SHA-256 placeholder; accepted only outside production)

Verification never uses key material carried by the attestation itself.
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import hmac

from cryptography.exceptions import InvalidSignature

from .. import config
from .keys import ED25519, SigningKey, load_public_key
from .signer import MOCK


class UnsupportedAlgorithm(Exception):
    """Raised when a registry record names an algorithm we cannot verify."""


def decode_signature(signature_b64: str) -> bytes:
    return base64.b64decode(signature_b64.encode(), validate=True)


def verify_alg(key: SigningKey, signature_b64: str, message: bytes) -> bool:
    alg = key.algorithm.lower()
    try:
        sig = decode_signature(signature_b64)
    except (binascii.Error, ValueError):
        return False
    if alg == ED25519.lower():
        try:
            pk = load_public_key(key.public_key)
        except ValueError:
            return False
        try:
            pk.verify(sig, message)
            return True
        except InvalidSignature:
            return False
    if alg == MOCK:
        if config.is_production():
            raise UnsupportedAlgorithm("mock signatures are not accepted in production")
        return hmac.compare_digest(sig, hashlib.sha256(message).digest())
    raise UnsupportedAlgorithm(f"unsupported key algorithm: {key.algorithm}")


__all__ = ["verify_alg", "decode_signature", "UnsupportedAlgorithm"]
