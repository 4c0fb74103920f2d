from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass
from typing import Optional, Protocol, Tuple, runtime_checkable

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from .. import config
from ..errors import ServerConfigurationError
from ..utils.logging import get_logger
from .keys import ED25519, load_private_key, raw_public_bytes

MOCK = "mock"

log = get_logger(__name__)


@runtime_checkable
class Signer(Protocol):
    algorithm: str

    def sign(self, msg: bytes) -> bytes: ...
    def public_key_raw(self) -> bytes: ...


@dataclass
class Ed25519Signer:
    private_key: Ed25519PrivateKey
    algorithm: str = ED25519

    def sign(self, msg: bytes) -> bytes:
        return self.private_key.sign(msg)

    def public_key_raw(self) -> bytes:
        return raw_public_bytes(self.private_key.public_key())


@dataclass
class MockSigner:
    """Non-cryptographic placeholder (DEV-ONLY): signature = SHA-256(msg).

    Anyone can forge these. ``select_signer`` refuses it in production.
    """

    algorithm: str = MOCK

    def sign(self, msg: bytes) -> bytes:
        return hashlib.sha256(msg).digest()

    def public_key_raw(self) -> bytes:
        return b"\x00" * 32


class KeyProvider(Protocol):
    def active(self) -> Tuple[str, Signer]: ...


@dataclass
class StaticKeyProvider:
    key_id: str
    signer: Signer

    def active(self) -> Tuple[str, Signer]:
        return self.key_id, self.signer


@dataclass
class EnvKeyProvider:
    """Reads the active Ed25519 key from configuration on every request."""

    key_id: Optional[str] = None
    pem: Optional[str] = None
    pem_path: Optional[str] = None

    def active(self) -> Tuple[str, Signer]:
        key_id = self.key_id if self.key_id is not None else config.SIGNING_KEY_ID
        if not key_id:
            log.error("SIGNING_KEY_ID not set")
            raise ServerConfigurationError("Server configuration error")
        pem = self.pem if self.pem is not None else config.SIGNING_PRIVATE_KEY
        if not pem:
            path = self.pem_path if self.pem_path is not None else config.SIGNING_PRIVATE_KEY_PATH
            if not path or not os.path.exists(path):
                log.error("no attestation signing key provisioned")
                raise ServerConfigurationError("Server configuration error")
            with open(path, "r", encoding="utf-8") as f:
                pem = f.read()
        try:
            sk = load_private_key(pem)
        except ValueError as e:
            log.error(f"attestation signing key unusable: {e}")
            raise ServerConfigurationError("Server configuration error") from e
        return key_id, Ed25519Signer(sk)


def select_signer(backend: Optional[str] = None, production: Optional[bool] = None) -> KeyProvider:
    be = (backend or config.SIGNER_BACKEND).lower()
    prod = config.is_production() if production is None else production
    if be == ED25519.lower():
        return EnvKeyProvider()
    if be == MOCK:
        if prod:
            raise ServerConfigurationError("mock signer is not allowed in production")
        log.warning("using non-cryptographic MOCK signer; signatures are forgeable")
        return StaticKeyProvider(config.SIGNING_KEY_ID or "mock-key", MockSigner())
    raise ServerConfigurationError(f"unsupported SIGNER_BACKEND {be}")


__all__ = [
    "Signer",
    "Ed25519Signer",
    "MockSigner",
    "KeyProvider",
    "StaticKeyProvider",
    "EnvKeyProvider",
    "select_signer",
    "MOCK",
]
