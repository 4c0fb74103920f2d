"""Attestation signing.

Order of checks: credential -> identity match -> active key -> sign. The
timestamp and key id are stamped here and nowhere else. Nothing about the
document is persisted.
"""
from __future__ import annotations

import base64
import datetime
from typing import Callable, Optional

from ..attestation.canonical import canonicalize
from ..attestation.model import (
    FullAttestationPackage,
    ServiceInfo,
    SignatureEnvelope,
    UnsignedAttestationPackage,
)
from ..errors import IdentityMismatch, ServerConfigurationError, Unauthorized
from ..utils.logging import get_logger
from .auth import IdentityResolver, bearer_token
from .keys import ED25519, KeyRegistry, format_timestamp, public_key_matches, utc_now
from .signer import KeyProvider, Signer

log = get_logger(__name__)


class SigningService:
    def __init__(
        self,
        resolver: IdentityResolver,
        keys: KeyProvider,
        registry: Optional[KeyRegistry] = None,
        clock: Callable[[], datetime.datetime] = utc_now,
    ):
        self.resolver = resolver
        self.keys = keys
        self.registry = registry
        self.clock = clock

    def _check_registry(self, key_id: str, signer: Signer, now: datetime.datetime) -> None:
        if self.registry is None:
            return
        record = self.registry.get(key_id)
        if record is None:
            log.error(f"active signing key {key_id} missing from key registry")
            raise ServerConfigurationError("Server configuration error")
        try:
            valid = record.valid_at(now)
        except ValueError as e:
            log.error(f"signing key {key_id} has an unreadable validity window: {e}")
            raise ServerConfigurationError("Server configuration error") from e
        if not valid:
            log.error(f"active signing key {key_id} is outside its validity window")
            raise ServerConfigurationError("Server configuration error")
        if record.algorithm.lower() != signer.algorithm.lower():
            log.error(f"signing key {key_id} registered as {record.algorithm}, signer is {signer.algorithm}")
            raise ServerConfigurationError("Server configuration error")
        if signer.algorithm == ED25519 and not public_key_matches(record, signer.public_key_raw()):
            log.error(f"signing key {key_id} does not match its registry public key")
            raise ServerConfigurationError("Server configuration error")

    def sign(self, package: UnsignedAttestationPackage, authorization: Optional[str]) -> SignatureEnvelope:
        token = bearer_token(authorization)
        caller = self.resolver.resolve(token)
        if caller is None:
            raise Unauthorized("Invalid authentication token")

        if package.identity.identifier != caller.identifier:
            log.warning(f"identity mismatch: package={package.identity.identifier} caller={caller.identifier}")
            raise IdentityMismatch(
                "Identity mismatch: attestation package identity does not match authenticated user"
            )
        if package.identity.provider != caller.provider:
            log.warning(f"provider mismatch: package={package.identity.provider} caller={caller.provider}")
            raise IdentityMismatch(
                "Provider mismatch: attestation package provider does not match authenticated user"
            )

        key_id, signer = self.keys.active()
        now = self.clock()
        self._check_registry(key_id, signer, now)

        timestamp = format_timestamp(now)
        full = FullAttestationPackage(
            hashes=package.hashes,
            identity=package.identity,
            exclusion_zone=package.exclusion_zone,
            user_url=package.user_url,
            timestamp=timestamp,
            service_info=ServiceInfo(public_key_id=key_id),
        )
        signature = signer.sign(canonicalize(full))
        log.info(f"signed attestation for {caller.provider}:{caller.identifier} key={key_id} t={timestamp}")
        return SignatureEnvelope(
            timestamp=timestamp,
            signature=base64.b64encode(signature).decode(),
            public_key=base64.b64encode(signer.public_key_raw()).decode(),
            public_key_id=key_id,
        )


__all__ = ["SigningService"]
