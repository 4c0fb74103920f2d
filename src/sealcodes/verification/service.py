"""Offline-verifiable seal check.

Steps, each short-circuiting with its own error code:
  1. ``sig`` / ``s.k`` present (no key lookup otherwise)
  2. key id resolved in the registry
  3. attestation timestamp inside the key's validity window
  4. compact payload expanded to the signed package
  5. signature checked against the registry public key
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from ..attestation.canonical import canonicalize
from ..attestation.compact import CompactAttestationData, expand
from ..attestation.model import Identity, SignatureVerificationResult, VerificationDetails
from ..errors import (
    CRYPTOGRAPHIC_VERIFICATION_FAILED,
    KEY_NOT_FOUND,
    KEY_NOT_VALID_AT_TIMESTAMP,
    MISSING_KEY_ID,
    MISSING_SIGNATURE,
    MalformedAttestation,
    ServerConfigurationError,
)
from ..obs.metrics import VERIFY_RESULTS
from ..signing.alg_registry import UnsupportedAlgorithm, verify_alg
from ..signing.keys import KeyRegistry, parse_timestamp
from ..utils.logging import get_logger

log = get_logger(__name__)


def _str(v: Any) -> str:
    return v if isinstance(v, str) else ""


class VerificationService:
    def __init__(self, registry: KeyRegistry):
        self.registry = registry

    def _result(
        self,
        raw: Dict[str, Any],
        key_id: str,
        *,
        valid: bool,
        code: Optional[str] = None,
        error: Optional[str] = None,
        key_found: bool = False,
        signature_match: bool = False,
        timestamp_valid: bool = False,
    ) -> SignatureVerificationResult:
        ident = raw.get("i") if isinstance(raw.get("i"), dict) else {}
        VERIFY_RESULTS.labels(outcome="valid" if valid else (code or "invalid")).inc()
        return SignatureVerificationResult(
            is_valid=valid,
            public_key_id=key_id,
            timestamp=_str(raw.get("t")),
            identity=Identity(provider=_str(ident.get("p")), identifier=_str(ident.get("id"))),
            error=error,
            error_code=code,
            details=VerificationDetails(
                key_found=key_found,
                signature_match=signature_match,
                timestamp_valid=timestamp_valid,
            ),
        )

    def verify(self, data: Any) -> SignatureVerificationResult:
        raw = data.wire() if isinstance(data, CompactAttestationData) else data
        if not isinstance(raw, dict):
            raise MalformedAttestation("attestation data must be an object")
        service = raw.get("s") if isinstance(raw.get("s"), dict) else {}
        key_id = _str(service.get("k"))

        if not raw.get("sig"):
            log.info("verification rejected: no signature in attestation data")
            return self._result(raw, key_id, valid=False, code=MISSING_SIGNATURE,
                                error="No signature found in attestation data")
        if not key_id:
            log.info("verification rejected: no public key id in attestation data")
            return self._result(raw, "", valid=False, code=MISSING_KEY_ID,
                                error="No public key ID found in attestation data")

        record = self.registry.get(key_id)
        if record is None:
            log.warning(f"verification: public key not found: {key_id}")
            return self._result(raw, key_id, valid=False, code=KEY_NOT_FOUND,
                                error=f"Public key not found: {key_id}")

        try:
            attested_at = parse_timestamp(raw.get("t"))
        except (TypeError, ValueError) as e:
            raise MalformedAttestation(f"invalid attestation timestamp: {raw.get('t')!r}") from e
        try:
            key_valid = record.valid_at(attested_at)
        except ValueError as e:
            log.error(f"registry record for key {key_id} has an unreadable validity window: {e}")
            raise ServerConfigurationError("Server configuration error") from e
        if not key_valid:
            log.warning(
                f"verification: key {key_id} not valid at {raw.get('t')} "
                f"(created {record.created_at}, expires {record.expires_at})"
            )
            return self._result(raw, key_id, valid=False, code=KEY_NOT_VALID_AT_TIMESTAMP,
                                error="Public key was not valid at the time of attestation",
                                key_found=True)

        package, signature = expand(raw)
        try:
            ok = verify_alg(record, signature, canonicalize(package))
        except UnsupportedAlgorithm as e:
            log.warning(f"verification: {e}")
            return self._result(raw, key_id, valid=False, code=CRYPTOGRAPHIC_VERIFICATION_FAILED,
                                error="Cryptographic verification failed",
                                key_found=True, timestamp_valid=True)
        if not ok:
            log.info(f"verification: signature mismatch for key {key_id}")
            return self._result(raw, key_id, valid=False, code=CRYPTOGRAPHIC_VERIFICATION_FAILED,
                                error="Signature verification failed",
                                key_found=True, timestamp_valid=True)
        return self._result(raw, key_id, valid=True, key_found=True,
                            signature_match=True, timestamp_valid=True)


__all__ = ["VerificationService"]
