"""HTTP clients for the signing and verification endpoints.

Both accept any ``httpx.Client`` (a FastAPI ``TestClient`` works too). Signing
errors are re-raised as the matching ``SealError`` subclass; nothing is
retried.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from .attestation.compact import CompactAttestationData
from .attestation.model import SignatureEnvelope, SignatureVerificationResult, UnsignedAttestationPackage
from .errors import MalformedAttestation, error_for_status


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP {resp.status_code}"


class SigningClient:
    def __init__(self, base_url: str = "", client: Optional[httpx.Client] = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)

    def sign(self, package: UnsignedAttestationPackage, access_token: str) -> SignatureEnvelope:
        resp = self._client.post(
            f"{self.base_url}/sign-attestation",
            json=package.wire(),
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if resp.status_code != 200:
            raise error_for_status(resp.status_code, _error_message(resp))
        return SignatureEnvelope.model_validate(resp.json())


class VerificationClient:
    def __init__(self, base_url: str = "", client: Optional[httpx.Client] = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)

    def verify(self, data: CompactAttestationData | Dict[str, Any]) -> SignatureVerificationResult:
        payload = data.wire() if isinstance(data, CompactAttestationData) else data
        resp = self._client.post(f"{self.base_url}/verify-signature", json={"attestationData": payload})
        if resp.status_code == 500:
            raise MalformedAttestation(_error_message(resp))
        if resp.status_code != 200:
            raise error_for_status(resp.status_code, _error_message(resp))
        return SignatureVerificationResult.model_validate(resp.json())


__all__ = ["SigningClient", "VerificationClient"]
