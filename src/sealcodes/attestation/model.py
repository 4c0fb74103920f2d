"""Attestation wire models.

``fillColor`` is part of the signed bytes and has exactly one canonical
spelling: ``#`` followed by six UPPER-CASE hex digits. Client input such as
``ff00aa`` or ``#ff00aa`` is normalized to ``#FF00AA`` on validation, so the
signer, the compact payload (``e.f`` = ``FF00AA``) and every verifier see the
same string. A verifier that rebuilds the color as ``"#" + e.f`` without
changing case therefore reproduces the signed value.
"""
from __future__ import annotations

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_COLOR_RE = re.compile(r"^#[0-9A-F]{6}$")


def normalize_color(value: str) -> str:
    """Return the canonical ``#RRGGBB`` (upper-case) form of a hex color."""
    v = (value or "").strip().upper()
    if not v.startswith("#"):
        v = "#" + v
    if not _COLOR_RE.match(v):
        raise ValueError(f"invalid fill color: {value!r}")
    return v


class _Wire(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    def wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class ExclusionZone(_Wire):
    x: int = Field(ge=0)
    y: int = Field(ge=0)
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    fill_color: str = Field(default="#FFFFFF", alias="fillColor")

    @field_validator("fill_color")
    @classmethod
    def _color(cls, v: str) -> str:
        return normalize_color(v)


class DocumentHashes(_Wire):
    cryptographic: str
    p_hash: str = Field(alias="pHash")
    d_hash: str = Field(alias="dHash")


class Identity(_Wire):
    provider: str
    identifier: str


class UnsignedAttestationPackage(_Wire):
    """Client-built package. It has no timestamp or key id field on purpose."""

    hashes: DocumentHashes
    identity: Identity
    exclusion_zone: ExclusionZone = Field(alias="exclusionZone")
    # None means absent; "" is a present, empty URL
    user_url: Optional[str] = Field(default=None, alias="userUrl")


class ServiceInfo(_Wire):
    public_key_id: str = Field(alias="publicKeyId")


class ServerAddendum(_Wire):
    timestamp: str
    service_info: ServiceInfo = Field(alias="serviceInfo")


class FullAttestationPackage(UnsignedAttestationPackage):
    timestamp: str
    service_info: ServiceInfo = Field(alias="serviceInfo")

    def unsigned(self) -> UnsignedAttestationPackage:
        return UnsignedAttestationPackage(
            hashes=self.hashes,
            identity=self.identity,
            exclusion_zone=self.exclusion_zone,
            user_url=self.user_url,
        )

    def addendum(self) -> ServerAddendum:
        return ServerAddendum(timestamp=self.timestamp, service_info=self.service_info)


class SignatureEnvelope(_Wire):
    timestamp: str
    signature: str
    # Informational only; verifiers resolve keys by public_key_id
    public_key: str = Field(alias="publicKey")
    public_key_id: str = Field(alias="publicKeyId")


class VerificationDetails(_Wire):
    key_found: bool = Field(alias="keyFound")
    signature_match: bool = Field(alias="signatureMatch")
    timestamp_valid: bool = Field(alias="timestampValid")


class SignatureVerificationResult(_Wire):
    is_valid: bool = Field(alias="isValid")
    public_key_id: str = Field(alias="publicKeyId")
    timestamp: str
    identity: Identity
    error: Optional[str] = None
    error_code: Optional[str] = Field(default=None, alias="errorCode")
    details: Optional[VerificationDetails] = None
