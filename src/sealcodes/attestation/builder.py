"""Client-side attestation assembly.

``build_package`` produces what is sent for signing; ``combine`` and
``compact`` turn the server's answer into the signed package and the seal
payload. All functions are pure.
"""
from __future__ import annotations

from typing import Optional

from .compact import CompactAttestationData, compact as _compact
from .model import (
    DocumentHashes,
    ExclusionZone,
    FullAttestationPackage,
    Identity,
    ServerAddendum,
    ServiceInfo,
    SignatureEnvelope,
    UnsignedAttestationPackage,
)


def build_package(
    hashes: DocumentHashes,
    identity: Identity,
    exclusion_zone: ExclusionZone,
    user_url: Optional[str] = None,
) -> UnsignedAttestationPackage:
    return UnsignedAttestationPackage(
        hashes=hashes,
        identity=identity,
        exclusion_zone=exclusion_zone,
        user_url=user_url,
    )


def addendum_from_envelope(envelope: SignatureEnvelope) -> ServerAddendum:
    return ServerAddendum(
        timestamp=envelope.timestamp,
        service_info=ServiceInfo(public_key_id=envelope.public_key_id),
    )


def combine(
    unsigned: UnsignedAttestationPackage,
    addendum: ServerAddendum,
    envelope: SignatureEnvelope,
) -> FullAttestationPackage:
    if envelope.timestamp != addendum.timestamp:
        raise ValueError("envelope timestamp does not match server addendum")
    if envelope.public_key_id != addendum.service_info.public_key_id:
        raise ValueError("envelope key id does not match server addendum")
    return FullAttestationPackage(
        hashes=unsigned.hashes,
        identity=unsigned.identity,
        exclusion_zone=unsigned.exclusion_zone,
        user_url=unsigned.user_url,
        timestamp=addendum.timestamp,
        service_info=addendum.service_info,
    )


def compact(
    full: FullAttestationPackage,
    envelope: SignatureEnvelope,
    service_name: Optional[str] = None,
) -> CompactAttestationData:
    if envelope.public_key_id != full.service_info.public_key_id:
        raise ValueError("signature envelope belongs to a different key")
    return _compact(full, envelope.signature, service_name=service_name)


def finalize(
    unsigned: UnsignedAttestationPackage,
    envelope: SignatureEnvelope,
    service_name: Optional[str] = None,
) -> tuple[FullAttestationPackage, CompactAttestationData]:
    """combine + compact for the common case where only the envelope came back."""
    full = combine(unsigned, addendum_from_envelope(envelope), envelope)
    return full, compact(full, envelope, service_name=service_name)
