"""Error taxonomy for fingerprinting, signing and verification.

Fingerprinting and signing failures are raised as exceptions and carry the
HTTP status they map to. Verification failures are normally reported inside a
``SignatureVerificationResult`` using the ``*_CODE`` constants below; only a
payload too malformed to evaluate raises.
"""
from __future__ import annotations


class SealError(Exception):
    code = "SealError"
    status_code = 500

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code


# Fingerprinting

class UnsupportedFormat(SealError):
    code = "UnsupportedFormat"
    status_code = 415


class GeometryOutOfBounds(SealError):
    code = "GeometryOutOfBounds"
    status_code = 400


# Signing

class Unauthorized(SealError):
    code = "Unauthorized"
    status_code = 401


class IdentityMismatch(SealError):
    code = "IdentityMismatch"
    status_code = 403


class MethodNotAllowed(SealError):
    code = "MethodNotAllowed"
    status_code = 405


class ServerConfigurationError(SealError):
    code = "ServerConfigurationError"
    status_code = 500


# Verification

class MalformedAttestation(SealError):
    code = "MalformedAttestation"
    status_code = 500


MISSING_SIGNATURE = "MissingSignature"
MISSING_KEY_ID = "MissingKeyId"
KEY_NOT_FOUND = "KeyNotFound"
KEY_NOT_VALID_AT_TIMESTAMP = "KeyNotValidAtTimestamp"
CRYPTOGRAPHIC_VERIFICATION_FAILED = "CryptographicVerificationFailed"


_BY_STATUS = {
    401: Unauthorized,
    403: IdentityMismatch,
    405: MethodNotAllowed,
    500: ServerConfigurationError,
}


def error_for_status(status_code: int, message: str) -> SealError:
    """Rebuild the service-side error from an HTTP status (client side)."""
    cls = _BY_STATUS.get(status_code, SealError)
    return cls(message)


__all__ = [
    "SealError",
    "UnsupportedFormat",
    "GeometryOutOfBounds",
    "Unauthorized",
    "IdentityMismatch",
    "MethodNotAllowed",
    "ServerConfigurationError",
    "MalformedAttestation",
    "MISSING_SIGNATURE",
    "MISSING_KEY_ID",
    "KEY_NOT_FOUND",
    "KEY_NOT_VALID_AT_TIMESTAMP",
    "CRYPTOGRAPHIC_VERIFICATION_FAILED",
    "error_for_status",
]
