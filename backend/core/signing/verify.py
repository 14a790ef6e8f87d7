"""
Signature Verification

Verifies device signatures on incoming requests.
Implements timestamp validation and signature checking over the canonical
message (see backend.core.signing.canonical).

Failures are reported as a VerificationResult rather than raised, so no
cryptography exception crosses into request handling.
"""

import base64
import binascii
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, padding, rsa

from backend.core.signing.keys import load_public_key

logger = logging.getLogger(__name__)


# Timestamp tolerance: ±5 minutes
TIMESTAMP_TOLERANCE_MS = 5 * 60 * 1000


class VerificationError(Enum):
    """Enumeration of possible verification failures."""
    MISSING_HEADERS = "missing_headers"
    UNKNOWN_DEVICE = "unknown_device"
    INVALID_TIMESTAMP_FORMAT = "invalid_timestamp_format"
    TIMESTAMP_EXPIRED = "timestamp_expired"
    INVALID_SIGNATURE = "invalid_signature"


@dataclass
class VerificationResult:
    """
    Result of authenticating one request.

    Attributes:
        success: Whether verification succeeded
        error: Error type if verification failed
        error_message: Human-readable error message (safe to return to caller)
        device_id: Verified device identity (on success)
        request_time: Verified request time in ms since epoch (on success)
        detail: Internal detail for logs only
    """
    success: bool
    error: Optional[VerificationError] = None
    error_message: Optional[str] = None
    device_id: Optional[str] = None
    request_time: Optional[int] = None
    detail: Optional[str] = None

    @classmethod
    def ok(cls, device_id: str, request_time: int) -> "VerificationResult":
        """Create a successful result."""
        return cls(success=True, device_id=device_id, request_time=request_time)

    @classmethod
    def fail(
        cls,
        error: VerificationError,
        message: str,
        device_id: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> "VerificationResult":
        """Create a failed result."""
        return cls(
            success=False,
            error=error,
            error_message=message,
            device_id=device_id,
            detail=detail,
        )


def check_timestamp(
    timestamp_str: str,
    now_ms: int,
    tolerance_ms: int = TIMESTAMP_TOLERANCE_MS,
) -> Union[int, VerificationError]:
    """
    Parse and validate a millisecond timestamp header.

    The window is symmetric: stale requests (replays) and requests from a
    clock running ahead are both rejected. |now - t| == tolerance is accepted.

    Args:
        timestamp_str: x-timestamp header value
        now_ms: Current time in milliseconds since epoch
        tolerance_ms: Accepted difference in either direction

    Returns:
        The parsed timestamp, or a VerificationError
    """
    try:
        request_time = int(timestamp_str.strip())
    except (ValueError, TypeError, AttributeError):
        return VerificationError.INVALID_TIMESTAMP_FORMAT

    if abs(now_ms - request_time) > tolerance_ms:
        return VerificationError.TIMESTAMP_EXPIRED

    return request_time


def verify_signature(message: str, signature_b64: str, public_key_pem: str) -> bool:
    """
    Verify a base64 signature over a canonical message.

    Uses the public key's native algorithm: ECDSA/SHA-256 for EC keys,
    PKCS#1 v1.5/SHA-256 for RSA keys, EdDSA for Ed25519 keys.

    Args:
        message: Canonical message rebuilt from the live request
        signature_b64: x-signature header value
        public_key_pem: Device public key (PEM)

    Returns:
        True only if the signature is valid. Malformed keys or signatures
        are logged and reported as False.
    """
    try:
        signature = base64.b64decode(signature_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        logger.error(f"Error verifying signature: invalid base64 ({e})")
        return False

    try:
        data = message.encode("utf-8")
        public_key = load_public_key(public_key_pem)
        if isinstance(public_key, ec.EllipticCurvePublicKey):
            public_key.verify(signature, data, ec.ECDSA(hashes.SHA256()))
        elif isinstance(public_key, rsa.RSAPublicKey):
            public_key.verify(signature, data, padding.PKCS1v15(), hashes.SHA256())
        elif isinstance(public_key, ed25519.Ed25519PublicKey):
            public_key.verify(signature, data)
        else:
            raise ValueError(f"Unsupported public key type: {type(public_key).__name__}")
    except InvalidSignature:
        return False
    except Exception as e:
        logger.error(f"Error verifying signature: {type(e).__name__}: {e}")
        return False

    return True
