"""
Device Request Signing Module

Timestamped asymmetric request signing (ECDSA P-256 by default) used by
feeder devices and the ingestion lambda to authenticate against the API.

Both halves live here so signer and verifier share one canonical message
builder.
"""

from backend.core.signing.keys import (
    decode_key,
    encode_key,
    generate_keypair,
    load_private_key,
    load_public_key,
)
from backend.core.signing.canonical import (
    build_canonical_message,
    serialize_body,
)
from backend.core.signing.signer import (
    HEADER_DEVICE_ID,
    HEADER_SIGNATURE,
    HEADER_TIMESTAMP,
    HEADER_DEV_MODE,
    RequestSigner,
    SigningError,
    SigningConfigurationError,
    generate_auth_headers,
    sign_message,
)
from backend.core.signing.verify import (
    TIMESTAMP_TOLERANCE_MS,
    VerificationError,
    VerificationResult,
    check_timestamp,
    verify_signature,
)
from backend.core.signing.resolver import (
    DeviceKeyResolver,
    SecretsManagerStore,
)

__all__ = [
    # Keys
    "decode_key",
    "encode_key",
    "generate_keypair",
    "load_private_key",
    "load_public_key",
    # Canonical message
    "build_canonical_message",
    "serialize_body",
    # Signing
    "HEADER_DEVICE_ID",
    "HEADER_SIGNATURE",
    "HEADER_TIMESTAMP",
    "HEADER_DEV_MODE",
    "RequestSigner",
    "SigningError",
    "SigningConfigurationError",
    "generate_auth_headers",
    "sign_message",
    # Verification
    "TIMESTAMP_TOLERANCE_MS",
    "VerificationError",
    "VerificationResult",
    "check_timestamp",
    "verify_signature",
    # Key resolution
    "DeviceKeyResolver",
    "SecretsManagerStore",
]
