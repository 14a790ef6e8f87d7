"""
Request Signing

Client half of the device authentication protocol: signs the canonical
message with a device's private key and produces the three auth headers.

The ECDSA/RSA signature is computed over a SHA-256 digest of the canonical
message (Ed25519 signs the message directly); the result is base64 encoded.
"""

import base64
import logging
import os
import time
from typing import Any, Dict, Mapping, Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, padding, rsa

from backend.core.signing.canonical import build_canonical_message
from backend.core.signing.keys import decode_key, load_private_key

logger = logging.getLogger(__name__)


# Wire header names (HTTP header names are case-insensitive)
HEADER_DEVICE_ID = "x-device-id"
HEADER_SIGNATURE = "x-signature"
HEADER_TIMESTAMP = "x-timestamp"
HEADER_DEV_MODE = "x-dev-mode"

LAMBDA_DEVICE_ID = "lambda-s3"
LAMBDA_PRIVATE_KEY_ENV = "LAMBDA_S3_PRIVATE_KEY"


class SigningError(Exception):
    """Raised when a signature could not be produced."""


class SigningConfigurationError(SigningError):
    """Raised when no private key is configured for the signer."""


def sign_message(message: str, private_key_pem: str) -> str:
    """
    Sign a canonical message.

    Args:
        message: Canonical message string
        private_key_pem: PEM private key (EC, RSA or Ed25519)

    Returns:
        Base64-encoded signature

    Raises:
        SigningError: If the key is malformed or signing fails
    """
    try:
        private_key = load_private_key(private_key_pem)
        data = message.encode("utf-8")

        if isinstance(private_key, ec.EllipticCurvePrivateKey):
            signature = private_key.sign(data, ec.ECDSA(hashes.SHA256()))
        elif isinstance(private_key, rsa.RSAPrivateKey):
            signature = private_key.sign(data, padding.PKCS1v15(), hashes.SHA256())
        elif isinstance(private_key, ed25519.Ed25519PrivateKey):
            signature = private_key.sign(data)
        else:
            raise ValueError(f"Unsupported private key type: {type(private_key).__name__}")
    except Exception as e:
        logger.error(f"Error generating signature: {type(e).__name__}")
        raise SigningError(f"Failed to generate signature: {e}") from e

    return base64.b64encode(signature).decode("ascii")


class RequestSigner:
    """
    Signs outgoing requests on behalf of one device.

    Example:
        >>> signer = RequestSigner.from_env("lambda-s3", "LAMBDA_S3_PRIVATE_KEY")
        >>> headers = signer.generate_auth_headers("POST", "/feed", {"imageUrl": url})
    """

    def __init__(self, device_id: str, private_key_pem: Optional[str]):
        if not private_key_pem:
            raise SigningConfigurationError(f"No private key configured for device '{device_id}'")
        self.device_id = device_id
        self._private_key_pem = private_key_pem

    @classmethod
    def from_env(
        cls,
        device_id: str,
        env_var: str,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "RequestSigner":
        """
        Create a signer from a base64-encoded private key in the environment.

        Raises:
            SigningConfigurationError: If the variable is unset or does not decode
        """
        environ = os.environ if environ is None else environ
        private_key_pem = decode_key(environ.get(env_var))
        if not private_key_pem:
            raise SigningConfigurationError(f"{env_var} environment variable not set")
        return cls(device_id, private_key_pem)

    def generate_auth_headers(
        self,
        method: str,
        path: str,
        body: Any = None,
        timestamp_ms: Optional[int] = None,
    ) -> Dict[str, str]:
        """
        Sign a request and return the headers to attach to it.

        Args:
            method: HTTP method
            path: Request path (with query string, if any)
            body: JSON body that will be sent, or None for no body
            timestamp_ms: Signing time; defaults to now

        Returns:
            Dict with x-device-id, x-signature and x-timestamp

        Raises:
            SigningError: If signing fails
        """
        if timestamp_ms is None:
            timestamp_ms = int(time.time() * 1000)
        timestamp = str(timestamp_ms)

        message = build_canonical_message(method, path, body, timestamp)
        signature = sign_message(message, self._private_key_pem)

        return {
            HEADER_DEVICE_ID: self.device_id,
            HEADER_SIGNATURE: signature,
            HEADER_TIMESTAMP: timestamp,
        }


def generate_auth_headers(
    method: str,
    path: str,
    body: Any = None,
    device_id: str = LAMBDA_DEVICE_ID,
    env_var: str = LAMBDA_PRIVATE_KEY_ENV,
) -> Dict[str, str]:
    """
    Sign a request with a key read from the environment.

    The key is read on every call so a misconfigured deployment fails on the
    first request instead of sending it unsigned.

    Raises:
        SigningConfigurationError: If the private key variable is not set
        SigningError: If signing fails
    """
    signer = RequestSigner.from_env(device_id, env_var)
    return signer.generate_auth_headers(method, path, body)
