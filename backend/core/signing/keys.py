"""
Device Key Management

Decoding, loading and generation of the asymmetric keys devices sign with.
Uses the cryptography library for all cryptographic operations.

Keys are stored at rest (environment variables, Secrets Manager values) as
base64 of the PEM text. Single-line stores often carry the PEM with literal
``\\n`` sequences instead of line breaks, so those are normalized on decode.
"""

import base64
import binascii
import logging
from typing import Optional, Tuple

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

logger = logging.getLogger(__name__)

# Key types the verifier knows how to check signatures for
PublicKey = (ec.EllipticCurvePublicKey, rsa.RSAPublicKey, ed25519.Ed25519PublicKey)
PrivateKey = (ec.EllipticCurvePrivateKey, rsa.RSAPrivateKey, ed25519.Ed25519PrivateKey)


def decode_key(b64_key: Optional[str]) -> Optional[str]:
    """
    Decode a base64-stored key into PEM text.

    Args:
        b64_key: Base64 of the PEM text, possibly with escaped newlines

    Returns:
        PEM text with real newlines, or None if the input was empty or
        could not be decoded. Never raises.
    """
    if not b64_key:
        return None

    try:
        decoded = base64.b64decode(b64_key).decode("utf-8")
    except (binascii.Error, ValueError) as e:
        logger.error(f"Error decoding key: {type(e).__name__}")
        return None

    return decoded.replace("\\n", "\n")


def encode_key(pem: str) -> str:
    """Encode PEM text into the single-line base64 form used in env/secrets."""
    return base64.b64encode(pem.encode("utf-8")).decode("ascii")


def load_public_key(pem: str):
    """
    Parse a PEM public key.

    Args:
        pem: SubjectPublicKeyInfo PEM text

    Returns:
        EC, RSA or Ed25519 public key object

    Raises:
        ValueError: If the key cannot be parsed or is of an unsupported type
    """
    try:
        public_key = serialization.load_pem_public_key(pem.encode("utf-8"))
    except Exception as e:
        raise ValueError(f"Invalid public key: {e}") from e

    if not isinstance(public_key, PublicKey):
        raise ValueError(f"Unsupported public key type: {type(public_key).__name__}")
    return public_key


def load_private_key(pem: str):
    """
    Parse an unencrypted PEM private key.

    Args:
        pem: PKCS#8 (or traditional) PEM text

    Returns:
        EC, RSA or Ed25519 private key object

    Raises:
        ValueError: If the key cannot be parsed or is of an unsupported type
    """
    try:
        private_key = serialization.load_pem_private_key(pem.encode("utf-8"), password=None)
    except Exception as e:
        raise ValueError(f"Invalid private key: {e}") from e

    if not isinstance(private_key, PrivateKey):
        raise ValueError(f"Unsupported private key type: {type(private_key).__name__}")
    return private_key


def generate_keypair() -> Tuple[str, str]:
    """
    Generate a new P-256 (secp256r1) keypair for a device.

    Returns:
        Tuple of (private_key_pem, public_key_pem)

    Example:
        >>> private_pem, public_pem = generate_keypair()
        >>> env_value = encode_key(public_pem)
    """
    private_key = ec.generate_private_key(ec.SECP256R1())

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")

    return private_pem, public_pem
