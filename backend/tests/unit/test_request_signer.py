"""
Unit tests for request signing (device and lambda side).
"""
import base64
import os
from unittest.mock import patch

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519, rsa

from backend.core.signing.canonical import build_canonical_message
from backend.core.signing.keys import encode_key
from backend.core.signing.signer import (
    RequestSigner,
    SigningConfigurationError,
    SigningError,
    generate_auth_headers,
    sign_message,
)
from backend.core.signing.verify import verify_signature


def _pem_pair(private_key):
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


class TestSignMessage:
    """Test sign_message."""

    def test_signature_is_base64(self, pi_user_keys):
        signature = sign_message("POST/feed{}1", pi_user_keys[0])
        assert base64.b64decode(signature, validate=True)

    def test_ecdsa_round_trip(self, pi_user_keys):
        private_pem, public_pem = pi_user_keys
        message = build_canonical_message("POST", "/detection", {"confidence": 0.85}, "1700000000000")
        assert verify_signature(message, sign_message(message, private_pem), public_pem)

    def test_rsa_round_trip(self):
        private_pem, public_pem = _pem_pair(rsa.generate_private_key(public_exponent=65537, key_size=2048))
        assert verify_signature("GET/health{}1", sign_message("GET/health{}1", private_pem), public_pem)

    def test_ed25519_round_trip(self):
        private_pem, public_pem = _pem_pair(ed25519.Ed25519PrivateKey.generate())
        assert verify_signature("GET/health{}1", sign_message("GET/health{}1", private_pem), public_pem)

    def test_malformed_key_raises_descriptive_error(self):
        with pytest.raises(SigningError, match="Failed to generate signature"):
            sign_message("data", "fake-key")

    def test_signing_error_keeps_cause(self):
        with pytest.raises(SigningError) as exc_info:
            sign_message("data", "fake-key")
        assert isinstance(exc_info.value.__cause__, ValueError)


class TestRequestSigner:
    """Test RequestSigner header generation."""

    def test_headers(self, pi_user_signer, pi_user_keys):
        headers = pi_user_signer.generate_auth_headers(
            "POST", "/urls/feed", {"fileName": "a", "format": "jpg"}, timestamp_ms=1700000000000
        )

        assert set(headers) == {"x-device-id", "x-signature", "x-timestamp"}
        assert headers["x-device-id"] == "pi-user"
        assert headers["x-timestamp"] == "1700000000000"

        message = 'POST/urls/feed{"fileName":"a","format":"jpg"}1700000000000'
        assert verify_signature(message, headers["x-signature"], pi_user_keys[1])

    def test_defaults_to_current_time(self, pi_user_signer):
        with patch("backend.core.signing.signer.time.time", return_value=1700000000.5):
            headers = pi_user_signer.generate_auth_headers("GET", "/health")
        assert headers["x-timestamp"] == "1700000000500"

    def test_missing_key_is_configuration_error(self):
        with pytest.raises(SigningConfigurationError):
            RequestSigner("pi-user", None)

    def test_from_env(self, pi_user_keys):
        environ = {"PI_USER_PRIVATE_KEY": encode_key(pi_user_keys[0])}
        signer = RequestSigner.from_env("pi-user", "PI_USER_PRIVATE_KEY", environ=environ)
        assert signer.device_id == "pi-user"

    def test_from_env_missing_variable(self):
        with pytest.raises(SigningConfigurationError, match="PI_USER_PRIVATE_KEY environment variable not set"):
            RequestSigner.from_env("pi-user", "PI_USER_PRIVATE_KEY", environ={})


class TestGenerateAuthHeaders:
    """Test the lambda's env-driven signing entry point."""

    def test_signs_as_lambda(self, pi_user_keys):
        with patch.dict(os.environ, {"LAMBDA_S3_PRIVATE_KEY": encode_key(pi_user_keys[0])}):
            headers = generate_auth_headers("POST", "/feed", {"imageUrl": "x"})

        assert headers["x-device-id"] == "lambda-s3"
        message = build_canonical_message("POST", "/feed", {"imageUrl": "x"}, headers["x-timestamp"])
        assert verify_signature(message, headers["x-signature"], pi_user_keys[1])

    def test_missing_private_key_fails_hard(self):
        env = {k: v for k, v in os.environ.items() if k != "LAMBDA_S3_PRIVATE_KEY"}
        with patch.dict(os.environ, env, clear=True):
            with pytest.raises(SigningConfigurationError, match="LAMBDA_S3_PRIVATE_KEY environment variable not set"):
                generate_auth_headers("GET", "/path", {})

    def test_garbage_private_key_propagates_signing_error(self):
        with patch.dict(os.environ, {"LAMBDA_S3_PRIVATE_KEY": encode_key("not a pem")}):
            with pytest.raises(SigningError):
                generate_auth_headers("POST", "/feed", {})
