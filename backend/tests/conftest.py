"""
Test setup for device request authentication.
Provides real P-256 device keys, a fixed clock and a test app.
"""
# Load .env BEFORE any other imports (settings are read at import time)
import os
from pathlib import Path
from dotenv import load_dotenv

# Load from repo root .env
_repo_root = Path(__file__).parent.parent.parent
load_dotenv(_repo_root / ".env")

# Tests must never reach AWS or honor the dev bypass by accident
os.environ.setdefault("NODE_ENV", "test")
os.environ.pop("DEVICE_KEYS_SECRET_NAME", None)

import pytest
from unittest.mock import MagicMock
from fastapi.testclient import TestClient

from backend.api.device_auth import DeviceAuthGuard
from backend.api.main import create_app
from backend.core.config import Settings
from backend.core.signing.keys import encode_key, generate_keypair
from backend.core.signing.resolver import DeviceKeyResolver
from backend.core.signing.signer import RequestSigner
from backend.core.uploads import UploadUrlService


# Fixed "now" for every guard built here (2023-11-14T22:13:20Z)
NOW_MS = 1_700_000_000_000

KNOWN_DEVICES = ["pi-user", "pi-motion", "pi-feeder", "lambda-s3"]


@pytest.fixture(scope="session")
def pi_user_keys():
    """(private_pem, public_pem) for pi-user"""
    return generate_keypair()


@pytest.fixture(scope="session")
def pi_motion_keys():
    """(private_pem, public_pem) for pi-motion"""
    return generate_keypair()


@pytest.fixture
def device_environ(pi_user_keys, pi_motion_keys):
    """Environment carrying base64 public keys the way deployments store them."""
    return {
        "PI_USER_PUBLIC_KEY": encode_key(pi_user_keys[1]),
        "PI_MOTION_PUBLIC_KEY": encode_key(pi_motion_keys[1]),
    }


@pytest.fixture
def resolver(device_environ):
    """Resolver backed by environment variables only."""
    return DeviceKeyResolver(KNOWN_DEVICES, environ=device_environ)


@pytest.fixture
def guard(resolver):
    """Production-mode guard with a fixed clock."""
    return DeviceAuthGuard(resolver, development_mode=False, clock=lambda: NOW_MS)


@pytest.fixture
def pi_user_signer(pi_user_keys):
    return RequestSigner("pi-user", pi_user_keys[0])


@pytest.fixture
def test_settings():
    """Settings isolated from the developer's .env"""
    return Settings(
        _env_file=None,
        environment="test",
        known_devices=",".join(KNOWN_DEVICES),
        s3_bucket_name="crow-feeder-test",
    )


@pytest.fixture
def s3_client():
    """Mock boto3 S3 client"""
    client = MagicMock()
    client.generate_presigned_url.return_value = "https://crow-feeder-test.s3.amazonaws.com/signed"
    return client


@pytest.fixture
def app(test_settings, guard, s3_client):
    """App with the test guard and a mocked S3 client."""
    app = create_app(test_settings)
    app.state.device_auth = guard
    app.state.upload_urls = UploadUrlService(
        bucket_name="crow-feeder-test",
        client=s3_client,
        clock=lambda: NOW_MS,
    )
    return app


@pytest.fixture
def client(app):
    """Test client that returns 500 responses instead of raising."""
    return TestClient(app, raise_server_exceptions=False)
