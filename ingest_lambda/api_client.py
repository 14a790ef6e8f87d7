"""
API client for the ingestion lambda

Reports uploaded images to the feed/detection endpoints. Every call is signed
as device lambda-s3 with the key in LAMBDA_S3_PRIVATE_KEY; the lambda refuses
to send a request it cannot sign.
"""
import logging
import os

import httpx

from backend.core.signing.canonical import serialize_body
from backend.core.signing.signer import generate_auth_headers
from ingest_lambda.images import FEED, get_image_type
from ingest_lambda.s3 import S3ObjectInfo

logger = logging.getLogger(__name__)

API_TIMEOUT_SECONDS = 10.0
USER_AGENT = "crow-detector-s3-lambda/1.0.0"


# NOTE: read at call time so tests and redeployed configs are picked up
def _get_api_base_url() -> str:
    return os.getenv("API_BASE_URL", "https://api-dev.crittercanteen.com").rstrip("/")


def _get_feed_endpoint() -> str:
    return os.getenv("FEED_ENDPOINT", "/feed")


def _get_detection_endpoint() -> str:
    return os.getenv("DETECTION_ENDPOINT", "/detection")


class ApiCallError(Exception):
    """Raised when the API rejects or fails a call."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


def image_url(s3_info: S3ObjectInfo) -> str:
    """Public URL of the uploaded object."""
    return f"https://{s3_info.bucket}.s3.amazonaws.com/{s3_info.key}"


def call_api(s3_info: S3ObjectInfo, client: httpx.Client = None) -> dict:
    """
    Report an uploaded image to the API.

    Args:
        s3_info: Uploaded object
        client: Optional httpx client (a new one with a 10s timeout otherwise)

    Returns:
        Parsed JSON response

    Raises:
        ValueError: If the key is neither a feed nor a detection image
        SigningConfigurationError: If LAMBDA_S3_PRIVATE_KEY is not set
        ApiCallError: On a non-2xx response
        httpx.HTTPError: On timeouts and connection errors
    """
    image_type = get_image_type(s3_info.key)
    endpoint = _get_feed_endpoint() if image_type == FEED else _get_detection_endpoint()

    payload = {"imageUrl": image_url(s3_info)}

    # Sign before opening a connection: no unsigned requests
    auth_headers = generate_auth_headers("POST", endpoint, payload)
    headers = {
        "Content-Type": "application/json",
        "User-Agent": USER_AGENT,
        **auth_headers,
    }

    # Send exactly the bytes that were signed
    content = serialize_body(payload).encode("utf-8")
    url = f"{_get_api_base_url()}{endpoint}"

    if client is None:
        with httpx.Client(timeout=API_TIMEOUT_SECONDS) as own_client:
            response = own_client.post(url, content=content, headers=headers)
    else:
        response = client.post(url, content=content, headers=headers)

    if not response.is_success:
        raise ApiCallError(f"API call failed with status: {response.status_code}", response.status_code)

    data = response.json()
    logger.info(f"{image_type} API response: {response.status_code}")
    return data
