"""
Device Authentication Guard

Verifies signed requests from feeder devices and the ingestion lambda before
they reach route handlers.

Checks (in order):
1. Development bypass (NODE_ENV=development AND x-dev-mode: true)
2. x-device-id, x-signature and x-timestamp headers present
3. Device ID resolves to a public key
4. Timestamp within ±5 minutes
5. Signature valid over METHOD + PATH + JSON(body) + TIMESTAMP

Every failure is a 401 with a short reason; nothing about keys or
signatures is returned to the caller.
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

from fastapi import HTTPException, Request, status

from backend.core.config import Settings
from backend.core.signing.canonical import build_canonical_message, serialize_body
from backend.core.signing.resolver import DeviceKeyResolver, SecretsManagerStore
from backend.core.signing.signer import (
    HEADER_DEV_MODE,
    HEADER_DEVICE_ID,
    HEADER_SIGNATURE,
    HEADER_TIMESTAMP,
)
from backend.core.signing.verify import (
    TIMESTAMP_TOLERANCE_MS,
    VerificationError,
    VerificationResult,
    check_timestamp,
    verify_signature,
)

logger = logging.getLogger(__name__)


DEV_MODE_DEVICE_ID = "dev-mode"

MSG_MISSING_HEADERS = "Missing required authentication headers"
MSG_UNKNOWN_DEVICE = "Unknown device"
MSG_TIMESTAMP_EXPIRED = "Request timestamp expired"
MSG_INVALID_SIGNATURE = "Invalid signature"


@dataclass
class DeviceContext:
    """
    Verified identity of the calling device.

    Attributes:
        device_id: Authenticated device (e.g. "pi-user", "lambda-s3")
        request_time: Signed request time, ms since epoch
    """
    device_id: str
    request_time: int


def _now_ms() -> int:
    return int(time.time() * 1000)


def request_path(request: Request) -> str:
    """Path as sent on the wire, with the query string when present."""
    raw_path = request.scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else request.url.path
    query = request.scope.get("query_string", b"").decode("latin-1")
    return f"{path}?{query}" if query else path


async def read_json_body(request: Request) -> Tuple[bool, Any]:
    """
    Parse the request body for the canonical message.

    Returns:
        (parsed, body): body is None for an empty body; parsed is False if
        the body is not valid JSON, nests too deeply to decode, or holds
        strings (lone surrogates) that cannot be encoded as UTF-8
    """
    raw = await request.body()
    if not raw.strip():
        return True, None
    try:
        body = json.loads(raw)
        serialize_body(body).encode("utf-8")
    except (json.JSONDecodeError, UnicodeError, RecursionError):
        return False, None
    return True, body


class DeviceAuthGuard:
    """
    FastAPI dependency authenticating device-signed requests.

    Created once at startup with the shared key resolver and stored on
    app.state; see require_device.
    """

    def __init__(
        self,
        resolver: DeviceKeyResolver,
        development_mode: bool = False,
        tolerance_ms: int = TIMESTAMP_TOLERANCE_MS,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.resolver = resolver
        self.development_mode = development_mode
        self.tolerance_ms = tolerance_ms
        self.clock = clock or _now_ms

    async def authenticate(self, request: Request) -> VerificationResult:
        """
        Run all checks against a request.

        Returns:
            VerificationResult; never raises for a bad request
        """
        # Bypass needs both the environment flag and the header
        if self.development_mode and request.headers.get(HEADER_DEV_MODE) == "true":
            logger.info(f"Development mode: skipping device authentication for {request.method} {request.url.path}")
            return VerificationResult.ok(DEV_MODE_DEVICE_ID, self.clock())

        device_id = request.headers.get(HEADER_DEVICE_ID)
        signature = request.headers.get(HEADER_SIGNATURE)
        timestamp = request.headers.get(HEADER_TIMESTAMP)

        if not device_id or not signature or not timestamp:
            missing = [
                name for name, value in (
                    (HEADER_DEVICE_ID, device_id),
                    (HEADER_SIGNATURE, signature),
                    (HEADER_TIMESTAMP, timestamp),
                ) if not value
            ]
            return VerificationResult.fail(
                VerificationError.MISSING_HEADERS,
                MSG_MISSING_HEADERS,
                device_id=device_id,
                detail=f"missing {', '.join(missing)}",
            )

        public_key = await self.resolver.resolve(device_id)
        if public_key is None:
            return VerificationResult.fail(VerificationError.UNKNOWN_DEVICE, MSG_UNKNOWN_DEVICE, device_id=device_id)

        request_time = check_timestamp(timestamp, self.clock(), self.tolerance_ms)
        if isinstance(request_time, VerificationError):
            return VerificationResult.fail(request_time, MSG_TIMESTAMP_EXPIRED, device_id=device_id)

        parsed, body = await read_json_body(request)
        if not parsed:
            return VerificationResult.fail(
                VerificationError.INVALID_SIGNATURE,
                MSG_INVALID_SIGNATURE,
                device_id=device_id,
                detail="body is not valid JSON",
            )

        message = build_canonical_message(request.method, request_path(request), body, timestamp)
        if not verify_signature(message, signature, public_key):
            return VerificationResult.fail(VerificationError.INVALID_SIGNATURE, MSG_INVALID_SIGNATURE, device_id=device_id)

        return VerificationResult.ok(device_id, request_time)

    async def __call__(self, request: Request) -> DeviceContext:
        """
        Authenticate and attach the device context to the request.

        Raises:
            HTTPException: 401 if authentication fails
        """
        result = await self.authenticate(request)

        if not result.success:
            detail = f" ({result.detail})" if result.detail else ""
            logger.warning(
                f"Rejected {request.method} {request.url.path}: {result.error.value}{detail} "
                f"device={result.device_id or '-'}"
            )
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=result.error_message,
            )

        request.state.device_id = result.device_id
        request.state.request_time = result.request_time

        logger.debug(f"Authenticated device: {result.device_id}")
        return DeviceContext(device_id=result.device_id, request_time=result.request_time)


def create_device_auth(settings: Settings) -> DeviceAuthGuard:
    """
    Build the guard and its key resolver from settings.

    Call this once during FastAPI startup.
    """
    secret_store = None
    if settings.device_keys_secret_name:
        secret_store = SecretsManagerStore(
            region_name=settings.aws_region,
            timeout_seconds=settings.secrets_timeout_seconds,
        )
    else:
        logger.info("DEVICE_KEYS_SECRET_NAME not set - device keys read from environment only")

    resolver = DeviceKeyResolver(
        known_devices=settings.known_devices_list,
        secret_store=secret_store,
        secret_name=settings.device_keys_secret_name,
    )

    if settings.is_development:
        logger.warning("Development mode: x-dev-mode header bypasses device authentication")

    return DeviceAuthGuard(
        resolver=resolver,
        development_mode=settings.is_development,
        tolerance_ms=settings.timestamp_tolerance_ms,
    )


async def require_device(request: Request) -> DeviceContext:
    """
    Dependency for routes that only devices may call.

    Example:
        @router.post("/urls/feed")
        async def create_feed_url(device: DeviceContext = Depends(require_device)):
            ...
    """
    guard: Optional[DeviceAuthGuard] = getattr(request.app.state, "device_auth", None)
    if guard is None:
        logger.error("Device authentication guard not initialized")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Device authentication not configured",
        )
    return await guard(request)
