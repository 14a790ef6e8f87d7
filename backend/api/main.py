"""
FastAPI Backend for the Crow Feeder device network

Feeder devices and the S3 ingestion lambda call this API with signed requests.
"""
from typing import Optional
from fastapi import FastAPI, Request as FastAPIRequest
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
import logging
import re
import uuid

from backend.api.device_auth import create_device_auth
from backend.api.routes import health, urls
from backend.core.config import Settings, get_settings
from backend.core.signing.signer import (
    HEADER_DEV_MODE,
    HEADER_DEVICE_ID,
    HEADER_SIGNATURE,
    HEADER_TIMESTAMP,
)
from backend.core.uploads import UploadUrlService

logger = logging.getLogger(__name__)
error_logger = logging.getLogger("api.errors")


# Security Headers Middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses"""
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


def _sanitize_error_message(message: str) -> str:
    """
    Scrub potential secrets from exception messages before logging.

    Covers PEM blocks, base64-encoded PEM (as stored in env/secrets) and
    key/secret assignments.
    """
    sanitized = re.sub(
        r'-----BEGIN [A-Z ]+-----.*?(-----END [A-Z ]+-----|$)',
        '[REDACTED_PEM]',
        message,
        flags=re.DOTALL,
    )

    # base64 of "-----BEGIN" starts with LS0tLS1CRUdJT
    sanitized = re.sub(r'LS0tLS1CRUdJT[A-Za-z0-9+/=]*', '[REDACTED_KEY]', sanitized)

    sanitized = re.sub(
        r'(PRIVATE_KEY|PUBLIC_KEY|password|secret|token)["\']?\s*[=:]\s*["\']?[^"\'\s,;]+',
        r'\1=[REDACTED]',
        sanitized,
        flags=re.IGNORECASE,
    )
    return sanitized


def configure_logging(settings: Settings) -> None:
    """Configure root logging from settings."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=settings.log_format,
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    The device auth guard (and its key cache) and the upload URL service are
    created here once and shared by all requests through app.state.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Crow Feeder API",
        description="Feed and detection events from Raspberry Pi feeder devices",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.state.settings = settings
    app.state.device_auth = create_device_auth(settings)
    app.state.upload_urls = None
    if settings.s3_bucket_name:
        app.state.upload_urls = UploadUrlService(
            bucket_name=settings.s3_bucket_name,
            region_name=settings.aws_region,
            expires_in=settings.upload_url_expires_seconds,
        )
    else:
        logger.warning("S3_BUCKET_NAME not set - upload URL endpoints will return 500")

    @app.exception_handler(Exception)
    async def global_exception_handler(request: FastAPIRequest, exc: Exception):
        """
        Log unexpected errors internally, return a generic message to clients.

        Security: Sanitizes error messages so key material never reaches the logs.
        """
        error_id = str(uuid.uuid4())
        sanitized_message = _sanitize_error_message(str(exc))

        error_logger.error(
            f"Error {error_id}: {type(exc).__name__}: {sanitized_message}",
            extra={
                "error_id": error_id,
                "path": request.url.path,
                "method": request.method,
                "client": request.client.host if request.client else None,
            },
        )

        return JSONResponse(
            status_code=500,
            content={
                "detail": "An internal error occurred",
                "error_id": error_id,
            },
        )

    @app.on_event("startup")
    async def startup_event():
        """Log what the device auth guard will accept"""
        resolver = app.state.device_auth.resolver
        logger.info(
            f"✅ Device auth ready for {', '.join(resolver.known_devices)} "
            f"(environment={settings.environment})"
        )

    # Security headers middleware (outermost)
    app.add_middleware(SecurityHeadersMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=[
            "Content-Type",
            # Device auth headers
            HEADER_DEVICE_ID,
            HEADER_SIGNATURE,
            HEADER_TIMESTAMP,
            HEADER_DEV_MODE,
        ],
        max_age=3600,
    )

    app.include_router(health.router)
    app.include_router(urls.router)

    return app


configure_logging(get_settings())
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=get_settings().api_port)
