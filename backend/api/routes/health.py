"""
Health check endpoint (unauthenticated)
"""
from datetime import datetime, timezone
from fastapi import APIRouter

from backend.api.schemas import HealthResponse

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", response_model=HealthResponse)
async def health_check():
    """Liveness probe for the load balancer"""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    }
