"""
API Routes
"""
from backend.api.routes import health, urls

__all__ = ["health", "urls"]
