"""
Pydantic schemas for FastAPI endpoints
"""
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field


class ImageFormat(str, Enum):
    """Image formats devices may upload"""
    JPG = "jpg"
    JPEG = "jpeg"
    PNG = "png"
    GIF = "gif"
    BMP = "bmp"
    WEBP = "webp"


class CreateFeedImageUrlRequest(BaseModel):
    """Request a presigned upload URL for a feed photo"""
    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(..., alias="fileName", min_length=1)
    format: ImageFormat
    source: str = Field(..., min_length=1)
    content_type: Optional[str] = Field(None, alias="contentType")


class CreateDetectionImageUrlRequest(BaseModel):
    """Request a presigned upload URL for a detection photo"""
    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(..., alias="fileName", min_length=1)
    format: ImageFormat
    feed_event_id: str = Field(..., alias="feedEventId", min_length=1)
    content_type: Optional[str] = Field(None, alias="contentType")


class SignedUrlResponse(BaseModel):
    """Presigned upload URL plus where the object will land"""
    model_config = ConfigDict(populate_by_name=True)

    signed_url: str = Field(..., serialization_alias="signedUrl")
    key: str
    expires_at: str = Field(..., serialization_alias="expiresAt")
    bucket: str
    metadata: Dict[str, Any]


class HealthResponse(BaseModel):
    """Liveness response"""
    status: str
    timestamp: str
