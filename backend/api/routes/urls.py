"""
Presigned upload URL endpoints

Only signed device requests may ask for upload URLs.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Request, status

from backend.api.device_auth import DeviceContext, require_device
from backend.api.schemas import (
    CreateDetectionImageUrlRequest,
    CreateFeedImageUrlRequest,
    SignedUrlResponse,
)
from backend.core.uploads import UploadUrlError, UploadUrlService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/urls", tags=["urls"])


def get_upload_service(request: Request) -> UploadUrlService:
    """Shared UploadUrlService created at startup."""
    service = getattr(request.app.state, "upload_urls", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Upload bucket not configured",
        )
    return service


@router.post("/feed", response_model=SignedUrlResponse, response_model_by_alias=True)
async def create_feed_image_url(
    payload: CreateFeedImageUrlRequest,
    device: DeviceContext = Depends(require_device),
    service: UploadUrlService = Depends(get_upload_service),
):
    """Presigned PUT URL for a feed photo (valid 15 minutes)"""
    logger.info(f"Feed upload URL requested by {device.device_id}")
    try:
        return service.create_feed_upload_url(
            file_name=payload.file_name,
            image_format=payload.format.value,
            source=payload.source,
            content_type=payload.content_type,
        )
    except UploadUrlError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/detection", response_model=SignedUrlResponse, response_model_by_alias=True)
async def create_detection_image_url(
    payload: CreateDetectionImageUrlRequest,
    device: DeviceContext = Depends(require_device),
    service: UploadUrlService = Depends(get_upload_service),
):
    """Presigned PUT URL for a detection photo of a feed event"""
    logger.info(f"Detection upload URL requested by {device.device_id} (feed event {payload.feed_event_id})")
    try:
        return service.create_detection_upload_url(
            file_name=payload.file_name,
            image_format=payload.format.value,
            feed_event_id=payload.feed_event_id,
            content_type=payload.content_type,
        )
    except UploadUrlError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
