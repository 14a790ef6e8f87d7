"""
Presigned Upload URLs

Devices upload photos straight to S3 using short-lived presigned PUT URLs.
Object keys encode the image type, which the ingestion lambda relies on:

    feed/{timestamp}-{fileName}.{format}
    detection/{feedEventId}/{timestamp}-{fileName}.{format}
"""
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)


CONTENT_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"


class UploadUrlError(Exception):
    """Raised when a presigned URL could not be generated."""


def content_type_for(image_format: str) -> str:
    """Content type for an image format (application/octet-stream if unknown)."""
    return CONTENT_TYPES.get(image_format.lower(), DEFAULT_CONTENT_TYPE)


class UploadUrlService:
    """
    Generates presigned S3 upload URLs for device photos.
    """

    def __init__(
        self,
        bucket_name: str,
        region_name: str = "us-west-2",
        expires_in: int = 900,
        client=None,
        clock: Optional[Callable[[], int]] = None,
    ):
        if not bucket_name:
            raise ValueError("S3_BUCKET_NAME environment variable is required")
        self.bucket_name = bucket_name
        self.region_name = region_name
        self.expires_in = expires_in
        self._client = client
        self._clock = clock or (lambda: int(time.time() * 1000))

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client("s3", region_name=self.region_name)
        return self._client

    def create_feed_upload_url(
        self,
        file_name: str,
        image_format: str,
        source: str,
        content_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Presigned URL for a feed photo."""
        timestamp = self._clock()
        key = f"feed/{timestamp}-{file_name}.{image_format}"
        metadata = {
            "timestamp": timestamp,
            "source": source,
            "type": "feed",
        }
        s3_metadata = {
            "x-amz-meta-timestamp": str(timestamp),
            "x-amz-meta-source": source,
            "x-amz-meta-type": "feed",
        }
        return self._presign(key, image_format, content_type, metadata, s3_metadata, "feed")

    def create_detection_upload_url(
        self,
        file_name: str,
        image_format: str,
        feed_event_id: str,
        content_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Presigned URL for a detection photo belonging to a feed event."""
        timestamp = self._clock()
        key = f"detection/{feed_event_id}/{timestamp}-{file_name}.{image_format}"
        metadata = {
            "timestamp": timestamp,
            "feedEventId": feed_event_id,
            "type": "detection",
        }
        s3_metadata = {
            "x-amz-meta-timestamp": str(timestamp),
            "x-amz-meta-feed-event-id": feed_event_id,
            "x-amz-meta-type": "detection",
        }
        return self._presign(key, image_format, content_type, metadata, s3_metadata, "detection")

    def _presign(
        self,
        key: str,
        image_format: str,
        content_type: Optional[str],
        metadata: Dict[str, Any],
        s3_metadata: Dict[str, str],
        image_type: str,
    ) -> Dict[str, Any]:
        params = {
            "Bucket": self.bucket_name,
            "Key": key,
            "ContentType": content_type or content_type_for(image_format),
            "ServerSideEncryption": "AES256",
            "Metadata": s3_metadata,
        }

        try:
            signed_url = self.client.generate_presigned_url(
                "put_object",
                Params=params,
                ExpiresIn=self.expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to generate {image_type} image signed URL for {key}: {e}")
            raise UploadUrlError(f"Failed to generate {image_type} image signed URL") from e

        expires_at = datetime.now(timezone.utc) + timedelta(seconds=self.expires_in)
        logger.info(f"Issued {image_type} upload URL for {key}")

        return {
            "signed_url": signed_url,
            "key": key,
            "expires_at": expires_at.isoformat().replace("+00:00", "Z"),
            "bucket": self.bucket_name,
            "metadata": metadata,
        }
