"""
S3 event parsing

SQS delivers S3 notifications with the S3 event JSON as the message body.
"""
import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict
from urllib.parse import unquote_plus

logger = logging.getLogger(__name__)


@dataclass
class S3ObjectInfo:
    """The uploaded object an S3 event refers to"""
    bucket: str
    key: str
    size: int
    event_name: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def extract_s3_info(record: Dict[str, Any]) -> S3ObjectInfo:
    """
    Extract the first S3 object from an SQS record.

    Object keys arrive URL-encoded with spaces as '+'.

    Raises:
        ValueError: If the body is not an S3 event with at least one record
    """
    try:
        s3_event = json.loads(record["body"])
    except (KeyError, TypeError, json.JSONDecodeError) as e:
        logger.error(f"Error in extract_s3_info: unreadable SQS body ({e})")
        raise ValueError(f"Invalid SQS record body: {e}") from e

    records = s3_event.get("Records") if isinstance(s3_event, dict) else None
    if not records:
        raise ValueError("No Records array in S3 event")

    s3_record = records[0]
    s3 = s3_record.get("s3")
    if not s3:
        raise ValueError("No s3 object in S3 record")

    try:
        return S3ObjectInfo(
            bucket=s3["bucket"]["name"],
            key=unquote_plus(s3["object"]["key"]),
            size=s3["object"].get("size") or 0,
            event_name=s3_record.get("eventName", ""),
        )
    except (KeyError, TypeError) as e:
        logger.error(f"Error in extract_s3_info: malformed S3 record ({e})")
        raise ValueError(f"Malformed S3 record: missing {e}") from e
