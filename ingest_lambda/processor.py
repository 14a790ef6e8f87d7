"""
SQS record processing and Lambda entry point
"""
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict

from ingest_lambda.api_client import call_api
from ingest_lambda.images import is_image_file, is_relevant_event
from ingest_lambda.s3 import extract_s3_info

# Lambda root logger defaults to WARNING
logging.getLogger().setLevel(logging.INFO)
logger = logging.getLogger(__name__)


@dataclass
class ApiCallResult:
    """Outcome of processing one SQS record"""
    success: bool
    message: str
    timestamp: str

    @classmethod
    def now(cls, success: bool, message: str) -> "ApiCallResult":
        return cls(
            success=success,
            message=message,
            timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        )


def process_sqs_record(record: Dict[str, Any]) -> ApiCallResult:
    """
    Process one SQS record carrying an S3 event.

    Non-image objects and non-upload events are skipped (success). Any
    failure is returned as an unsuccessful result, never raised.
    """
    try:
        s3_info = extract_s3_info(record)
        logger.debug(f"Processing S3 object: {json.dumps(s3_info.to_dict())}")

        if not is_image_file(s3_info.key):
            return ApiCallResult.now(True, f"Skipped non-image file: {s3_info.key}")

        if not is_relevant_event(s3_info.event_name):
            return ApiCallResult.now(True, f"Skipped non-upload event: {s3_info.event_name}")

        call_api(s3_info)

        return ApiCallResult.now(True, f"Successfully processed: {s3_info.key}")
    except Exception as e:
        logger.error(f"Error processing S3 record: {type(e).__name__}: {e}")
        return ApiCallResult.now(False, f"Failed to process: {e}")


def handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda entry point for an SQS batch.

    Returns an SQS partial batch response so only failed records are retried.
    """
    records = event.get("Records") or []
    failures = []

    for record in records:
        result = process_sqs_record(record)
        if result.success:
            logger.info(result.message)
        else:
            logger.warning(result.message)
            message_id = record.get("messageId")
            if message_id:
                failures.append({"itemIdentifier": message_id})

    logger.info(f"Processed {len(records)} records, {len(failures)} failed")
    return {"batchItemFailures": failures}
