"""
S3 Ingestion Lambda

Receives S3 upload notifications through SQS and reports new feed and
detection photos to the API with device-signed requests (device lambda-s3).
"""
from ingest_lambda.processor import ApiCallResult, handler, process_sqs_record

__all__ = ["ApiCallResult", "handler", "process_sqs_record"]
