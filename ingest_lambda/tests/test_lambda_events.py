"""
Tests for S3 event parsing and image key classification.
"""
import json

import pytest

from ingest_lambda.images import get_image_type, is_image_file, is_relevant_event
from ingest_lambda.s3 import S3ObjectInfo, extract_s3_info


def sqs_record(key="feed/123-cam.jpg", event_name="ObjectCreated:Put", size=2048, bucket="crow-feeder"):
    s3_event = {
        "Records": [{
            "eventName": event_name,
            "s3": {
                "bucket": {"name": bucket},
                "object": {"key": key, "size": size},
            },
        }]
    }
    return {"messageId": "msg-1", "body": json.dumps(s3_event)}


class TestImageClassification:

    @pytest.mark.parametrize("key", ["a.jpg", "a.JPEG", "feed/x.png", "b.gif", "c.bmp", "d.WebP"])
    def test_image_files(self, key):
        assert is_image_file(key)

    @pytest.mark.parametrize("key", ["notes.txt", "feed/video.mp4", "jpg", "feed/x.jpg.tmp"])
    def test_non_image_files(self, key):
        assert not is_image_file(key)

    @pytest.mark.parametrize("event_name,expected", [
        ("ObjectCreated:Put", True),
        ("ObjectCreated:Post", True),
        ("ObjectCreated:Copy", False),
        ("ObjectRemoved:Delete", False),
    ])
    def test_relevant_events(self, event_name, expected):
        assert is_relevant_event(event_name) is expected

    def test_image_type(self):
        assert get_image_type("feed/1-a.jpg") == "feed"
        assert get_image_type("detection/evt/1-a.jpg") == "detection"

    def test_unknown_prefix(self):
        with pytest.raises(ValueError, match="Cannot determine image type from S3 key path: other/a.jpg"):
            get_image_type("other/a.jpg")


class TestExtractS3Info:

    def test_extracts_first_object(self):
        info = extract_s3_info(sqs_record())

        assert info == S3ObjectInfo(bucket="crow-feeder", key="feed/123-cam.jpg", size=2048, event_name="ObjectCreated:Put")

    def test_key_is_url_decoded(self):
        info = extract_s3_info(sqs_record(key="feed/123-my+cam%281%29.jpg"))
        assert info.key == "feed/123-my cam(1).jpg"

    def test_missing_size_defaults_to_zero(self):
        record = sqs_record()
        body = json.loads(record["body"])
        del body["Records"][0]["s3"]["object"]["size"]
        record["body"] = json.dumps(body)

        assert extract_s3_info(record).size == 0

    def test_no_records(self):
        with pytest.raises(ValueError, match="No Records array in S3 event"):
            extract_s3_info({"body": json.dumps({"Records": []})})

    def test_no_s3_object(self):
        with pytest.raises(ValueError, match="No s3 object in S3 record"):
            extract_s3_info({"body": json.dumps({"Records": [{"eventName": "ObjectCreated:Put"}]})})

    def test_body_not_json(self):
        with pytest.raises(ValueError):
            extract_s3_info({"body": "not json"})

    def test_to_dict(self):
        assert extract_s3_info(sqs_record()).to_dict()["bucket"] == "crow-feeder"
