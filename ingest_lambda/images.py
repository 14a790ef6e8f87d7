"""
Image key classification for uploaded S3 objects
"""

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp")

RELEVANT_EVENTS = ("ObjectCreated:Put", "ObjectCreated:Post")

FEED = "feed"
DETECTION = "detection"


def is_image_file(key: str) -> bool:
    """True if the object key has an image extension (case-insensitive)."""
    return key.lower().endswith(IMAGE_EXTENSIONS)


def is_relevant_event(event_name: str) -> bool:
    """Only fresh uploads are reported; copies, deletes etc. are skipped."""
    return event_name in RELEVANT_EVENTS


def get_image_type(key: str) -> str:
    """
    Image type from the key prefix.

    Raises:
        ValueError: If the key is under neither feed/ nor detection/
    """
    if key.startswith("feed/"):
        return FEED
    if key.startswith("detection/"):
        return DETECTION
    raise ValueError(
        f"Cannot determine image type from S3 key path: {key}. "
        f"Expected path to start with 'feed/' or 'detection/'"
    )
