"""
Canonical Request Message

Signer and verifier must produce this string byte-for-byte identically.

Canonical Message Format:
    {METHOD}{PATH}{JSON(body)}{TIMESTAMP}

Where:
    - METHOD: HTTP method exactly as sent (e.g. POST)
    - PATH: request path, including the query string when present
    - JSON(body): compact JSON of the request body, keys in insertion order;
      a missing or null body serializes as {}
    - TIMESTAMP: the x-timestamp header value (milliseconds since epoch)

There are no separators between the parts. Keys are NOT sorted: devices
already in the field sign the body in the order they build it.

Numbers are written by Python's json, which differs from JavaScript's
JSON.stringify for some floats: integral floats keep a fraction (1.0 vs 1)
and exponents are zero-padded (1e-07 vs 1e-7). Signers in other languages
must avoid such values or the signature will not match.
"""

import json
from typing import Any


EMPTY_BODY = {}


def serialize_body(body: Any) -> str:
    """
    Serialize a request body for the canonical message.

    Args:
        body: Parsed JSON body (dict/list/scalar) or None

    Returns:
        Compact JSON string; "{}" for a missing body

    Example:
        >>> serialize_body({"confidence": 0.85, "imageUrl": "test.jpg"})
        '{"confidence":0.85,"imageUrl":"test.jpg"}'
        >>> serialize_body(None)
        '{}'
    """
    if body is None:
        body = EMPTY_BODY
    return json.dumps(body, separators=(",", ":"), ensure_ascii=False)


def build_canonical_message(method: str, path: str, body: Any, timestamp: str) -> str:
    """
    Build the canonical message that gets signed and verified.

    Args:
        method: HTTP method
        path: Request path including query string
        body: Parsed JSON body, or None
        timestamp: Millisecond timestamp string, exactly as sent in the header

    Returns:
        Canonical message string

    Example:
        >>> build_canonical_message("POST", "/detection", {"confidence": 0.85}, "1700000000000")
        'POST/detection{"confidence":0.85}1700000000000'
    """
    return f"{method}{path}{serialize_body(body)}{timestamp}"
