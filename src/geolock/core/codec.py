"""
Package codec: EncryptionPackage <-> canonical JSON text.

Layout (keys in this order):
- location: {"lat": float, "lng": float}
- data: raw text, or ``data:<mime>;base64,<body>`` for file payloads
- fileName: name stem used to rebuild the download name
- fileType: MIME type for files, ``text`` for messages
- timestamp: ISO-8601 capture time (informational)

File payloads are embedded as data URIs so the payload kind travels inside
``data`` itself.
"""

from __future__ import annotations

import base64
import binascii
import json
import math
import re
from typing import Any, Dict, Optional, Tuple

from .exceptions import MalformedPackage
from .models import (
    DEFAULT_BINARY_TYPE,
    Coordinate,
    EncryptionPackage,
    FilePayload,
    TextPayload,
)


# mime may carry parameters ("text/plain; charset=utf-8"); the body starts after the last ";base64,"
DATA_URI_RE = re.compile(r"^data:(?P<mime>[^,]*?);base64,(?P<body>[A-Za-z0-9+/=\s]*)$", re.DOTALL)

REQUIRED_FIELDS = ("location", "data", "fileName", "fileType", "timestamp")


def to_data_uri(content: bytes, mime_type: str) -> str:
    body = base64.b64encode(content).decode("ascii")
    return f"data:{mime_type or DEFAULT_BINARY_TYPE};base64,{body}"


def parse_data_uri(value: str) -> Optional[Tuple[str, bytes]]:
    """Return (mime, content) when ``value`` is a base64 data URI, else None."""
    match = DATA_URI_RE.match(value)
    if match is None:
        return None
    body = re.sub(r"\s+", "", match.group("body"))
    try:
        content = base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError):
        return None
    return match.group("mime") or DEFAULT_BINARY_TYPE, content


def package_to_dict(package: EncryptionPackage) -> Dict[str, Any]:
    payload = package.payload
    if isinstance(payload, FilePayload):
        data = to_data_uri(payload.content, payload.mime_type)
    else:
        data = payload.text
    return {
        "location": {"lat": package.location.lat, "lng": package.location.lng},
        "data": data,
        "fileName": package.file_name,
        "fileType": package.file_type,
        "timestamp": package.timestamp,
    }


def serialize(package: EncryptionPackage) -> str:
    return json.dumps(package_to_dict(package), ensure_ascii=False, separators=(",", ":"))


def _coordinate(value: Any) -> Coordinate:
    if not isinstance(value, dict):
        raise MalformedPackage("location must be an object")
    parts = []
    for key in ("lat", "lng"):
        raw = value.get(key)
        # bool is an int subclass; reject it explicitly
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise MalformedPackage(f"location.{key} must be a number")
        if not math.isfinite(raw):
            raise MalformedPackage(f"location.{key} must be finite")
        parts.append(float(raw))
    return Coordinate(lat=parts[0], lng=parts[1])


def package_from_dict(data: Dict[str, Any]) -> EncryptionPackage:
    if not isinstance(data, dict):
        raise MalformedPackage("package must be an object")
    missing = [name for name in REQUIRED_FIELDS if name not in data]
    if missing:
        raise MalformedPackage(f"missing fields: {', '.join(missing)}")
    for name in ("data", "fileName", "fileType", "timestamp"):
        if not isinstance(data[name], str):
            raise MalformedPackage(f"{name} must be a string")

    location = _coordinate(data["location"])
    decoded = parse_data_uri(data["data"])
    if decoded is not None:
        embedded_mime, content = decoded
        payload = FilePayload(
            content=content,
            mime_type=data["fileType"] or embedded_mime,
            name=data["fileName"],
        )
    else:
        payload = TextPayload(text=data["data"], name=data["fileName"])
    return EncryptionPackage(location=location, payload=payload, timestamp=data["timestamp"])


def parse(text: str | bytes) -> EncryptionPackage:
    """Parse serialized package text; any structural problem raises MalformedPackage."""
    if isinstance(text, bytes):
        try:
            text = text.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedPackage("package is not valid UTF-8") from e
    try:
        data = json.loads(text)
    except ValueError as e:
        raise MalformedPackage("package is not valid JSON") from e
    return package_from_dict(data)
