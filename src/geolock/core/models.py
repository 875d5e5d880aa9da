"""
Base data models for location-bound packages
"""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional, Union


DEFAULT_TEXT_NAME = "message"
DEFAULT_TEXT_TYPE = "text"
DEFAULT_BINARY_TYPE = "application/octet-stream"


class Severity(Enum):
    # Status levels understood by status sinks
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


class WorkflowKind(Enum):
    ENCRYPT = "encrypt"
    DECRYPT = "decrypt"


@dataclass(frozen=True)
class Coordinate:
    """A latitude/longitude pair in decimal degrees."""

    lat: float
    lng: float

    def __str__(self) -> str:
        return f"{self.lat:.6f}, {self.lng:.6f}"


@dataclass(frozen=True)
class TextPayload:
    text: str
    name: str = DEFAULT_TEXT_NAME


@dataclass(frozen=True)
class FilePayload:
    """Binary content plus the MIME type and name stem it was selected with."""

    content: bytes
    mime_type: str = DEFAULT_BINARY_TYPE
    name: str = "file"


Payload = Union[TextPayload, FilePayload]


def utc_timestamp(moment: Optional[datetime] = None) -> str:
    """Return an ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class EncryptionPackage:
    """
        The bundle that gets encrypted as a unit.

        Built once at encryption time; decryption only reads it.
    """

    location: Coordinate
    payload: Payload
    timestamp: str = field(default_factory=utc_timestamp)

    @property
    def is_file(self) -> bool:
        return isinstance(self.payload, FilePayload)

    @property
    def file_name(self) -> str:
        return self.payload.name

    @property
    def file_type(self) -> str:
        if isinstance(self.payload, FilePayload):
            return self.payload.mime_type or DEFAULT_BINARY_TYPE
        return DEFAULT_TEXT_TYPE


def file_stem(filename: str) -> str:
    """
        Strip directories and everything from the first dot onward.

        ``report.final.pdf`` becomes ``report``. Names that start with a dot
        keep their leading part so ``.env`` stays ``.env``.
    """
    base = Path(filename).name
    if base.startswith("."):
        head, _, _ = base[1:].partition(".")
        return "." + head if head else base
    stem, _, _ = base.partition(".")
    return stem or "file"


@dataclass(frozen=True)
class SelectedFile:
    """A file handed over by the host: raw bytes, declared name and MIME type."""

    name: str
    content: bytes
    mime_type: Optional[str] = None

    @classmethod
    def from_path(cls, path: Path | str) -> "SelectedFile":
        path = Path(path).expanduser()
        mime, _ = mimetypes.guess_type(path.name)
        return cls(name=path.name, content=path.read_bytes(), mime_type=mime)

    def to_payload(self) -> FilePayload:
        return FilePayload(
            content=self.content,
            mime_type=self.mime_type or DEFAULT_BINARY_TYPE,
            name=file_stem(self.name),
        )
