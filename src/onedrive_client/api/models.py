"""Data models for Live Connect nodes (files and folders) and byte ranges."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from onedrive_client.errors import DecodeError

# Live Connect JSON field names
FIELD_ID = "id"
FIELD_NAME = "name"
FIELD_TYPE = "type"
FIELD_SIZE = "size"
FIELD_SOURCE = "source"
FIELD_PARENT_ID = "parent_id"
FIELD_UPLOAD_LOCATION = "upload_location"
FIELD_CREATED_TIME = "created_time"
FIELD_UPDATED_TIME = "updated_time"
FIELD_DESCRIPTION = "description"

# Envelope key of a folder listing response
FIELD_DATA = "data"

FOLDER_TYPES = frozenset({"folder", "album"})


@dataclass
class NodeInfo:
    """A file or folder as reported by the metadata API.

    ``size`` is overwritten with the transferred Content-Length after a
    download, since the metadata value is not reliable for streamed content.
    ``raw`` keeps the decoded JSON object for fields not modelled here.
    """

    id: str
    name: str
    type: str = ""
    size: int | None = None
    source: str = ""
    parent_id: str | None = None
    upload_location: str = ""
    created_time: str = ""
    updated_time: str = ""
    description: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def is_folder(self) -> bool:
        return self.type in FOLDER_TYPES


@dataclass(frozen=True)
class ByteRange:
    """Inclusive byte range for partial downloads."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ValueError(f"Range start must be non-negative, got {self.start}")
        if self.end < self.start:
            raise ValueError(f"Range end {self.end} precedes start {self.start}")

    def header_value(self) -> str:
        """Render as an HTTP Range header value, e.g. ``bytes=0-99``."""
        return f"bytes={self.start}-{self.end}"


def parse_node(raw: Any) -> NodeInfo:
    """Map a decoded JSON object to a NodeInfo.

    Raises:
        DecodeError: If ``raw`` is not an object or lacks a string id or name.
    """
    if not isinstance(raw, dict):
        raise DecodeError(f"Expected a JSON object for node, got {type(raw).__name__}")
    node_id = raw.get(FIELD_ID)
    name = raw.get(FIELD_NAME)
    if not isinstance(node_id, str) or not isinstance(name, str):
        raise DecodeError(f"Node object is missing a string id or name: keys={sorted(raw)}")

    size = raw.get(FIELD_SIZE)
    if size is not None and (not isinstance(size, int) or isinstance(size, bool)):
        raise DecodeError(f"Node {node_id} has a non-integer size: {size!r}")
    return NodeInfo(
        id=node_id,
        name=name,
        type=_optional_str(raw, FIELD_TYPE) or "",
        size=size,
        source=_optional_str(raw, FIELD_SOURCE) or "",
        parent_id=_optional_str(raw, FIELD_PARENT_ID),
        upload_location=_optional_str(raw, FIELD_UPLOAD_LOCATION) or "",
        created_time=_optional_str(raw, FIELD_CREATED_TIME) or "",
        updated_time=_optional_str(raw, FIELD_UPDATED_TIME) or "",
        description=_optional_str(raw, FIELD_DESCRIPTION),
        raw=raw,
    )


def _optional_str(raw: dict[str, Any], key: str) -> str | None:
    """Return ``raw[key]`` if it is a string, None if absent or null."""
    value = raw.get(key)
    if value is not None and not isinstance(value, str):
        raise DecodeError(f"Node field {key!r} must be a string, got {type(value).__name__}")
    return value


def parse_node_list(raw: Any) -> list[NodeInfo]:
    """Decode a ``{"data": [...]}`` listing envelope, preserving server order.

    Raises:
        DecodeError: If the envelope or any entry has an unexpected shape.
    """
    if not isinstance(raw, dict) or not isinstance(raw.get(FIELD_DATA), list):
        raise DecodeError("Listing response has no 'data' array")
    return [parse_node(entry) for entry in raw[FIELD_DATA]]
