"""Object store value types."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StorageObject(BaseModel):
    """One listed object."""

    model_config = ConfigDict(frozen=True)

    key: str
    size: int = 0
    last_modified: datetime | None = None


class FileUpload(BaseModel):
    """Decoded file bytes ready to be written."""

    model_config = ConfigDict(frozen=True)

    content: bytes
    original_name: str
    mime_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)


class StoredObject(BaseModel):
    """Result of a successful write."""

    model_config = ConfigDict(frozen=True)

    key: str
    location: str
    mime_type: str
    metadata: dict[str, str] = Field(default_factory=dict)


class RetrievedObject(BaseModel):
    """An object body stream plus its metadata.

    ``body`` is the client's streaming body; read it with ``await body.read()``
    or iterate it, then release it.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    key: str
    body: Any
    content_type: str | None = None
    content_length: int | None = None
    last_modified: datetime | None = None
    metadata: dict[str, str] = Field(default_factory=dict)
