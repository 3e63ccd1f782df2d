"""UploadEnvelope — immutable upload payload carried on the upload queue.

Wire shape (JSON)::

    {"file": {"buffer": "<base64>" | [0, 255, ...], "originalname": "a.txt",
              "mimetype": "text/plain", "size": 10},
     "metadata": {"id": "u1", "userId": "u1", "name": "...", "email": "...",
                  "role": "user"}}
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import ValidationError


class UploadFilePart(BaseModel):
    """The ``file`` section of an upload envelope."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    buffer: Any = None
    original_name: str = Field(default="unknown", alias="originalname")
    mime_type: str = Field(default="application/octet-stream", alias="mimetype")
    size: int | None = Field(default=None, ge=0)


class OwnerMetadata(BaseModel):
    """The ``metadata`` section: who uploaded the file."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str | None = None
    user_id: str | None = Field(default=None, alias="userId")
    name: str | None = None
    email: str | None = None
    role: str = "user"

    @field_validator("id", "user_id", mode="before")
    @classmethod
    def _coerce_identifier(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value or None
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @property
    def owner_id(self) -> str | None:
        """Resolved owner: ``userId`` wins over ``id``."""
        return self.user_id or self.id

    def normalized(self) -> OwnerMetadata:
        """Return a copy with ``id`` and ``userId`` set to the same owner.

        Raises:
            ValidationError: if neither field is present.
        """
        owner = self.owner_id
        if not owner:
            raise ValidationError(
                {"metadata": ["missing userId or id in metadata"]}
            )
        return self.model_copy(update={"id": owner, "user_id": owner})


class UploadEnvelope(BaseModel):
    """Upload request as published by the HTTP layer."""

    model_config = ConfigDict(frozen=True)

    file: UploadFilePart
    metadata: OwnerMetadata

    @classmethod
    def from_payload(cls, payload: Any) -> UploadEnvelope:
        """Validate a decoded queue payload.

        Raises:
            ValidationError: if ``file`` or ``metadata`` is missing or malformed.
        """
        if not isinstance(payload, Mapping):
            raise ValidationError("upload message must be a JSON object")
        missing = [k for k in ("file", "metadata") if not payload.get(k)]
        if missing:
            raise ValidationError(
                {k: ["missing from upload message"] for k in missing}
            )
        try:
            return cls.model_validate(payload)
        except PydanticValidationError as e:
            errors: dict[str, list[str]] = {}
            for err in e.errors():
                field = ".".join(str(p) for p in err["loc"]) or "__root__"
                errors.setdefault(field, []).append(err["msg"])
            raise ValidationError(errors) from e

    @classmethod
    def build(
        cls,
        content: bytes,
        *,
        original_name: str,
        owner_id: str,
        mime_type: str = "application/octet-stream",
        name: str | None = None,
        email: str | None = None,
        role: str = "user",
    ) -> UploadEnvelope:
        """Build an envelope for *content*, base64-encoding the bytes."""
        return cls(
            file=UploadFilePart(
                buffer=base64.b64encode(content).decode("ascii"),
                original_name=original_name,
                mime_type=mime_type,
                size=len(content),
            ),
            metadata=OwnerMetadata(
                id=owner_id, user_id=owner_id, name=name, email=email, role=role
            ),
        )

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON-ready wire representation."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def decode_buffer(buffer: Any) -> bytes:
    """Decode a transported file buffer (base64 text or a list of byte values).

    Raises:
        ValidationError: for any other representation or invalid content.
    """
    if isinstance(buffer, str):
        try:
            return base64.b64decode(buffer, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValidationError({"file.buffer": ["invalid base64 content"]}) from e
    if isinstance(buffer, list):
        if any(isinstance(b, bool) or not isinstance(b, int) for b in buffer):
            raise ValidationError({"file.buffer": ["byte array must contain integers"]})
        try:
            return bytes(buffer)
        except ValueError as e:
            raise ValidationError({"file.buffer": ["byte values must be 0..255"]}) from e
    raise ValidationError({"file.buffer": ["invalid file buffer format"]})
