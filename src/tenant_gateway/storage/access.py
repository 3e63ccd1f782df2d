"""Tenant access control over the object store's flat key namespace.

Every key written by the gateway starts with ``"<owner id>/"``. ``authorize``
is the only predicate deciding who may list, read or delete a key; nothing
else in the package compares roles or prefixes.
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from ..exceptions import ValidationError

KEY_SEPARATOR = "/"


class Role(str, enum.Enum):
    """Closed set of requester roles. Unknown names parse to ``USER``."""

    ADMIN = "admin"
    USER = "user"

    @classmethod
    def parse(cls, value: Any) -> Role:
        if isinstance(value, Role):
            return value
        if isinstance(value, str) and value.strip().lower() == cls.ADMIN.value:
            return cls.ADMIN
        return cls.USER


def validate_owner_id(owner_id: Any) -> str:
    """Return *owner_id* if it can serve as a tenant prefix.

    Raises:
        ValidationError: if it is empty or contains the key separator.
    """
    if not isinstance(owner_id, str) or not owner_id.strip():
        raise ValidationError({"owner_id": ["owner id is required"]})
    if KEY_SEPARATOR in owner_id:
        raise ValidationError({"owner_id": [f"owner id may not contain {KEY_SEPARATOR!r}"]})
    return owner_id


def owner_prefix(owner_id: str) -> str:
    """Return the key prefix owned by *owner_id*."""
    return f"{validate_owner_id(owner_id)}{KEY_SEPARATOR}"


def authorize(key: str, owner_id: str, role: Role | str) -> bool:
    """Return True iff *role* is admin or *key* lies under *owner_id*'s prefix."""
    if Role.parse(role) is Role.ADMIN:
        return True
    if not owner_id or KEY_SEPARATOR in owner_id:
        return False
    return key.startswith(f"{owner_id}{KEY_SEPARATOR}")


class Requester(BaseModel):
    """Authenticated caller as handed over by the HTTP layer.

    Accepts ``userId`` or ``id`` for the identifier, mirroring the token
    claims the boundary extracts.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("id", "userId", "user_id"))
    role: Role = Role.USER
    name: str | None = None
    email: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("role", mode="before")
    @classmethod
    def _parse_role(cls, value: Any) -> Role:
        return Role.parse(value)

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def can_access(self, key: str) -> bool:
        return authorize(key, self.id, self.role)
