"""Message identity — outbound message ids and inbound deduplication keys."""

from __future__ import annotations

import hashlib
import json
import secrets
import time
from collections.abc import Mapping
from typing import Any


def _now_ms() -> int:
    return int(time.time() * 1000)


def generate_message_id(message: Any) -> str:
    """Return the ``message_id`` property attached to an outbound message.

    Upload envelopes hash ``owner-originalname-size-now``; legacy download
    requests hash ``user-key-now``. Anything else gets a random id. Redelivery
    of the same broker message carries the same id, which is what the consumer
    deduplicates on.
    """
    now = _now_ms()
    if isinstance(message, Mapping):
        file = message.get("file")
        metadata = message.get("metadata")
        if isinstance(file, Mapping) and isinstance(metadata, Mapping):
            owner = metadata.get("id") or metadata.get("userId")
            seed = f"{owner}-{file.get('originalname')}-{file.get('size')}-{now}"
            return hashlib.md5(seed.encode("utf-8")).hexdigest()  # noqa: S324

        user = message.get("user")
        if message.get("key") and isinstance(user, Mapping):
            seed = f"{user.get('userId')}-{message['key']}-{now}"
            return hashlib.md5(seed.encode("utf-8")).hexdigest()  # noqa: S324

    return f"{secrets.token_hex(8)}-{now}"


def payload_fingerprint(payload: Any) -> str:
    """Stable hash of a decoded payload (sorted-key JSON)."""
    try:
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    except (TypeError, ValueError):
        canonical = repr(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def dedup_key(payload: Any, properties: Any = None) -> str:
    """Return the identity the consumer deduplicates on.

    Prefers the broker ``message_id`` property. Without it the payload itself
    is fingerprinted, so two byte-identical but logically distinct messages
    collide.
    """
    message_id = _message_id_of(properties)
    if message_id:
        return message_id
    return payload_fingerprint(payload)


def _message_id_of(properties: Any) -> str | None:
    if properties is None:
        return None
    if isinstance(properties, Mapping):
        value = properties.get("message_id") or properties.get("messageId")
    else:
        value = getattr(properties, "message_id", None)
    return str(value) if value else None
