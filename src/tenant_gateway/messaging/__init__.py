"""Upload queue messaging — envelopes, identity, deduplication and retry."""

from __future__ import annotations

from .envelope import OwnerMetadata, UploadEnvelope, UploadFilePart, decode_buffer
from .idempotency import DeduplicationCache
from .identity import dedup_key, generate_message_id, payload_fingerprint
from .retry import RetryOutcome, RetryPolicy

__all__ = [
    "DeduplicationCache",
    "OwnerMetadata",
    "RetryOutcome",
    "RetryPolicy",
    "UploadEnvelope",
    "UploadFilePart",
    "decode_buffer",
    "dedup_key",
    "generate_message_id",
    "payload_fingerprint",
]
