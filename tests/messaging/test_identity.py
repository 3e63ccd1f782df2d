"""Tests for message identity helpers."""

from __future__ import annotations

import hashlib
import re
from unittest.mock import patch

from tenant_gateway.messaging import identity
from tenant_gateway.messaging.identity import (
    dedup_key,
    generate_message_id,
    payload_fingerprint,
)
from tenant_gateway.messaging.rabbitmq.consumer import DeliveryProperties


def _md5(seed: str) -> str:
    return hashlib.md5(seed.encode("utf-8")).hexdigest()  # noqa: S324


def test_upload_message_id_hashes_owner_name_size_and_time() -> None:
    message = {
        "file": {"originalname": "a.txt", "size": 10},
        "metadata": {"id": "u1", "userId": "u1"},
    }
    with patch.object(identity, "_now_ms", return_value=1_700_000_000_000):
        message_id = generate_message_id(message)
    assert message_id == _md5("u1-a.txt-10-1700000000000")


def test_download_message_id_hashes_user_and_key() -> None:
    message = {"key": "u1/1-a.txt", "user": {"userId": "u1"}}
    with patch.object(identity, "_now_ms", return_value=42):
        message_id = generate_message_id(message)
    assert message_id == _md5("u1-u1/1-a.txt-42")


def test_other_messages_get_random_ids() -> None:
    first = generate_message_id({"hello": "world"})
    second = generate_message_id({"hello": "world"})
    assert first != second
    assert re.fullmatch(r"[0-9a-f]{16}-\d+", first)


def test_payload_fingerprint_ignores_key_order() -> None:
    assert payload_fingerprint({"a": 1, "b": 2}) == payload_fingerprint({"b": 2, "a": 1})
    assert payload_fingerprint({"a": 1}) != payload_fingerprint({"a": 2})


def test_payload_fingerprint_falls_back_for_unserializable_payloads() -> None:
    fingerprint = payload_fingerprint({"value": object()})
    assert len(fingerprint) == 64


def test_dedup_key_prefers_broker_message_id() -> None:
    props = DeliveryProperties(message_id="m-1")
    assert dedup_key({"a": 1}, props) == "m-1"
    assert dedup_key({"a": 1}, {"messageId": "m-2"}) == "m-2"
    assert dedup_key({"a": 1}, {"message_id": "m-3"}) == "m-3"


def test_dedup_key_falls_back_to_payload_fingerprint() -> None:
    payload = {"file": {"buffer": "aGk="}, "metadata": {"id": "u1"}}
    assert dedup_key(payload) == payload_fingerprint(payload)
    assert dedup_key(payload, DeliveryProperties()) == payload_fingerprint(payload)
