"""Unit tests for S3ConnectionManager with a mocked aiobotocore session."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from tenant_gateway.storage.connection import S3ConnectionManager


@pytest.fixture
def mock_client() -> MagicMock:
    client = MagicMock()
    client.list_buckets = AsyncMock(return_value={"Buckets": []})
    return client


@pytest.fixture
def mock_session(mock_client: MagicMock) -> MagicMock:
    client_cm = MagicMock()
    client_cm.__aenter__ = AsyncMock(return_value=mock_client)
    client_cm.__aexit__ = AsyncMock(return_value=False)
    session = MagicMock()
    session.create_client = MagicMock(return_value=client_cm)
    return session


@pytest.fixture
def manager(mock_session: MagicMock) -> S3ConnectionManager:
    return S3ConnectionManager(
        "http://minio:9000",
        aws_access_key_id="minioadmin",
        aws_secret_access_key="minioadmin",
        session=mock_session,
    )


@pytest.mark.asyncio
async def test_get_client_uses_path_style_addressing(
    manager: S3ConnectionManager, mock_session: MagicMock, mock_client: MagicMock
) -> None:
    assert await manager.get_client() is mock_client
    args, kwargs = mock_session.create_client.call_args
    assert args == ("s3",)
    assert kwargs["endpoint_url"] == "http://minio:9000"
    assert kwargs["region_name"] == "us-east-1"
    assert kwargs["aws_access_key_id"] == "minioadmin"
    assert kwargs["config"].s3 == {"addressing_style": "path"}
    assert kwargs["config"].signature_version == "s3v4"


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_client(
    manager: S3ConnectionManager, mock_session: MagicMock
) -> None:
    clients = await asyncio.gather(*(manager.get_client() for _ in range(5)))
    assert len({id(c) for c in clients}) == 1
    mock_session.create_client.assert_called_once()


@pytest.mark.asyncio
async def test_close_exits_client_context(
    manager: S3ConnectionManager, mock_session: MagicMock
) -> None:
    await manager.get_client()
    await manager.close()
    mock_session.create_client.return_value.__aexit__.assert_awaited_once()
    await manager.close()  # second close is a no-op
    await manager.get_client()
    assert mock_session.create_client.call_count == 2


@pytest.mark.asyncio
async def test_health_check(manager: S3ConnectionManager, mock_client: MagicMock) -> None:
    assert await manager.health_check() is True
    mock_client.list_buckets.side_effect = OSError("connection refused")
    assert await manager.health_check() is False
