"""S3 client management for MinIO / S3-compatible object stores."""

from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack
from typing import Any

from aiobotocore.config import AioConfig
from aiobotocore.session import AioSession

_logger = logging.getLogger(__name__)


class S3ConnectionManager:
    """Lazily opens one aiobotocore S3 client and shares it.

    MinIO serves buckets under the endpoint path, so the client is built with
    path-style addressing and SigV4 signatures.
    """

    def __init__(
        self,
        endpoint_url: str | None = None,
        *,
        region_name: str = "us-east-1",
        aws_access_key_id: str | None = None,
        aws_secret_access_key: str | None = None,
        session: AioSession | None = None,
        **client_kwargs: Any,
    ) -> None:
        self._endpoint_url = endpoint_url
        self._region = region_name
        self._session = session or AioSession()
        self._credentials = {
            "aws_access_key_id": aws_access_key_id,
            "aws_secret_access_key": aws_secret_access_key,
        }
        self._extra = client_kwargs
        self._stack: AsyncExitStack | None = None
        self._client: Any = None
        self._lock = asyncio.Lock()

    @property
    def endpoint_url(self) -> str | None:
        return self._endpoint_url

    @property
    def region_name(self) -> str:
        return self._region

    async def get_client(self) -> Any:
        """Return the shared client, opening it on first use."""
        if self._client is not None:
            return self._client
        async with self._lock:
            if self._client is None:
                stack = AsyncExitStack()
                self._client = await stack.enter_async_context(
                    self._session.create_client(
                        "s3",
                        region_name=self._region,
                        endpoint_url=self._endpoint_url,
                        config=AioConfig(
                            signature_version="s3v4",
                            s3={"addressing_style": "path"},
                        ),
                        **self._credentials,
                        **self._extra,
                    )
                )
                self._stack = stack
                _logger.info("Opened S3 client for %s", self._endpoint_url or self._region)
        return self._client

    async def close(self) -> None:
        stack, self._stack, self._client = self._stack, None, None
        if stack is not None:
            await stack.aclose()

    async def health_check(self) -> bool:
        """Return True if the endpoint answers ``ListBuckets``."""
        try:
            client = await self.get_client()
            await client.list_buckets()
        except Exception:  # noqa: BLE001
            return False
        return True
