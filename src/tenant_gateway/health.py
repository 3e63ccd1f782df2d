"""Health checks for the broker and the object store, and their aggregate."""

from __future__ import annotations

import asyncio
import inspect
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

_logger = logging.getLogger(__name__)


class MessageBrokerHealthCheck:
    """Health check for message broker connectivity."""

    def __init__(self, broker_client: Any) -> None:
        self._broker = broker_client

    async def __call__(self) -> bool:
        try:
            result = self._broker.health_check()
            if inspect.isawaitable(result):
                result = await result
            return bool(result)
        except Exception:  # noqa: BLE001
            return False


class ObjectStoreHealthCheck:
    """Health check for the storage bucket."""

    def __init__(self, storage: Any) -> None:
        self._storage = storage

    async def __call__(self) -> bool:
        try:
            return bool(await self._storage.health_check())
        except Exception:  # noqa: BLE001
            return False


class HealthRegistry:
    """Named probes aggregated into the report served on ``/health``.

    Probes run concurrently; each may be sync or async and is bounded by
    ``timeout``. A probe that raises or times out reports ``down``.
    """

    def __init__(self, *, timeout: float = 5.0) -> None:
        self._probes: dict[str, Callable[[], Any]] = {}
        self._timeout = timeout

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._probes)

    def register(self, name: str, probe: Callable[[], Any]) -> None:
        """Add or replace the probe called *name*."""
        self._probes[name] = probe

    async def check_all(self) -> dict[str, str]:
        names = list(self._probes)
        results = await asyncio.gather(*(self._run(name) for name in names))
        return {
            name: "up" if ok else "down"
            for name, ok in zip(names, results, strict=True)
        }

    async def status(self) -> dict[str, Any]:
        components = await self.check_all()
        down = sorted(name for name, state in components.items() if state != "up")
        if down:
            _logger.warning("Unhealthy components: %s", ", ".join(down))
        return {
            "status": "unhealthy" if down else "healthy",
            "components": components,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def _run(self, name: str) -> bool:
        try:
            outcome = self._probes[name]()
            if inspect.isawaitable(outcome):
                outcome = await asyncio.wait_for(outcome, self._timeout)
        except Exception as e:  # noqa: BLE001
            _logger.warning("Health probe %s failed: %r", name, e)
            return False
        return bool(outcome)
