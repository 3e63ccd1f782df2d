"""DeduplicationCache — process-local record of recently processed message ids."""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

_logger = logging.getLogger(__name__)


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


class DeduplicationCache:
    """Suppress duplicate side effects on top of at-least-once delivery.

    Entries are swept lazily: once the cache holds more than
    ``sweep_threshold`` ids, each insertion drops every entry older than
    ``ttl_ms``. ``max_entries`` caps memory by evicting the least recently
    inserted ids. The cache is per process; two gateway instances do not
    share it.
    """

    def __init__(
        self,
        *,
        ttl_ms: int = 60_000,
        sweep_threshold: int = 100,
        max_entries: int = 10_000,
        clock: Callable[[], float] = _monotonic_ms,
    ) -> None:
        """Configure the cache.

        Args:
            ttl_ms: Age in milliseconds after which an entry may be swept.
            sweep_threshold: Size above which insertions trigger a sweep.
            max_entries: Hard capacity; oldest insertions are evicted first.
            clock: Millisecond clock, injectable for tests.
        """
        if ttl_ms <= 0:
            raise ValueError("ttl_ms must be > 0")
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._ttl_ms = ttl_ms
        self._sweep_threshold = sweep_threshold
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, float] = OrderedDict()

    def is_duplicate(self, message_id: str) -> bool:
        """Return True if *message_id* is recorded (expiry is left to the sweep)."""
        return message_id in self._entries

    def mark_processed(self, message_id: str) -> None:
        """Record *message_id* as processed now."""
        now = self._clock()
        self._entries[message_id] = now
        self._entries.move_to_end(message_id)

        if len(self._entries) > self._sweep_threshold:
            self._sweep(now)

        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            _logger.debug("Evicted dedup entry %s (capacity)", evicted)

    def _sweep(self, now: float) -> None:
        expired = [k for k, ts in self._entries.items() if now - ts > self._ttl_ms]
        for k in expired:
            del self._entries[k]
        if expired:
            _logger.debug("Swept %d expired dedup entries", len(expired))

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._entries
