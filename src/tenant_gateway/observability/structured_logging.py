"""JSON log entries per consumed message, plus root logger setup."""

from __future__ import annotations

import json
import logging
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from .correlation import correlation_scope, get_correlation_id

if TYPE_CHECKING:
    from collections.abc import Iterator

_log = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the root logger."""
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)


class MessageOutcome:
    """Mutable outcome holder yielded by ``message_log_context``."""

    __slots__ = ("value", "extra")

    def __init__(self) -> None:
        self.value = "success"
        self.extra: dict[str, Any] = {}


@contextmanager
def message_log_context(
    queue: str,
    message_id: str,
    logger: logging.Logger | None = None,
) -> Iterator[MessageOutcome]:
    """Bind *message_id* as correlation id and emit one JSON entry on exit.

    The outcome defaults to ``success``, becomes ``error`` when the block
    raises, and may be overridden by the caller (e.g. ``skipped``).
    """
    log = logger or _log
    start = time.monotonic()
    outcome = MessageOutcome()
    with correlation_scope(message_id):
        try:
            yield outcome
        except Exception:
            outcome.value = "error"
            raise
        finally:
            try:
                entry = {
                    "queue": queue,
                    "message_id": message_id,
                    "outcome": outcome.value,
                    "duration_ms": round((time.monotonic() - start) * 1000, 2),
                    "correlation_id": get_correlation_id(),
                    **outcome.extra,
                }
                log.info(json.dumps(entry, default=str))
            except Exception:  # noqa: BLE001
                _log.debug("Failed to emit structured log entry", exc_info=True)
