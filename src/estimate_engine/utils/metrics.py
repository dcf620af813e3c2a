"""
Metrics sink interface.

The engines never hold metric state; the orchestrator reports counts and
stage timings into whatever sink the caller supplies.
"""

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class MetricsSink(Protocol):
    def increment(self, name: str, value: int = 1, **tags: str) -> None: ...

    def timing(self, name: str, seconds: float, **tags: str) -> None: ...


class NullMetricsSink:
    """Discards every metric."""

    def increment(self, name: str, value: int = 1, **tags: str) -> None:
        return None

    def timing(self, name: str, seconds: float, **tags: str) -> None:
        return None


class LoggingMetricsSink:
    """Emits metrics as log records."""

    def __init__(self, level: int = logging.DEBUG, log: logging.Logger | None = None) -> None:
        self.level = level
        self.log = log or logger

    def increment(self, name: str, value: int = 1, **tags: str) -> None:
        self.log.log(self.level, "metric %s +%d %s", name, value, _format_tags(tags))

    def timing(self, name: str, seconds: float, **tags: str) -> None:
        self.log.log(self.level, "metric %s %.4fs %s", name, seconds, _format_tags(tags))


def _format_tags(tags: dict[str, str]) -> str:
    return " ".join(f"{key}={value}" for key, value in sorted(tags.items()))


@contextmanager
def timed(sink: MetricsSink, name: str, **tags: str) -> Iterator[None]:
    """Report the wall time of the enclosed block to ``sink``."""
    start = time.perf_counter()
    try:
        yield
    finally:
        sink.timing(name, time.perf_counter() - start, **tags)
