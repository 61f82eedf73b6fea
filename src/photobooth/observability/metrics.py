"""Pluggable metrics for uploads and image processing.

Pass any object with ``increment``/``timing``/``gauge`` methods as
``PhotoboothConfig(metrics=...)``; without one, every call lands in a
:class:`NoopMetricsHook`.

Emitted names, with their tag keys:

* ``photobooth.upload_attempts_total`` (counter; transport)
* ``photobooth.retries_total`` (counter; transport)
* ``photobooth.fallbacks_total`` (counter; from, to)
* ``photobooth.upload_success_total`` (counter; transport)
* ``photobooth.upload_failure_total`` (counter; code)
* ``photobooth.upload_duration_ms`` (timing; transport)
* ``photobooth.pipeline_runs_total`` (counter; output_format)
* ``photobooth.pipeline_duration_ms`` (timing; output_format)
* ``photobooth.stage_duration_ms`` (timing; stage)
* ``photobooth.processed_bytes`` (gauge; output_format)
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

Tags = dict[str, str]


@runtime_checkable
class MetricsHook(Protocol):
    """Structural type of a metrics backend."""

    def increment(self, name: str, value: int = 1, tags: Tags | None = None) -> None:
        """Add *value* to the counter *name*."""
        ...

    def timing(self, name: str, ms: float, tags: Tags | None = None) -> None:
        """Record a duration of *ms* milliseconds."""
        ...

    def gauge(self, name: str, value: float, tags: Tags | None = None) -> None:
        """Set the gauge *name* to *value*."""
        ...


class NoopMetricsHook:
    """Discards everything."""

    __slots__ = ()

    def increment(self, name: str, value: int = 1, tags: Tags | None = None) -> None:
        return None

    def timing(self, name: str, ms: float, tags: Tags | None = None) -> None:
        return None

    def gauge(self, name: str, value: float, tags: Tags | None = None) -> None:
        return None


_NOOP = NoopMetricsHook()


def resolve_metrics(metrics: Any | None) -> MetricsHook:
    """Return *metrics*, or the shared no-op hook when it is ``None``."""
    return _NOOP if metrics is None else metrics
