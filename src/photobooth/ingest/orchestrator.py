"""Client-side ingestion orchestrator.

:class:`IngestionOrchestrator` drives one user-initiated submission
through validation, the transport fallback chain, and interpretation of
the server's result descriptor, exposing state, progress and the final
error message to the caller.

Usage::

    import asyncio
    from photobooth import IngestionOrchestrator

    async def main():
        async with IngestionOrchestrator() as booth:
            result = await booth.submit(data, "image/jpeg", len(data))
            print(result.url)

    asyncio.run(main())
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

import httpx

from photobooth.config import PhotoboothConfig
from photobooth.errors import (
    FatalTransportError,
    PhotoboothError,
    SubmissionActiveError,
    ValidationError,
)
from photobooth.models import (
    SelectedFile,
    TransportKind,
    UploadAttempt,
    UploadResult,
    UploadState,
)
from photobooth.observability import get_logger, resolve_metrics
from photobooth.utils.redact import redact

from .executor import RetryCallback, SleepFn, TransportChain, upload_with_fallback
from .state import StateListener, UploadStateMachine
from .transports import ProgressCallback, build_transport
from .validate import validate_upload

log = get_logger("photobooth.orchestrator")

GENERIC_ERROR_MESSAGE = "Upload failed"


def parse_result(body: dict, transport: TransportKind | None = None) -> UploadResult:
    """Build an :class:`UploadResult` from a success body.

    Accepts ``{"result": {"id", "processedUrl" | "url"}, "message"}``.

    Raises
    ------
    FatalTransportError
        If the body carries no usable result id.
    """
    result = body.get("result")
    if not isinstance(result, dict) or not result.get("id"):
        raise FatalTransportError(
            message="Invalid response from server",
            context={
                "transport": transport.value if transport else None,
                "body": redact(body),
            },
        )
    url = result.get("processedUrl") or result.get("url")
    message = body.get("message")
    return UploadResult(
        id=str(result["id"]),
        url=str(url) if url else None,
        message=str(message) if message else None,
        transport=transport,
        raw=body,
    )


class IngestionOrchestrator:
    """Submit one photo at a time to the processing endpoint.

    Parameters
    ----------
    config:
        Endpoints, validation limits and the fallback chain.  Defaults to
        ``PhotoboothConfig()``.
    client:
        An ``httpx.AsyncClient`` whose ``base_url`` points at the
        processing server.  When omitted the orchestrator creates one and
        closes it in :meth:`close`.
    transports:
        Explicit ``(TransportPolicy, UploadTransport)`` chain.  Built
        from ``config.transport_policies`` when omitted.
    sleep:
        Awaitable used for backoff delays.
    on_state_change:
        Called as ``on_state_change(old, new)`` on every state change.
    on_progress:
        Called with the current upload percentage whenever it changes.
    on_retry:
        Called as ``on_retry(transport, retry_number)`` just before a
        retry attempt starts.
    """

    def __init__(
        self,
        config: PhotoboothConfig | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        transports: TransportChain | None = None,
        sleep: SleepFn = asyncio.sleep,
        on_state_change: StateListener | None = None,
        on_progress: ProgressCallback | None = None,
        on_retry: RetryCallback | None = None,
    ) -> None:
        self._config = config or PhotoboothConfig()
        self._metrics = resolve_metrics(self._config.metrics)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self._config.base_url,
            timeout=httpx.Timeout(self._config.timeout_seconds),
        )
        self._chain: TransportChain = (
            list(transports)
            if transports is not None
            else [
                (policy, build_transport(policy.kind, self._client, self._config))
                for policy in self._config.transport_policies
            ]
        )
        self._sleep = sleep
        self._on_progress = on_progress
        self._on_retry = on_retry
        self._machine = UploadStateMachine(listener=on_state_change)

        self._file: SelectedFile | None = None
        self._result: UploadResult | None = None
        self._error: str | None = None
        self._progress = 0
        self._retry_count = 0
        self._attempts: list[UploadAttempt] = []

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def state(self) -> UploadState:
        return self._machine.state

    @property
    def history(self) -> list[UploadState]:
        """States visited since construction or the last :meth:`reset`."""
        return list(self._machine.history)

    @property
    def progress(self) -> int:
        """Upload percentage of the current attempt (0-100)."""
        return self._progress

    @property
    def error(self) -> str | None:
        """User-facing message of the terminal failure, if any."""
        return self._error

    @property
    def retry_count(self) -> int:
        """Retry number of the most recent retry on the current transport."""
        return self._retry_count

    @property
    def attempts(self) -> list[UploadAttempt]:
        """Every transport attempt made for the current submission."""
        return list(self._attempts)

    @property
    def result(self) -> UploadResult | None:
        return self._result

    @property
    def file(self) -> SelectedFile | None:
        """The validated file of the current submission."""
        return self._file

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def submit(
        self,
        file_bytes: bytes | None,
        declared_mime: str | None = None,
        declared_size: int | None = None,
        filename: str = "upload",
    ) -> UploadResult:
        """Validate *file_bytes* and upload it through the fallback chain.

        Returns
        -------
        UploadResult
            The server's result descriptor.  The orchestrator ends in
            ``SUCCESS``.

        Raises
        ------
        SubmissionActiveError
            If the orchestrator is not ``IDLE``.
        ValidationError
            If the file is missing, of the wrong type or too large.  No
            network activity takes place.
        TransportError
            When every transport failed or one failed fatally.  The
            orchestrator ends in ``ERROR`` with :attr:`error` set.
        """
        if self._machine.state is not UploadState.IDLE:
            raise SubmissionActiveError(
                message="A submission is already active; reset first",
                context={"current_state": self._machine.state.value},
            )

        self._clear()
        self._machine.transition(UploadState.VALIDATING)
        try:
            upload = validate_upload(
                file_bytes,
                declared_mime,
                declared_size,
                self._config,
                filename=filename,
            )
        except ValidationError as exc:
            self._fail(exc)
            raise

        self._file = upload
        return await self._run(upload)

    async def retry(self) -> UploadResult:
        """Re-run the fallback chain with the already validated file.

        Raises
        ------
        SubmissionActiveError
            While a submission is in flight.
        ValueError
            If the orchestrator is not in ``ERROR``.
        ValidationError
            If the failed submission never produced a valid file.
        """
        if self._machine.in_flight:
            raise SubmissionActiveError(
                message="A submission is already in flight",
                context={"current_state": self._machine.state.value},
            )
        if self._machine.state is not UploadState.ERROR:
            raise ValueError(
                f"retry() is only allowed from the error state "
                f"(state: {self._machine.state.value})"
            )
        if self._file is None:
            raise ValidationError(message="No file to retry", status_code=400)

        self._error = None
        self._retry_count = 0
        return await self._run(self._file)

    def reset(self) -> None:
        """Return to ``IDLE`` and forget the current submission.

        Raises
        ------
        ValueError
            While a submission is in flight.
        """
        self._machine.reset()
        self._clear()

    async def close(self) -> None:
        """Close the HTTP client if the orchestrator created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> IngestionOrchestrator:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _run(self, upload: SelectedFile) -> UploadResult:
        self._machine.transition(UploadState.UPLOADING)
        self._set_progress(0)
        t0 = time.monotonic()

        try:
            kind, body = await upload_with_fallback(
                self._chain,
                upload,
                config=self._config,
                attempts=self._attempts,
                on_progress=self._set_progress,
                on_retry=self._handle_retry,
                sleep=self._sleep,
                metrics=self._metrics,
            )
            self._machine.transition(UploadState.PROCESSING)
            result = parse_result(body, kind)
        except Exception as exc:
            self._fail(exc, t0)
            raise

        self._result = result
        self._machine.transition(UploadState.SUCCESS)

        duration_ms = (time.monotonic() - t0) * 1000
        tags = {"transport": kind.value}
        self._metrics.increment("photobooth.upload_success_total", tags=tags)
        self._metrics.timing("photobooth.upload_duration_ms", duration_ms, tags=tags)
        log.info(
            "Upload succeeded",
            extra={
                "extra_fields": {
                    "op": "submit",
                    "transport": kind.value,
                    "attempts": len(self._attempts),
                    "image_id": result.id,
                    "duration_ms": round(duration_ms, 2),
                }
            },
        )
        return result

    def _fail(self, exc: Exception, t0: float | None = None) -> None:
        message = exc.message if isinstance(exc, PhotoboothError) else ""
        self._error = message or GENERIC_ERROR_MESSAGE
        self._machine.transition(UploadState.ERROR)

        code = exc.code if isinstance(exc, PhotoboothError) else type(exc).__name__
        code = getattr(code, "value", code)
        self._metrics.increment(
            "photobooth.upload_failure_total",
            tags={"code": code},
        )
        if t0 is not None:
            self._metrics.timing(
                "photobooth.upload_duration_ms",
                (time.monotonic() - t0) * 1000,
                tags={"transport": "none"},
            )
        log.warning(
            "Submission failed",
            extra={
                "extra_fields": {
                    "op": "submit",
                    "code": code,
                    "error": self._error,
                    "attempts": len(self._attempts),
                }
            },
        )

    def _set_progress(self, percent: int) -> None:
        # Zero marks the start of an attempt; otherwise progress only grows.
        if percent == 0:
            new = 0
        else:
            new = max(self._progress, min(int(percent), 100))
        if new == self._progress and percent != 0:
            return
        self._progress = new
        if self._on_progress is not None:
            self._on_progress(new)

    def _handle_retry(self, kind: TransportKind, retry_number: int) -> None:
        self._retry_count = retry_number
        self._set_progress(0)
        if self._on_retry is not None:
            self._on_retry(kind, retry_number)

    def _clear(self) -> None:
        self._file = None
        self._result = None
        self._error = None
        self._progress = 0
        self._retry_count = 0
        self._attempts = []
