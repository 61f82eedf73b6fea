"""Upload transports for the processing endpoint.

Each transport performs exactly one HTTP attempt per :meth:`send` call
and classifies the outcome; retrying and falling back are the job of
:mod:`photobooth.ingest.executor`.

1. :class:`StreamedTransport` -- multipart body sent in chunks, with
   progress reported as each chunk is consumed.
2. :class:`BufferedTransport` -- the same multipart body sent in one
   piece, no progress.
3. :class:`EncodedTransport` -- JSON body ``{"image": "data:...;base64,..."}``.

Outcome classification:

* ``2xx`` with a JSON object body -- returned to the caller.
* ``2xx`` with ``"success": false`` -- :class:`FatalTransportError`.
* ``2xx`` with an unparseable body -- :class:`RetryableTransportError`.
* network error / timeout / ``408``, ``429``, ``5xx`` --
  :class:`RetryableTransportError`.
* any other status -- :class:`FatalTransportError`.
"""

from __future__ import annotations

import base64
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable
from typing import Any, Protocol

import httpx

from photobooth.config import PhotoboothConfig
from photobooth.errors import FatalTransportError, RetryableTransportError
from photobooth.models import SelectedFile, TransportKind
from photobooth.observability import get_logger
from photobooth.utils.redact import redact

from .retries import is_retryable_exception, is_retryable_status

log = get_logger("photobooth.transport")

ProgressCallback = Callable[[int], None]

_FORM_FIELD = "image"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _noop_progress(percent: int) -> None:
    pass


def _request_url(response: httpx.Response) -> str | None:
    try:
        return str(response.request.url)
    except RuntimeError:
        return None


def _parse_body(response: httpx.Response) -> Any | None:
    try:
        return response.json()
    except ValueError:
        return None


def extract_error_message(body: Any) -> str | None:
    """Return the server's error message from a failure envelope.

    Accepts ``{"error": {"message": ...}}``, ``{"error": "..."}`` and the
    older ``{"message": ...}`` shape.
    """
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str) and error:
        return error
    message = body.get("message")
    if message:
        return str(message)
    return None


def interpret_response(response: httpx.Response, kind: TransportKind) -> dict:
    """Classify *response* and return its JSON body on success.

    Raises
    ------
    RetryableTransportError
        For overload/timeout statuses or an unparseable success body.
    FatalTransportError
        For every other non-2xx status or an explicit ``success: false``.
    """
    status = response.status_code
    body = _parse_body(response)
    context: dict[str, Any] = {
        "transport": kind.value,
        "status_code": status,
        "url": _request_url(response),
    }

    if 200 <= status < 300:
        if not isinstance(body, dict):
            raise RetryableTransportError(
                message="Failed to parse response",
                context=context,
            )
        if body.get("success") is False:
            raise FatalTransportError(
                message=extract_error_message(body) or "Server reported failure",
                context={**context, "body": redact(body)},
            )
        return body

    message = extract_error_message(body) or response.reason_phrase or "Upload failed"
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        context["error_type"] = body["error"].get("type")

    log.warning(
        "Upload rejected",
        extra={
            "extra_fields": {
                "op": "upload",
                "transport": kind.value,
                "status_code": status,
                "body": redact(body) if isinstance(body, dict) else None,
            }
        },
    )

    if is_retryable_status(status):
        raise RetryableTransportError(message=message, context=context)
    raise FatalTransportError(message=message, context=context)


# ---------------------------------------------------------------------------
# Transports
# ---------------------------------------------------------------------------

class UploadTransport(Protocol):
    """One way of delivering a :class:`SelectedFile` to the endpoint."""

    kind: TransportKind

    async def send(
        self,
        upload: SelectedFile,
        on_progress: ProgressCallback | None = None,
    ) -> dict:
        ...


class _HttpTransport(ABC):
    """Shared request lifecycle: send, time, classify."""

    kind: TransportKind

    def __init__(self, client: httpx.AsyncClient, config: PhotoboothConfig) -> None:
        self._client = client
        self._config = config

    @property
    def path(self) -> str:
        return self._config.process_path

    @abstractmethod
    def build_request(
        self,
        upload: SelectedFile,
        on_progress: ProgressCallback,
    ) -> httpx.Request:
        """Build the HTTP request for one attempt."""

    async def send(
        self,
        upload: SelectedFile,
        on_progress: ProgressCallback | None = None,
    ) -> dict:
        """Perform one upload attempt and return the parsed success body."""
        request = self.build_request(upload, on_progress or _noop_progress)
        t0 = time.monotonic()
        try:
            response = await self._client.send(request)
        except httpx.HTTPError as exc:
            log.warning(
                "Upload network error",
                extra={
                    "extra_fields": {
                        "op": "upload",
                        "transport": self.kind.value,
                        "path": self.path,
                        "error": str(exc),
                    }
                },
            )
            context = {"transport": self.kind.value, "url": self.path}
            if is_retryable_exception(exc):
                message = (
                    "Request timed out"
                    if isinstance(exc, httpx.TimeoutException)
                    else f"Network error: {exc}"
                )
                raise RetryableTransportError(
                    message=message, context=context, cause=exc
                ) from exc
            raise FatalTransportError(
                message=f"Request could not be sent: {exc}",
                context=context,
                cause=exc,
            ) from exc

        log.debug(
            "Upload response received",
            extra={
                "extra_fields": {
                    "op": "upload",
                    "transport": self.kind.value,
                    "status_code": response.status_code,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                }
            },
        )
        return interpret_response(response, self.kind)

    def _multipart(self, upload: SelectedFile) -> httpx.Request:
        return self._client.build_request(
            "POST",
            self.path,
            files={_FORM_FIELD: (upload.filename, upload.data, upload.mime_type)},
        )


class StreamedTransport(_HttpTransport):
    """Multipart upload whose body is streamed in chunks with progress.

    Progress is an integer percentage of body bytes handed to the
    connection.  It starts at 0 on every attempt and only grows.
    """

    kind = TransportKind.STREAMED

    def build_request(
        self,
        upload: SelectedFile,
        on_progress: ProgressCallback,
    ) -> httpx.Request:
        encoded = self._multipart(upload)
        body = encoded.read()
        return self._client.build_request(
            "POST",
            self.path,
            content=self._chunks(body, on_progress),
            headers={
                "Content-Type": encoded.headers["Content-Type"],
                "Content-Length": str(len(body)),
            },
        )

    async def _chunks(
        self,
        body: bytes,
        on_progress: ProgressCallback,
    ) -> AsyncIterator[bytes]:
        total = len(body)
        chunk_size = self._config.progress_chunk_size
        sent = 0
        on_progress(0)
        for start in range(0, total, chunk_size):
            piece = body[start:start + chunk_size]
            yield piece
            sent += len(piece)
            on_progress(sent * 100 // total)


class BufferedTransport(_HttpTransport):
    """Multipart upload sent in one piece, no progress reporting."""

    kind = TransportKind.BUFFERED

    def build_request(
        self,
        upload: SelectedFile,
        on_progress: ProgressCallback,
    ) -> httpx.Request:
        return self._multipart(upload)


class EncodedTransport(_HttpTransport):
    """Base64 data URI inside a JSON body (about 4/3 of the file size)."""

    kind = TransportKind.ENCODED

    @property
    def path(self) -> str:
        return self._config.encoded_process_path

    def build_request(
        self,
        upload: SelectedFile,
        on_progress: ProgressCallback,
    ) -> httpx.Request:
        return self._client.build_request(
            "POST",
            self.path,
            json={"image": to_data_uri(upload.data, upload.mime_type)},
        )


def to_data_uri(data: bytes, mime_type: str) -> str:
    """Encode *data* as ``data:<mime>;base64,<data>``."""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


_TRANSPORTS: dict[TransportKind, type[_HttpTransport]] = {
    TransportKind.STREAMED: StreamedTransport,
    TransportKind.BUFFERED: BufferedTransport,
    TransportKind.ENCODED: EncodedTransport,
}


def build_transport(
    kind: TransportKind,
    client: httpx.AsyncClient,
    config: PhotoboothConfig,
) -> UploadTransport:
    """Instantiate the transport implementing *kind*."""
    return _TRANSPORTS[kind](client, config)
