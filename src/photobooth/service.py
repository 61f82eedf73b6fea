"""Server boundary for the styling pipeline.

:class:`ProcessingService` is what an HTTP framework's handlers call:

* ``POST /api/process`` (multipart) -> :meth:`ProcessingService.process`
* ``POST /api/process-image`` (JSON data URI) ->
  :meth:`ProcessingService.process_data_uri`
* ``GET /api/image/<id>`` -> :meth:`ProcessingService.fetch`

It also renders the JSON envelopes the ingestion client understands::

    {"success": true, "message": "...", "result": {"id": ..., "processedUrl": ...}}
    {"success": false, "error": {"type": "...", "message": "..."}}
"""

from __future__ import annotations

import base64
import binascii
import re
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from photobooth.config import PhotoboothConfig
from photobooth.errors import (
    ImageNotFoundError,
    InvalidImageFormat,
    PhotoboothError,
    ProcessingFailure,
    ValidationError,
)
from photobooth.models import ProcessedImageRecord
from photobooth.observability import get_logger
from photobooth.store import Clock, ImageStore, InMemoryImageStore
from photobooth.styling import StylingPipeline

log = get_logger("photobooth.service")

# data:[<mediatype>][;base64],<data>
_DATA_URI_RE = re.compile(
    r"^data:(?P<mime>[^;,]+)?(?:;(?P<encoding>base64))?,(?P<data>.*)$",
    re.IGNORECASE | re.DOTALL,
)

IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000"

_ERROR_TYPES: list[tuple[type[Exception], int, str]] = [
    (ValidationError, 400, "VALIDATION_ERROR"),
    (InvalidImageFormat, 415, "INVALID_IMAGE_FORMAT"),
    (ImageNotFoundError, 404, "NOT_FOUND"),
    (ProcessingFailure, 500, "PROCESSING_ERROR"),
]


def parse_data_uri(src: Any) -> tuple[str, bytes]:
    """Parse a base64 data URI and return ``(mime_type, decoded_bytes)``.

    Raises
    ------
    ValidationError
        If *src* is missing, not a string, or not a decodable base64
        data URI.
    """
    if src is None or src == "":
        raise ValidationError(message="No image found in request", status_code=400)
    if not isinstance(src, str):
        raise ValidationError(
            message="Image data must be a base64 string",
            context={"type": type(src).__name__},
            status_code=400,
        )

    match = _DATA_URI_RE.match(src)
    if not match or not match.group("encoding"):
        raise ValidationError(
            message="Invalid image data format",
            context={"reason": "not_base64_data_uri", "length": len(src)},
            status_code=400,
        )

    try:
        decoded = base64.b64decode(match.group("data"), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError(
            message="Invalid image data format",
            context={"reason": "base64_decode_error", "length": len(src)},
            cause=exc,
            status_code=400,
        ) from exc

    return (match.group("mime") or "").lower(), decoded


class ProcessingService:
    """Run the pipeline on incoming uploads and serve the results.

    Parameters
    ----------
    config:
        Supplies the size ceiling, the default output format, the read
        path template and the retention window.
    store:
        Where processed images are kept.  Defaults to an
        :class:`InMemoryImageStore` with ``config.retention_hours``.
    pipeline:
        The styling pipeline.  Defaults to ``StylingPipeline()``.
    id_factory:
        Produces unique image ids.
    clock:
        Returns the current aware UTC time.
    """

    def __init__(
        self,
        config: PhotoboothConfig | None = None,
        store: ImageStore | None = None,
        pipeline: StylingPipeline | None = None,
        id_factory: Callable[[], str] | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._config = config or PhotoboothConfig()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.store: ImageStore = store or InMemoryImageStore(
            retention=timedelta(hours=self._config.retention_hours),
            clock=self._clock,
        )
        self.pipeline = pipeline or StylingPipeline(metrics=self._config.metrics)
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def process(
        self,
        data: bytes | None,
        source_format: str | None = None,
        output_format: str | None = None,
    ) -> ProcessedImageRecord:
        """Style *data* and store the result.

        Nothing is stored unless the whole pipeline succeeds.

        Raises
        ------
        ValidationError
            400 when *data* is empty, 413 when it exceeds the ceiling.
        InvalidImageFormat
            If the bytes cannot be decoded.
        ProcessingFailure
            If a stage or the encoder fails.
        """
        if not data:
            raise ValidationError(message="No file selected", status_code=400)
        if len(data) > self._config.max_upload_bytes:
            max_mb = self._config.max_upload_bytes // (1024 * 1024)
            raise ValidationError(
                message=f"File too large. Maximum size: {max_mb}MB",
                context={
                    "size_bytes": len(data),
                    "max_bytes": self._config.max_upload_bytes,
                },
                status_code=413,
            )

        result = self.pipeline.process(
            data,
            source_format,
            output_format or self._config.default_output_format,
        )

        image_id = self._id_factory()
        record = ProcessedImageRecord(
            id=image_id,
            original_byte_size=result.original_size,
            processed_byte_size=result.processed_size,
            output_locator=self._config.image_path.format(id=image_id),
            created_at=self._clock(),
            content_type=result.output_format.mime_type,
        )
        self.store.put(record, result.processed_bytes)

        log.info(
            "Processed image stored",
            extra={
                "extra_fields": {
                    "op": "store",
                    "image_id": image_id,
                    "original_size": record.original_byte_size,
                    "processed_size": record.processed_byte_size,
                }
            },
        )
        return record

    def process_data_uri(
        self,
        src: Any,
        output_format: str | None = None,
    ) -> ProcessedImageRecord:
        """Decode a JSON-body data URI and :meth:`process` it."""
        mime_type, data = parse_data_uri(src)
        return self.process(data, mime_type or None, output_format)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def fetch(self, image_id: str) -> tuple[bytes, str, dict[str, str]]:
        """Return ``(bytes, content_type, headers)`` for a stored image.

        Raises
        ------
        ImageNotFoundError
            If *image_id* is unknown or its retention window has passed.
        """
        record = self.store.get(image_id)
        data = self.store.get_bytes(image_id) if record is not None else None
        if record is None or data is None:
            raise ImageNotFoundError(
                message="Image not found",
                context={"image_id": image_id},
            )
        headers = {
            "Content-Type": record.content_type,
            "Cache-Control": IMMUTABLE_CACHE_CONTROL,
        }
        return data, record.content_type, headers

    def list_records(self) -> list[ProcessedImageRecord]:
        """Every live record, newest first."""
        return self.store.list()

    def cleanup(self) -> int:
        """Drop images older than the retention window."""
        return self.store.purge_expired(self._clock())

    # ------------------------------------------------------------------
    # Envelopes
    # ------------------------------------------------------------------

    @staticmethod
    def success_payload(record: ProcessedImageRecord) -> dict[str, Any]:
        return {
            "success": True,
            "message": "Image processed successfully",
            "result": {
                "id": record.id,
                "processedUrl": record.output_locator,
                "originalSize": record.original_byte_size,
                "processedSize": record.processed_byte_size,
                "createdAt": record.created_at.isoformat(),
            },
        }

    @staticmethod
    def error_payload(exc: Exception) -> tuple[int, dict[str, Any]]:
        """Map *exc* to ``(status_code, failure_envelope)``.

        Internal failures get a generic message; their details only go
        to the log.
        """
        status, error_type, message = 500, "SERVER_ERROR", "Internal server error"
        for exc_type, default_status, type_name in _ERROR_TYPES:
            if isinstance(exc, exc_type):
                status, error_type = default_status, type_name
                break

        if isinstance(exc, ValidationError):
            status = exc.status_code
            message = exc.message
        elif isinstance(exc, (InvalidImageFormat, ImageNotFoundError)):
            message = exc.message
        elif isinstance(exc, ProcessingFailure):
            message = "Failed to process image"

        if status >= 500:
            log.error(
                "Request failed",
                exc_info=exc,
                extra={
                    "extra_fields": {
                        "op": "request",
                        "status_code": status,
                        "code": getattr(exc, "code", type(exc).__name__),
                        "context": exc.context if isinstance(exc, PhotoboothError) else None,
                    }
                },
            )

        return status, {
            "success": False,
            "error": {"type": error_type, "message": message},
        }
