"""photobooth: photo-booth styling pipeline and resilient upload client.

Public re-exports
-----------------

* **Pipeline:** :class:`StylingPipeline`, :func:`process`
* **Client:** :class:`IngestionOrchestrator`
* **Server boundary:** :class:`ProcessingService`, :class:`InMemoryImageStore`
* **Configuration:** :class:`PhotoboothConfig`
* **Errors:** Every :class:`PhotoboothError` subclass and :class:`ErrorCode`
* **Models:** All result dataclasses and enums

Usage::

    from photobooth import StylingPipeline

    result = StylingPipeline().process(jpeg_bytes, "image/jpeg")
    open("styled.jpg", "wb").write(result.processed_bytes)
"""

from __future__ import annotations

# ── Configuration ───────────────────────────────────────────────────────
from photobooth.config import (
    DEFAULT_ALLOWED_MIMES,
    DEFAULT_MAX_UPLOAD_BYTES,
    DEFAULT_TRANSPORT_POLICIES,
    PhotoboothConfig,
)

# ── Errors ──────────────────────────────────────────────────────────────
from photobooth.errors import (
    ErrorCode,
    FatalTransportError,
    ImageNotFoundError,
    InvalidImageFormat,
    PhotoboothError,
    ProcessingFailure,
    RetryableTransportError,
    SubmissionActiveError,
    TransportError,
    ValidationError,
)

# ── Client ──────────────────────────────────────────────────────────────
from photobooth.ingest import IngestionOrchestrator, validate_upload

# ── Models ──────────────────────────────────────────────────────────────
from photobooth.models import (
    AttemptOutcome,
    OutputFormat,
    ProcessedImageRecord,
    ProcessResult,
    SelectedFile,
    TransportKind,
    TransportPolicy,
    UploadAttempt,
    UploadResult,
    UploadState,
)

# ── Server boundary ─────────────────────────────────────────────────────
from photobooth.service import ProcessingService
from photobooth.store import ImageStore, InMemoryImageStore

# ── Pipeline ────────────────────────────────────────────────────────────
from photobooth.styling import STYLE_PARAMETERS, StylingPipeline, process

# ── Public surface ──────────────────────────────────────────────────────

__all__ = [
    # Pipeline
    "StylingPipeline",
    "process",
    "STYLE_PARAMETERS",
    # Client
    "IngestionOrchestrator",
    "validate_upload",
    # Server boundary
    "ProcessingService",
    "ImageStore",
    "InMemoryImageStore",
    # Configuration
    "PhotoboothConfig",
    "DEFAULT_ALLOWED_MIMES",
    "DEFAULT_MAX_UPLOAD_BYTES",
    "DEFAULT_TRANSPORT_POLICIES",
    # Error base + code enum
    "PhotoboothError",
    "ErrorCode",
    # Client errors
    "ValidationError",
    "SubmissionActiveError",
    "TransportError",
    "RetryableTransportError",
    "FatalTransportError",
    # Pipeline / server errors
    "InvalidImageFormat",
    "ProcessingFailure",
    "ImageNotFoundError",
    # Models: ingestion
    "SelectedFile",
    "TransportPolicy",
    "UploadAttempt",
    "UploadResult",
    # Models: processing
    "ProcessResult",
    "ProcessedImageRecord",
    # Models: enums
    "UploadState",
    "TransportKind",
    "AttemptOutcome",
    "OutputFormat",
]
