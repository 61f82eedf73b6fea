"""Public data models for photobooth.

This module contains every result type, enum, and supporting dataclass
referenced by the public API surface.  All types are plain dataclasses
with no behaviour beyond what is needed for structural equality and
hashing (where frozen).  Pixel-level types live in
:mod:`photobooth.styling` because they depend on numpy.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class UploadState(str, Enum):
    """Lifecycle states of one user-initiated submission."""

    IDLE = "idle"
    """Nothing in flight; a new submission may start."""

    VALIDATING = "validating"
    """The selected file is being checked locally."""

    UPLOADING = "uploading"
    """A transport is sending bytes or awaiting the server response."""

    PROCESSING = "processing"
    """The server answered; its result descriptor is being interpreted."""

    SUCCESS = "success"
    """A result descriptor was received.  Terminal until reset."""

    ERROR = "error"
    """Validation or every transport failed.  Terminal until reset or
    an explicit retry re-enters ``UPLOADING``."""


class TransportKind(str, Enum):
    """The concrete ways of moving file bytes to the processing endpoint."""

    STREAMED = "streamed"
    """Multipart binary upload with live progress reporting."""

    BUFFERED = "buffered"
    """Multipart binary upload sent in one piece, no progress."""

    ENCODED = "encoded"
    """Base64 data URI inside a JSON body."""


class AttemptOutcome(str, Enum):
    """Outcome of a single transport attempt."""

    PENDING = "pending"
    SUCCESS = "success"
    RETRYABLE_FAILURE = "retryable_failure"
    FATAL_FAILURE = "fatal_failure"


class OutputFormat(str, Enum):
    """Output containers the styling pipeline can encode to."""

    JPEG = "jpeg"
    PNG = "png"

    @property
    def mime_type(self) -> str:
        return f"image/{self.value}"


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TransportPolicy:
    """One entry of the fallback chain.

    Attributes
    ----------
    kind:
        Which transport to use.
    max_attempts:
        Total attempts on this transport, including the first one.
    base_delay:
        Backoff base in seconds; the delay before retry *n* is
        ``base_delay * 2 ** (n - 1)``.
    """

    kind: TransportKind
    max_attempts: int
    base_delay: float

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(
                f"{self.kind.value}: max_attempts must be >= 1, got {self.max_attempts}"
            )
        if self.base_delay < 0:
            raise ValueError(
                f"{self.kind.value}: base_delay must be >= 0, got {self.base_delay}"
            )


@dataclass(frozen=True)
class SelectedFile:
    """A file that passed local validation and may be uploaded.

    Attributes
    ----------
    data:
        Raw file bytes.
    mime_type:
        ``image/jpeg`` or ``image/png``.
    size:
        Byte size used for validation.
    filename:
        Name sent with multipart uploads.
    """

    data: bytes = field(repr=False)
    mime_type: str
    size: int
    filename: str = "upload"


@dataclass
class UploadAttempt:
    """Record of one try on one transport.

    Created by the retry executor and kept only in the orchestrator's
    attempt log for the current submission.
    """

    transport: TransportKind
    attempt_number: int
    started_at: datetime
    outcome: AttemptOutcome = AttemptOutcome.PENDING
    error_message: str | None = None


@dataclass(frozen=True)
class UploadResult:
    """Result descriptor returned by the processing endpoint.

    Attributes
    ----------
    id:
        Opaque identifier of the processed image.
    url:
        Where the processed image can be fetched.
    message:
        Optional human-readable message from the server.
    transport:
        The transport that delivered the file.
    raw:
        The parsed JSON body, for callers that need extra fields.
    """

    id: str
    url: str | None
    message: str | None = None
    transport: TransportKind | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)


# ---------------------------------------------------------------------------
# Processing
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProcessResult:
    """Output of one :meth:`StylingPipeline.process` call."""

    processed_bytes: bytes = field(repr=False)
    original_size: int
    processed_size: int
    output_format: OutputFormat = OutputFormat.JPEG


@dataclass(frozen=True)
class ProcessedImageRecord:
    """Metadata of one successful pipeline run.

    Immutable after creation.  ``id`` is the only field with a
    uniqueness invariant.
    """

    id: str
    original_byte_size: int
    processed_byte_size: int
    output_locator: str
    created_at: datetime
    content_type: str = "image/jpeg"
