"""Configuration for photobooth.

:class:`PhotoboothConfig` is a dataclass that captures every tuneable
knob of the ingestion client and the server-side boundary.  Styling
parameters are deliberately absent: they are the fixed table
:data:`photobooth.styling.params.STYLE_PARAMETERS`.

Module-level constants:

* :data:`DEFAULT_ALLOWED_MIMES` -- accepted upload types.
* :data:`DEFAULT_TRANSPORT_POLICIES` -- the fallback chain.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from photobooth.models import TransportKind, TransportPolicy

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_ALLOWED_MIMES: list[str] = [
    "image/jpeg",
    "image/png",
]
"""MIME types accepted for uploads and by the pipeline."""

DEFAULT_MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024  # 10 MiB

DEFAULT_TRANSPORT_POLICIES: tuple[TransportPolicy, ...] = (
    TransportPolicy(TransportKind.STREAMED, max_attempts=3, base_delay=1.0),
    TransportPolicy(TransportKind.BUFFERED, max_attempts=2, base_delay=1.5),
    TransportPolicy(TransportKind.ENCODED, max_attempts=1, base_delay=2.0),
)
"""Transports in the order they are attempted."""


# ---------------------------------------------------------------------------
# Configuration dataclass
# ---------------------------------------------------------------------------

@dataclass
class PhotoboothConfig:
    """Complete configuration for photobooth.

    Every parameter has a sensible default.

    Parameters
    ----------
    base_url:
        Root URL of the processing server.
    process_path:
        Endpoint receiving ``multipart/form-data`` uploads (field ``image``).
    encoded_process_path:
        Endpoint receiving JSON bodies ``{"image": "data:..."}``.
    image_path:
        Read endpoint template; ``{id}`` is replaced with the image id.
    timeout_seconds:
        Per-request timeout, independent of retry backoff.
    max_upload_bytes:
        Size ceiling enforced before any network activity.  Default 10 MiB.
    allowed_mimes:
        Accepted upload MIME types.
    transport_policies:
        The fallback chain: transports in order, each with its own
        attempt budget and backoff base.
    retry_max_delay:
        Upper cap (seconds) on computed backoff delay.
    retry_jitter:
        Scale each backoff randomly to 50-100 % of its value.
    progress_chunk_size:
        Chunk size in bytes of the streamed transport body; progress is
        reported once per chunk.
    default_output_format:
        Output container used by the server boundary when a request
        does not select one.
    retention_hours:
        How long processed images stay retrievable from the store.
    metrics:
        Optional :class:`~photobooth.observability.MetricsHook` backend.
    """

    # ── Endpoints ───────────────────────────────────────────────────────
    base_url: str = "http://localhost:3001"

    process_path: str = "/api/process"

    encoded_process_path: str = "/api/process-image"

    image_path: str = "/api/image/{id}"

    # ── HTTP ────────────────────────────────────────────────────────────
    timeout_seconds: float = 60.0

    # ── Validation ──────────────────────────────────────────────────────
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES

    allowed_mimes: list[str] = field(
        default_factory=lambda: list(DEFAULT_ALLOWED_MIMES),
    )

    # ── Retry & fallback ────────────────────────────────────────────────
    transport_policies: list[TransportPolicy] = field(
        default_factory=lambda: list(DEFAULT_TRANSPORT_POLICIES),
    )

    retry_max_delay: float = 60.0

    retry_jitter: bool = False

    progress_chunk_size: int = 64 * 1024

    # ── Server boundary ─────────────────────────────────────────────────
    default_output_format: Literal["jpeg", "png"] = "jpeg"

    retention_hours: float = 24.0

    # ── Observability ──────────────────────────────────────────────────
    metrics: Any | None = None

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be > 0, got {self.timeout_seconds}")
        if self.max_upload_bytes <= 0:
            raise ValueError(f"max_upload_bytes must be > 0, got {self.max_upload_bytes}")
        if self.retry_max_delay < 0:
            raise ValueError(f"retry_max_delay must be >= 0, got {self.retry_max_delay}")
        if self.progress_chunk_size < 1:
            raise ValueError(
                f"progress_chunk_size must be >= 1, got {self.progress_chunk_size}"
            )
        if self.retention_hours <= 0:
            raise ValueError(f"retention_hours must be > 0, got {self.retention_hours}")
        if self.default_output_format not in ("jpeg", "png"):
            raise ValueError(
                f"default_output_format must be 'jpeg' or 'png', "
                f"got {self.default_output_format!r}"
            )
        if not self.allowed_mimes:
            raise ValueError("allowed_mimes must not be empty")

        if not self.transport_policies:
            raise ValueError("transport_policies must contain at least one transport")
