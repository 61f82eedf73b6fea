"""Client-side ingestion: validate a selected photo and deliver it to the
processing endpoint over a chain of fallback transports.

Exports
-------
IngestionOrchestrator
    Drive one submission through validation, upload and result parsing.
UploadStateMachine
    Track submission lifecycle state and enforce valid transitions.
validate_upload / sniff_mime
    Local MIME type and size checks.
StreamedTransport / BufferedTransport / EncodedTransport / build_transport
    The three ways of delivering file bytes.
run_with_retry / upload_with_fallback
    Retry executor and fallback driver.
compute_backoff / is_retryable_status / is_retryable_exception
    Pure retry helpers.
"""

from .executor import run_with_retry, upload_with_fallback
from .orchestrator import IngestionOrchestrator, parse_result
from .retries import compute_backoff, is_retryable_exception, is_retryable_status
from .state import UploadStateMachine
from .transports import (
    BufferedTransport,
    EncodedTransport,
    StreamedTransport,
    UploadTransport,
    build_transport,
    extract_error_message,
    interpret_response,
    to_data_uri,
)
from .validate import sniff_mime, validate_upload

__all__ = [
    "BufferedTransport",
    "EncodedTransport",
    "IngestionOrchestrator",
    "StreamedTransport",
    "UploadStateMachine",
    "UploadTransport",
    "build_transport",
    "compute_backoff",
    "extract_error_message",
    "interpret_response",
    "is_retryable_exception",
    "is_retryable_status",
    "parse_result",
    "run_with_retry",
    "sniff_mime",
    "to_data_uri",
    "upload_with_fallback",
    "validate_upload",
]
