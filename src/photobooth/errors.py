"""Error hierarchy for photobooth.

Every error raised on purpose is a :class:`PhotoboothError` carrying a
machine-readable ``code`` (an :class:`ErrorCode`), a ``message`` that
is safe to show to the person at the booth, a structured ``context``
dict and, when it wraps another exception, a ``cause``.

Client side (upload)::

    PhotoboothError
    +-- ValidationError            rejected before any network activity
    +-- SubmissionActiveError      submit() while a submission is live
    +-- TransportError
        +-- RetryableTransportError
        +-- FatalTransportError

Server side (pipeline and image store)::

    PhotoboothError
    +-- InvalidImageFormat         4xx class
    +-- ProcessingFailure          5xx class
    +-- ImageNotFoundError
"""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar

# ---------------------------------------------------------------------------
# Error code enum
# ---------------------------------------------------------------------------

class ErrorCode(str, Enum):
    """Machine-readable error codes; compare equal to their plain strings."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    TRANSPORT_RETRYABLE = "TRANSPORT_RETRYABLE"
    TRANSPORT_FATAL = "TRANSPORT_FATAL"
    INVALID_IMAGE_FORMAT = "INVALID_IMAGE_FORMAT"
    PROCESSING_FAILURE = "PROCESSING_FAILURE"
    SUBMISSION_ACTIVE = "SUBMISSION_ACTIVE"
    IMAGE_NOT_FOUND = "IMAGE_NOT_FOUND"


# ---------------------------------------------------------------------------
# Base error
# ---------------------------------------------------------------------------

class PhotoboothError(Exception):
    """Base exception for all photobooth errors.

    Parameters
    ----------
    message:
        Human-readable description.  The orchestrator surfaces it as the
        submission's error text.
    context:
        Structured diagnostic detail; keys are listed per subclass.
    cause:
        The wrapped exception, also set as ``__cause__``.
    code:
        Overrides the class's :attr:`default_code`.
    """

    default_code: ClassVar[str] = "PHOTOBOOTH_ERROR"

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
        *,
        code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code: str = code if code is not None else self.default_code
        self.message: str = message
        self.context: dict[str, Any] = context or {}
        self.cause: Exception | None = cause
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        ctx = f", context={self.context!r}" if self.context else ""
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}{ctx})"


# ---------------------------------------------------------------------------
# Client-side errors
# ---------------------------------------------------------------------------

class ValidationError(PhotoboothError):
    """The selected file was rejected; never retried.

    ``status_code`` is the HTTP status the server answers with for the
    same rejection: 400 missing file, 413 too large, 415 wrong type.

    Context keys: ``declared_mime``, ``detected_mime``, ``size_bytes``,
    ``max_bytes``, ``allowed_mimes``.
    """

    default_code = ErrorCode.VALIDATION_ERROR

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
        status_code: int = 400,
    ) -> None:
        super().__init__(message, context, cause)
        self.status_code: int = status_code


class SubmissionActiveError(PhotoboothError):
    """``submit()`` was called while the orchestrator was not ``IDLE``.

    Context keys: ``current_state``.
    """

    default_code = ErrorCode.SUBMISSION_ACTIVE


class TransportError(PhotoboothError):
    """One transport attempt failed.

    Context keys: ``transport``, ``status_code``, ``url``, ``body``.
    """

    default_code = ErrorCode.TRANSPORT_RETRYABLE

    @property
    def status_code(self) -> int | None:
        """HTTP status of the failed response, if one arrived."""
        return self.context.get("status_code")


class RetryableTransportError(TransportError):
    """Network trouble, a timeout or an overloaded server.

    Retried under the current transport's policy, then handed to the
    next transport in the chain.
    """

    default_code = ErrorCode.TRANSPORT_RETRYABLE


class FatalTransportError(TransportError):
    """The server rejected the request itself; the chain stops here."""

    default_code = ErrorCode.TRANSPORT_FATAL


# ---------------------------------------------------------------------------
# Pipeline and store errors
# ---------------------------------------------------------------------------

class InvalidImageFormat(PhotoboothError):
    """Undecodable bytes or an unsupported format.

    Context keys: ``source_format``, ``detected_format``, ``size_bytes``.
    """

    default_code = ErrorCode.INVALID_IMAGE_FORMAT


class ProcessingFailure(PhotoboothError):
    """A stage or the encoder failed.

    Context keys: ``stage``, ``stage_index``, ``output_format``.
    """

    default_code = ErrorCode.PROCESSING_FAILURE


class ImageNotFoundError(PhotoboothError):
    """No live record for the requested id.

    Context keys: ``image_id``.
    """

    default_code = ErrorCode.IMAGE_NOT_FOUND
