"""Tests for errors.py: codes, context, chaining and the class hierarchy."""

from __future__ import annotations

from typing import ClassVar

import pytest

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


class TestErrorCodeCompleteness:
    """Every ErrorCode member has a concrete error class."""

    _CODE_TO_CLASS: ClassVar[dict[ErrorCode, type[PhotoboothError]]] = {
        ErrorCode.VALIDATION_ERROR: ValidationError,
        ErrorCode.TRANSPORT_RETRYABLE: RetryableTransportError,
        ErrorCode.TRANSPORT_FATAL: FatalTransportError,
        ErrorCode.INVALID_IMAGE_FORMAT: InvalidImageFormat,
        ErrorCode.PROCESSING_FAILURE: ProcessingFailure,
        ErrorCode.SUBMISSION_ACTIVE: SubmissionActiveError,
        ErrorCode.IMAGE_NOT_FOUND: ImageNotFoundError,
    }

    def test_every_error_code_has_a_subclass(self):
        for code in ErrorCode:
            assert code in self._CODE_TO_CLASS, f"ErrorCode.{code.name} has no mapped class"

    @pytest.mark.parametrize("code", list(ErrorCode))
    def test_error_class_sets_correct_code(self, code: ErrorCode):
        err = self._CODE_TO_CLASS[code](message="test")
        assert err.code == code
        assert isinstance(err, PhotoboothError)

    def test_no_duplicate_error_codes(self):
        values = [e.value for e in ErrorCode]
        assert len(values) == len(set(values))

    def test_codes_compare_equal_to_strings(self):
        assert ErrorCode.TRANSPORT_FATAL == "TRANSPORT_FATAL"


class TestPhotoboothError:
    def test_attributes(self):
        err = PhotoboothError(code="X", message="boom", context={"k": 1})
        assert err.code == "X"
        assert err.message == "boom"
        assert err.context == {"k": 1}
        assert err.cause is None
        assert str(err) == "boom"

    def test_context_defaults_to_empty_dict(self):
        assert PhotoboothError(code="X", message="m").context == {}

    def test_cause_is_chained(self):
        inner = OSError("disk")
        err = ProcessingFailure(message="stage failed", cause=inner)
        assert err.cause is inner
        assert err.__cause__ is inner

    def test_repr_includes_code_message_and_context(self):
        err = InvalidImageFormat(message="bad", context={"size_bytes": 3})
        text = repr(err)
        assert "InvalidImageFormat" in text
        assert "INVALID_IMAGE_FORMAT" in text
        assert "'bad'" in text
        assert "size_bytes" in text

    def test_repr_omits_empty_context(self):
        assert "context" not in repr(ImageNotFoundError(message="gone"))


class TestValidationError:
    def test_default_status_code(self):
        assert ValidationError(message="No file selected").status_code == 400

    @pytest.mark.parametrize("status", [400, 413, 415])
    def test_custom_status_code(self, status: int):
        assert ValidationError(message="m", status_code=status).status_code == status


class TestTransportErrors:
    def test_retryable_and_fatal_share_base(self):
        assert issubclass(RetryableTransportError, TransportError)
        assert issubclass(FatalTransportError, TransportError)
        assert not issubclass(FatalTransportError, RetryableTransportError)

    def test_status_code_read_from_context(self):
        err = FatalTransportError(message="bad request", context={"status_code": 400})
        assert err.status_code == 400

    def test_status_code_none_without_response(self):
        assert RetryableTransportError(message="Request timed out").status_code is None
