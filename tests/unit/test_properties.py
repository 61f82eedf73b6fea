"""Property-based tests for photobooth using Hypothesis.

These tests verify invariants of the backoff schedule, upload
validation, the styling stages, the pipeline and the redaction helpers
over a wide range of generated inputs.  They complement the
example-based unit tests.
"""

from __future__ import annotations

import base64
import io

import numpy as np
import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from PIL import Image

from photobooth.config import PhotoboothConfig
from photobooth.errors import ValidationError
from photobooth.ingest.retries import compute_backoff
from photobooth.ingest.transports import to_data_uri
from photobooth.ingest.validate import validate_upload
from photobooth.service import parse_data_uri
from photobooth.styling import StylingPipeline
from photobooth.styling.params import STYLE_PARAMETERS
from photobooth.styling.raster import RasterImage
from photobooth.styling.stages import default_stages, vignette_mask
from photobooth.utils.redact import redact

# ---------------------------------------------------------------------------
# Reusable strategies
# ---------------------------------------------------------------------------

_dims_st = st.tuples(
    st.integers(min_value=1, max_value=40),
    st.integers(min_value=1, max_value=40),
)

_colour_st = st.tuples(
    st.integers(min_value=0, max_value=255),
    st.integers(min_value=0, max_value=255),
    st.integers(min_value=0, max_value=255),
)


def _raster(width: int, height: int, seed: int) -> RasterImage:
    rng = np.random.default_rng(seed)
    return RasterImage(rng.random((height, width, 3), dtype=np.float32))


# ---------------------------------------------------------------------------
# Backoff
# ---------------------------------------------------------------------------

class TestBackoffProperties:
    @given(
        attempt=st.integers(min_value=0, max_value=30),
        base=st.floats(min_value=0.0, max_value=10.0),
        maximum=st.floats(min_value=0.0, max_value=120.0),
    )
    def test_never_exceeds_cap(self, attempt, base, maximum):
        assert 0.0 <= compute_backoff(attempt, base, maximum) <= maximum

    @given(
        attempt=st.integers(min_value=0, max_value=20),
        base=st.floats(min_value=0.001, max_value=10.0),
    )
    def test_doubles_until_capped(self, attempt, base):
        maximum = 1e9
        first = compute_backoff(attempt, base, maximum)
        second = compute_backoff(attempt + 1, base, maximum)
        assert second == pytest.approx(2 * first)

    @given(
        attempt=st.integers(min_value=0, max_value=10),
        base=st.floats(min_value=0.001, max_value=5.0),
    )
    def test_jitter_stays_within_half_to_full(self, attempt, base):
        plain = compute_backoff(attempt, base, 60.0)
        jittered = compute_backoff(attempt, base, 60.0, jitter=True)
        assert 0.5 * plain <= jittered <= plain


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class TestValidationProperties:
    @given(
        size=st.integers(min_value=1, max_value=4096),
        limit=st.integers(min_value=1, max_value=4096),
    )
    def test_size_ceiling_is_inclusive(self, size, limit):
        config = PhotoboothConfig(max_upload_bytes=limit)
        data = b"\xff\xd8\xff" + b"\x00" * max(size - 3, 0)
        if len(data) <= limit:
            assert validate_upload(data, "image/jpeg", len(data), config).size == len(data)
        else:
            with pytest.raises(ValidationError) as exc_info:
                validate_upload(data, "image/jpeg", len(data), config)
            assert exc_info.value.status_code == 413

    @given(mime=st.text(min_size=1, max_size=30).filter(lambda s: s.strip()))
    def test_only_allowed_types_pass(self, mime):
        config = PhotoboothConfig()
        normalized = mime.strip().lower()
        try:
            upload = validate_upload(b"\x89PNG\r\n\x1a\n", mime, None, config)
        except ValidationError as exc:
            assert exc.status_code == 415
        else:
            assert upload.mime_type in config.allowed_mimes
            assert normalized in ("image/jpeg", "image/jpg", "image/pjpeg", "image/png")


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------

class TestStageInvariants:
    @given(dims=_dims_st, seed=st.integers(min_value=0, max_value=2**32 - 1))
    @settings(max_examples=40, deadline=None)
    def test_every_stage_keeps_shape_and_range(self, dims, seed):
        width, height = dims
        image = _raster(width, height, seed)
        for stage in default_stages():
            image = stage.apply(image, STYLE_PARAMETERS)
            assert image.pixels.shape == (height, width, 3)
            assert image.pixels.dtype == np.float32
            assert float(image.pixels.min()) >= 0.0
            assert float(image.pixels.max()) <= 1.0

    @given(dims=_dims_st)
    @settings(max_examples=40, deadline=None)
    def test_vignette_mask_bounds(self, dims):
        width, height = dims
        mask = vignette_mask(width, height, STYLE_PARAMETERS)
        assert mask.shape == (height, width)
        assert float(mask.min()) >= 0.0
        assert float(mask.max()) <= STYLE_PARAMETERS.vignette_opacity + 1e-6


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class TestPipelineInvariants:
    @given(
        dims=_dims_st,
        colour=_colour_st,
        source=st.sampled_from(["JPEG", "PNG"]),
        output=st.sampled_from(["jpeg", "png"]),
    )
    @settings(
        max_examples=25,
        deadline=None,
        suppress_health_check=[HealthCheck.too_slow],
    )
    def test_output_decodes_with_same_dimensions(self, dims, colour, source, output):
        width, height = dims
        buf = io.BytesIO()
        Image.new("RGB", (width, height), colour).save(buf, format=source)
        data = buf.getvalue()

        result = StylingPipeline().process(data, source.lower(), output)

        assert result.processed_size == len(result.processed_bytes) > 0
        assert result.original_size == len(data)
        with Image.open(io.BytesIO(result.processed_bytes)) as img:
            assert img.size == (width, height)
            assert img.format == output.upper()


# ---------------------------------------------------------------------------
# Data URIs and redaction
# ---------------------------------------------------------------------------

class TestDataUriProperties:
    @given(
        payload=st.binary(min_size=1, max_size=512),
        mime=st.sampled_from(["image/png", "image/jpeg"]),
    )
    def test_client_encoding_parsed_by_server(self, payload, mime):
        assert parse_data_uri(to_data_uri(payload, mime)) == (mime, payload)

    @given(payload=st.binary(min_size=16, max_size=512))
    def test_redact_never_leaks_base64(self, payload):
        encoded = base64.b64encode(payload).decode()
        uri = f"data:image/png;base64,{encoded}"
        result = redact({"image": uri, "nested": [{"echo": uri}]})
        assert encoded not in str(result)
        assert result["image"] == f"<data_uri:{len(payload)}_bytes>"
