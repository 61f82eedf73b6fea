"""Tests for styling/pipeline.py: end-to-end processing and failure mapping."""

from __future__ import annotations

import io

import numpy as np
import pytest
from PIL import Image

from photobooth.errors import InvalidImageFormat, ProcessingFailure
from photobooth.models import OutputFormat
from photobooth.styling import StylingPipeline, process
from photobooth.styling.raster import RasterImage
from photobooth.styling.stages import ClarityStage, VignetteStage


class _ExplodingStage:
    name = "explode"

    def apply(self, image, params):
        raise RuntimeError("kaboom")


class _RecordingStage:
    def __init__(self, name: str, log: list[str]) -> None:
        self.name = name
        self._log = log

    def apply(self, image, params):
        self._log.append(self.name)
        return image


class _RecordingMetrics:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    def increment(self, name, value=1, tags=None):
        self.calls.append(("increment", name))

    def timing(self, name, ms, tags=None):
        self.calls.append(("timing", name))

    def gauge(self, name, value, tags=None):
        self.calls.append(("gauge", name))


def _decode(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


class TestProcess:
    def test_jpeg_input(self, jpeg_bytes: bytes):
        result = StylingPipeline().process(jpeg_bytes, "image/jpeg")
        assert result.processed_size > 0
        assert result.processed_size == len(result.processed_bytes)
        assert result.original_size == len(jpeg_bytes)
        assert result.output_format is OutputFormat.JPEG
        assert _decode(result.processed_bytes).format == "JPEG"

    def test_png_input_default_jpeg_output(self, png_bytes: bytes):
        result = StylingPipeline().process(png_bytes, "png")
        assert _decode(result.processed_bytes).format == "JPEG"

    def test_png_output(self, rgba_png_bytes: bytes):
        result = StylingPipeline().process(rgba_png_bytes, None, "png")
        img = _decode(result.processed_bytes)
        assert img.format == "PNG"
        assert img.mode == "RGBA"
        assert img.size == (64, 48)

    def test_sniffs_when_format_missing(self, jpeg_bytes: bytes):
        assert StylingPipeline().process(jpeg_bytes).processed_size > 0

    def test_dimensions_preserved(self, jpeg_bytes: bytes):
        result = StylingPipeline().process(jpeg_bytes)
        assert _decode(result.processed_bytes).size == (64, 48)

    def test_two_runs_differ_from_input_and_are_similar(self, jpeg_bytes: bytes):
        pipeline = StylingPipeline()
        first = pipeline.process(jpeg_bytes, "image/jpeg")
        second = pipeline.process(jpeg_bytes, "image/jpeg")
        assert first.processed_bytes != jpeg_bytes
        assert second.processed_bytes != jpeg_bytes
        ratio = first.processed_size / second.processed_size
        assert 0.8 < ratio < 1.25

    def test_accepts_decoded_pil_image(self):
        img = Image.new("RGB", (10, 5), (120, 80, 40))
        result = StylingPipeline().process(img)
        assert result.original_size == 10 * 5 * 3
        assert result.processed_size > 0

    def test_accepts_raster(self):
        raster = RasterImage(np.full((4, 6, 3), 0.5, dtype=np.float32))
        result = StylingPipeline().process(raster, output_format="png")
        assert result.original_size == 4 * 6 * 3

    def test_module_level_process(self, png_bytes: bytes):
        assert process(png_bytes, "image/png").processed_size > 0

    def test_styling_changes_pixels(self, solid_png_bytes: bytes):
        result = StylingPipeline().process(solid_png_bytes, "png", "png")
        out = np.asarray(_decode(result.processed_bytes).convert("RGB"), dtype=np.float32)
        assert not np.allclose(out, 160.0, atol=2.0)
        centre = out[90:110, 90:110].mean()
        corner = out[:10, :10].mean()
        assert corner < centre


class TestFailures:
    def test_invalid_bytes(self):
        with pytest.raises(InvalidImageFormat):
            StylingPipeline().process(b"\x00\x01garbage", "image/png")

    def test_unsupported_declared_format(self, jpeg_bytes: bytes):
        with pytest.raises(InvalidImageFormat):
            StylingPipeline().process(jpeg_bytes, "image/gif")

    def test_unsupported_output_format(self, jpeg_bytes: bytes):
        with pytest.raises(InvalidImageFormat):
            StylingPipeline().process(jpeg_bytes, output_format="bmp")

    def test_stage_error_becomes_processing_failure(self, jpeg_bytes: bytes):
        pipeline = StylingPipeline(stages=[ClarityStage(), _ExplodingStage()])
        with pytest.raises(ProcessingFailure) as exc_info:
            pipeline.process(jpeg_bytes)
        err = exc_info.value
        assert err.context == {"stage": "explode", "stage_index": 1}
        assert isinstance(err.__cause__, RuntimeError)

    def test_stage_raising_photobooth_error_propagates_unchanged(self, jpeg_bytes: bytes):
        class _Rejecting:
            name = "reject"

            def apply(self, image, params):
                raise InvalidImageFormat(message="too small")

        with pytest.raises(InvalidImageFormat, match="too small"):
            StylingPipeline(stages=[_Rejecting()]).process(jpeg_bytes)


class TestStageDriver:
    def test_runs_stages_in_order(self, jpeg_bytes: bytes):
        log: list[str] = []
        stages = [_RecordingStage(n, log) for n in ("a", "b", "c")]
        StylingPipeline(stages=stages).process(jpeg_bytes)
        assert log == ["a", "b", "c"]

    def test_custom_stage_subset(self, solid_png_bytes: bytes):
        result = StylingPipeline(stages=[VignetteStage()]).process(solid_png_bytes, "png", "png")
        out = np.asarray(_decode(result.processed_bytes).convert("RGB"))
        assert out[0, 0, 0] < out[100, 100, 0]
        assert out[100, 100, 0] == 160

    def test_emits_metrics(self, jpeg_bytes: bytes):
        metrics = _RecordingMetrics()
        StylingPipeline(metrics=metrics).process(jpeg_bytes)
        names = {name for _, name in metrics.calls}
        assert "photobooth.pipeline_runs_total" in names
        assert "photobooth.pipeline_duration_ms" in names
        assert "photobooth.stage_duration_ms" in names
        assert "photobooth.processed_bytes" in names
        stage_timings = [c for c in metrics.calls if c[1] == "photobooth.stage_duration_ms"]
        assert len(stage_timings) == 9
