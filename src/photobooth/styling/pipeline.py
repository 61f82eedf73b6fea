"""Styling pipeline: decode, run the stage chain, encode.

The pipeline is stateless.  One :meth:`StylingPipeline.process` call
owns its :class:`RasterImage` from decode to encode and either returns a
complete :class:`ProcessResult` or raises; there are no partial results
and no side effects beyond the returned bytes.
"""

from __future__ import annotations

import time
from collections.abc import Iterable
from typing import Any

from PIL import Image

from photobooth.errors import PhotoboothError, ProcessingFailure
from photobooth.models import OutputFormat, ProcessResult
from photobooth.observability import get_logger, resolve_metrics

from .codec import decode_image, encode_image, resolve_output_format
from .params import STYLE_PARAMETERS, StyleParameters
from .raster import RasterImage
from .stages import Stage, default_stages

log = get_logger("photobooth.pipeline")

ImageInput = bytes | bytearray | memoryview | RasterImage | Image.Image


class StylingPipeline:
    """Apply the photo-booth look to JPEG/PNG images.

    Parameters
    ----------
    params:
        Stage constants.  Defaults to the fixed :data:`STYLE_PARAMETERS`.
    stages:
        Ordered stage objects.  Defaults to :func:`default_stages`.
    metrics:
        Optional :class:`~photobooth.observability.MetricsHook`.
    """

    def __init__(
        self,
        params: StyleParameters = STYLE_PARAMETERS,
        stages: Iterable[Stage] | None = None,
        metrics: Any | None = None,
    ) -> None:
        self.params = params
        self.stages: tuple[Stage, ...] = (
            tuple(stages) if stages is not None else default_stages()
        )
        self._metrics = resolve_metrics(metrics)

    def process(
        self,
        data: ImageInput,
        source_format: str | None = None,
        output_format: str | OutputFormat | None = None,
    ) -> ProcessResult:
        """Style *data* and encode it to *output_format*.

        Parameters
        ----------
        data:
            JPEG/PNG bytes, or an already decoded image.
        source_format:
            Declared format of *data* (``"jpeg"``, ``"image/png"``, ...).
            ``None`` sniffs the container.
        output_format:
            ``"jpeg"`` (default) or ``"png"``.

        Returns
        -------
        ProcessResult
            ``processed_size`` always equals ``len(processed_bytes)``.
            ``original_size`` is the input byte length, or the size of
            the uncompressed 8-bit buffer for decoded inputs.

        Raises
        ------
        InvalidImageFormat
            If the input cannot be decoded or a format is unsupported.
        ProcessingFailure
            If a stage or the encoder fails; ``context["stage"]`` names it.
        """
        fmt = resolve_output_format(output_format)
        t0 = time.monotonic()

        image, original_size = self._load(data, source_format)
        image = self.run_stages(image)

        try:
            processed = encode_image(image, fmt, self.params)
        except Exception as exc:
            log.error(
                "Encoding failed",
                exc_info=True,
                extra={"extra_fields": {"op": "encode", "output_format": fmt.value}},
            )
            raise ProcessingFailure(
                message=f"Failed to encode image as {fmt.value}: {exc}",
                context={"stage": "encode", "output_format": fmt.value},
                cause=exc,
            ) from exc

        elapsed_ms = (time.monotonic() - t0) * 1000
        tags = {"output_format": fmt.value}
        self._metrics.increment("photobooth.pipeline_runs_total", tags=tags)
        self._metrics.timing("photobooth.pipeline_duration_ms", elapsed_ms, tags=tags)
        self._metrics.gauge("photobooth.processed_bytes", float(len(processed)), tags=tags)
        log.info(
            "Image processed",
            extra={
                "extra_fields": {
                    "op": "process",
                    "width": image.width,
                    "height": image.height,
                    "channel_layout": image.channel_layout,
                    "original_size": original_size,
                    "processed_size": len(processed),
                    "output_format": fmt.value,
                    "duration_ms": round(elapsed_ms, 2),
                }
            },
        )
        return ProcessResult(
            processed_bytes=processed,
            original_size=original_size,
            processed_size=len(processed),
            output_format=fmt,
        )

    def run_stages(self, image: RasterImage) -> RasterImage:
        """Run every stage in order on *image* and return the result."""
        for index, stage in enumerate(self.stages):
            t0 = time.monotonic()
            try:
                image = stage.apply(image, self.params)
            except PhotoboothError:
                raise
            except Exception as exc:
                log.error(
                    "Stage failed",
                    exc_info=True,
                    extra={
                        "extra_fields": {
                            "op": "stage",
                            "stage": stage.name,
                            "stage_index": index,
                        }
                    },
                )
                raise ProcessingFailure(
                    message=f"Stage {stage.name!r} failed: {exc}",
                    context={"stage": stage.name, "stage_index": index},
                    cause=exc,
                ) from exc
            elapsed_ms = (time.monotonic() - t0) * 1000
            self._metrics.timing(
                "photobooth.stage_duration_ms",
                elapsed_ms,
                tags={"stage": stage.name},
            )
            log.debug(
                "Stage applied",
                extra={
                    "extra_fields": {
                        "op": "stage",
                        "stage": stage.name,
                        "duration_ms": round(elapsed_ms, 2),
                    }
                },
            )
        return image

    @staticmethod
    def _load(data: ImageInput, source_format: str | None) -> tuple[RasterImage, int]:
        if isinstance(data, RasterImage):
            return data, data.nbytes
        if isinstance(data, Image.Image):
            raster = RasterImage.from_pil(data)
            return raster, raster.nbytes
        raw = bytes(data)
        return decode_image(raw, source_format), len(raw)


_default_pipeline: StylingPipeline | None = None


def process(
    data: ImageInput,
    source_format: str | None = None,
    output_format: str | OutputFormat | None = None,
) -> ProcessResult:
    """Module-level shortcut using a shared default :class:`StylingPipeline`.

    The shared instance holds no per-call state.
    """
    global _default_pipeline
    if _default_pipeline is None:
        _default_pipeline = StylingPipeline()
    return _default_pipeline.process(data, source_format, output_format)
