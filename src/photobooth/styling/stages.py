"""The ordered stages of the photo-booth look.

Each stage is an object with a ``name`` and an
``apply(image, params) -> image`` method.  Stages are pure with respect
to their input: they return a new :class:`RasterImage` and never touch
the alpha plane.  Only :class:`GrainStage` is non-deterministic.

Stage order matters: every stage works on the cumulative result of the
previous one.  :func:`default_stages` returns the canonical chain.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable

import numpy as np
from PIL import ImageFilter

from .params import StyleParameters
from .raster import RasterImage


@runtime_checkable
class Stage(Protocol):
    """One order-dependent transformation of the cumulative image."""

    name: str

    def apply(self, image: RasterImage, params: StyleParameters) -> RasterImage:
        ...


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _desaturate(pixels: np.ndarray, lum: np.ndarray, factor: float) -> np.ndarray:
    """Scale chroma around per-pixel luma; ``factor=0`` is greyscale."""
    grey = lum[..., None]
    return grey + (pixels - grey) * factor


def _tint(pixels: np.ndarray, color: tuple[int, int, int]) -> np.ndarray:
    """Multiply-blend toward *color*."""
    return pixels * (np.asarray(color, dtype=np.float32) / 255.0)


def _overlay(base: np.ndarray, layer: np.ndarray) -> np.ndarray:
    return np.where(
        base < 0.5,
        2.0 * base * layer,
        1.0 - 2.0 * (1.0 - base) * (1.0 - layer),
    )


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------

class ChannelGainStage:
    """Colour/contrast pass: multiply each pixel by the channel gain matrix."""

    name = "channel_gain"

    def apply(self, image: RasterImage, params: StyleParameters) -> RasterImage:
        matrix = np.asarray(params.channel_gain, dtype=np.float32)
        return image.with_pixels(image.pixels @ matrix.T)


class SaturationStage:
    """Reduce saturation at unchanged luminance.

    *pass_index* selects which of ``params.saturation_multipliers`` is
    used.  The third pass is a partial reduction, not greyscale.
    """

    def __init__(self, pass_index: int) -> None:
        self.pass_index = pass_index
        self.name = f"desaturate_{pass_index + 1}"

    def apply(self, image: RasterImage, params: StyleParameters) -> RasterImage:
        factor = params.saturation_multipliers[self.pass_index]
        return image.with_pixels(
            _desaturate(image.pixels, image.luminance(), factor)
        )


class ToneStage:
    """Tonal range: linear slope/offset, then gamma."""

    name = "tone"

    def apply(self, image: RasterImage, params: StyleParameters) -> RasterImage:
        linear = np.clip(image.pixels * params.tone_slope + params.tone_offset, 0.0, 1.0)
        return image.with_pixels(np.power(linear, params.gamma))


class WarmToneStage:
    """Primary warm tint followed by the second desaturation pass."""

    name = "warm_tone"

    def apply(self, image: RasterImage, params: StyleParameters) -> RasterImage:
        tinted = image.with_pixels(_tint(image.pixels, params.tint_primary))
        factor = params.saturation_multipliers[1]
        return tinted.with_pixels(
            _desaturate(tinted.pixels, tinted.luminance(), factor)
        )


class SecondaryTintStage:
    """Subtle extra warmth."""

    name = "secondary_tint"

    def apply(self, image: RasterImage, params: StyleParameters) -> RasterImage:
        return image.with_pixels(_tint(image.pixels, params.tint_secondary))


class ClarityStage:
    """Reduce local contrast with a Gaussian blur of the colour planes."""

    name = "clarity"

    def apply(self, image: RasterImage, params: StyleParameters) -> RasterImage:
        if params.blur_sigma <= 0:
            return image
        rgb = RasterImage(image.pixels).to_pil()
        blurred = rgb.filter(ImageFilter.GaussianBlur(radius=params.blur_sigma))
        return image.with_pixels(np.asarray(blurred, dtype=np.float32) / 255.0)


def vignette_mask(width: int, height: int, params: StyleParameters) -> np.ndarray:
    """Darkening amount per pixel, 0 at the centre up to the opacity at the stop.

    The gradient box is ``vignette_scale`` times the image on each axis,
    so the gradient is an ellipse with radii of half that box.
    """
    rx = params.vignette_scale * width / 2.0
    ry = params.vignette_scale * height / 2.0
    yy, xx = np.ogrid[:height, :width]
    cy = (height - 1) / 2.0
    cx = (width - 1) / 2.0
    distance = np.hypot((yy - cy) / ry, (xx - cx) / rx)
    ramp = np.clip(distance / params.vignette_stop, 0.0, 1.0)
    return (ramp * params.vignette_opacity).astype(np.float32)


class VignetteStage:
    """Multiply a centred radial black gradient over the image."""

    name = "vignette"

    def apply(self, image: RasterImage, params: StyleParameters) -> RasterImage:
        mask = vignette_mask(image.width, image.height, params)
        return image.with_pixels(image.pixels * (1.0 - mask)[..., None])


class GrainStage:
    """Overlay-blend unseeded per-pixel noise.

    *rng_factory* builds a fresh generator per call; the default is
    unseeded so repeated runs differ.
    """

    name = "grain"

    def __init__(
        self,
        rng_factory: Callable[[], np.random.Generator] = np.random.default_rng,
    ) -> None:
        self._rng_factory = rng_factory

    def apply(self, image: RasterImage, params: StyleParameters) -> RasterImage:
        rng = self._rng_factory()
        noise = rng.normal(
            0.5,
            params.grain_intensity / 255.0,
            size=(image.height, image.width, 1),
        ).astype(np.float32)
        layer = np.clip(noise, 0.0, 1.0)
        blended = _overlay(image.pixels, layer)
        opacity = params.grain_opacity
        return image.with_pixels(image.pixels * (1.0 - opacity) + blended * opacity)


def default_stages() -> tuple[Stage, ...]:
    """The photo-booth stage chain in application order."""
    return (
        ChannelGainStage(),
        SaturationStage(0),
        ToneStage(),
        WarmToneStage(),
        SecondaryTintStage(),
        SaturationStage(2),
        ClarityStage(),
        VignetteStage(),
        GrainStage(),
    )
