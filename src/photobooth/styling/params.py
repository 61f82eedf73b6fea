"""Fixed styling parameters.

:data:`STYLE_PARAMETERS` is the process-wide constant table every stage
reads from.  It is frozen and never mutated; tests that need different
values build their own :class:`StyleParameters` with
:func:`dataclasses.replace`.
"""

from __future__ import annotations

from dataclasses import dataclass

RGB = tuple[int, int, int]


@dataclass(frozen=True)
class StyleParameters:
    """Constants of the photo-booth look, in stage order.

    Attributes
    ----------
    channel_gain:
        3x3 colour matrix applied to every pixel (diagonal, uniform gain).
    saturation_multipliers:
        Saturation factors of the three desaturation passes.
    tone_slope, tone_offset:
        Linear tone transform ``out = in * slope + offset`` on [0, 1] values.
    gamma:
        Exponent applied after the linear transform; > 1 deepens blacks.
    tint_primary, tint_secondary:
        Warm colours the image is multiply-blended toward.
    blur_sigma:
        Gaussian sigma (pixels) of the clarity reduction.
    vignette_scale:
        Size of the gradient box relative to the image.
    vignette_stop:
        Fraction of the gradient radius where full opacity is reached.
    vignette_opacity:
        Darkening at and beyond the stop.
    grain_intensity:
        Standard deviation of the noise layer on the 0-255 scale.
    grain_opacity:
        Opacity of the overlay-blended noise layer.
    jpeg_quality, png_compress_level:
        Encoder settings.
    """

    channel_gain: tuple[tuple[float, float, float], ...] = (
        (1.3, 0.0, 0.0),
        (0.0, 1.3, 0.0),
        (0.0, 0.0, 1.3),
    )
    saturation_multipliers: tuple[float, float, float] = (0.75, 0.35, 0.8)
    tone_slope: float = 0.5
    tone_offset: float = 0.15
    gamma: float = 1.2
    tint_primary: RGB = (255, 230, 200)
    tint_secondary: RGB = (255, 245, 235)
    blur_sigma: float = 1.5
    vignette_scale: float = 1.2
    vignette_stop: float = 0.9
    vignette_opacity: float = 0.15
    grain_intensity: float = 20.0
    grain_opacity: float = 0.2
    jpeg_quality: int = 90
    png_compress_level: int = 9


STYLE_PARAMETERS = StyleParameters()
