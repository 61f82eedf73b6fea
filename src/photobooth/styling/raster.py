"""Decoded bitmap passed between pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from PIL import Image

# ITU-R BT.601 luma weights.
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float32)


@dataclass
class RasterImage:
    """An RGB(A) bitmap as float32 arrays in [0, 1].

    ``pixels`` has shape ``(height, width, 3)``.  ``alpha`` is ``None``
    for opaque images, otherwise shape ``(height, width)``; stages never
    modify it.
    """

    pixels: np.ndarray
    alpha: np.ndarray | None = None

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def channel_layout(self) -> str:
        return "RGB" if self.alpha is None else "RGBA"

    def with_pixels(self, pixels: np.ndarray) -> RasterImage:
        """Return a new image with *pixels* clipped to [0, 1] and the same alpha."""
        return RasterImage(
            np.clip(pixels, 0.0, 1.0).astype(np.float32, copy=False),
            self.alpha,
        )

    def luminance(self) -> np.ndarray:
        """Per-pixel luma, shape ``(height, width)``."""
        return self.pixels @ LUMA_WEIGHTS

    @classmethod
    def from_pil(cls, img: Image.Image) -> RasterImage:
        has_alpha = img.mode in ("RGBA", "LA", "PA") or (
            img.mode == "P" and "transparency" in img.info
        )
        if has_alpha:
            arr = np.asarray(img.convert("RGBA"), dtype=np.float32) / 255.0
            return cls(arr[..., :3].copy(), arr[..., 3].copy())
        arr = np.asarray(img.convert("RGB"), dtype=np.float32) / 255.0
        return cls(arr)

    def to_pil(self) -> Image.Image:
        rgb = np.rint(self.pixels * 255.0).clip(0, 255).astype(np.uint8)
        if self.alpha is None:
            return Image.fromarray(rgb)
        a = np.rint(self.alpha * 255.0).clip(0, 255).astype(np.uint8)
        return Image.fromarray(np.dstack([rgb, a]))

    @property
    def nbytes(self) -> int:
        """Size of the equivalent 8-bit interleaved buffer."""
        channels = 3 if self.alpha is None else 4
        return self.width * self.height * channels
