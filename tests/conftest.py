"""Shared test fixtures for the photobooth test suite."""

from __future__ import annotations

import io

import numpy as np
import pytest
from PIL import Image

from photobooth.config import PhotoboothConfig


def encode(img: Image.Image, fmt: str) -> bytes:
    """Serialise a Pillow image to *fmt* bytes."""
    out = io.BytesIO()
    img.save(out, format=fmt)
    return out.getvalue()


def gradient_image(width: int = 64, height: int = 48, mode: str = "RGB") -> Image.Image:
    """A deterministic colour gradient, more realistic than a flat fill."""
    xs = np.linspace(0, 255, width, dtype=np.float32)[None, :]
    ys = np.linspace(0, 255, height, dtype=np.float32)[:, None]
    r = np.broadcast_to(xs, (height, width))
    g = np.broadcast_to(ys, (height, width))
    b = np.full((height, width), 128, dtype=np.float32)
    rgb = np.dstack([r, g, b]).astype(np.uint8)
    img = Image.fromarray(rgb)
    if mode == "RGBA":
        alpha = np.full((height, width), 255, dtype=np.uint8)
        alpha[: height // 2] = 0
        img.putalpha(Image.fromarray(alpha))
    return img


@pytest.fixture
def config() -> PhotoboothConfig:
    """Default configuration."""
    return PhotoboothConfig()


@pytest.fixture
def jpeg_bytes() -> bytes:
    return encode(gradient_image(), "JPEG")


@pytest.fixture
def png_bytes() -> bytes:
    return encode(gradient_image(), "PNG")


@pytest.fixture
def rgba_png_bytes() -> bytes:
    return encode(gradient_image(mode="RGBA"), "PNG")


@pytest.fixture
def solid_png_bytes() -> bytes:
    """200x200 mid-grey square."""
    return encode(Image.new("RGB", (200, 200), (160, 160, 160)), "PNG")
