"""Decoding and encoding between container bytes and :class:`RasterImage`.

Only JPEG and PNG are accepted on either side.
"""

from __future__ import annotations

import io

from PIL import Image, ImageOps, UnidentifiedImageError

from photobooth.errors import InvalidImageFormat
from photobooth.models import OutputFormat
from photobooth.observability import get_logger

from .params import STYLE_PARAMETERS, StyleParameters
from .raster import RasterImage

log = get_logger("photobooth.pipeline")

# Accepted spellings of a declared source format -> Pillow format name.
_SOURCE_FORMATS: dict[str, str] = {
    "jpeg": "JPEG",
    "jpg": "JPEG",
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "png": "PNG",
    "image/png": "PNG",
}

# Pillow container name -> accepted format.  JPEGs with a multi-picture
# segment open as MPO.
_CONTAINER_FORMATS: dict[str, str] = {"JPEG": "JPEG", "MPO": "JPEG", "PNG": "PNG"}


def normalize_source_format(source_format: str | None) -> str | None:
    """Map a declared format or MIME type to ``"JPEG"``/``"PNG"``.

    ``None`` means "sniff from the bytes".

    Raises
    ------
    InvalidImageFormat
        If the declared format is not JPEG or PNG.
    """
    if source_format is None:
        return None
    resolved = _SOURCE_FORMATS.get(source_format.strip().lower())
    if resolved is None:
        raise InvalidImageFormat(
            message=f"Unsupported source format {source_format!r}",
            context={
                "source_format": source_format,
                "supported": sorted(set(_SOURCE_FORMATS.values())),
            },
        )
    return resolved


def resolve_output_format(output_format: str | OutputFormat | None) -> OutputFormat:
    """Map an output selector to :class:`OutputFormat`; ``None`` is JPEG."""
    if output_format is None:
        return OutputFormat.JPEG
    if isinstance(output_format, OutputFormat):
        return output_format
    value = output_format.strip().lower()
    if value == "jpg":
        value = "jpeg"
    try:
        return OutputFormat(value)
    except ValueError as exc:
        raise InvalidImageFormat(
            message=f"Unsupported output format {output_format!r}",
            context={
                "output_format": output_format,
                "supported": [f.value for f in OutputFormat],
            },
            cause=exc,
        ) from exc


def decode_image(data: bytes, source_format: str | None = None) -> RasterImage:
    """Decode JPEG/PNG *data* into a :class:`RasterImage`.

    EXIF orientation is applied so stages see the image upright.

    Raises
    ------
    InvalidImageFormat
        If *data* is empty, cannot be decoded, the declared format is
        unsupported, or the decoded container is not JPEG/PNG.
    """
    declared = normalize_source_format(source_format)

    if not data:
        raise InvalidImageFormat(
            message="Image data is empty",
            context={"source_format": source_format, "size_bytes": 0},
        )

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            container = img.format
            detected = _CONTAINER_FORMATS.get(container or "")
            if detected is None:
                raise InvalidImageFormat(
                    message=f"Unsupported image container {container!r}",
                    context={
                        "source_format": source_format,
                        "detected_format": container,
                        "size_bytes": len(data),
                    },
                )
            upright = ImageOps.exif_transpose(img)
            raster = RasterImage.from_pil(upright)
    except InvalidImageFormat:
        raise
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError) as exc:
        raise InvalidImageFormat(
            message=f"Failed to decode image: {exc}",
            context={"source_format": source_format, "size_bytes": len(data)},
            cause=exc,
        ) from exc

    if declared is not None and declared != detected:
        log.warning(
            "Declared image format does not match content",
            extra={
                "extra_fields": {
                    "op": "decode",
                    "declared_format": declared,
                    "detected_format": detected,
                }
            },
        )
    return raster


def encode_image(
    image: RasterImage,
    output_format: OutputFormat,
    params: StyleParameters = STYLE_PARAMETERS,
) -> bytes:
    """Serialise *image* to JPEG or PNG bytes.

    JPEG has no alpha channel, so transparent images are flattened onto
    white first.  PNG keeps alpha.
    """
    img = image.to_pil()
    out = io.BytesIO()
    if output_format is OutputFormat.JPEG:
        if img.mode == "RGBA":
            background = Image.new("RGB", img.size, (255, 255, 255))
            background.paste(img, mask=img.getchannel("A"))
            img = background
        img.save(out, format="JPEG", quality=params.jpeg_quality)
    else:
        img.save(out, format="PNG", compress_level=params.png_compress_level)
    return out.getvalue()
