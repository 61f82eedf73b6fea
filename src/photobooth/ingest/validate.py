"""Upload validation: MIME type and size checks.

Runs synchronously before any network activity.  A rejected file is
never retried.
"""

from __future__ import annotations

from photobooth.config import PhotoboothConfig
from photobooth.errors import ValidationError
from photobooth.models import SelectedFile

# Map of magic bytes to MIME types for sniffing.
_MAGIC_BYTES: list[tuple[bytes, str]] = [
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
]

_MIME_ALIASES: dict[str, str] = {
    "image/jpg": "image/jpeg",
    "image/pjpeg": "image/jpeg",
}


def sniff_mime(data: bytes) -> str | None:
    """Attempt to detect the MIME type from the first bytes of image data."""
    for magic, mime in _MAGIC_BYTES:
        if data[:len(magic)] == magic:
            return mime
    return None


def _allowed_label(allowed: list[str]) -> str:
    return ", ".join(mime.split("/")[-1] for mime in allowed)


def validate_upload(
    data: bytes | None,
    declared_mime: str | None,
    declared_size: int | None,
    config: PhotoboothConfig,
    filename: str = "upload",
) -> SelectedFile:
    """Validate a user-selected file.

    Parameters
    ----------
    data:
        The file bytes.  ``None`` or empty means no file was selected.
    declared_mime:
        The MIME type reported by the file picker.  When missing it is
        sniffed from the magic bytes.
    declared_size:
        The size reported by the file picker.  The larger of this and
        ``len(data)`` is checked against the ceiling.
    config:
        Supplies ``allowed_mimes`` and ``max_upload_bytes``.
    filename:
        Name sent along with multipart uploads.

    Returns
    -------
    SelectedFile
        The validated file, ready for any transport.

    Raises
    ------
    ValidationError
        ``status_code`` 400 when no file is given, 415 for an
        unsupported type, 413 when the file is too large.
    """
    if not data:
        raise ValidationError(
            message="No file selected",
            context={"declared_mime": declared_mime, "size_bytes": 0},
            status_code=400,
        )

    mime = (declared_mime or "").strip().lower() or sniff_mime(data) or ""
    mime = _MIME_ALIASES.get(mime, mime)
    allowed = config.allowed_mimes

    if mime not in allowed:
        raise ValidationError(
            message=f"Invalid file type. Allowed types: {_allowed_label(allowed)}",
            context={
                "declared_mime": declared_mime,
                "detected_mime": mime or None,
                "allowed_mimes": allowed,
            },
            status_code=415,
        )

    size = max(declared_size or 0, len(data))
    if size > config.max_upload_bytes:
        max_mb = config.max_upload_bytes // (1024 * 1024)
        raise ValidationError(
            message=f"File too large. Maximum size: {max_mb}MB",
            context={
                "size_bytes": size,
                "max_bytes": config.max_upload_bytes,
            },
            status_code=413,
        )

    return SelectedFile(data=bytes(data), mime_type=mime, size=size, filename=filename)
