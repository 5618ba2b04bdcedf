"""Pillow-backed decode, encode and resize helpers."""
import io
from pathlib import Path
from typing import Union

from PIL import Image as PILImage, ImageOps

JPEG_QUALITY = 88


class ImageDecodeError(Exception):
    """Raised when a file or buffer is not a usable image."""


class ImageEncodeError(Exception):
    """Raised when an image cannot be written in the requested format."""


def decode(source: Union[Path, str, bytes]) -> PILImage.Image:
    """Open an image fully, honouring EXIF orientation."""
    try:
        fp = io.BytesIO(source) if isinstance(source, bytes) else source
        with PILImage.open(fp) as im:
            im.load()
            decoded = ImageOps.exif_transpose(im)
    except (OSError, ValueError, SyntaxError, PILImage.DecompressionBombError) as exc:
        raise ImageDecodeError(str(exc)) from exc
    if decoded.width == 0 or decoded.height == 0:
        raise ImageDecodeError("empty image")
    return decoded


def format_for(ext: str) -> str:
    """Pillow format name for a file extension such as ``jpg``."""
    fmt = PILImage.registered_extensions().get(f".{ext.lower()}")
    if fmt is None or fmt not in PILImage.SAVE:
        raise ImageEncodeError(f"no encoder for .{ext}")
    return fmt


def has_encoder(ext: str) -> bool:
    try:
        format_for(ext)
    except ImageEncodeError:
        return False
    return True


def encode(image: PILImage.Image, ext: str = "jpg") -> bytes:
    fmt = format_for(ext)
    if fmt == "JPEG" and image.mode not in ("RGB", "L", "CMYK"):
        image = image.convert("RGB")
    buf = io.BytesIO()
    try:
        if fmt == "JPEG":
            image.save(buf, format=fmt, quality=JPEG_QUALITY)
        else:
            image.save(buf, format=fmt)
    except (OSError, ValueError, KeyError) as exc:
        raise ImageEncodeError(str(exc)) from exc
    return buf.getvalue()


def resize_to_width(image: PILImage.Image, width: int) -> PILImage.Image:
    """Scale to exactly ``width`` pixels wide, preserving aspect ratio."""
    height = max(1, round(image.height * width / image.width))
    return image.resize((width, height), PILImage.Resampling.LANCZOS)


def fit_width(image: PILImage.Image, max_width: int) -> PILImage.Image:
    """Shrink to ``max_width`` when wider; narrower images are returned as is."""
    if image.width <= max_width:
        return image
    return resize_to_width(image, max_width)
