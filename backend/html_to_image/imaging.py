"""
Re-encode raw PNG captures into the compressed output format.
"""

import io
import logging

from PIL import Image, UnidentifiedImageError

from .errors import EncodingError
from .models import CompressedImage

log = logging.getLogger(__name__)

PIL_FORMATS = {
    "webp": "WEBP",
    "jpeg": "JPEG",
    "png": "PNG",
}


def _save_options(output_format: str, quality: int) -> dict:
    if output_format == "webp":
        return {"quality": quality, "method": 4}
    if output_format == "jpeg":
        return {"quality": quality, "optimize": True, "progressive": True}
    return {"optimize": True}


def encode(raw: bytes, quality: int, output_format: str = "webp") -> CompressedImage:
    """Compress a captured bitmap. Raises EncodingError on malformed input."""
    if output_format not in PIL_FORMATS:
        raise EncodingError(f"Unsupported output format: {output_format}")

    try:
        image = Image.open(io.BytesIO(raw))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise EncodingError(f"Captured bitmap could not be decoded: {exc}") from exc

    if output_format == "jpeg" and image.mode != "RGB":
        if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
            rgba = image.convert("RGBA")
            background = Image.new("RGB", rgba.size, "white")
            background.paste(rgba, mask=rgba.split()[-1])
            image = background
        else:
            image = image.convert("RGB")

    buffered = io.BytesIO()
    try:
        image.save(buffered, format=PIL_FORMATS[output_format], **_save_options(output_format, quality))
    except (OSError, ValueError) as exc:
        raise EncodingError(f"Failed to encode {output_format}: {exc}") from exc

    data = buffered.getvalue()
    log.debug("Encoded %dx%d capture: %d -> %d bytes (%s, q=%d)",
              image.width, image.height, len(raw), len(data), output_format, quality)
    return CompressedImage(
        data=data,
        format=output_format,
        width=image.width,
        height=image.height,
        source_size=len(raw),
    )
