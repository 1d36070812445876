"""Image manipulation utilities.

This module wraps the two transformations the app performs with Pillow:
shrinking an upload before it is stored, and painting a black bar over a
stored image. Both take encoded bytes and return JPEG bytes, so the API
endpoints never handle decoded images directly.
"""

from __future__ import annotations

import logging
from io import BytesIO
from typing import Tuple

from PIL import Image, UnidentifiedImageError  # type: ignore[import]

from blackbar.errors import DecodeError
from blackbar.models import OverlaySpec

logger = logging.getLogger(__name__)

# Uploads with a side longer than this are squeezed down to half of it.
MAX_DIMENSION = 1200

BLACK = (0, 0, 0, 255)


def _open_image(data: bytes) -> Image.Image:
    """Open raw image bytes with Pillow, raising DecodeError on failure."""
    try:
        img = Image.open(BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"Unable to decode image: {exc}") from exc
    return img


def _encode_jpeg(img: Image.Image) -> bytes:
    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    buffer = BytesIO()
    img.save(buffer, format="JPEG")
    return buffer.getvalue()


def fit_within(width: int, height: int, limit: int) -> Tuple[int, int]:
    """Scale (width, height) so the longer side equals `limit`.

    The shorter side is scaled proportionally and rounded down, but never
    below one pixel.
    """
    w, h = limit, limit
    if width > height:
        h = max(1, height * limit // width)
    else:
        w = max(1, width * limit // height)
    return w, h


def ingest(data: bytes) -> bytes:
    """Prepare uploaded image bytes for storage.

    Images no larger than ``MAX_DIMENSION`` on either side are re-encoded
    as they are. Larger ones are resized to fit ``MAX_DIMENSION // 2``;
    anything over twice the limit is first downsampled to fit
    ``MAX_DIMENSION``, since a cheap nearest-neighbour pass followed by the
    smooth resize is much faster than resampling the full image directly.

    Args:
        data: Raw image bytes in any format Pillow can decode.

    Returns:
        The (possibly shrunk) image as JPEG bytes.

    Raises:
        DecodeError: If the bytes are not a readable image.
    """
    img = _open_image(data)
    width, height = img.size
    if width > MAX_DIMENSION or height > MAX_DIMENSION:
        # Pillow only resamples these modes with NEAREST.
        if img.mode in ("1", "P", "PA"):
            has_alpha = img.mode == "PA" or "transparency" in img.info
            img = img.convert("RGBA" if has_alpha else "RGB")
        if width > 2 * MAX_DIMENSION or height > 2 * MAX_DIMENSION:
            img = img.resize(fit_within(width, height, MAX_DIMENSION), Image.NEAREST)
        img = img.resize(fit_within(img.width, img.height, MAX_DIMENSION // 2), Image.LANCZOS)
        logger.info("Resized %dx%d upload to %dx%d", width, height, img.width, img.height)
    return _encode_jpeg(img)


def to_rgba(img: Image.Image) -> Image.Image:
    """Return an RGBA version of the image, copying only if necessary."""
    if img.mode == "RGBA":
        return img
    return img.convert("RGBA")


def bar_box(overlay: OverlaySpec) -> Tuple[int, int, int, int]:
    """The (left, top, right, bottom) box of the bar, centred on (x, y)."""
    w, h = overlay.bar_size
    return (
        overlay.x - w // 2,
        overlay.y - h // 2,
        overlay.x + w // 2,
        overlay.y + h // 2,
    )


def _clip(box: Tuple[int, int, int, int], size: Tuple[int, int]) -> Tuple[int, int, int, int] | None:
    left, top = max(box[0], 0), max(box[1], 0)
    right, bottom = min(box[2], size[0]), min(box[3], size[1])
    if left >= right or top >= bottom:
        return None
    return left, top, right, bottom


def composite(data: bytes, overlay: OverlaySpec) -> bytes:
    """Paint a black bar onto a stored image.

    The pixel at (x, y) is always set to black. The bar itself is only
    drawn when ``x > 0``, which is how the edit page signals that the user
    has clicked somewhere. Parts of the bar outside the image are clipped.

    Args:
        data: Encoded image bytes, usually a JPEG produced by `ingest`.
        overlay: Bar position and size.

    Returns:
        The edited image as JPEG bytes.

    Raises:
        DecodeError: If the stored bytes are not a readable image.
    """
    dst = to_rgba(_open_image(data))
    # Single-pixel marker, written even when no bar is drawn.
    if 0 <= overlay.x < dst.width and 0 <= overlay.y < dst.height:
        dst.putpixel((overlay.x, overlay.y), BLACK)
    if overlay.x > 0:
        box = _clip(bar_box(overlay), dst.size)
        if box is not None:
            dst.paste(BLACK, box)
    return _encode_jpeg(dst)
