# -*- coding: utf-8 -*-
"""
Image processing utilities.

This module provides the image codec (format sniffing, decoding and
encoding through OpenCV), base64 helpers for the HTTP layer, and the
letterbox/tensor preparation used in front of the model.

Formats are always identified from the buffer's leading bytes, never
from a file name.
"""

import base64
import binascii
from typing import Optional, Tuple

import cv2
import numpy as np

from objdetect.core.exceptions import CorruptData, UnsupportedFormat
from objdetect.core.types import Raster
from objdetect.utils.geometry import LetterboxTransform, compute_letterbox


# Neutral grey used by YOLO-family letterboxing
PAD_VALUE = 114

_SIGNATURES = (
    ("png", 0, b"\x89PNG\r\n\x1a\n"),
    ("jpeg", 0, b"\xff\xd8\xff"),
    ("bmp", 0, b"BM"),
    ("tiff", 0, b"II*\x00"),
    ("tiff", 0, b"MM\x00*"),
)

# Output format -> OpenCV extension
ENCODERS = {
    "png": ".png",
    "bmp": ".bmp",
    "jpeg": ".jpg",
    "webp": ".webp",
}

FORMAT_ALIASES = {"jpg": "jpeg"}

MIME_TYPES = {
    "png": "image/png",
    "bmp": "image/bmp",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
}

LOSSLESS_FORMATS = frozenset({"png", "bmp"})


def sniff_format(data: bytes) -> Optional[str]:
    """
    Identify an image container format from its magic bytes.

    Args:
        data: Encoded image buffer.

    Returns:
        One of "png", "jpeg", "bmp", "tiff", "webp", or None if the
        header matches no supported format.
    """
    for name, offset, magic in _SIGNATURES:
        if data[offset:offset + len(magic)] == magic:
            return name
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    return None


def decode(data: bytes) -> Raster:
    """
    Decode an encoded image buffer into an RGB Raster.

    Grayscale and alpha images are converted to three-channel RGB.

    Args:
        data: Encoded image bytes.

    Returns:
        Decoded Raster.

    Raises:
        CorruptData: If the buffer is empty or its content cannot be decoded.
        UnsupportedFormat: If the header matches no supported format.

    Example:
        >>> with open("image.png", "rb") as f:
        ...     raster = decode(f.read())
        >>> raster.size
        (640, 480)
    """
    if not data:
        raise CorruptData("Image buffer is empty")

    fmt = sniff_format(data)
    if fmt is None:
        raise UnsupportedFormat(
            f"Unrecognised image header: {bytes(data[:4]).hex()}"
        )

    try:
        np_arr = np.frombuffer(data, np.uint8)
        image = cv2.imdecode(np_arr, cv2.IMREAD_COLOR)
    except cv2.error as e:
        raise CorruptData(f"Malformed {fmt} data: {e}", original_error=e) from e

    if image is None:
        raise CorruptData(f"Could not decode {fmt} data ({len(data)} bytes)")

    return Raster.from_bgr(image)


def normalize_format(fmt: str) -> str:
    """Lower-case a format name and resolve aliases such as "jpg"."""
    fmt = fmt.lower().lstrip(".")
    return FORMAT_ALIASES.get(fmt, fmt)


def encode(raster: Raster, fmt: str = "png", quality: int = 95) -> bytes:
    """
    Encode a Raster into the requested container format.

    Args:
        raster: Image to encode.
        fmt: Output format ("png", "bmp", "jpeg"/"jpg", "webp").
        quality: Quality (1-100) for lossy formats, ignored otherwise.

    Returns:
        Encoded image bytes.

    Raises:
        UnsupportedFormat: If the format has no registered encoder.
    """
    fmt = normalize_format(fmt)
    extension = ENCODERS.get(fmt)
    if extension is None:
        raise UnsupportedFormat(
            f"No encoder registered for format {fmt!r}; "
            f"available: {', '.join(sorted(ENCODERS))}"
        )

    if fmt == "jpeg":
        params = [cv2.IMWRITE_JPEG_QUALITY, int(quality)]
    elif fmt == "webp":
        params = [cv2.IMWRITE_WEBP_QUALITY, int(quality)]
    else:
        params = []

    success, buffer = cv2.imencode(extension, raster.to_bgr(), params)
    if not success:
        raise CorruptData(f"OpenCV failed to encode {raster!r} as {fmt}")

    return buffer.tobytes()


def decode_base64(data: str) -> bytes:
    """
    Strip an optional data URI prefix and decode base64 text to bytes.

    Raises:
        CorruptData: If the string is not valid base64.
    """
    # Strip data URI prefix if present
    if "," in data:
        _, encoded = data.split(",", 1)
    else:
        encoded = data

    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CorruptData(f"Invalid base64 image data: {e}", original_error=e) from e


def decode_base64_image(data: str) -> Raster:
    """
    Decode a base64-encoded image string into a Raster.

    This function handles both raw base64 strings and data URI
    format (e.g., "data:image/jpeg;base64,/9j/4AAQ...").

    Args:
        data: Base64-encoded image string, optionally with
              data URI prefix.

    Returns:
        Decoded image.

    Raises:
        CorruptData: If the string is not valid base64 or the image
            content is malformed.
        UnsupportedFormat: If the decoded bytes are not a supported image.

    Example:
        >>> import base64
        >>> with open("image.jpg", "rb") as f:
        ...     b64 = base64.b64encode(f.read()).decode()
        >>> raster = decode_base64_image(b64)
        >>> print(raster.size)
        (640, 480)
    """
    return decode(decode_base64(data))


def encode_image_to_base64(raster: Raster, fmt: str = "png", quality: int = 95) -> str:
    """
    Encode a Raster to a base64 string.

    Args:
        raster: Image to encode.
        fmt: Output format ("png", "jpeg", ...).
        quality: Quality for lossy formats.

    Returns:
        Base64-encoded image string.

    Example:
        >>> b64 = encode_image_to_base64(raster, fmt="jpeg", quality=90)
        >>> print(b64[:20])
        '/9j/4AAQSkZJRgABAQ...'
    """
    return base64.b64encode(encode(raster, fmt, quality)).decode("utf-8")


def letterbox(
    raster: Raster,
    size: Tuple[int, int],
    pad_value: int = PAD_VALUE
) -> Tuple[np.ndarray, LetterboxTransform]:
    """
    Resize an image into a fixed canvas without distorting it.

    The image is scaled by a single gain with bilinear interpolation,
    centred, and the remaining border filled with ``pad_value``.

    Args:
        raster: Source image.
        size: Target (width, height).
        pad_value: Grey level used for the padding.

    Returns:
        Tuple of the (height, width, 3) uint8 RGB canvas and the
        transform needed to map boxes back to the source image.
    """
    transform = compute_letterbox(raster.size, size)
    target_w, target_h = size

    if (transform.scaled_width, transform.scaled_height) == raster.size:
        resized = raster.pixels
    else:
        resized = cv2.resize(
            raster.pixels,
            (transform.scaled_width, transform.scaled_height),
            interpolation=cv2.INTER_LINEAR
        )

    canvas = np.full((target_h, target_w, 3), pad_value, dtype=np.uint8)
    top, left = transform.pad_top, transform.pad_left
    canvas[top:top + transform.scaled_height, left:left + transform.scaled_width] = resized
    return canvas, transform


def to_tensor(canvas: np.ndarray) -> np.ndarray:
    """
    Convert an RGB uint8 canvas to a (1, 3, H, W) float32 tensor in [0, 1].
    """
    tensor = canvas.astype(np.float32) / 255.0
    tensor = tensor.transpose(2, 0, 1)[np.newaxis, ...]
    return np.ascontiguousarray(tensor)
