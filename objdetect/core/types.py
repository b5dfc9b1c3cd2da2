# -*- coding: utf-8 -*-
"""
Value types shared by the codec, engine and postprocessor.

Types:
    - Raster: decoded RGB image held as a (height, width, 3) uint8 array
    - Detection: one bounding box with class id and confidence
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np

from objdetect.core.exceptions import InvalidThreshold

CHANNELS = 3


def check_threshold(name: str, value: object) -> float:
    """
    Validate a probability-like threshold.

    Args:
        name: Parameter name reported in the error.
        value: Candidate value.

    Returns:
        The value as a float.

    Raises:
        InvalidThreshold: If the value is not a real number in [0, 1].
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, np.floating, np.integer)):
        raise InvalidThreshold(name, value)
    value = float(value)
    if not 0.0 <= value <= 1.0:
        raise InvalidThreshold(name, value)
    return value


class Raster:
    """
    In-memory RGB image.

    Pixels are stored row-major as a numpy array of shape
    (height, width, 3) with dtype uint8 and channel order R, G, B.

    Attributes:
        pixels: The underlying pixel array.

    Example:
        >>> raster = Raster(np.zeros((480, 640, 3), dtype=np.uint8))
        >>> raster.width, raster.height
        (640, 480)
    """

    __slots__ = ("pixels",)

    def __init__(self, pixels: np.ndarray) -> None:
        """
        Initialize a Raster.

        Args:
            pixels: RGB array of shape (height, width, 3) and dtype uint8.

        Raises:
            ValueError: If the array shape or dtype is invalid.
        """
        if not isinstance(pixels, np.ndarray):
            raise ValueError("Raster pixels must be a numpy array")
        if pixels.dtype != np.uint8:
            raise ValueError(f"Raster pixels must be uint8, got {pixels.dtype}")
        if pixels.ndim != 3 or pixels.shape[2] != CHANNELS:
            raise ValueError(
                f"Raster pixels must have shape (height, width, {CHANNELS}), "
                f"got {pixels.shape}"
            )
        if pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise ValueError("Raster must have non-zero width and height")
        self.pixels = np.ascontiguousarray(pixels)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def channels(self) -> int:
        return CHANNELS

    @property
    def size(self) -> Tuple[int, int]:
        """Return (width, height)."""
        return (self.width, self.height)

    def copy(self) -> "Raster":
        return Raster(self.pixels.copy())

    def to_bgr(self) -> np.ndarray:
        """Return a BGR copy of the pixels for OpenCV calls."""
        return np.ascontiguousarray(self.pixels[:, :, ::-1])

    @classmethod
    def from_bgr(cls, image: np.ndarray) -> "Raster":
        """Create a Raster from an OpenCV BGR array."""
        return cls(np.ascontiguousarray(image[:, :, ::-1]))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Raster):
            return NotImplemented
        return self.pixels.shape == other.pixels.shape and bool(
            np.array_equal(self.pixels, other.pixels)
        )

    def __repr__(self) -> str:
        return f"Raster(width={self.width}, height={self.height})"


@dataclass(frozen=True)
class Detection:
    """
    A single detection in original-image pixel coordinates.

    Attributes:
        x_min: Left edge.
        y_min: Top edge.
        x_max: Right edge.
        y_max: Bottom edge.
        class_id: Index into the engine's label table.
        confidence: Score in [0, 1].
    """

    x_min: float
    y_min: float
    x_max: float
    y_max: float
    class_id: int
    confidence: float

    def __post_init__(self) -> None:
        if self.x_min > self.x_max or self.y_min > self.y_max:
            raise ValueError(
                f"Detection box is inverted: "
                f"({self.x_min}, {self.y_min}, {self.x_max}, {self.y_max})"
            )
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Detection confidence must be in [0, 1], got {self.confidence}")
        if self.class_id < 0:
            raise ValueError(f"Detection class_id must be >= 0, got {self.class_id}")

    @property
    def width(self) -> float:
        return self.x_max - self.x_min

    @property
    def height(self) -> float:
        return self.y_max - self.y_min

    @property
    def area(self) -> float:
        return self.width * self.height

    def as_tuple(self) -> Tuple[float, float, float, float]:
        """Return the box as (x_min, y_min, x_max, y_max)."""
        return (self.x_min, self.y_min, self.x_max, self.y_max)

    def to_dict(self, labels: Optional[Sequence[str]] = None) -> Dict[str, Any]:
        """
        Convert to a CVAT-compatible detection dictionary.

        Args:
            labels: Label table used to resolve the class name. When
                omitted, the class id is used as the label.

        Returns:
            Dictionary with confidence, label, points and type keys.
        """
        if labels is not None:
            label = labels[self.class_id]
        else:
            label = str(self.class_id)
        return {
            "confidence": str(float(self.confidence)),
            "label": label,
            "points": [float(v) for v in self.as_tuple()],
            "type": "rectangle",
        }
