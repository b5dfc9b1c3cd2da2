# -*- coding: utf-8 -*-
"""
Box geometry helpers.

LetterboxTransform is the single place where boxes move between the
original image and the model's padded input canvas. Both directions
are pure functions of the recorded scale and padding.
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np


@dataclass(frozen=True)
class LetterboxTransform:
    """
    Mapping between original-image and model-input pixel coordinates.

    Attributes:
        original_width: Source image width.
        original_height: Source image height.
        input_width: Model input width.
        input_height: Model input height.
        scaled_width: Width of the resized image inside the canvas.
        scaled_height: Height of the resized image inside the canvas.
        pad_left: Columns of padding left of the image.
        pad_top: Rows of padding above the image.
    """

    original_width: int
    original_height: int
    input_width: int
    input_height: int
    scaled_width: int
    scaled_height: int
    pad_left: int
    pad_top: int

    @property
    def scale_x(self) -> float:
        return self.scaled_width / self.original_width

    @property
    def scale_y(self) -> float:
        return self.scaled_height / self.original_height

    def apply_boxes(self, boxes: np.ndarray) -> np.ndarray:
        """
        Map (N, 4) xyxy boxes from original-image to model-input space.
        """
        boxes = np.asarray(boxes, dtype=np.float64).reshape(-1, 4)
        out = np.empty_like(boxes)
        out[:, [0, 2]] = boxes[:, [0, 2]] * self.scale_x + self.pad_left
        out[:, [1, 3]] = boxes[:, [1, 3]] * self.scale_y + self.pad_top
        return out

    def invert_boxes(self, boxes: np.ndarray) -> np.ndarray:
        """
        Map (N, 4) xyxy boxes from model-input back to original-image space.

        Padding is removed, the scale is undone, and coordinates are
        clipped to the original image bounds.
        """
        boxes = np.asarray(boxes, dtype=np.float64).reshape(-1, 4)
        out = np.empty_like(boxes)
        out[:, [0, 2]] = (boxes[:, [0, 2]] - self.pad_left) / self.scale_x
        out[:, [1, 3]] = (boxes[:, [1, 3]] - self.pad_top) / self.scale_y
        out[:, [0, 2]] = np.clip(out[:, [0, 2]], 0.0, float(self.original_width))
        out[:, [1, 3]] = np.clip(out[:, [1, 3]], 0.0, float(self.original_height))
        return out


def compute_letterbox(
    original_size: Tuple[int, int],
    input_size: Tuple[int, int]
) -> LetterboxTransform:
    """
    Compute the letterbox placement of an image inside a model canvas.

    Args:
        original_size: Source (width, height).
        input_size: Model input (width, height).

    Returns:
        The transform describing scale and padding.

    Raises:
        ValueError: If either size is not positive.

    Example:
        >>> t = compute_letterbox((1280, 720), (640, 640))
        >>> (t.scaled_width, t.scaled_height, t.pad_left, t.pad_top)
        (640, 360, 0, 140)
    """
    ow, oh = original_size
    iw, ih = input_size
    if ow <= 0 or oh <= 0 or iw <= 0 or ih <= 0:
        raise ValueError(f"Sizes must be positive, got {original_size} -> {input_size}")

    gain = min(iw / float(ow), ih / float(oh))
    new_w = min(iw, max(1, int(round(ow * gain))))
    new_h = min(ih, max(1, int(round(oh * gain))))

    return LetterboxTransform(
        original_width=ow,
        original_height=oh,
        input_width=iw,
        input_height=ih,
        scaled_width=new_w,
        scaled_height=new_h,
        pad_left=(iw - new_w) // 2,
        pad_top=(ih - new_h) // 2,
    )


def xywh_to_xyxy(xywh: np.ndarray) -> np.ndarray:
    """Convert (..., 4) centre/size boxes to corner boxes."""
    x, y, w, h = xywh[..., 0], xywh[..., 1], xywh[..., 2], xywh[..., 3]
    w = np.maximum(w, 0.0)
    h = np.maximum(h, 0.0)
    return np.stack([x - w / 2.0, y - h / 2.0, x + w / 2.0, y + h / 2.0], axis=-1)


def box_iou(
    a: Tuple[float, float, float, float],
    b: Tuple[float, float, float, float]
) -> float:
    """
    Intersection-over-union of two xyxy boxes.

    Returns 0.0 when the union is empty.
    """
    inter_w = min(a[2], b[2]) - max(a[0], b[0])
    inter_h = min(a[3], b[3]) - max(a[1], b[1])
    if inter_w <= 0 or inter_h <= 0:
        inter = 0.0
    else:
        inter = inter_w * inter_h

    area_a = max(0.0, a[2] - a[0]) * max(0.0, a[3] - a[1])
    area_b = max(0.0, b[2] - b[0]) * max(0.0, b[3] - b[1])
    union = area_a + area_b - inter
    if union <= 0:
        return 0.0
    return inter / union
