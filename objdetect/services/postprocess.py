# -*- coding: utf-8 -*-
"""
Detection postprocessing.

This module provides per-class greedy non-max suppression and the
rendering of surviving detections onto an image.

Suppression rules:
    - Candidates are visited by descending confidence; equal confidences
      keep their input order.
    - A candidate is dropped when its IoU with an already kept box of the
      same class is strictly greater than the threshold.
    - Boxes of different classes never suppress each other.
"""

from typing import Dict, List, Sequence, Tuple, Union

import cv2

from objdetect.core.labels import LabelTable
from objdetect.core.types import Detection, Raster, check_threshold
from objdetect.utils.geometry import box_iou


DEFAULT_IOU_THRESHOLD = 0.45

# Ultralytics default annotation palette, RGB
PALETTE = (
    (255, 56, 56), (255, 157, 151), (255, 112, 31), (255, 178, 29),
    (207, 210, 49), (72, 249, 10), (146, 204, 23), (61, 219, 134),
    (26, 147, 52), (0, 212, 187), (44, 153, 168), (0, 194, 255),
    (52, 69, 147), (100, 115, 255), (0, 24, 236), (132, 56, 255),
    (82, 0, 133), (203, 56, 255), (255, 149, 200), (255, 55, 199),
)

FONT = cv2.FONT_HERSHEY_SIMPLEX
LABEL_PADDING = 2


def iou(a: Detection, b: Detection) -> float:
    """Intersection-over-union of two detections' boxes."""
    return box_iou(a.as_tuple(), b.as_tuple())


def suppress(
    detections: Sequence[Detection],
    iou_threshold: float = DEFAULT_IOU_THRESHOLD
) -> List[Detection]:
    """
    Remove same-class duplicates with greedy non-max suppression.

    Args:
        detections: Candidate detections in any order.
        iou_threshold: Overlap above which a lower-confidence box of the
            same class is discarded.

    Returns:
        Kept detections, highest confidence first. Applying suppress
        again with the same threshold returns the same list.

    Raises:
        InvalidThreshold: If iou_threshold is outside [0, 1].

    Example:
        >>> a = Detection(0, 0, 100, 100, class_id=0, confidence=0.9)
        >>> b = Detection(5, 5, 105, 105, class_id=0, confidence=0.8)
        >>> suppress([a, b], 0.5) == [a]
        True
    """
    iou_threshold = check_threshold("iou_threshold", iou_threshold)

    # sorted() is stable, so equal confidences keep input order
    ordered = sorted(detections, key=lambda d: -d.confidence)

    kept: List[Detection] = []
    kept_by_class: Dict[int, List[Detection]] = {}

    for candidate in ordered:
        same_class = kept_by_class.setdefault(candidate.class_id, [])
        if any(iou(candidate, other) > iou_threshold for other in same_class):
            continue
        same_class.append(candidate)
        kept.append(candidate)

    return kept


def format_label(name: str, confidence: float) -> str:
    """Label text drawn next to a box, e.g. "person 87%"."""
    return f"{name} {int(round(confidence * 100))}%"


def class_color(class_id: int) -> Tuple[int, int, int]:
    """Deterministic RGB colour for a class id."""
    return PALETTE[class_id % len(PALETTE)]


def _text_color(background: Tuple[int, int, int]) -> Tuple[int, int, int]:
    r, g, b = background
    luminance = 0.299 * r + 0.587 * g + 0.114 * b
    return (0, 0, 0) if luminance > 150 else (255, 255, 255)


def label_anchor(
    box: Tuple[int, int, int, int],
    label_size: Tuple[int, int],
    image_size: Tuple[int, int]
) -> Tuple[int, int]:
    """
    Top-left corner of a label background for a box.

    The label sits just above the box's top-left corner, or inside the
    box when there is no room above, and is shifted so that it stays on
    the canvas.

    Args:
        box: Integer (x1, y1, x2, y2) box.
        label_size: Label background (width, height).
        image_size: Canvas (width, height).

    Returns:
        (left, top) of the label background.
    """
    x1, y1 = box[0], box[1]
    label_w, label_h = label_size
    width, height = image_size

    left = min(max(x1, 0), max(0, width - label_w))
    top = y1 - label_h if y1 - label_h >= 0 else y1
    top = min(max(top, 0), max(0, height - label_h))
    return left, top


def render(
    raster: Raster,
    detections: Sequence[Detection],
    labels: Union[LabelTable, Sequence[str]],
    thickness: int = 2,
    font_scale: float = 0.5
) -> Raster:
    """
    Draw detections onto a copy of an image.

    Every class id is resolved against the label table before anything
    is drawn, so a mismatch never produces a partially annotated image.

    Args:
        raster: Source image; not modified.
        detections: Detections in raster coordinates.
        labels: Label table for the model that produced the detections.
        thickness: Box outline thickness in pixels.
        font_scale: Hershey font scale for label text.

    Returns:
        Annotated copy of the raster.

    Raises:
        UnknownClassId: If a detection's class id is outside the table.
    """
    table = labels if isinstance(labels, LabelTable) else LabelTable(labels)
    texts = [format_label(table.name_for(d.class_id), d.confidence) for d in detections]

    out = raster.copy()
    pixels = out.pixels
    width, height = out.size
    font_thickness = max(1, thickness // 2)

    for detection, text in zip(detections, texts):
        color = class_color(detection.class_id)
        x1 = min(max(int(round(detection.x_min)), 0), width - 1)
        y1 = min(max(int(round(detection.y_min)), 0), height - 1)
        x2 = min(max(int(round(detection.x_max)), 0), width - 1)
        y2 = min(max(int(round(detection.y_max)), 0), height - 1)

        cv2.rectangle(pixels, (x1, y1), (x2, y2), color, thickness)

        (text_w, text_h), baseline = cv2.getTextSize(text, FONT, font_scale, font_thickness)
        label_w = text_w + 2 * LABEL_PADDING
        label_h = text_h + baseline + 2 * LABEL_PADDING
        left, top = label_anchor((x1, y1, x2, y2), (label_w, label_h), (width, height))

        cv2.rectangle(pixels, (left, top), (left + label_w - 1, top + label_h - 1), color, -1)
        cv2.putText(
            pixels,
            text,
            (left + LABEL_PADDING, top + LABEL_PADDING + text_h),
            FONT,
            font_scale,
            _text_color(color),
            font_thickness,
            cv2.LINE_AA
        )

    return out
