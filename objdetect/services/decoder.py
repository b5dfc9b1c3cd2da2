# -*- coding: utf-8 -*-
"""
Raw output decoding for YOLO-family detectors.

Supported layouts (batch size 1):
    - objectness:   [1, N, 5 + C]  rows (cx, cy, w, h, obj, cls_1..cls_C)
                    YOLOv5 / YOLOv7 exports
    - class_scores: [1, 4 + C, N] or [1, N, 4 + C]
                    rows (cx, cy, w, h, cls_1..cls_C)
                    YOLOv8 / YOLO11 exports, objectness taken as 1
    - end_to_end:   [1, N, 6]  rows (x1, y1, x2, y2, score, class_id)
                    YOLOv10 NMS-free exports, objectness taken as 1

Boxes are returned in model-input pixel coordinates.
"""

from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from objdetect.utils.geometry import xywh_to_xyxy

OBJECTNESS = "objectness"
CLASS_SCORES = "class_scores"
END_TO_END = "end_to_end"

LAYOUTS = (OBJECTNESS, CLASS_SCORES, END_TO_END)

# NMS-free heads emit at most a few hundred rows; anchor grids emit thousands.
END_TO_END_MAX_ROWS = 1000


@dataclass(frozen=True)
class OutputLayout:
    """
    Resolved layout of a model's primary output.

    Attributes:
        kind: One of "objectness", "class_scores", "end_to_end".
        channels_first: True if candidates run along the last axis.
    """

    kind: str
    channels_first: bool = False


@dataclass
class CandidateBoxes:
    """
    Candidates surviving the confidence filter, in candidate order.

    Attributes:
        boxes: (N, 4) float64 xyxy boxes in model-input space.
        scores: (N,) confidences, objectness x class score.
        class_ids: (N,) int64 class indices.
    """

    boxes: np.ndarray
    scores: np.ndarray
    class_ids: np.ndarray

    def __len__(self) -> int:
        return int(self.scores.shape[0])

    @classmethod
    def empty(cls) -> "CandidateBoxes":
        return cls(
            boxes=np.zeros((0, 4), dtype=np.float64),
            scores=np.zeros((0,), dtype=np.float64),
            class_ids=np.zeros((0,), dtype=np.int64),
        )


def _squeeze_batch(shape: Sequence[int]) -> Tuple[int, int]:
    dims = tuple(int(d) for d in shape)
    if len(dims) == 3:
        if dims[0] != 1:
            raise ValueError(f"Only batch size 1 is supported, got output shape {dims}")
        dims = dims[1:]
    if len(dims) != 2:
        raise ValueError(f"Expected a rank-2 or rank-3 output, got shape {tuple(shape)}")
    return dims[0], dims[1]


def resolve_layout(
    shape: Sequence[int],
    num_classes: int,
    preferred: str = "auto"
) -> OutputLayout:
    """
    Work out how to read a model's primary output.

    With ``preferred="auto"`` the layout is inferred from the shape and
    the label count; otherwise the named layout is checked against the
    shape.

    Args:
        shape: Shape of the primary output tensor.
        num_classes: Number of entries in the label table.
        preferred: "auto" or one of the layout names.

    Returns:
        The resolved layout.

    Raises:
        ValueError: If the shape does not fit the requested layout or
            any known layout, or fits several layouts that cannot be told
            apart.

    Example:
        >>> resolve_layout((1, 84, 8400), 80)
        OutputLayout(kind='class_scores', channels_first=True)
        >>> resolve_layout((1, 300, 6), 80)
        OutputLayout(kind='end_to_end', channels_first=False)
        >>> resolve_layout((1, 300, 6), 1)
        OutputLayout(kind='end_to_end', channels_first=False)
    """
    rows, cols = _squeeze_batch(shape)

    if preferred not in ("auto",) + LAYOUTS:
        raise ValueError(f"Unknown output layout {preferred!r}")

    fits = []
    if cols == 5 + num_classes:
        fits.append(OutputLayout(OBJECTNESS))
    if rows == 4 + num_classes and rows < cols:
        fits.append(OutputLayout(CLASS_SCORES, channels_first=True))
    if cols == 4 + num_classes:
        fits.append(OutputLayout(CLASS_SCORES))
    if cols == 6:
        fits.append(OutputLayout(END_TO_END))

    if preferred != "auto":
        fits = [layout for layout in fits if layout.kind == preferred]
    elif len(fits) > 1:
        fits = _disambiguate(fits, rows)

    if not fits:
        raise ValueError(
            f"Output shape {tuple(shape)} does not match layout {preferred!r} "
            f"for {num_classes} classes"
        )
    if len(fits) > 1:
        raise ValueError(
            f"Output shape {tuple(shape)} is ambiguous for {num_classes} classes "
            f"({', '.join(layout.kind for layout in fits)}); "
            f"set engine.output_layout explicitly"
        )
    return fits[0]


def _disambiguate(fits: List[OutputLayout], rows: int) -> List[OutputLayout]:
    # With 1 or 2 classes a 6-column output fits several layouts. A short
    # candidate list is an NMS-free head, a long one an anchor grid.
    end_to_end = [layout for layout in fits if layout.kind == END_TO_END]
    if not end_to_end:
        return fits
    if rows <= END_TO_END_MAX_ROWS:
        return end_to_end
    return [layout for layout in fits if layout.kind != END_TO_END]


def decode_output(
    output: np.ndarray,
    layout: OutputLayout,
    num_classes: int,
    confidence_threshold: float
) -> CandidateBoxes:
    """
    Decode a raw output tensor into scored candidate boxes.

    Confidence is objectness multiplied by the best class score and the
    class id is the arg-max over class scores. Candidates below the
    threshold are dropped before any box arithmetic.

    Args:
        output: Primary output tensor of the model.
        layout: Layout returned by resolve_layout.
        num_classes: Number of entries in the label table.
        confidence_threshold: Minimum confidence to keep.

    Returns:
        Surviving candidates in their original order.

    Raises:
        ValueError: If the output does not match the layout.
    """
    rows = np.asarray(output, dtype=np.float32)
    if rows.ndim == 3:
        if rows.shape[0] != 1:
            raise ValueError(f"Only batch size 1 is supported, got output shape {rows.shape}")
        rows = rows[0]
    if rows.ndim != 2:
        raise ValueError(f"Expected a rank-2 or rank-3 output, got shape {np.shape(output)}")
    if layout.channels_first:
        rows = rows.T

    if layout.kind == END_TO_END:
        if rows.shape[1] != 6:
            raise ValueError(f"end_to_end rows must have 6 values, got {rows.shape[1]}")
        scores = rows[:, 4].astype(np.float64)
        class_ids = np.rint(rows[:, 5]).astype(np.int64)
        keep = (scores >= confidence_threshold) & (class_ids >= 0)
        corners = rows[keep, 0:4].astype(np.float64)
        boxes = np.concatenate([
            np.minimum(corners[:, 0:2], corners[:, 2:4]),
            np.maximum(corners[:, 0:2], corners[:, 2:4]),
        ], axis=1)
        return CandidateBoxes(
            boxes=boxes,
            scores=np.clip(scores[keep], 0.0, 1.0),
            class_ids=class_ids[keep],
        )

    if layout.kind == OBJECTNESS:
        expected = 5 + num_classes
        objectness = rows[:, 4]
        class_scores = rows[:, 5:]
    elif layout.kind == CLASS_SCORES:
        expected = 4 + num_classes
        objectness = np.ones(rows.shape[0], dtype=np.float32)
        class_scores = rows[:, 4:]
    else:
        raise ValueError(f"Unknown output layout {layout.kind!r}")

    if rows.shape[1] != expected:
        raise ValueError(
            f"{layout.kind} rows must have {expected} values for "
            f"{num_classes} classes, got {rows.shape[1]}"
        )
    if rows.shape[0] == 0:
        return CandidateBoxes.empty()

    class_ids = np.argmax(class_scores, axis=1)
    best = class_scores[np.arange(class_scores.shape[0]), class_ids]
    scores = np.clip(objectness.astype(np.float64) * best.astype(np.float64), 0.0, 1.0)

    keep = scores >= confidence_threshold
    if not np.any(keep):
        return CandidateBoxes.empty()

    boxes = xywh_to_xyxy(rows[keep, 0:4].astype(np.float64))
    return CandidateBoxes(
        boxes=boxes,
        scores=scores[keep],
        class_ids=class_ids[keep].astype(np.int64),
    )
