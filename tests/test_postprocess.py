# -*- coding: utf-8 -*-
"""
Tests for suppression and rendering.
"""

import numpy as np
import pytest

from objdetect.core.exceptions import InvalidThreshold, UnknownClassId
from objdetect.core.labels import LabelTable
from objdetect.core.types import Detection
from objdetect.services.postprocess import (
    PALETTE,
    class_color,
    format_label,
    iou,
    label_anchor,
    render,
    suppress,
)

from conftest import make_raster


def det(x1, y1, x2, y2, class_id=0, confidence=0.9):
    return Detection(x1, y1, x2, y2, class_id=class_id, confidence=confidence)


class TestSuppress:
    """Tests for greedy per-class non-max suppression."""

    def test_overlapping_same_class_keeps_best(self):
        """Test that a box overlapping a stronger one (IoU ~0.82) is dropped."""
        a = det(0, 0, 100, 100, confidence=0.9)
        b = det(5, 5, 105, 105, confidence=0.8)
        assert suppress([b, a], 0.5) == [a]

    def test_threshold_above_overlap_keeps_both(self):
        """Test that both boxes survive when the threshold exceeds their IoU."""
        a = det(0, 0, 100, 100, confidence=0.9)
        b = det(5, 5, 105, 105, confidence=0.8)
        assert suppress([a, b], 0.9) == [a, b]

    def test_different_classes_are_independent(self):
        """Test that overlapping boxes of different classes are both kept."""
        a = det(0, 0, 100, 100, class_id=0, confidence=0.9)
        b = det(5, 5, 105, 105, class_id=1, confidence=0.8)
        assert suppress([a, b], 0.5) == [a, b]

    def test_idempotent(self):
        """Test that suppressing twice gives the same result."""
        boxes = [
            det(0, 0, 100, 100, confidence=0.9),
            det(5, 5, 105, 105, confidence=0.8),
            det(200, 200, 250, 250, confidence=0.7),
            det(210, 205, 260, 255, class_id=3, confidence=0.95),
        ]
        once = suppress(boxes, 0.45)
        assert suppress(once, 0.45) == once

    def test_output_sorted_by_confidence(self):
        """Test that kept boxes are ordered highest confidence first."""
        boxes = [det(0, 0, 10, 10, confidence=0.3), det(50, 50, 60, 60, confidence=0.8)]
        assert [d.confidence for d in suppress(boxes)] == [0.8, 0.3]

    def test_empty(self):
        """Test that an empty input stays empty."""
        assert suppress([], 0.5) == []

    @pytest.mark.parametrize("value", [-0.1, 1.5, float("nan"), "0.5", True])
    def test_invalid_threshold(self, value):
        """Test that out-of-range thresholds are rejected."""
        with pytest.raises(InvalidThreshold):
            suppress([det(0, 0, 1, 1)], value)


class TestLabels:
    """Tests for label text, colours and placement."""

    def test_format_label(self):
        """Test label text formatting."""
        assert format_label("person", 0.874) == "person 87%"

    def test_class_color_cycles(self):
        """Test that colours are deterministic and wrap around the palette."""
        assert class_color(0) == PALETTE[0]
        assert class_color(len(PALETTE)) == PALETTE[0]

    def test_label_above_box(self):
        """Test that the label sits above the box when there is room."""
        assert label_anchor((50, 40, 100, 90), (30, 12), (200, 200)) == (50, 28)

    def test_label_inside_box_at_top_edge(self):
        """Test that the label moves inside the box at the top of the image."""
        assert label_anchor((50, 5, 100, 90), (30, 12), (200, 200)) == (50, 5)

    def test_label_clamped_to_right_edge(self):
        """Test that the label is shifted left to stay on the canvas."""
        assert label_anchor((190, 40, 199, 90), (30, 12), (200, 200)) == (170, 28)


class TestRender:
    """Tests for render."""

    def test_draws_on_copy(self):
        """Test that rendering leaves the source untouched and draws the box."""
        raster = make_raster(200, 100)
        out = render(raster, [det(20, 30, 120, 80)], LabelTable(["cat"]))

        assert np.all(raster.pixels == 0)
        assert out.size == raster.size
        assert tuple(out.pixels[55, 20]) == class_color(0)
        # Box interior away from the label stays untouched
        assert tuple(out.pixels[70, 70]) == (0, 0, 0)

    def test_no_detections_is_identity(self):
        """Test that rendering nothing returns an equal image."""
        raster = make_raster(64, 48, box=(5, 5, 20, 20))
        assert render(raster, [], ["a"]) == raster

    def test_unknown_class_id_raises_before_drawing(self):
        """Test that a class id outside the table raises UnknownClassId."""
        raster = make_raster(64, 64)
        with pytest.raises(UnknownClassId):
            render(raster, [det(1, 1, 10, 10, class_id=0), det(1, 1, 10, 10, class_id=5)], ["a"])
        assert np.all(raster.pixels == 0)


class TestSuppressRandom:
    """Property checks for suppress over random boxes."""

    @pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
    @pytest.mark.parametrize("iou_threshold", [0.0, 0.3, 0.45, 0.7])
    def test_no_kept_same_class_overlap(self, seed, iou_threshold):
        """Test that no two kept boxes of one class overlap above the threshold."""
        rng = np.random.default_rng(seed)
        n = 60
        xy = rng.uniform(0, 200, size=(n, 2))
        wh = rng.uniform(5, 80, size=(n, 2))
        class_ids = rng.integers(0, 3, size=n)
        scores = rng.uniform(0, 1, size=n)

        boxes = [
            det(x, y, x + w, y + h, class_id=int(c), confidence=float(s))
            for (x, y), (w, h), c, s in zip(xy, wh, class_ids, scores)
        ]
        kept = suppress(boxes, iou_threshold)

        assert kept
        for i, a in enumerate(kept):
            for b in kept[i + 1:]:
                if a.class_id == b.class_id:
                    assert iou(a, b) <= iou_threshold
        assert suppress(kept, iou_threshold) == kept
        assert [d.confidence for d in kept] == sorted((d.confidence for d in kept), reverse=True)
