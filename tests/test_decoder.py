# -*- coding: utf-8 -*-
"""
Tests for raw output layout resolution and decoding.
"""

import numpy as np
import pytest

from objdetect.services.decoder import (
    CLASS_SCORES,
    END_TO_END,
    OBJECTNESS,
    OutputLayout,
    decode_output,
    resolve_layout,
)


class TestResolveLayout:
    """Tests for resolve_layout."""

    @pytest.mark.parametrize("shape,num_classes,expected", [
        ((1, 25200, 85), 80, OutputLayout(OBJECTNESS)),
        ((1, 84, 8400), 80, OutputLayout(CLASS_SCORES, channels_first=True)),
        ((1, 8400, 84), 80, OutputLayout(CLASS_SCORES)),
        ((1, 300, 6), 80, OutputLayout(END_TO_END)),
        ((300, 6), 80, OutputLayout(END_TO_END)),
    ])
    def test_auto(self, shape, num_classes, expected):
        """Test that common YOLO exports are recognised."""
        assert resolve_layout(shape, num_classes) == expected

    @pytest.mark.parametrize("num_classes,class_id", [(1, 0), (2, 1)])
    def test_few_class_end_to_end_export(self, num_classes, class_id):
        """Test that 1- and 2-class NMS-free outputs are read as end-to-end rows."""
        rows = np.zeros((1, 300, 6), dtype=np.float32)
        rows[0, 0] = (10, 10, 50, 50, 0.9, class_id)

        layout = resolve_layout(rows.shape, num_classes)
        out = decode_output(rows, layout, num_classes, 0.3)

        assert layout.kind == END_TO_END
        assert len(out) == 1
        assert out.class_ids[0] == class_id
        assert out.scores[0] == pytest.approx(0.9)
        np.testing.assert_allclose(out.boxes[0], [10, 10, 50, 50])

    @pytest.mark.parametrize("shape,num_classes,expected", [
        ((1, 25200, 6), 1, OBJECTNESS),
        ((1, 8400, 6), 2, CLASS_SCORES),
    ])
    def test_few_class_anchor_grid(self, shape, num_classes, expected):
        """Test that long 6-column outputs keep their anchor-grid reading."""
        assert resolve_layout(shape, num_classes).kind == expected

    def test_explicit_layout_overrides_guess(self):
        """Test that a configured layout wins over the row-count heuristic."""
        assert resolve_layout((1, 100, 6), 1, preferred=OBJECTNESS).kind == OBJECTNESS

    def test_ambiguous_shape_raises(self):
        """Test that a shape fitting two anchor-grid layouts is rejected."""
        with pytest.raises(ValueError, match="ambiguous"):
            resolve_layout((1, 84, 85), 80)

    def test_label_mismatch_raises(self):
        """Test that a class dimension that disagrees with the labels is rejected."""
        with pytest.raises(ValueError):
            resolve_layout((1, 84, 8400), 3)

    def test_unknown_preferred_layout(self):
        """Test that an unknown layout name is rejected."""
        with pytest.raises(ValueError):
            resolve_layout((1, 300, 6), 80, preferred="anchors")

    def test_batch_size_must_be_one(self):
        """Test that batched outputs are rejected."""
        with pytest.raises(ValueError):
            resolve_layout((2, 300, 6), 80)


class TestDecodeOutput:
    """Tests for decode_output."""

    def test_objectness_scores_multiply(self):
        """Test that confidence is objectness times the best class score."""
        rows = np.array([[[50, 50, 20, 10, 0.5, 0.1, 0.8, 0.3]]], dtype=np.float32)
        out = decode_output(rows, OutputLayout(OBJECTNESS), 3, 0.3)
        assert len(out) == 1
        assert out.class_ids[0] == 1
        assert out.scores[0] == pytest.approx(0.4)
        np.testing.assert_allclose(out.boxes[0], [40, 45, 60, 55])

    def test_threshold_is_inclusive(self):
        """Test that a score equal to the threshold is kept."""
        rows = np.array([[[10, 10, 4, 4, 1.0, 0.5]]], dtype=np.float32)
        assert len(decode_output(rows, OutputLayout(OBJECTNESS), 1, 0.5)) == 1
        assert len(decode_output(rows, OutputLayout(OBJECTNESS), 1, 0.51)) == 0

    def test_channels_first_class_scores(self):
        """Test the transposed YOLOv8 layout."""
        rows = np.zeros((1, 4 + 2, 3), dtype=np.float32)
        rows[0, :, 1] = (100, 100, 50, 50, 0.1, 0.9)
        out = decode_output(rows, OutputLayout(CLASS_SCORES, channels_first=True), 2, 0.25)
        assert len(out) == 1
        assert out.class_ids[0] == 1
        np.testing.assert_allclose(out.boxes[0], [75, 75, 125, 125])

    def test_end_to_end(self):
        """Test NMS-free rows, including swapped corners and padding rows."""
        rows = np.array([[
            [10, 20, 30, 40, 0.9, 2],
            [30, 40, 10, 20, 0.6, 0],
            [0, 0, 0, 0, 0.0, 0],
        ]], dtype=np.float32)
        out = decode_output(rows, OutputLayout(END_TO_END), 80, 0.3)
        assert list(out.class_ids) == [2, 0]
        np.testing.assert_allclose(out.boxes, [[10, 20, 30, 40], [10, 20, 30, 40]])

    def test_empty_output(self):
        """Test that an output with no candidates decodes to nothing."""
        rows = np.zeros((1, 0, 85), dtype=np.float32)
        assert len(decode_output(rows, OutputLayout(OBJECTNESS), 80, 0.3)) == 0

    def test_width_mismatch_raises(self):
        """Test that rows of the wrong width are rejected."""
        rows = np.zeros((1, 4, 10), dtype=np.float32)
        with pytest.raises(ValueError):
            decode_output(rows, OutputLayout(OBJECTNESS), 80, 0.3)
