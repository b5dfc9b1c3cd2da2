# -*- coding: utf-8 -*-
"""
Tests for the end-to-end detection pipeline.
"""

import threading
from functools import partial

import numpy as np
import pytest

from objdetect.core.exceptions import (
    Cancelled,
    CorruptData,
    InvalidThreshold,
    PipelineError,
    UnknownClassId,
    UnsupportedFormat,
)
from objdetect.services import engine
from objdetect.services.cancellation import Deadline
from objdetect.services.pipeline import detect_image, process_image
from objdetect.utils.image import decode, sniff_format

from conftest import FakeBackend, make_raster, png_bytes


class OutOfRangeBackend(FakeBackend):
    """Emits end-to-end rows whose class id exceeds the label table."""

    def forward(self, tensor):
        self.calls += 1
        rows = np.zeros((1, 3, 6), dtype=np.float32)
        if self.calls > 1:
            rows[0, 0] = (10, 10, 50, 50, 0.9, 5)
        return [rows]


class TestDetectImage:
    """Tests for detect_image."""

    def test_duplicates_are_suppressed(self, handle, square_raster):
        """Test that the shifted duplicate is removed."""
        detections = detect_image(png_bytes(square_raster), handle)
        assert len(detections) == 1
        np.testing.assert_allclose(detections[0].as_tuple(), (50, 20, 100, 60), atol=1.0)

    def test_unsupported_format(self, handle):
        """Test that an unknown header fails in the decode stage."""
        with pytest.raises(PipelineError) as exc_info:
            detect_image(b"\x00\x01\x02\x03", handle)
        assert exc_info.value.stage == "decode"
        assert isinstance(exc_info.value.cause, UnsupportedFormat)

    def test_corrupt_data(self, handle):
        """Test that a corrupt payload fails in the decode stage."""
        with pytest.raises(PipelineError) as exc_info:
            detect_image(b"\xff\xd8\xff" + b"\x00" * 10, handle)
        assert isinstance(exc_info.value.cause, CorruptData)

    def test_invalid_confidence_threshold(self, handle, square_raster):
        """Test that a bad threshold fails in the inference stage."""
        with pytest.raises(PipelineError) as exc_info:
            detect_image(png_bytes(square_raster), handle, confidence_threshold=2.0)
        assert exc_info.value.stage == "inference"
        assert isinstance(exc_info.value.cause, InvalidThreshold)

    def test_invalid_iou_threshold(self, handle, square_raster):
        """Test that a bad IoU threshold fails in the postprocess stage."""
        with pytest.raises(PipelineError) as exc_info:
            detect_image(png_bytes(square_raster), handle, iou_threshold=-1)
        assert exc_info.value.stage == "postprocess"

    def test_cancelled(self, handle, square_raster):
        """Test that cancellation is reported from the inference stage."""
        stop = threading.Event()
        stop.set()
        with pytest.raises(PipelineError) as exc_info:
            detect_image(png_bytes(square_raster), handle, deadline=Deadline(event=stop))
        assert exc_info.value.stage == "inference"
        assert isinstance(exc_info.value.cause, Cancelled)


class TestProcessImage:
    """Tests for process_image."""

    def test_annotates_png(self, handle, square_raster):
        """Test that the output is a PNG of the same size with a box drawn."""
        output = process_image(png_bytes(square_raster), handle)

        assert sniff_format(output) == "png"
        annotated = decode(output)
        assert annotated.size == square_raster.size
        assert annotated != square_raster

    def test_black_image_is_unchanged(self, handle):
        """Test that an image without detections comes back pixel-identical."""
        raster = make_raster(640, 640)
        assert decode(process_image(png_bytes(raster), handle)) == raster

    def test_output_format(self, handle, square_raster):
        """Test encoding to another format."""
        output = process_image(png_bytes(square_raster), handle, output_format="jpg")
        assert sniff_format(output) == "jpeg"

    def test_unknown_output_format(self, handle, square_raster):
        """Test that an unknown output format fails in the encode stage."""
        with pytest.raises(PipelineError) as exc_info:
            process_image(png_bytes(square_raster), handle, output_format="gif")
        assert exc_info.value.stage == "encode"
        assert isinstance(exc_info.value.cause, UnsupportedFormat)

    def test_unknown_class_id_is_not_wrapped(self, model_path, square_raster):
        """Test that a model/label mismatch propagates unchanged."""
        h = engine.load(
            model_path,
            labels=["a", "b", "c"],
            backend_factory=partial(OutOfRangeBackend, num_classes=3)
        )
        with pytest.raises(UnknownClassId):
            process_image(png_bytes(square_raster), h)
        engine.close(h)
