# -*- coding: utf-8 -*-
"""
Shared fixtures for the objdetect test-suite.

FakeBackend stands in for a real network: it "detects" bright regions
of the input tensor, which makes the whole pipeline deterministic and
runnable without model weights.
"""

import sys
import threading
from pathlib import Path

import cv2
import numpy as np
import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from objdetect.core.interfaces import ForwardPass
from objdetect.core.types import Raster
from objdetect.services import engine


NUM_CLASSES = 80


class FakeBackend(ForwardPass):
    """
    Deterministic ForwardPass emitting the objectness layout [1, 2, 5 + C].

    If any pixel of the input is brighter than 0.5 (channel mean), the
    first row is a class-0 box around the bright pixels with confidence
    0.9 * 0.8 = 0.72, and the second row a slightly shifted duplicate
    with confidence 0.9 * 0.6 = 0.54. Otherwise both rows are zero.
    """

    def __init__(self, model_path, device="cpu", num_classes=NUM_CLASSES, **kwargs):
        self.model_path = model_path
        self.device = device
        self.num_classes = num_classes
        self.calls = 0
        self.closed = False
        self.lock = threading.Lock()
        self.active = 0
        self.max_active = 0

    def forward(self, tensor):
        with self.lock:
            self.calls += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            return [self._predict(tensor)]
        finally:
            with self.lock:
                self.active -= 1

    def _predict(self, tensor):
        rows = np.zeros((1, 2, 5 + self.num_classes), dtype=np.float32)
        mask = tensor[0].mean(axis=0) > 0.5
        if not mask.any():
            return rows

        ys, xs = np.nonzero(mask)
        x1, y1 = float(xs.min()), float(ys.min())
        x2, y2 = float(xs.max() + 1), float(ys.max() + 1)
        cx, cy, w, h = (x1 + x2) / 2, (y1 + y2) / 2, x2 - x1, y2 - y1

        rows[0, 0, :5] = (cx, cy, w, h, 0.9)
        rows[0, 0, 5] = 0.8
        rows[0, 1, :5] = (cx + 2, cy + 2, w, h, 0.9)
        rows[0, 1, 5] = 0.6
        return rows

    def close(self):
        self.closed = True


def make_raster(width, height, box=None, value=255):
    """Black RGB raster, optionally with a filled (x1, y1, x2, y2) square."""
    pixels = np.zeros((height, width, 3), dtype=np.uint8)
    if box is not None:
        x1, y1, x2, y2 = box
        pixels[y1:y2, x1:x2] = value
    return Raster(pixels)


def png_bytes(raster):
    success, buffer = cv2.imencode(".png", raster.to_bgr())
    assert success
    return buffer.tobytes()


@pytest.fixture
def model_path(tmp_path):
    """A model file the FakeBackend accepts."""
    path = tmp_path / "model.onnx"
    path.write_bytes(b"not-a-real-network")
    return path


@pytest.fixture
def handle(model_path):
    """A loaded engine backed by FakeBackend."""
    h = engine.load(model_path, backend_factory=FakeBackend)
    yield h
    engine.close(h)


@pytest.fixture
def square_raster():
    """200x100 image with a white square at (50, 20)-(100, 60)."""
    return make_raster(200, 100, box=(50, 20, 100, 60))
