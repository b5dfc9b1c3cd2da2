# -*- coding: utf-8 -*-
"""
Tests for LazyModelWrapper.
"""

import threading

import pytest

from objdetect.core.config import EngineConfig, RenderConfig
from objdetect.core.exceptions import ModelLoadError, PipelineError
from objdetect.services.model_loader import LazyModelWrapper
from objdetect.utils.image import sniff_format

from conftest import FakeBackend, make_raster, png_bytes


@pytest.fixture
def wrapper(model_path):
    w = LazyModelWrapper(EngineConfig(model_path=str(model_path)), backend_factory=FakeBackend)
    yield w
    w.unload()


class TestLifecycle:
    """Tests for loading and unloading."""

    def test_not_loaded_initially(self, wrapper):
        """Test that nothing is loaded until first use."""
        assert not wrapper.is_loaded
        assert wrapper.model_name == "model"

    def test_loads_on_first_request(self, wrapper, square_raster):
        """Test lazy loading on first inference."""
        detections = wrapper.infer(square_raster)
        assert wrapper.is_loaded
        assert len(detections) == 1

    def test_concurrent_load_is_single(self, model_path):
        """Test that concurrent loads create one handle."""
        created = []

        def factory(path, device="cpu"):
            context = FakeBackend(path, device=device)
            created.append(context)
            return context

        w = LazyModelWrapper(EngineConfig(model_path=str(model_path)), backend_factory=factory)
        threads = [threading.Thread(target=w.load) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert len(created) == 1
        w.unload()

    def test_unload_closes_handle(self, wrapper):
        """Test that unload releases the engine and can be repeated."""
        handle = wrapper.load()
        wrapper.unload()
        wrapper.unload()
        assert handle.closed
        assert not wrapper.is_loaded

    def test_missing_model(self, tmp_path):
        """Test that a missing model surfaces as ModelLoadError."""
        w = LazyModelWrapper(EngineConfig(model_path=str(tmp_path / "gone.onnx")))
        with pytest.raises(ModelLoadError):
            w.load()

    def test_unreadable_label_file(self, model_path, tmp_path):
        """Test that a missing label file is a load error."""
        config = EngineConfig(model_path=str(model_path), labels_path=str(tmp_path / "x.txt"))
        w = LazyModelWrapper(config, backend_factory=FakeBackend)
        with pytest.raises(ModelLoadError):
            w.load()

    def test_idle_seconds(self, wrapper):
        """Test that touch resets the idle clock."""
        wrapper.last_access_time -= 100
        assert wrapper.idle_seconds >= 100
        wrapper.touch()
        assert wrapper.idle_seconds < 100


class TestRequests:
    """Tests for the request helpers."""

    def test_config_thresholds_are_defaults(self, model_path, square_raster):
        """Test that configured thresholds apply unless overridden."""
        config = EngineConfig(model_path=str(model_path), confidence_threshold=0.8)
        w = LazyModelWrapper(config, backend_factory=FakeBackend)
        assert w.infer(square_raster) == []
        assert len(w.infer(square_raster, confidence_threshold=0.3)) == 1
        assert len(w.infer(square_raster, confidence_threshold=0.3, iou_threshold=1.0)) == 2
        w.unload()

    def test_detect(self, wrapper, square_raster):
        """Test detection from encoded bytes."""
        assert len(wrapper.detect(png_bytes(square_raster))) == 1

    def test_detect_bad_bytes(self, wrapper):
        """Test that decoding failures are stage-tagged."""
        with pytest.raises(PipelineError):
            wrapper.detect(b"\x00\x00\x00\x00")

    def test_annotate_uses_render_config(self, model_path, square_raster):
        """Test that the configured output format is used."""
        w = LazyModelWrapper(
            EngineConfig(model_path=str(model_path)),
            RenderConfig(output_format="bmp", thickness=3),
            backend_factory=FakeBackend
        )
        assert sniff_format(w.annotate(png_bytes(square_raster))) == "bmp"
        w.unload()

    def test_deadline_from_config(self, model_path):
        """Test that the configured deadline is attached to each call."""
        config = EngineConfig(model_path=str(model_path), deadline_seconds=5)
        w = LazyModelWrapper(config, backend_factory=FakeBackend)
        assert w._deadline().remaining() == pytest.approx(5, abs=0.5)
        assert len(w.infer(make_raster(64, 64))) == 0
        w.unload()


class GatedBackend(FakeBackend):
    """FakeBackend whose request-time forward passes wait for a release event."""

    def __init__(self, model_path, device="cpu", **kwargs):
        super().__init__(model_path, device=device, **kwargs)
        self.entered = threading.Event()
        self.release = threading.Event()

    def forward(self, tensor):
        # The first call is the layout check during load.
        if self.calls >= 1:
            self.entered.set()
            self.release.wait(timeout=5)
        return super().forward(tensor)


class TestIdleUnload:
    """Tests for unloading an idle engine while requests run."""

    def test_unload_if_idle(self, wrapper):
        """Test that only a loaded, idle engine is unloaded."""
        assert not wrapper.unload_if_idle(0)

        wrapper.load()
        assert not wrapper.unload_if_idle(60)

        wrapper.last_access_time -= 120
        assert wrapper.unload_if_idle(60)
        assert not wrapper.is_loaded

    def test_running_request_keeps_engine(self, model_path, square_raster):
        """Test that an idle unload waits for a request holding the engine."""
        created = []

        def factory(path, device="cpu"):
            context = GatedBackend(path, device=device)
            created.append(context)
            return context

        w = LazyModelWrapper(EngineConfig(model_path=str(model_path)), backend_factory=factory)
        handle = w.load()
        results = []
        errors = []

        def request():
            try:
                results.append(w.infer(square_raster))
            except Exception as e:
                errors.append(e)

        thread = threading.Thread(target=request)
        thread.start()
        assert created[0].entered.wait(timeout=5)

        # Looks idle by the clock, but a forward pass is running.
        w.last_access_time -= 1000
        assert w.in_flight == 1
        assert not w.unload_if_idle(1)
        assert not handle.closed

        created[0].release.set()
        thread.join(timeout=5)

        assert errors == []
        assert len(results) == 1 and len(results[0]) == 1
        assert w.in_flight == 0

        # The finished request counts as fresh activity.
        assert not w.unload_if_idle(1)
        w.last_access_time -= 1000
        assert w.unload_if_idle(1)
        assert handle.closed

    def test_session_reloads_after_unload(self, wrapper, square_raster):
        """Test that a request after an idle unload loads a fresh engine."""
        first = wrapper.load()
        wrapper.last_access_time -= 1000
        assert wrapper.unload_if_idle(1)

        with wrapper.session() as handle:
            assert handle is not first
            assert not handle.closed
            assert wrapper.in_flight == 1
        assert wrapper.in_flight == 0
