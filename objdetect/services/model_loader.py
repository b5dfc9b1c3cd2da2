# -*- coding: utf-8 -*-
"""
Lazy model loader implementation.

This module provides the LazyModelWrapper class which handles
on-demand engine loading and unloading to optimize memory usage.

The engine is only loaded when the first request arrives, and can be
automatically unloaded after a period of inactivity.
"""

import gc
import threading
import time
from contextlib import contextmanager
from typing import Iterator, List, Optional

from objdetect.core.config import EngineConfig, RenderConfig
from objdetect.core.exceptions import ModelLoadError
from objdetect.core.labels import LabelTable
from objdetect.core.types import Detection, Raster
from objdetect.services import engine
from objdetect.services.cancellation import Deadline
from objdetect.services.engine import BackendFactory, EngineHandle
from objdetect.services.pipeline import detect_image, process_image
from objdetect.services.postprocess import suppress


class LazyModelWrapper:
    """
    Wrapper for lazy loading and unloading of an inference engine.

    This class manages the lifecycle of an EngineHandle, loading it only
    when needed and closing it after a period of inactivity to conserve
    memory resources.

    Attributes:
        config: Engine configuration (model path, thresholds, pool size...).
        render_config: Annotation settings.
        model_name: Name of the model (used for logging).
        handle: The loaded engine (None if not loaded).
        lock: Thread lock guarding load/unload and the in-flight count.

    Example:
        >>> wrapper = LazyModelWrapper(EngineConfig(model_path="models/yolov10s.onnx"))
        >>> png = wrapper.annotate(image_bytes)  # Engine loads on first call
        >>> wrapper.unload()  # Manually unload when done
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        render_config: Optional[RenderConfig] = None,
        backend_factory: Optional[BackendFactory] = None
    ) -> None:
        """
        Initialize the LazyModelWrapper.

        Args:
            config: Engine configuration. Defaults to EngineConfig().
            render_config: Annotation settings. Defaults to RenderConfig().
            backend_factory: Backend override passed through to ``engine.load``.
        """
        self.config = config or EngineConfig()
        self.render_config = render_config or RenderConfig()
        self.model_name = self.config.display_name
        self.backend_factory = backend_factory
        self.handle: Optional[EngineHandle] = None
        self.lock = threading.Lock()
        self.last_access_time = time.time()
        self._in_flight = 0

    def _labels(self) -> Optional[LabelTable]:
        if self.config.classes:
            return LabelTable(self.config.classes)
        if self.config.labels_path:
            return LabelTable.from_file(self.config.labels_path)
        return None

    def _load_locked(self) -> EngineHandle:
        if self.handle is not None:
            return self.handle

        try:
            labels = self._labels()
        except (OSError, ValueError) as e:
            raise ModelLoadError(self.model_name, f"Could not read label table: {e}") from e

        self.handle = engine.load(
            self.config.model_path,
            labels=labels,
            input_size=self.config.input_size,
            pool_size=self.config.pool_size,
            output_layout=self.config.output_layout,
            device=self.config.device,
            backend_factory=self.backend_factory,
            model_name=self.model_name,
        )
        return self.handle

    def _unload_locked(self) -> None:
        if self.handle is None:
            return

        print(f"[{self.model_name}] Unloading model...")
        engine.close(self.handle)
        self.handle = None

        # Release GPU memory if torch/cuda is available
        try:
            import torch
            if torch.cuda.is_available():
                torch.cuda.empty_cache()
        except ImportError:
            pass

        gc.collect()
        print(f"[{self.model_name}] Model unloaded.")

    def load(self) -> EngineHandle:
        """
        Load the engine into memory.

        The method is thread-safe and will only load the engine once even
        if called concurrently.

        Returns:
            The loaded handle.

        Raises:
            ModelLoadError: If the model cannot be loaded.
        """
        with self.lock:
            return self._load_locked()

    def unload(self) -> None:
        """
        Unload the engine from memory.

        This method closes the engine's execution contexts and runs
        garbage collection to free up memory. Thread-safe. Used on
        shutdown; requests still running will fail.
        """
        with self.lock:
            self._unload_locked()

    def unload_if_idle(self, timeout: float) -> bool:
        """
        Unload the engine if no request is running and none arrived recently.

        Both conditions are checked under the same lock that requests take
        to obtain the handle, so a request can never lose its engine.

        Args:
            timeout: Seconds of inactivity required.

        Returns:
            True if the engine was unloaded.
        """
        with self.lock:
            if self.handle is None or self._in_flight > 0:
                return False
            if self.idle_seconds <= timeout:
                return False
            print(f"[{self.model_name}] Idle for {self.idle_seconds:.0f}s")
            self._unload_locked()
            return True

    def touch(self) -> None:
        """Record an access, postponing idle unloading."""
        self.last_access_time = time.time()

    @property
    def idle_seconds(self) -> float:
        return time.time() - self.last_access_time

    @property
    def in_flight(self) -> int:
        """Number of requests currently holding the engine."""
        return self._in_flight

    def _deadline(self) -> Optional[Deadline]:
        if self.config.deadline_seconds is None:
            return None
        return Deadline(seconds=self.config.deadline_seconds)

    @contextmanager
    def session(self) -> Iterator[EngineHandle]:
        """
        Hold the engine for the duration of a ``with`` block.

        Loads the engine if needed. While any session is open the engine
        is never unloaded for idleness.

        Yields:
            The loaded handle.

        Raises:
            ModelLoadError: If the model cannot be loaded.
        """
        with self.lock:
            handle = self._load_locked()
            self._in_flight += 1
            self.touch()
        try:
            yield handle
        finally:
            with self.lock:
                self._in_flight -= 1
                self.touch()

    def infer(self, raster: Raster, confidence_threshold: Optional[float] = None,
              iou_threshold: Optional[float] = None) -> List[Detection]:
        """
        Detect objects in a decoded image.

        The engine will be loaded automatically if not already loaded.

        Args:
            raster: Input image.
            confidence_threshold: Overrides the configured threshold.
            iou_threshold: Overrides the configured suppression threshold.

        Returns:
            Suppressed detections.
        """
        with self.session() as handle:
            detections = engine.run(
                handle,
                raster,
                self._pick(confidence_threshold, self.config.confidence_threshold),
                deadline=self._deadline(),
            )
        return suppress(detections, self._pick(iou_threshold, self.config.iou_threshold))

    def detect(self, data: bytes, confidence_threshold: Optional[float] = None,
               iou_threshold: Optional[float] = None) -> List[Detection]:
        """Decode, detect and suppress; raises PipelineError on failure."""
        with self.session() as handle:
            return detect_image(
                data,
                handle,
                self._pick(confidence_threshold, self.config.confidence_threshold),
                self._pick(iou_threshold, self.config.iou_threshold),
                deadline=self._deadline(),
            )

    def annotate(self, data: bytes, confidence_threshold: Optional[float] = None,
                 iou_threshold: Optional[float] = None) -> bytes:
        """
        Return an annotated copy of an encoded image.

        Raises:
            PipelineError: If a stage fails.
            UnknownClassId: If the model and its label table disagree.
        """
        with self.session() as handle:
            return process_image(
                data,
                handle,
                self._pick(confidence_threshold, self.config.confidence_threshold),
                self._pick(iou_threshold, self.config.iou_threshold),
                output_format=self.render_config.output_format,
                deadline=self._deadline(),
                thickness=self.render_config.thickness,
                font_scale=self.render_config.font_scale,
            )

    @staticmethod
    def _pick(value: Optional[float], default: float) -> float:
        return default if value is None else value

    @property
    def is_loaded(self) -> bool:
        """
        Check if the engine is currently loaded.

        Returns:
            True if the engine is loaded, False otherwise.
        """
        return self.handle is not None
