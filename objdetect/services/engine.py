# -*- coding: utf-8 -*-
"""
Inference engine.

``load`` turns a model artifact into an immutable EngineHandle;
``run`` performs one stateless detection call against a handle:

    Raster -> letterbox -> tensor -> forward pass -> output decoding
           -> confidence filter -> letterbox inversion -> Detections

Several handles (e.g. different model versions) can coexist; nothing
about a loaded model is stored at module level.

Example:
    >>> handle = load("models/yolov10s.onnx")
    >>> detections = run(handle, raster, confidence_threshold=0.3)
    >>> close(handle)
"""

import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

import numpy as np

from objdetect.core.exceptions import InferenceError, ModelLoadError
from objdetect.core.interfaces import ForwardPass
from objdetect.core.labels import LabelTable, resolve_label_table
from objdetect.core.types import Detection, Raster, check_threshold
from objdetect.services.cancellation import Deadline
from objdetect.services.context_pool import ContextPool, PoolClosedError
from objdetect.services.decoder import OutputLayout, decode_output, resolve_layout
from objdetect.utils.image import PAD_VALUE, letterbox, to_tensor
from objdetect.utils.model_utils import detect_model_type, get_backend_class


DEFAULT_CONFIDENCE_THRESHOLD = 0.3
DEFAULT_INPUT_SIZE = (640, 640)

BackendFactory = Callable[..., ForwardPass]


@dataclass(frozen=True)
class EngineHandle:
    """
    A loaded model and everything needed to run it.

    Immutable after ``load``; the only mutable part is the pool of
    execution contexts, which hands each context to one caller at a time.

    Attributes:
        model_name: Name used in logs and errors.
        model_path: Path the model was loaded from.
        labels: Label table aligned with the model's class dimension.
        input_size: Model input (width, height).
        layout: Resolved layout of the model's primary output.
        pool: Execution contexts for forward passes.
        pad_value: Grey level used for letterbox padding.
    """

    model_name: str
    model_path: str
    labels: LabelTable
    input_size: Tuple[int, int]
    layout: OutputLayout
    pool: ContextPool = field(repr=False, compare=False)
    pad_value: int = PAD_VALUE

    @property
    def num_classes(self) -> int:
        return len(self.labels)

    @property
    def closed(self) -> bool:
        return self.pool.closed


def _resolve_backend(name: str, path: Path) -> BackendFactory:
    model_type = detect_model_type(str(path))
    if model_type is None:
        raise ModelLoadError(name, f"No backend registered for model file {path.name}")
    try:
        return get_backend_class(model_type)
    except ImportError as e:
        raise ModelLoadError(name, f"Backend for {model_type} models is not installed: {e}") from e


def _resolve_output_layout(
    name: str,
    context: ForwardPass,
    input_size: Tuple[int, int],
    num_classes: int,
    preferred: str
) -> OutputLayout:
    # One forward pass on a blank canvas validates topology against the labels.
    width, height = input_size
    tensor = np.full((1, 3, height, width), PAD_VALUE / 255.0, dtype=np.float32)
    outputs = context.forward(tensor)
    if not outputs:
        raise ModelLoadError(name, "Model produced no outputs")

    try:
        return resolve_layout(np.shape(outputs[0]), num_classes, preferred)
    except ValueError as e:
        raise ModelLoadError(name, f"Model topology does not match label table: {e}") from e


def load(
    model_path: Union[str, Path],
    labels: Optional[Union[LabelTable, Sequence[str]]] = None,
    input_size: Optional[Tuple[int, int]] = None,
    pool_size: int = 1,
    output_layout: str = "auto",
    device: str = "cpu",
    backend_factory: Optional[BackendFactory] = None,
    model_name: Optional[str] = None
) -> EngineHandle:
    """
    Load a model artifact into a new EngineHandle.

    This is the only engine operation that touches the filesystem.
    On failure, every execution context created so far is closed and
    no handle is returned.

    Args:
        model_path: Path to the model file (.onnx, .pt, ...).
        labels: Explicit label table. Defaults to a sidecar file, the
            backend's embedded names, or COCO-80.
        input_size: Model input (width, height). Defaults to the size
            declared by the backend, else 640x640.
        pool_size: Number of execution contexts for concurrent calls.
        output_layout: "auto" or a layout name from the decoder module.
        device: Backend device string.
        backend_factory: Callable ``factory(model_path, device=...)``
            creating one execution context. Defaults to the backend
            registered for the file extension.
        model_name: Name for logs and errors. Defaults to the file stem.

    Returns:
        A ready-to-use EngineHandle.

    Raises:
        ModelLoadError: If the file is missing, unreadable, of an
            unsupported type, fails to parse, or its topology does not
            match the label table.
    """
    path = Path(model_path)
    name = model_name or path.stem

    if not path.exists():
        raise ModelLoadError(name, f"Model file not found: {path}")
    if not path.is_file():
        raise ModelLoadError(name, f"Model path is not a file: {path}")
    if not os.access(path, os.R_OK):
        raise ModelLoadError(name, f"Model file is not readable: {path}")

    if backend_factory is None:
        backend_factory = _resolve_backend(name, path)

    print(f"[{name}] Loading model from {path}...")
    start_time = time.time()

    try:
        pool = ContextPool(
            lambda: backend_factory(str(path), device=device),
            size=pool_size,
            name=name
        )
    except ModelLoadError:
        raise
    except Exception as e:
        raise ModelLoadError(name, str(e)) from e

    try:
        first = pool.contexts[0]
        table = resolve_label_table(path, labels, first.class_names)
        size = tuple(input_size or first.input_size or DEFAULT_INPUT_SIZE)
        layout = _resolve_output_layout(name, first, size, len(table), output_layout)
    except ModelLoadError:
        pool.close()
        raise
    except Exception as e:
        pool.close()
        raise ModelLoadError(name, str(e)) from e

    elapsed = time.time() - start_time
    print(
        f"[{name}] Model loaded in {elapsed:.2f}s "
        f"({len(table)} classes, {layout.kind} output, {pool_size} context(s))"
    )

    return EngineHandle(
        model_name=name,
        model_path=str(path),
        labels=table,
        input_size=size,
        layout=layout,
        pool=pool,
    )


def run(
    handle: EngineHandle,
    raster: Raster,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    deadline: Optional[Deadline] = None
) -> List[Detection]:
    """
    Detect objects in a raster.

    Args:
        handle: Engine returned by ``load``.
        raster: Image to analyse; not modified.
        confidence_threshold: Minimum confidence in [0, 1].
        deadline: Optional time budget and cancellation event.

    Returns:
        Detections in original-image coordinates, in candidate order.
        Overlapping duplicates are not removed here; see
        ``objdetect.services.postprocess.suppress``.

    Raises:
        InvalidThreshold: If the threshold is outside [0, 1]. No
            inference is attempted.
        InferenceError: If the backend fails or its output cannot be
            decoded.
        Cancelled: If the deadline expires or the call is cancelled.
    """
    confidence_threshold = check_threshold("confidence_threshold", confidence_threshold)
    name = handle.model_name

    if handle.closed:
        raise InferenceError(name, "Engine has been closed")

    if deadline is None:
        deadline = Deadline()

    deadline.check(name, "preprocessing")
    canvas, transform = letterbox(raster, handle.input_size, handle.pad_value)
    tensor = to_tensor(canvas)

    deadline.check(name, "forward pass")
    is_cancelled = (lambda: deadline.cancelled) if deadline.event is not None else None
    try:
        with handle.pool.checkout(timeout=deadline.remaining(), is_cancelled=is_cancelled) as context:
            deadline.check(name, "forward pass")
            try:
                outputs = context.forward(tensor)
            except Exception as e:
                raise InferenceError(name, f"Forward pass failed: {e}") from e
    except PoolClosedError as e:
        raise InferenceError(name, "Engine has been closed") from e

    # Results that arrive after expiry are discarded
    deadline.check(name, "output decoding")

    if not outputs:
        raise InferenceError(name, "Forward pass returned no outputs")

    try:
        candidates = decode_output(
            outputs[0],
            handle.layout,
            handle.num_classes,
            confidence_threshold
        )
    except ValueError as e:
        raise InferenceError(name, f"Could not decode model output: {e}") from e

    boxes = transform.invert_boxes(candidates.boxes)

    return [
        Detection(
            x_min=float(box[0]),
            y_min=float(box[1]),
            x_max=float(box[2]),
            y_max=float(box[3]),
            class_id=int(class_id),
            confidence=float(score),
        )
        for box, score, class_id in zip(boxes, candidates.scores, candidates.class_ids)
    ]


def close(handle: EngineHandle) -> None:
    """Release every execution context held by a handle."""
    handle.pool.close()
