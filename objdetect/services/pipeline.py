# -*- coding: utf-8 -*-
"""
End-to-end detection pipeline.

    bytes -> decode -> run -> suppress -> render -> encode -> bytes

Recoverable failures are re-raised as a single PipelineError naming
the failing stage. UnknownClassId is a model/label table mismatch and
propagates unchanged. Nothing produced by earlier stages is returned
when a later stage fails.
"""

from typing import List, Optional

from objdetect.core.exceptions import (
    ImageProcessingError,
    InvalidThreshold,
    ModelError,
    PipelineError,
)
from objdetect.core.types import Detection, Raster
from objdetect.services import engine
from objdetect.services.cancellation import Deadline
from objdetect.services.engine import DEFAULT_CONFIDENCE_THRESHOLD, EngineHandle
from objdetect.services.postprocess import DEFAULT_IOU_THRESHOLD, render, suppress
from objdetect.utils.image import decode, encode

RECOVERABLE_ERRORS = (ImageProcessingError, ModelError, InvalidThreshold)


def _decode_stage(data: bytes) -> Raster:
    try:
        return decode(data)
    except RECOVERABLE_ERRORS as e:
        raise PipelineError("decode", e) from e


def _detect_stage(
    raster: Raster,
    handle: EngineHandle,
    confidence_threshold: float,
    iou_threshold: float,
    deadline: Optional[Deadline]
) -> List[Detection]:
    try:
        detections = engine.run(handle, raster, confidence_threshold, deadline=deadline)
    except RECOVERABLE_ERRORS as e:
        raise PipelineError("inference", e) from e

    try:
        return suppress(detections, iou_threshold)
    except RECOVERABLE_ERRORS as e:
        raise PipelineError("postprocess", e) from e


def detect_image(
    data: bytes,
    handle: EngineHandle,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    iou_threshold: float = DEFAULT_IOU_THRESHOLD,
    deadline: Optional[Deadline] = None
) -> List[Detection]:
    """
    Decode an image, detect objects and remove duplicates.

    Args:
        data: Encoded image bytes.
        handle: Loaded engine.
        confidence_threshold: Minimum detection confidence.
        iou_threshold: Suppression overlap threshold.
        deadline: Optional deadline for the inference stage.

    Returns:
        Suppressed detections, highest confidence first.

    Raises:
        PipelineError: If any stage fails.
    """
    raster = _decode_stage(data)
    return _detect_stage(raster, handle, confidence_threshold, iou_threshold, deadline)


def process_image(
    data: bytes,
    handle: EngineHandle,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    iou_threshold: float = DEFAULT_IOU_THRESHOLD,
    output_format: str = "png",
    deadline: Optional[Deadline] = None,
    thickness: int = 2,
    font_scale: float = 0.5
) -> bytes:
    """
    Detect objects in an encoded image and return the annotated image.

    Args:
        data: Encoded image bytes; the format is sniffed from content.
        handle: Loaded engine.
        confidence_threshold: Minimum detection confidence.
        iou_threshold: Suppression overlap threshold.
        output_format: Encoded output format.
        deadline: Optional deadline for the inference stage.
        thickness: Box outline thickness.
        font_scale: Label font scale.

    Returns:
        Encoded annotated image.

    Raises:
        PipelineError: If a stage fails; ``stage`` names it.
        UnknownClassId: If the model produced a class id missing from
            its label table.
    """
    print(f"Processing image: {len(data)} bytes")

    raster = _decode_stage(data)
    kept = _detect_stage(raster, handle, confidence_threshold, iou_threshold, deadline)

    try:
        annotated = render(raster, kept, handle.labels, thickness=thickness, font_scale=font_scale)
    except RECOVERABLE_ERRORS as e:
        raise PipelineError("postprocess", e) from e

    try:
        output = encode(annotated, output_format)
    except RECOVERABLE_ERRORS as e:
        raise PipelineError("encode", e) from e

    print(f"Successfully processed image, output size: {len(output)} bytes")
    return output
