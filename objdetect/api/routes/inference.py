# -*- coding: utf-8 -*-
"""
Inference route handlers.

This module defines the API endpoints for model inference.

Endpoints:
    - POST /infer: Detect objects in an image
    - POST /annotate: Return the image with detections drawn on it
    - GET /health: Health check endpoint
"""

import time
from typing import Any, Dict, List

from fastapi import APIRouter, HTTPException, Request, Response

from objdetect.api.schemas.requests import DetectionResult, ImageRequest, HealthResponse
from objdetect.core.exceptions import (
    Cancelled,
    CorruptData,
    InferenceError,
    InvalidThreshold,
    ModelLoadError,
    PipelineError,
    UnknownClassId,
    UnsupportedFormat,
)
from objdetect.services.model_loader import LazyModelWrapper
from objdetect.utils.image import MIME_TYPES, decode_base64, normalize_format


router = APIRouter(tags=["Inference"])

# Checked in order; subclasses before their bases.
ERROR_STATUS = (
    (UnsupportedFormat, 415),
    (CorruptData, 400),
    (InvalidThreshold, 422),
    (ModelLoadError, 503),
    (Cancelled, 504),
    (InferenceError, 500),
    (UnknownClassId, 500),
)


def _get_model(request: Request) -> LazyModelWrapper:
    model = getattr(request.app.state, "model", None)
    if model is None:
        raise HTTPException(
            status_code=503,
            detail="Model wrapper not configured. Server may still be starting."
        )
    return model


def _to_http_error(error: Exception) -> HTTPException:
    """Map a detection failure onto an HTTP status code."""
    if isinstance(error, PipelineError):
        error = error.cause
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))


@router.get("/health", response_model=HealthResponse)
def health_check(request: Request) -> Dict[str, Any]:
    """
    Health check endpoint.

    Returns the health status of the API server.

    Returns:
        Dictionary with status, timestamp and whether the model is loaded.
    """
    model = getattr(request.app.state, "model", None)
    return {
        "status": "healthy",
        "timestamp": time.time(),
        "model_loaded": model is not None and model.is_loaded
    }


@router.post("/infer", response_model=List[DetectionResult])
def infer(body: ImageRequest, request: Request) -> List[Dict[str, Any]]:
    """
    Perform inference on a base64-encoded image.

    This endpoint accepts a base64-encoded image and returns
    detection results in CVAT-compatible format.

    If the model is not loaded, it will be loaded automatically
    on first request (lazy initialization).

    Args:
        body: ImageRequest containing the base64 image.

    Returns:
        List of detections, each containing:
            - confidence: Detection confidence as string
            - label: Class label
            - points: Bounding box coordinates [x1, y1, x2, y2]
            - type: Shape type (always "rectangle")

    Raises:
        HTTPException: 4xx for bad input, 5xx if the model fails.
    """
    model = _get_model(request)

    try:
        data = decode_base64(body.image_base64)
        with model.session() as handle:
            detections = model.detect(
                data,
                confidence_threshold=body.confidence_threshold,
                iou_threshold=body.iou_threshold
            )
            return [detection.to_dict(handle.labels) for detection in detections]
    except (CorruptData, ModelLoadError, PipelineError, UnknownClassId) as e:
        raise _to_http_error(e) from e


@router.post("/annotate")
def annotate(body: ImageRequest, request: Request) -> Response:
    """
    Draw detections onto a base64-encoded image.

    Args:
        body: ImageRequest containing the base64 image.

    Returns:
        The annotated image, encoded in the configured output format.

    Raises:
        HTTPException: 4xx for bad input, 5xx if the model fails.
    """
    model = _get_model(request)

    try:
        data = decode_base64(body.image_base64)
        content = model.annotate(
            data,
            confidence_threshold=body.confidence_threshold,
            iou_threshold=body.iou_threshold
        )
    except (CorruptData, ModelLoadError, PipelineError, UnknownClassId) as e:
        raise _to_http_error(e) from e

    media_type = MIME_TYPES.get(
        normalize_format(model.render_config.output_format), "application/octet-stream"
    )
    return Response(content=content, media_type=media_type)
