# -*- coding: utf-8 -*-
"""
Pydantic request and response schemas.

This module defines the data models used for API request
validation and response serialization.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class ImageRequest(BaseModel):
    """
    Request model for the detection endpoints.

    Attributes:
        image_base64: Base64-encoded image string.
                     Can optionally include data URI prefix.
        confidence_threshold: Overrides the configured confidence threshold.
        iou_threshold: Overrides the configured suppression threshold.
    """

    image_base64: str = Field(
        ...,
        description="Base64-encoded image, optionally with data URI prefix"
    )
    confidence_threshold: Optional[float] = Field(
        default=None,
        description="Minimum detection confidence in [0, 1]"
    )
    iou_threshold: Optional[float] = Field(
        default=None,
        description="Suppression overlap threshold in [0, 1]"
    )

    class Config:
        """Pydantic configuration."""

        json_schema_extra = {
            "example": {
                "image_base64": "data:image/jpeg;base64,/9j/4AAQSkZJRg...",
                "confidence_threshold": 0.3,
                "iou_threshold": 0.45
            }
        }


class HealthResponse(BaseModel):
    """
    Response model for health check endpoint.

    Attributes:
        status: Current health status.
        timestamp: Unix timestamp of the response.
        model_loaded: Whether the engine is currently in memory.
    """

    status: str = Field(..., description="Health status")
    timestamp: float = Field(..., description="Response timestamp")
    model_loaded: bool = Field(default=False, description="Engine loaded")

    class Config:
        """Pydantic configuration."""

        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": 1706367600.0,
                "model_loaded": True
            }
        }


class DetectionResult(BaseModel):
    """
    Model for a single detection result.

    Attributes:
        confidence: Detection confidence score as string.
        label: Detected class label.
        points: Bounding box coordinates [x1, y1, x2, y2].
        type: Shape type.
    """

    confidence: str = Field(..., description="Confidence score as string")
    label: str = Field(..., description="Class label")
    points: List[float] = Field(..., description="Bounding box coordinates")
    type: str = Field(default="rectangle", description="Shape type")

    class Config:
        """Pydantic configuration."""

        json_schema_extra = {
            "example": {
                "confidence": "0.95",
                "label": "person",
                "points": [100.0, 150.0, 300.0, 450.0],
                "type": "rectangle"
            }
        }
