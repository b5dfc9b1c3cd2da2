# -*- coding: utf-8 -*-
"""API request/response schemas."""

from objdetect.api.schemas.requests import ImageRequest, HealthResponse, DetectionResult

__all__ = ["ImageRequest", "HealthResponse", "DetectionResult"]
