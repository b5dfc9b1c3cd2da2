# -*- coding: utf-8 -*-
"""
Core module for objdetect.

This module contains the value types, the backend interface,
configuration management, and custom exception classes.
"""

from objdetect.core.interfaces import ForwardPass
from objdetect.core.config import Settings, get_settings
from objdetect.core.labels import LabelTable
from objdetect.core.types import Detection, Raster
from objdetect.core.exceptions import (
    ImageProcessingError,
    UnsupportedFormat,
    CorruptData,
    ModelError,
    ModelLoadError,
    InferenceError,
    Cancelled,
    InvalidThreshold,
    ConfigurationError,
    UnknownClassId,
    PipelineError,
)

__all__ = [
    "ForwardPass",
    "Settings",
    "get_settings",
    "LabelTable",
    "Detection",
    "Raster",
    "ImageProcessingError",
    "UnsupportedFormat",
    "CorruptData",
    "ModelError",
    "ModelLoadError",
    "InferenceError",
    "Cancelled",
    "InvalidThreshold",
    "ConfigurationError",
    "UnknownClassId",
    "PipelineError",
]
