# -*- coding: utf-8 -*-
"""Services module for inference, postprocessing and model lifecycle."""

from objdetect.services.engine import EngineHandle, load, run, close
from objdetect.services.model_loader import LazyModelWrapper
from objdetect.services.pipeline import detect_image, process_image
from objdetect.services.postprocess import render, suppress

__all__ = [
    "EngineHandle",
    "load",
    "run",
    "close",
    "LazyModelWrapper",
    "detect_image",
    "process_image",
    "render",
    "suppress",
]
