# -*- coding: utf-8 -*-
"""
Shared utilities for model artifact detection.

Backends are registered against model file extensions and imported
lazily so that, for example, an ONNX-only deployment does not need
PyTorch installed.
"""

import importlib
import os
from typing import Dict, Optional, Tuple, Type

from objdetect.core.interfaces import ForwardPass, register_model_class

# extension -> (module, class name)
BACKEND_MODULES: Dict[str, Tuple[str, str]] = {
    ".onnx": ("objdetect.models.opencv_dnn.backend", "OpenCVDnnBackend"),
    ".pt": ("objdetect.models.torch_yolo.backend", "TorchYoloBackend"),
    ".torchscript": ("objdetect.models.torch_yolo.backend", "TorchYoloBackend"),
}


def detect_model_type(model_path: str) -> Optional[str]:
    """
    Detect the model format from the artifact's file extension.

    Args:
        model_path: Path to the model file.

    Returns:
        The registered extension (e.g. ".onnx") or None if unsupported.
    """
    ext = os.path.splitext(model_path)[1].lower()
    if ext in BACKEND_MODULES:
        return ext
    return None


def get_backend_class(model_type: str) -> Type[ForwardPass]:
    """
    Import and validate the backend class registered for a model type.

    Raises:
        KeyError: If the model type is not registered.
        ImportError: If the backend's runtime library is not installed.
        TypeError: If the registered class does not implement ForwardPass.
    """
    module_name, class_name = BACKEND_MODULES[model_type]
    module = importlib.import_module(module_name)
    cls = getattr(module, class_name)
    register_model_class(cls)
    return cls


def is_supported_model(model_path: str) -> bool:
    """
    Check if a file has a registered backend.
    """
    return detect_model_type(model_path) is not None
