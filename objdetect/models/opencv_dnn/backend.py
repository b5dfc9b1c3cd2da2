# -*- coding: utf-8 -*-
"""
OpenCV DNN backend implementation.

This module provides a concrete implementation of the ForwardPass
interface that runs ONNX exports (YOLOv5/v8/v10/v11) through
``cv2.dnn``.

A ``cv2.dnn.Net`` keeps per-call state between ``setInput`` and
``forward``, so one instance must never be shared by concurrent
callers. The engine's context pool guarantees this.
"""

import os
from typing import List

import cv2
import numpy as np

from objdetect.core.interfaces import ForwardPass
from objdetect.core.exceptions import ModelLoadError


class OpenCVDnnBackend(ForwardPass):
    """
    ONNX execution context backed by OpenCV's DNN module.

    Attributes:
        net: The loaded network.
        output_names: Names of the network's output layers.

    Example:
        >>> backend = OpenCVDnnBackend("models/yolov10s.onnx")
        >>> outputs = backend.forward(np.zeros((1, 3, 640, 640), np.float32))
        >>> outputs[0].shape
        (1, 300, 6)
    """

    def __init__(self, model_path: str, device: str = "cpu", **kwargs) -> None:
        """
        Load an ONNX model.

        Args:
            model_path: Path to the .onnx file.
            device: "cpu" or a CUDA device string such as "cuda:0".
            **kwargs: Ignored; accepted for a uniform backend signature.

        Raises:
            ModelLoadError: If OpenCV cannot parse the model.
        """
        name = os.path.splitext(os.path.basename(model_path))[0]

        try:
            self.net = cv2.dnn.readNetFromONNX(model_path)
        except cv2.error as e:
            raise ModelLoadError(name, f"OpenCV could not parse {model_path}: {e}") from e

        if self.net.empty():
            raise ModelLoadError(name, f"OpenCV returned an empty network for {model_path}")

        if device.startswith("cuda"):
            self.net.setPreferableBackend(cv2.dnn.DNN_BACKEND_CUDA)
            self.net.setPreferableTarget(cv2.dnn.DNN_TARGET_CUDA)
        else:
            self.net.setPreferableBackend(cv2.dnn.DNN_BACKEND_OPENCV)
            self.net.setPreferableTarget(cv2.dnn.DNN_TARGET_CPU)

        self.output_names = list(self.net.getUnconnectedOutLayersNames())

    def forward(self, tensor: np.ndarray) -> List[np.ndarray]:
        self.net.setInput(tensor)
        outputs = self.net.forward(self.output_names)
        return [np.asarray(o) for o in outputs]

    def close(self) -> None:
        self.net = None
