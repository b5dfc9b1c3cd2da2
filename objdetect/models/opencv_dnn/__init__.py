# -*- coding: utf-8 -*-
"""OpenCV DNN backend for ONNX models."""

from objdetect.models.opencv_dnn.backend import OpenCVDnnBackend

__all__ = ["OpenCVDnnBackend"]
