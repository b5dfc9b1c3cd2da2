# -*- coding: utf-8 -*-
"""PyTorch backend for Ultralytics YOLO checkpoints."""

from objdetect.models.torch_yolo.backend import TorchYoloBackend

__all__ = ["TorchYoloBackend"]
