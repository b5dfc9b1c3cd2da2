# -*- coding: utf-8 -*-
"""
PyTorch backend implementation.

This module provides a concrete implementation of the ForwardPass
interface for Ultralytics YOLO checkpoints (.pt / .torchscript).
Only the raw network is used: Ultralytics' own preprocessing and
non-max suppression are bypassed so that the engine's letterbox,
decoding and suppression apply uniformly to every backend.
"""

import os
from typing import Any, List, Optional

import numpy as np
import torch
from ultralytics.nn.autobackend import AutoBackend

from objdetect.core.interfaces import ForwardPass
from objdetect.core.exceptions import ModelLoadError


class TorchYoloBackend(ForwardPass):
    """
    Execution context wrapping an Ultralytics ``AutoBackend``.

    Attributes:
        device: Torch device the model runs on.
        model: The loaded AutoBackend module.
    """

    def __init__(self, model_path: str, device: str = "cpu", **kwargs) -> None:
        """
        Load a YOLO checkpoint.

        Args:
            model_path: Path to the checkpoint.
            device: Torch device string ("cpu", "cuda:0", ...).
            **kwargs: Ignored; accepted for a uniform backend signature.

        Raises:
            ModelLoadError: If the checkpoint cannot be loaded.
        """
        name = os.path.splitext(os.path.basename(model_path))[0]

        try:
            self.device = torch.device(device)
            self.model = AutoBackend(model_path, device=self.device, fp16=False, verbose=False)
            self.model.eval()
        except Exception as e:
            raise ModelLoadError(name, f"Could not load checkpoint {model_path}: {e}") from e

        self._names = _names_to_list(getattr(self.model, "names", None))

    @property
    def class_names(self) -> Optional[List[str]]:
        return self._names

    def forward(self, tensor: np.ndarray) -> List[np.ndarray]:
        image = torch.from_numpy(tensor).to(self.device)
        with torch.inference_mode():
            output = self.model(image)
        return [_to_numpy(o) for o in _flatten_outputs(output)]

    def close(self) -> None:
        self.model = None
        if self.device.type == "cuda":
            torch.cuda.empty_cache()


def _names_to_list(names: Any) -> Optional[List[str]]:
    if isinstance(names, dict) and names:
        return [str(names[k]) for k in sorted(names)]
    if isinstance(names, (list, tuple)) and names:
        return [str(n) for n in names]
    return None


def _flatten_outputs(output: Any) -> List[Any]:
    # Training-style heads return (predictions, feature_maps); keep only
    # the top-level arrays.
    if isinstance(output, (list, tuple)):
        return [o for o in output if isinstance(o, (torch.Tensor, np.ndarray))]
    return [output]


def _to_numpy(value: Any) -> np.ndarray:
    if isinstance(value, torch.Tensor):
        return value.detach().float().cpu().numpy()
    return np.asarray(value, dtype=np.float32)
