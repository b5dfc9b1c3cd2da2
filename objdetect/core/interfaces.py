# -*- coding: utf-8 -*-
"""
Base interface for numeric inference backends.

The engine never touches a neural-network runtime directly. It talks to
a ForwardPass: an execution context that takes one input tensor and
returns the raw output tensors. Everything before (letterboxing, tensor
preparation) and after (output decoding, suppression, rendering) is
backend independent, so tests can drive the whole pipeline with a
deterministic stand-in.

Example:
    >>> from objdetect.core.interfaces import ForwardPass
    >>> class ZeroBackend(ForwardPass):
    ...     def __init__(self, model_path, **kwargs):
    ...         pass
    ...     def forward(self, tensor):
    ...         return [np.zeros((1, 300, 6), dtype=np.float32)]
"""

import inspect
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple, Type

import numpy as np


class ForwardPass(ABC):
    """
    Abstract base class for backend execution contexts.

    One instance is one execution context. The engine pools instances
    and never calls ``forward`` on the same instance from two threads
    at once, so implementations need not be thread-safe.

    Subclasses are constructed as ``cls(model_path, device=...)`` and
    must raise an exception from the constructor if the model cannot
    be loaded.
    """

    @abstractmethod
    def forward(self, tensor: np.ndarray) -> List[np.ndarray]:
        """
        Run the network on one input tensor.

        Args:
            tensor: float32 array of shape (1, 3, H, W), RGB, values in [0, 1].

        Returns:
            Raw output tensors. The engine decodes the first one.
        """
        pass

    @property
    def class_names(self) -> Optional[List[str]]:
        """Class names embedded in the model file, if the format carries them."""
        return None

    @property
    def input_size(self) -> Optional[Tuple[int, int]]:
        """Declared (width, height) input resolution, if the format carries it."""
        return None

    def close(self) -> None:
        """Release backend resources. Called once when the engine closes."""
        pass


def register_model_class(cls: Type) -> None:
    """
    Validate a backend class before it is registered.

    Args:
        cls: The class to validate.

    Raises:
        TypeError: If the class does not implement ForwardPass or is
            still abstract.

    Example:
        >>> register_model_class(ZeroBackend)  # OK
        >>> register_model_class(dict)  # Raises TypeError
    """
    if not (inspect.isclass(cls) and issubclass(cls, ForwardPass)):
        raise TypeError(
            f"Class {getattr(cls, '__name__', cls)!r} must implement "
            f"{ForwardPass.__name__}."
        )
    if inspect.isabstract(cls):
        raise TypeError(
            f"Class {cls.__name__} does not implement all abstract methods of "
            f"{ForwardPass.__name__}."
        )
