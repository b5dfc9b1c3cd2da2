# -*- coding: utf-8 -*-
"""
Custom exception classes for objdetect.

This module defines a hierarchy of custom exceptions for better
error handling and debugging throughout the application.

Exception Hierarchy:
    - ImageProcessingError (decode/encode stage)
        - UnsupportedFormat
        - CorruptData
    - ModelError (inference stage)
        - ModelLoadError
        - InferenceError
        - Cancelled
    - InvalidThreshold
    - ConfigurationError
    - UnknownClassId (fatal, model/label table mismatch)
    - PipelineError (stage-tagged wrapper returned to callers)

Example:
    >>> from objdetect.core.exceptions import ModelLoadError
    >>> raise ModelLoadError("yolov10s", "yolov10s.onnx not found")
"""

from typing import Optional


class ImageProcessingError(Exception):
    """
    Exception raised for image processing errors.

    This includes decoding errors, format issues, or
    transformation failures.

    Attributes:
        message: Human-readable error message.
        original_error: The original exception, if any.

    Example:
        >>> raise ImageProcessingError("Invalid base64 encoding")
    """

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None
    ) -> None:
        """
        Initialize ImageProcessingError.

        Args:
            message: A descriptive error message.
            original_error: The underlying exception, if any.
        """
        self.message = message
        self.original_error = original_error
        super().__init__(message)


class UnsupportedFormat(ImageProcessingError):
    """
    Raised when a buffer's header matches no supported container format,
    or when an output format is not registered with the encoder.
    """

    pass


class CorruptData(ImageProcessingError):
    """
    Raised when a buffer claims a supported format but is empty,
    truncated or otherwise malformed.
    """

    pass


class ModelError(Exception):
    """
    Base exception for model-related errors.

    All model-specific exceptions should inherit from this class
    to allow for broad exception catching when needed.

    Attributes:
        model_name: Name of the model that caused the error.
        message: Human-readable error message.
    """

    def __init__(self, model_name: str, message: str) -> None:
        """
        Initialize ModelError.

        Args:
            model_name: The name of the model that caused the error.
            message: A descriptive error message.
        """
        self.model_name = model_name
        self.message = message
        super().__init__(f"[{model_name}] {message}")


class ModelLoadError(ModelError):
    """
    Exception raised when a model fails to load.

    This can occur due to a missing or unreadable model file, an
    unknown model format, or a topology that disagrees with the
    label table.

    Example:
        >>> raise ModelLoadError("yolov10s", "yolov10s.onnx not found")
    """

    pass


class InferenceError(ModelError):
    """
    Exception raised when inference fails.

    This can occur due to backend failures during the forward
    pass or an output tensor that cannot be decoded.

    Example:
        >>> raise InferenceError("yolov10s", "Unexpected output shape (1, 7)")
    """

    pass


class Cancelled(ModelError):
    """
    Exception raised when a run exceeds its deadline or its
    cancellation event is set.
    """

    pass


class InvalidThreshold(ValueError):
    """
    Exception raised when a confidence or IoU threshold is outside [0, 1].

    Attributes:
        name: Name of the threshold parameter.
        value: The rejected value.
    """

    def __init__(self, name: str, value: object) -> None:
        self.name = name
        self.value = value
        super().__init__(f"{name} must be a number in [0, 1], got {value!r}")


class ConfigurationError(Exception):
    """
    Exception raised for configuration-related errors.

    This includes missing configuration files, invalid values,
    or schema validation failures.

    Attributes:
        config_key: The configuration key that caused the error.
        message: Human-readable error message.

    Example:
        >>> raise ConfigurationError("engine.pool_size", "Must be >= 1")
    """

    def __init__(self, config_key: str, message: str) -> None:
        """
        Initialize ConfigurationError.

        Args:
            config_key: The configuration key that caused the error.
            message: A descriptive error message.
        """
        self.config_key = config_key
        self.message = message
        super().__init__(f"Configuration error [{config_key}]: {message}")


class UnknownClassId(LookupError):
    """
    Raised when a detection's class id has no entry in the label table.

    This signals that a model and its label table disagree. It is not
    part of the recoverable hierarchies above and is never wrapped in
    a PipelineError.

    Attributes:
        class_id: The class id that could not be resolved.
        table_size: Number of entries in the label table.
    """

    def __init__(self, class_id: int, table_size: int) -> None:
        self.class_id = class_id
        self.table_size = table_size
        super().__init__(
            f"Class id {class_id} is out of range for a label table "
            f"with {table_size} entries"
        )


class PipelineError(Exception):
    """
    Stage-tagged failure of a whole decode/infer/postprocess/encode request.

    Attributes:
        stage: Name of the failing stage ("decode", "inference",
            "postprocess" or "encode").
        cause: The underlying typed error.
    """

    def __init__(self, stage: str, cause: Exception) -> None:
        self.stage = stage
        self.cause = cause
        super().__init__(f"{stage} failed: {cause}")
