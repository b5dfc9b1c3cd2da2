# -*- coding: utf-8 -*-
"""
Configuration management for objdetect.

This module provides centralized configuration management using Pydantic
settings with YAML file support. Selected values can be overridden
via environment variables.

Configuration Files:
    - config/objdetect.yaml: Server, engine and rendering settings

Environment Variables:
    - OBJDETECT_CONFIG_PATH: Path to the YAML file (default: config/objdetect.yaml)
    - OBJDETECT_SERVER_HOST: Server host (default: 0.0.0.0)
    - OBJDETECT_SERVER_PORT: Server port (default: 5001)
    - OBJDETECT_MODEL_PATH: Model artifact path (default: models/yolov10s.onnx)
    - OBJDETECT_DEVICE: Inference device (default: cpu)

Example:
    >>> from objdetect.core.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.engine.confidence_threshold)
    0.3
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import BaseModel, Field, ValidationError

from objdetect.core.exceptions import ConfigurationError


DEFAULT_CONFIG_PATH = "config/objdetect.yaml"

OUTPUT_LAYOUTS = ("auto", "objectness", "class_scores", "end_to_end")


class ServerConfig(BaseModel):
    """
    Server configuration settings.

    Attributes:
        host: The host address to bind the server to.
        port: The port to bind the server to.
    """

    host: str = Field(default="0.0.0.0", description="Server host address")
    port: int = Field(default=5001, ge=1, le=65535, description="Server port")


class EngineConfig(BaseModel):
    """
    Inference engine configuration.

    Attributes:
        model_path: Path to the model artifact (.onnx or .pt).
        model_name: Display name used in logs and errors (defaults to the file stem).
        input_width: Model input width in pixels.
        input_height: Model input height in pixels.
        confidence_threshold: Default minimum detection confidence.
        iou_threshold: Default overlap threshold for suppression.
        pool_size: Number of execution contexts for concurrent requests.
        device: Device the backend runs on ("cpu", "cuda:0", ...).
        output_layout: Raw output layout, or "auto" to infer it from the shape.
        classes: Explicit label table.
        labels_path: Path to a label file, used when classes is not set.
        idle_timeout_seconds: Time in seconds before unloading an idle model.
        deadline_seconds: Per-request inference deadline, or None for no limit.
    """

    model_path: str = Field(
        default="models/yolov10s.onnx",
        description="Path to the model artifact"
    )
    model_name: Optional[str] = Field(default=None, description="Model display name")
    input_width: int = Field(default=640, ge=32, description="Model input width")
    input_height: int = Field(default=640, ge=32, description="Model input height")
    confidence_threshold: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Default minimum confidence"
    )
    iou_threshold: float = Field(
        default=0.45,
        ge=0.0,
        le=1.0,
        description="Default suppression overlap threshold"
    )
    pool_size: int = Field(default=1, ge=1, description="Execution contexts to pool")
    device: str = Field(default="cpu", description="Inference device")
    output_layout: str = Field(default="auto", description="Raw output layout")
    classes: Optional[List[str]] = Field(default=None, description="Class names")
    labels_path: Optional[str] = Field(default=None, description="Label file path")
    idle_timeout_seconds: int = Field(
        default=300,
        ge=1,
        description="Idle timeout before model unload"
    )
    deadline_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Per-request inference deadline"
    )

    @property
    def input_size(self) -> Tuple[int, int]:
        """Return (width, height)."""
        return (self.input_width, self.input_height)

    @property
    def display_name(self) -> str:
        return self.model_name or Path(self.model_path).stem


class RenderConfig(BaseModel):
    """
    Annotation rendering configuration.

    Attributes:
        thickness: Box outline thickness in pixels.
        font_scale: OpenCV Hershey font scale for labels.
        output_format: Encoded output format.
    """

    thickness: int = Field(default=2, ge=1, description="Box line thickness")
    font_scale: float = Field(default=0.5, gt=0, description="Label font scale")
    output_format: str = Field(default="png", description="Output image format")


class Settings(BaseModel):
    """
    Application settings container.

    Attributes:
        server: Server configuration.
        engine: Inference engine configuration.
        render: Rendering configuration.
    """

    server: ServerConfig = Field(default_factory=ServerConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)

    class Config:
        """Pydantic configuration."""

        extra = "ignore"


ENV_OVERRIDES = {
    "OBJDETECT_SERVER_HOST": ("server", "host"),
    "OBJDETECT_SERVER_PORT": ("server", "port"),
    "OBJDETECT_MODEL_PATH": ("engine", "model_path"),
    "OBJDETECT_DEVICE": ("engine", "device"),
}


def get_config_path() -> str:
    """Get the configuration file path."""
    return os.getenv("OBJDETECT_CONFIG_PATH", DEFAULT_CONFIG_PATH)


def load_yaml_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Dictionary containing the parsed YAML configuration.
        Returns empty dict if file doesn't exist.

    Raises:
        ConfigurationError: If the YAML file is malformed.
    """
    path = Path(config_path)
    if not path.exists():
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(str(path), f"Malformed YAML: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "Top-level YAML value must be a mapping")
    return data


def save_yaml_config(config: Dict[str, Any], config_path: Optional[str] = None) -> None:
    """
    Save configuration to a YAML file.

    Args:
        config: Configuration dictionary to save.
        config_path: Path to the YAML configuration file.
    """
    if config_path is None:
        config_path = get_config_path()

    path = Path(config_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(config, f, default_flow_style=False, allow_unicode=True, sort_keys=False)


def build_settings(config: Dict[str, Any]) -> Settings:
    """
    Validate a configuration dictionary.

    Args:
        config: Raw configuration, e.g. parsed YAML.

    Returns:
        Validated Settings.

    Raises:
        ConfigurationError: If a value fails validation. The key of the
            first failing field is reported.
    """
    try:
        settings = Settings(**config)
    except ValidationError as e:
        first = e.errors()[0]
        key = ".".join(str(part) for part in first["loc"])
        raise ConfigurationError(key, first["msg"]) from e

    if settings.engine.output_layout not in OUTPUT_LAYOUTS:
        raise ConfigurationError(
            "engine.output_layout",
            f"Must be one of {', '.join(OUTPUT_LAYOUTS)}"
        )
    return settings


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    This function loads settings from the YAML configuration file
    and caches the result. The cache can be cleared by calling
    `get_settings.cache_clear()`.

    Returns:
        Settings object containing all application configuration.

    Example:
        >>> settings = get_settings()
        >>> print(settings.engine.model_path)
        models/yolov10s.onnx
    """
    yaml_config = load_yaml_config(get_config_path())

    # Override with environment variables
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            if not isinstance(yaml_config.get(section), dict):
                yaml_config[section] = {}
            yaml_config[section][key] = value

    return build_settings(yaml_config)


def reload_settings() -> Settings:
    """
    Reload settings from configuration file.

    This function clears the settings cache and reloads from disk.
    Useful when the configuration file has been modified.

    Returns:
        Fresh Settings object with updated configuration.
    """
    get_settings.cache_clear()
    return get_settings()
