# -*- coding: utf-8 -*-
"""
Model runner service.

This module provides the entry point for serving one model over HTTP.

Usage:
    python -m objdetect.services.model_runner --model-path models/yolov10s.onnx --port 5001
"""

import argparse
import gc
import os
import signal
import sys

try:
    import torch
except ImportError:
    torch = None

import uvicorn

from objdetect.api.app import create_app
from objdetect.core.config import reload_settings
from objdetect.core.exceptions import ConfigurationError, ModelLoadError
from objdetect.services.model_loader import LazyModelWrapper


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Serve an object detection model"
    )
    parser.add_argument(
        "--config",
        help="Path to the YAML configuration file"
    )
    parser.add_argument(
        "--model-path",
        help="Model artifact to serve (overrides engine.model_path)"
    )
    parser.add_argument(
        "--model-name",
        help="Display name of the model (defaults to the file stem)"
    )
    parser.add_argument(
        "--host",
        help="Host to bind (overrides server.host)"
    )
    parser.add_argument(
        "--port",
        type=int,
        help="Port to run the server on (overrides server.port)"
    )
    parser.add_argument(
        "--timeout",
        type=int,
        help="Idle timeout in seconds before model unload"
    )
    parser.add_argument(
        "--preload",
        action="store_true",
        help="Load the model before accepting requests"
    )
    return parser


def main(argv=None) -> None:
    """
    Main entry point for model runner.

    Parses command line arguments and starts the FastAPI server
    for a single model.
    """
    args = build_parser().parse_args(argv)

    if args.config:
        os.environ["OBJDETECT_CONFIG_PATH"] = args.config

    try:
        settings = reload_settings()
    except ConfigurationError as e:
        print(f"Error: {e}")
        sys.exit(1)

    overrides = {}
    if args.model_path:
        overrides["model_path"] = args.model_path
    if args.model_name:
        overrides["model_name"] = args.model_name
    if args.timeout:
        overrides["idle_timeout_seconds"] = args.timeout
    engine_config = settings.engine.model_copy(update=overrides)

    host = args.host or settings.server.host
    port = args.port or settings.server.port

    if not os.path.isfile(engine_config.model_path):
        print(f"Error: Model file {engine_config.model_path} does not exist.")
        sys.exit(1)

    model = LazyModelWrapper(engine_config, settings.render)
    if args.preload:
        try:
            model.load()
        except ModelLoadError as e:
            print(f"Error: {e}")
            sys.exit(1)

    print(
        f"Starting server for {model.model_name} "
        f"on {host}:{port} with timeout {engine_config.idle_timeout_seconds}s"
    )

    app = create_app(
        model=model,
        title=f"{model.model_name} Detection API",
        description=f"Object detection API for {model.model_name}"
    )

    def shutdown_handler(signum, frame):
        print(f"\n[{model.model_name}] Received signal {signum}. Cleaning up resources...")

        model.unload()
        gc.collect()

        if torch is not None and torch.cuda.is_available():
            print(f"[{model.model_name}] Clearing CUDA cache...")
            torch.cuda.empty_cache()

        print(f"[{model.model_name}] Cleanup complete. Exiting.")
        sys.exit(0)

    # Register signal handlers for graceful shutdown
    signal.signal(signal.SIGINT, shutdown_handler)
    signal.signal(signal.SIGTERM, shutdown_handler)

    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
