# -*- coding: utf-8 -*-
"""
FastAPI application factory.

This module provides the application factory pattern for creating
FastAPI instances with proper configuration and lifecycle management.

The served model lives on ``app.state.model``; several apps with
different models can exist in one process.

Example:
    >>> from objdetect.api.app import create_app
    >>> app = create_app(model=LazyModelWrapper(EngineConfig()))
    >>> # Run with: uvicorn.run(app, host="0.0.0.0", port=5001)
"""

import threading
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from objdetect import __version__
from objdetect.api.routes import inference
from objdetect.services.model_loader import LazyModelWrapper


HOUSEKEEPING_INTERVAL = 10


def _housekeeping_loop(app: FastAPI, stop: threading.Event) -> None:
    """
    Background thread for model housekeeping.

    This function runs in a daemon thread and periodically checks
    if the model has been idle for too long. If so, it unloads
    the model to free up resources.
    """
    while not stop.wait(HOUSEKEEPING_INTERVAL):
        model: Optional[LazyModelWrapper] = getattr(app.state, "model", None)
        if model is None or not model.is_loaded:
            continue
        model.unload_if_idle(model.config.idle_timeout_seconds)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context manager.

    Starts the housekeeping thread on startup and stops it, unloading
    the model, on shutdown.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application.
    """
    stop = threading.Event()
    housekeeping_thread = threading.Thread(
        target=_housekeeping_loop,
        args=(app, stop),
        daemon=True,
        name="model-housekeeping"
    )
    housekeeping_thread.start()

    yield

    stop.set()
    model = getattr(app.state, "model", None)
    if model is not None:
        model.unload()


def create_app(
    model: Optional[LazyModelWrapper] = None,
    title: str = "objdetect API",
    version: str = __version__,
    description: str = "Object detection with annotated image output"
) -> FastAPI:
    """
    Create and configure a FastAPI application.

    Args:
        model: Lazily loaded model to serve. Requests return 503 while
            no model is configured.
        title: The API title for OpenAPI documentation.
        version: The API version.
        description: The API description.

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title=title,
        version=version,
        description=description,
        lifespan=lifespan
    )
    app.state.model = model
    app.state.started_at = time.time()

    # Include routers
    app.include_router(inference.router)

    return app
