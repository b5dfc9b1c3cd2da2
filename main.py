# -*- coding: utf-8 -*-
"""
Main entry point for the objdetect server.

This script serves the configured detection model over HTTP.

Usage:
    python main.py --model-path models/yolov10s.onnx --port 5001

The server will:
    - Read configuration from config/objdetect.yaml
    - Load the model on the first request (or at startup with --preload)
    - Unload the model after the configured idle timeout
"""

import os
import sys

# Ensure project root is in path
project_root = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, project_root)

from objdetect.services.model_runner import main


if __name__ == "__main__":
    print("=" * 60)
    print("objdetect server")
    print("=" * 60)
    main()
