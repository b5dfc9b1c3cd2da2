# -*- coding: utf-8 -*-
"""
objdetect - Object Detection Package.

This package decodes images, runs a YOLO-family detector through
OpenCV DNN or PyTorch, removes duplicate boxes and draws the results
back onto the image. It is served over HTTP with lazy model loading.
"""

__version__ = "1.0.0"
