# -*- coding: utf-8 -*-
"""Image codec, geometry and model artifact utilities."""
