# -*- coding: utf-8 -*-
"""API route modules."""
