# -*- coding: utf-8 -*-
"""Numeric backends implementing the ForwardPass interface."""
