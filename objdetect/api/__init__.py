# -*- coding: utf-8 -*-
"""HTTP interface for objdetect."""
