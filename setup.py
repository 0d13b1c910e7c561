#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Setup script for Report Studio

This file is kept for legacy compatibility and pip editable installs.
The main package configuration is in pyproject.toml.
"""

from setuptools import setup

# Version is now set in pyproject.toml
VERSION = "1.0.0"

# All other configuration comes from pyproject.toml
setup(
    version=VERSION,
)
