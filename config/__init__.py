"""
Configuration package for Map Inspector.

This package contains configuration loading and validation.

Modules:
    config_loader: Load layer definitions and hit-test/popup settings from JSON
"""

__version__ = '1.0.0'
