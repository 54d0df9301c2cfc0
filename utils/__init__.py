"""
Utility modules for Map Inspector.

This package contains utility functions and helpers used throughout the application.

Modules:
    logger: Logging configuration and setup
    html_generators: Tab labels, entry joining and inline JSON embedding
    popup_formatters: Popup content and value formatting
    js_bundler: Bundled JavaScript loading
"""

__version__ = '1.0.0'
