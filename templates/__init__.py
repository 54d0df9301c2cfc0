"""
HTML templates for Map Inspector.

This package contains Jinja2 templates and bundled JavaScript for the
disambiguation popup.

Templates:
    tabbed_popup.html: Tab bar and one content panel per layer group
    disambiguation_script.html: Client-side click arbitration for exported maps
    js/popup_disambiguation.js: Hit-testing and tab switching in the browser
"""

__version__ = '1.0.0'
