"""
JavaScript bundling utilities for Map Inspector.

This module loads bundled JavaScript files for inline embedding in generated
HTML maps, so exported maps need no extra script downloads.

Functions:
    get_disambiguation_js: Load the client-side click disambiguation engine
"""

from pathlib import Path

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent


def get_disambiguation_js() -> str:
    """
    Load the popup disambiguation engine for inline embedding.

    Returns:
        str: Complete JavaScript code as a string

    Raises:
        FileNotFoundError: If the bundled JS file is not found
    """
    js_path = PROJECT_ROOT / 'templates' / 'js' / 'popup_disambiguation.js'

    if not js_path.exists():
        raise FileNotFoundError(f"Bundled disambiguation JavaScript not found: {js_path}")

    return js_path.read_text(encoding='utf-8')
