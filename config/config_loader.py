"""
Configuration loading for Map Inspector.

This module handles loading and validation of the inspector configuration JSON file.

Constants:
    PROJECT_ROOT: Root directory of the project
    CONFIG_DIR: Configuration files directory
    OUTPUT_DIR: Output files directory
    DEFAULT_INSPECTOR_SETTINGS: Fallback values for the 'inspector' section

Functions:
    load_config: Load and validate layer configuration from JSON
    load_inspector_settings: Merge hit-test and popup settings over defaults
    merge_inspector_settings: Merge and validate inspector setting overrides
    find_layer_config: Look up a configured layer by key or name
"""

import json
from pathlib import Path
from typing import Dict, Optional, Union

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_DIR = PROJECT_ROOT / 'config'
OUTPUT_DIR = PROJECT_ROOT / 'outputs'

DEFAULT_INSPECTOR_SETTINGS = {
    'tolerance_px': 15,
    'max_groups': 10,
    'content_sniffing': True,
    'viewport_culling': True,
    'popup_max_width': 400,
    'popup_max_height': 600,
    'entry_separator': "<hr class='mi-entry-separator' style='margin: 10px 0; border: 0; border-top: 1px solid #e5e7eb;'>",
}


def load_config(config_path: Optional[Union[str, Path]] = None) -> Dict:
    """
    Load layer configuration from JSON file.

    Reads inspector_config.json (or the given file) and validates basic structure.

    Parameters:
    -----------
    config_path : Optional[Union[str, Path]]
        Explicit configuration file. Defaults to CONFIG_DIR/inspector_config.json

    Returns:
    --------
    Dict
        Configuration dictionary with 'layers' and 'settings' keys

    Raises:
    -------
    FileNotFoundError
        If configuration file doesn't exist
    json.JSONDecodeError
        If configuration file contains invalid JSON
    KeyError
        If required configuration keys are missing
    """
    if config_path is None:
        config_path = CONFIG_DIR / 'inspector_config.json'
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        config = json.load(f)

    # Validate required keys
    if 'layers' not in config:
        raise KeyError("Configuration missing required 'layers' key")
    if 'settings' not in config:
        raise KeyError("Configuration missing required 'settings' key")

    for layer in config['layers']:
        if 'key' not in layer or 'name' not in layer:
            raise KeyError(f"Layer entry missing 'key' or 'name': {layer}")

    return config


def load_inspector_settings(config: Dict = None) -> Dict:
    """
    Load hit-test and popup settings from configuration.

    Args:
        config: Configuration dictionary (optional, will load if not provided)

    Returns:
        Dictionary with inspector settings

    Defaults:
        - tolerance_px: 15
        - max_groups: 10
        - content_sniffing: True
        - viewport_culling: True
        - popup_max_width: 400
        - popup_max_height: 600
        - entry_separator: horizontal rule markup

    Note:
        Returns defaults if the 'inspector' section is missing.
    """
    if config is None:
        config = load_config()

    return merge_inspector_settings(config.get('inspector', {}))


def merge_inspector_settings(overrides: Optional[Dict] = None) -> Dict:
    """
    Merge ``overrides`` over DEFAULT_INSPECTOR_SETTINGS and validate the result.

    Raises:
    -------
    ValueError
        If tolerance_px is negative or max_groups is below 1
    """
    result = {**DEFAULT_INSPECTOR_SETTINGS, **(overrides or {})}

    if result['tolerance_px'] < 0:
        raise ValueError(f"tolerance_px must be non-negative, got {result['tolerance_px']}")
    if result['max_groups'] < 1:
        raise ValueError(f"max_groups must be at least 1, got {result['max_groups']}")

    return result


def find_layer_config(config: Dict, key_or_name: str) -> Optional[Dict]:
    """
    Return the configured layer whose key, name or file stem equals ``key_or_name``.

    Matching on name and file stem is case-insensitive.
    """
    wanted = key_or_name.lower()
    for layer in config.get('layers', []):
        if layer['key'] == key_or_name:
            return layer
        if layer['name'].lower() == wanted:
            return layer
        if 'file' in layer and Path(layer['file']).stem.lower() == wanted:
            return layer
    return None


def ensure_output_dir() -> Path:
    """Create the output directory if needed and return it."""
    OUTPUT_DIR.mkdir(exist_ok=True)
    return OUTPUT_DIR
