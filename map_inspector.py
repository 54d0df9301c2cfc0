#!/usr/bin/env python
"""
Map Inspector
=============
Draws features from many vector layers on an interactive Leaflet map where a
click shows every feature under the pointer, grouped by layer in a tabbed
popup, instead of only the topmost feature's popup.

Commands:
    build    Load layer files and write an interactive map with metadata
    inspect  Resolve a click at a point headlessly and print the popup markup
"""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

# Import logging first
from utils.logger import setup_logging, get_logger

from config.config_loader import load_config, load_inspector_settings
from core.click_arbiter import MapSession
from core.feature_builder import build_features, load_layer_files
from core.features import FeatureRegistry
from core.grouping import LayerCatalog
from core.map_builder import create_web_map
from core.output_generator import generate_output
from core.popup_controller import Presentation
from core.surface import HeadlessMapSurface
from core.transform import MapTransform


def main(
    input_files: List[str],
    output_name: Optional[str] = None,
    config_path: Optional[str] = None,
    output_dir: Optional[Path] = None,
    verbose: bool = False
) -> Optional[Path]:
    """
    Main execution workflow for Map Inspector.

    Workflow Steps:
    1. Setup logging to console and file
    2. Load configuration
    3. Read layer files and build rendered features
    4. Create interactive web map with click disambiguation
    5. Save map and metadata

    Parameters:
    -----------
    input_files : List[str]
        Layer files readable by GeoPandas
    output_name : Optional[str]
        Custom name for output directory (defaults to timestamped name)
    config_path : Optional[str]
        Configuration file (defaults to config/inspector_config.json)
    output_dir : Optional[Path]
        Parent directory for outputs (defaults to outputs/)
    verbose : bool
        Show DEBUG records on the console too

    Returns:
    --------
    Optional[Path]
        Path to output directory if successful, None if failed

    Example:
        >>> output_path = main(['parcels.geojson', 'fire_stations.geojson'])
        >>> print(f"Map saved to: {output_path / 'index.html'}")
    """
    workflow_start_time = time.time()

    log_file = setup_logging(console_level=logging.DEBUG if verbose else logging.INFO)
    logger = get_logger(__name__)

    logger.info("=" * 80)
    logger.info("MAP INSPECTOR - Overlapping Feature Popups")
    logger.info("=" * 80)
    logger.info(f"Log file: {log_file}")
    logger.info("")

    try:
        config = load_config(config_path)
        settings = load_inspector_settings(config)
        logger.info(f"Configuration loaded: {len(config['layers'])} layers defined, "
                    f"tolerance {settings['tolerance_px']}px")

        layer_results = load_layer_files(input_files, config)
        features = build_features(layer_results, config)

        if not features:
            logger.warning("⚠ WARNING: No drawable features found in the input files.")

        registry = FeatureRegistry(features=tuple(features), generation=1)

        map_obj = create_web_map(registry, config, settings)
        output_path = generate_output(map_obj, registry, settings, output_name, output_dir)

        total_execution_time = time.time() - workflow_start_time
        logger.info("")
        logger.info("✓ WORKFLOW COMPLETE")
        logger.info(f"✓ Total execution time: {total_execution_time:.2f} seconds")
        logger.info(f"✓ Output directory: {output_path}")
        logger.info(f"✓ Log file: {log_file}")
        logger.info("")

        return output_path

    except Exception as e:
        elapsed_time = time.time() - workflow_start_time

        logger.error("")
        logger.error("=" * 80)
        logger.error("✗ WORKFLOW FAILED")
        logger.error("=" * 80)
        logger.error(f"Error: {str(e)}", exc_info=True)
        logger.error(f"Workflow failed after {elapsed_time:.2f} seconds")
        logger.error("")
        logger.error(f"See log file for details: {log_file}")
        logger.error("=" * 80)
        return None


def inspect_point(
    input_files: List[str],
    lat: float,
    lng: float,
    zoom: Optional[float] = None,
    config_path: Optional[str] = None
) -> Presentation:
    """
    Resolve a click at (lat, lng) without a browser.

    The view is centered on the click at ``zoom`` (default: the configured
    default zoom), so the pixel tolerance applies at that zoom level.

    Returns:
    --------
    Presentation
        What the map would show: nothing, one feature, or a tabbed popup
    """
    logger = get_logger(__name__)
    config = load_config(config_path)
    settings = load_inspector_settings(config)
    map_settings = config['settings']

    features = build_features(load_layer_files(input_files, config), config)

    transform = MapTransform(
        center=(lat, lng),
        zoom=zoom if zoom is not None else map_settings.get('default_zoom', 13),
        width=map_settings.get('map_width', 1024),
        height=map_settings.get('map_height', 768)
    )
    surface = HeadlessMapSurface(transform)
    with MapSession(surface, settings, LayerCatalog.from_config(config, settings)) as session:
        session.redraw(features)
        presentation = session.resolve_at((lat, lng))

    logger.info(f"Click at ({lat}, {lng}) -> {presentation.kind.value}"
                f"{f' ({len(presentation.tabs)} tabs)' if presentation.tabs else ''}")
    return presentation


def cli(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog='map-inspector', description='Overlapping feature popups for multi-layer maps')
    parser.add_argument('--config', help='Configuration JSON (default: config/inspector_config.json)')
    parser.add_argument('--verbose', action='store_true', help='Show debug output on the console')
    subparsers = parser.add_subparsers(dest='command', required=True)

    build = subparsers.add_parser('build', help='Write an interactive map')
    build.add_argument('files', nargs='+', help='Layer files (.geojson, .gpkg, .shp, ...)')
    build.add_argument('--output-name', help='Output directory name')

    inspect = subparsers.add_parser('inspect', help='Print the popup a click would open')
    inspect.add_argument('files', nargs='+', help='Layer files (.geojson, .gpkg, .shp, ...)')
    inspect.add_argument('--lat', type=float, required=True)
    inspect.add_argument('--lng', type=float, required=True)
    inspect.add_argument('--zoom', type=float)

    args = parser.parse_args(argv)

    if args.command == 'build':
        output_dir = main(args.files, args.output_name, args.config, verbose=args.verbose)
        if output_dir is None:
            print("\n✗ Failed to generate map. Check log file for details.")
            return 1
        print(f"\n✓ Success! Open {output_dir / 'index.html'} in your browser.")
        return 0

    setup_logging(console_level=logging.DEBUG if args.verbose else logging.INFO)
    presentation = inspect_point(args.files, args.lat, args.lng, args.zoom, args.config)
    if presentation.html is None:
        print("No features at this point.")
    else:
        print(presentation.html)
    return 0


if __name__ == "__main__":
    sys.exit(cli())
