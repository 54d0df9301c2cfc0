"""
Output generation module for Map Inspector.

This module saves the generated map and a metadata summary to an output directory.

Functions:
    summarize_registry: Per-layer feature counts for a registry snapshot
    generate_output: Save map and metadata to the output directory
"""

import json
from collections import OrderedDict
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

import folium

from config.config_loader import ensure_output_dir
from core.features import FeatureRegistry
from utils.logger import get_logger

logger = get_logger(__name__)


def summarize_registry(registry: FeatureRegistry) -> Dict[str, Dict]:
    """
    Count features per layer type and geometry kind.

    Untagged features are counted under '(untagged)'.

    Example:
        >>> summarize_registry(registry)['nh_parcels_all']
        {'title': 'Parcels', 'feature_count': 12, 'kinds': {'polygon': 12}}
    """
    layers: Dict[str, Dict] = OrderedDict()
    for feature in registry:
        key = feature.layer_type or '(untagged)'
        entry = layers.setdefault(key, {
            'title': feature.layer_title or key,
            'feature_count': 0,
            'kinds': {}
        })
        entry['feature_count'] += 1
        entry['kinds'][feature.kind.value] = entry['kinds'].get(feature.kind.value, 0) + 1
    return layers


def generate_output(
    map_obj: folium.Map,
    registry: FeatureRegistry,
    settings: Dict,
    output_name: Optional[str] = None,
    output_dir: Optional[Path] = None
) -> Path:
    """
    Generate output directory with the HTML map and metadata.

    Creates a named output directory containing:
    - index.html: Interactive Leaflet map with click disambiguation
    - metadata.json: Feature counts and the hit-test settings used

    Parameters:
    -----------
    map_obj : folium.Map
        Folium map object to save
    registry : FeatureRegistry
        Registry drawn on the map
    settings : Dict
        Inspector settings embedded in the map
    output_name : Optional[str]
        Output directory name (defaults to a timestamped name)
    output_dir : Optional[Path]
        Parent directory (defaults to OUTPUT_DIR)

    Returns:
    --------
    Path
        Path to output directory

    Example:
        >>> output_path = generate_output(map_obj, registry, settings)
        >>> output_path
        Path('outputs/map_inspector_20250108_143022')
    """
    logger.info("=" * 80)
    logger.info("Generating Output Files")
    logger.info("=" * 80)

    if output_name is None:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        output_name = f"map_inspector_{timestamp}"

    parent = Path(output_dir) if output_dir is not None else ensure_output_dir()
    output_path = parent / output_name
    output_path.mkdir(parents=True, exist_ok=True)

    logger.info(f"Output directory: {output_path}")

    logger.info("  - Saving interactive map...")
    map_file = output_path / 'index.html'
    map_obj.save(str(map_file))

    logger.info("  - Saving metadata...")
    layers = summarize_registry(registry)
    summary = {
        'generated_at': datetime.now().isoformat(),
        'registry_generation': registry.generation,
        'total_features': len(registry),
        'layers': layers,
        'hit_test': {
            'tolerance_px': settings['tolerance_px'],
            'max_groups': settings['max_groups'],
            'content_sniffing': settings['content_sniffing']
        }
    }
    with open(output_path / 'metadata.json', 'w', encoding='utf-8') as f:
        json.dump(summary, f, indent=2, ensure_ascii=False)

    logger.info("")
    logger.info("=" * 80)
    logger.info("✓ Output Generation Complete")
    logger.info("=" * 80)
    logger.info(f"Files saved to: {output_path}")
    logger.info("  - index.html (interactive map)")
    logger.info(f"  - metadata.json ({len(layers)} layers, {len(registry)} features)")
    logger.info("")
    logger.info(f"To view the map, open: {map_file}")
    logger.info("=" * 80)

    return output_path
