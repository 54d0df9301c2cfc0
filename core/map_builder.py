"""
Map building module for Map Inspector.

This module draws a feature registry on an interactive Leaflet map with Folium
and injects the client-side click disambiguation script, so overlapping
features open a tabbed popup instead of only the topmost feature's popup.

Functions:
    create_web_map: Generate the interactive Leaflet map
    compute_center: Center of the registry's features
    client_settings: Settings object consumed by the browser script
"""

import json
from pathlib import Path
from typing import Dict, Optional

import folium
from folium import Element
from jinja2 import Environment, FileSystemLoader

from config.config_loader import load_inspector_settings
from core.features import FeatureRegistry, GeometryKind, polyline_paths
from utils.html_generators import embed_json, generate_registry_data
from utils.js_bundler import get_disambiguation_js
from utils.logger import get_logger

logger = get_logger(__name__)

# Template directory path
TEMPLATES_DIR = Path(__file__).parent.parent / 'templates'

DEFAULT_CENTER = (39.8283, -98.5795)


def compute_center(registry: FeatureRegistry):
    """Return the center of all feature bounds, or DEFAULT_CENTER for an empty registry."""
    bounds = [f.bounds for f in registry if f.bounds is not None]
    if not bounds:
        return DEFAULT_CENTER
    south = min(b[0] for b in bounds)
    west = min(b[1] for b in bounds)
    north = max(b[2] for b in bounds)
    east = max(b[3] for b in bounds)
    return (south + north) / 2, (west + east) / 2


def client_settings(settings: Dict, config: Dict) -> Dict:
    """
    Build the settings object embedded for the browser script.

    Includes hit-test tolerance, group cap, popup sizing, and the layer
    titles/markers used by the content-sniffing fallback.
    """
    layer_titles = {layer['key']: layer['name'] for layer in config.get('layers', [])}
    return {
        'tolerance_px': settings['tolerance_px'],
        'max_groups': settings['max_groups'],
        'content_sniffing': settings['content_sniffing'],
        'popup_max_width': settings['popup_max_width'],
        'popup_max_height': settings['popup_max_height'],
        'entry_separator': settings['entry_separator'],
        'layer_titles': layer_titles,
        'layer_titles_index': {name.strip().lower(): key for key, name in layer_titles.items()},
        'markers': [
            [marker, layer['key']]
            for layer in config.get('layers', [])
            for marker in layer.get('markers', [])
        ]
    }


def _layer_styles(config: Dict) -> Dict[str, Dict]:
    return {layer['key']: layer for layer in config.get('layers', [])}


def create_web_map(
    registry: FeatureRegistry,
    config: Dict,
    settings: Optional[Dict] = None
) -> folium.Map:
    """
    Create an interactive Leaflet map with every feature in the registry.

    Features are drawn into one FeatureGroup per layer type with their own
    popups bound, exactly as the mapping library would show them; the
    injected script then takes over feature and background clicks.

    Parameters:
    -----------
    registry : FeatureRegistry
        Features to draw
    config : Dict
        Configuration dictionary
    settings : Optional[Dict]
        Inspector settings (defaults to load_inspector_settings(config))

    Returns:
    --------
    folium.Map
        Folium map object ready to be saved

    Example:
        >>> map_obj = create_web_map(registry, config)
        >>> map_obj.save('index.html')
    """
    logger.info("=" * 80)
    logger.info("Creating Interactive Web Map")
    logger.info("=" * 80)

    if settings is None:
        settings = load_inspector_settings(config)

    map_settings = config.get('settings', {})
    m = folium.Map(
        location=list(compute_center(registry)),
        zoom_start=map_settings.get('default_zoom', 13),
        tiles=map_settings.get('tiles', 'OpenStreetMap')
    )

    styles = _layer_styles(config)
    groups: Dict[str, folium.FeatureGroup] = {}
    popup_kwargs = {'max_width': settings['popup_max_width']}

    drawn = 0
    for feature in registry:
        group_key = feature.layer_type or '_untyped'
        if group_key not in groups:
            name = feature.layer_title or (styles.get(group_key, {}).get('name')) or 'Other features'
            groups[group_key] = folium.FeatureGroup(name=name)
        layer_style = styles.get(feature.layer_type, {})
        color = layer_style.get('color', '#3388ff')
        popup = folium.Popup(feature.popup_content or feature.backup_content or '', **popup_kwargs)

        try:
            if feature.kind == GeometryKind.POINT:
                folium.Marker(
                    location=list(feature.geometry),
                    popup=popup,
                    icon=folium.Icon(
                        color=layer_style.get('icon_color', 'blue'),
                        icon=layer_style.get('icon', 'circle'),
                        prefix='fa'
                    )
                ).add_to(groups[group_key])
            elif feature.kind == GeometryKind.POLYLINE:
                folium.PolyLine(
                    locations=[list(map(list, path)) for path in polyline_paths(feature.geometry)],
                    popup=popup,
                    color=color,
                    weight=3,
                    opacity=0.8
                ).add_to(groups[group_key])
            else:
                folium.Polygon(
                    locations=[list(map(list, ring)) for ring in feature.geometry],
                    popup=popup,
                    color=color,
                    weight=2,
                    fill=True,
                    fill_color=layer_style.get('fill_color', color),
                    fill_opacity=layer_style.get('fill_opacity', 0.4)
                ).add_to(groups[group_key])
        except Exception as e:
            logger.warning(f"  - Not drawing {feature.feature_id}: {e}")
            continue
        drawn += 1

    for feature_group in groups.values():
        feature_group.add_to(m)
    if groups:
        folium.LayerControl(collapsed=True).add_to(m)

    logger.info(f"  - Drew {drawn} of {len(registry)} features in {len(groups)} layer groups")

    # Popup scrollbar fix, as for single-feature popups
    m.get_root().html.add_child(Element(f"""
        <style>
            .leaflet-popup-content {{
                max-height: {settings['popup_max_height']}px;
                overflow-y: auto;
            }}
        </style>
    """))

    logger.info("  - Adding click disambiguation script...")
    env = Environment(loader=FileSystemLoader(str(TEMPLATES_DIR)), autoescape=False)
    script_template = env.get_template('disambiguation_script.html')
    script_html = script_template.render(
        map_name=m.get_name(),
        registry_json=generate_registry_data(registry),
        settings_json=embed_json(client_settings(settings, config)),
        engine_js=get_disambiguation_js(),
        popup_max_height=settings['popup_max_height']
    )
    m.get_root().html.add_child(Element(script_html))

    logger.debug(f"Client settings: {json.dumps(client_settings(settings, config), ensure_ascii=False)}")
    return m
