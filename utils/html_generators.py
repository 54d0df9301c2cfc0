"""
HTML generation utilities for Map Inspector.

This module provides small helpers for popup markup and for embedding the
feature registry in generated map pages.

Functions:
    tab_label: Tab button text for a layer group
    join_entries: Concatenate popup contents with a visible separator
    embed_json: Serialize data for inline <script> embedding
    generate_registry_data: Registry snapshot as embeddable JSON
"""

import json
from typing import Any, List

from core.features import FeatureRegistry, polyline_paths, GeometryKind


def tab_label(title: str, count: int) -> str:
    """
    Tab button text; groups with more than one member get a count suffix.

    Examples:
        >>> tab_label('Parcels', 2)
        'Parcels (2)'
        >>> tab_label('Fire Stations', 1)
        'Fire Stations'
    """
    if count > 1:
        return f"{title} ({count})"
    return title


def join_entries(contents: List[str], separator: str) -> str:
    return separator.join(contents)


def embed_json(data: Any) -> str:
    """
    Serialize ``data`` compactly for inline script embedding.

    Forward slashes after '<' are escaped so popup markup containing
    '</script>' cannot end the surrounding script element.
    """
    return json.dumps(data, separators=(',', ':'), ensure_ascii=False).replace('</', '<\\/')


def generate_registry_data(registry: FeatureRegistry) -> str:
    """
    Generate the JavaScript literal for the client-side feature registry.

    Polyline geometry is normalized to a list of paths so the browser only
    handles one shape per kind. Features with malformed polylines are
    embedded as-is; the client skips them like the Python engine does.

    Example Output:
        [{"id":"parcels-0","kind":"polygon","geometry":[[[43.2,-71.5],...]],
          "layerType":"nh_parcels_all","title":"Parcels","content":"<div>...","backup":"..."}]
    """
    records = []
    for feature in registry:
        geometry = feature.geometry
        if feature.kind == GeometryKind.POLYLINE:
            try:
                geometry = polyline_paths(geometry)
            except ValueError:
                pass
        records.append({
            'id': feature.feature_id,
            'kind': feature.kind.value,
            'geometry': geometry,
            'layerType': feature.layer_type,
            'title': feature.layer_title,
            'content': feature.popup_content,
            'backup': feature.backup_content
        })
    return embed_json(records)
