"""
Feature building module for Map Inspector.

This module loads layer files with GeoPandas and converts each row into
RenderedFeature objects for the hit-test registry, capturing popup content at
creation time.

Configured layers get an explicit layer-type tag and title. Files that match
no configured layer are still drawn, without a tag, so their features are
grouped through the popup-content fallback.

Functions:
    load_layer_files: Read vector files into GeoDataFrames in EPSG:4326
    geometry_parts: Split a Shapely geometry into hit-testable parts
    build_features: Convert layer GeoDataFrames to RenderedFeatures
"""

from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple, Union

import geopandas as gpd
from shapely.geometry.base import BaseGeometry

from config.config_loader import find_layer_config
from core.features import GeometryKind, RenderedFeature
from utils.logger import get_logger
from utils.popup_formatters import build_backup_content, build_popup_html

logger = get_logger(__name__)


def load_layer_files(
    paths: Iterable[Union[str, Path]],
    config: Dict
) -> Dict[str, gpd.GeoDataFrame]:
    """
    Read vector layer files and reproject them to WGS84.

    Parameters:
    -----------
    paths : Iterable[Union[str, Path]]
        Files readable by GeoPandas (.geojson, .gpkg, .shp, ...)
    config : Dict
        Configuration dictionary with layer definitions

    Returns:
    --------
    Dict[str, gpd.GeoDataFrame]
        Layer key (configured key, or file stem) -> GeoDataFrame

    Raises:
    -------
    FileNotFoundError
        If a file doesn't exist
    """
    layer_results = {}
    for path in paths:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Layer file not found: {path}")

        layer_config = find_layer_config(config, path.stem)
        key = layer_config['key'] if layer_config else path.stem

        gdf = gpd.read_file(path)
        if gdf.crs is not None and gdf.crs != 'EPSG:4326':
            logger.debug(f"  - Reprojecting {path.name} from {gdf.crs} to EPSG:4326")
            gdf = gdf.to_crs('EPSG:4326')

        logger.info(f"  - Loaded {path.name}: {len(gdf)} features"
                    f"{'' if layer_config else ' (unconfigured layer)'}")
        layer_results[key] = gdf

    return layer_results


def _latlngs(coords) -> Tuple[Tuple[float, float], ...]:
    return tuple((float(c[1]), float(c[0])) for c in coords)


def geometry_parts(geom: BaseGeometry) -> List[Tuple[GeometryKind, Any]]:
    """
    Split a Shapely geometry into (kind, coordinates) parts with (lat, lng) order.

    MultiPoint and MultiPolygon yield one part per member; MultiLineString
    stays one polyline with several paths.
    """
    if geom is None or geom.is_empty:
        return []

    geom_type = geom.geom_type
    if geom_type == 'Point':
        return [(GeometryKind.POINT, (float(geom.y), float(geom.x)))]
    if geom_type == 'LineString' or geom_type == 'LinearRing':
        return [(GeometryKind.POLYLINE, _latlngs(geom.coords))]
    if geom_type == 'MultiLineString':
        paths = tuple(_latlngs(line.coords) for line in geom.geoms if not line.is_empty)
        return [(GeometryKind.POLYLINE, paths)] if paths else []
    if geom_type == 'Polygon':
        rings = [_latlngs(geom.exterior.coords)]
        rings.extend(_latlngs(interior.coords) for interior in geom.interiors)
        return [(GeometryKind.POLYGON, tuple(rings))]
    if geom_type in ('MultiPoint', 'MultiPolygon', 'GeometryCollection'):
        parts = []
        for member in geom.geoms:
            parts.extend(geometry_parts(member))
        return parts

    raise ValueError(f"Unsupported geometry type: {geom_type}")


def build_features(layer_results: Dict[str, gpd.GeoDataFrame], config: Dict) -> List[RenderedFeature]:
    """
    Convert all layer results into RenderedFeatures, in layer then row order.

    Rows whose geometry is missing or unsupported are skipped and logged;
    they never stop the rest of the layer from being built.

    Parameters:
    -----------
    layer_results : Dict[str, gpd.GeoDataFrame]
        Layer key -> GeoDataFrame in EPSG:4326
    config : Dict
        Configuration dictionary with layer definitions

    Returns:
    --------
    List[RenderedFeature]
        Features in draw order
    """
    features = []

    for layer_key, gdf in layer_results.items():
        layer_config = find_layer_config(config, layer_key)
        if layer_config:
            layer_type = layer_config['key']
            layer_name = layer_config['name']
            area_name_field = layer_config.get('area_name_field')
        else:
            layer_type = None
            layer_name = layer_key
            area_name_field = None

        skipped = 0
        for index, row in gdf.iterrows():
            props = {col: row[col] for col in gdf.columns if col != gdf.geometry.name}
            try:
                parts = geometry_parts(row[gdf.geometry.name])
            except Exception as e:
                logger.warning(f"  - Skipping {layer_name} row {index}: {e}")
                skipped += 1
                continue
            if not parts:
                skipped += 1
                continue

            popup_html = build_popup_html(layer_name, props, area_name_field, layer_type)
            backup = build_backup_content(layer_name, props, area_name_field)

            for part_index, (kind, coords) in enumerate(parts):
                feature_id = f"{layer_key}-{index}"
                if len(parts) > 1:
                    feature_id += f"-{part_index}"
                features.append(RenderedFeature(
                    feature_id=feature_id,
                    kind=kind,
                    geometry=coords,
                    layer_type=layer_type,
                    layer_title=layer_name if layer_config else None,
                    popup_content=popup_html,
                    backup_content=backup
                ))

        if skipped:
            logger.info(f"  - {layer_name}: skipped {skipped} row(s) without usable geometry")

    logger.info(f"Built {len(features)} rendered features from {len(layer_results)} layers")
    return features
