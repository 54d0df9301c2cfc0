"""
Map transform for Map Inspector.

This module projects geographic coordinates into container pixels for the
current pan/zoom state, using the same spherical Web Mercator tiling scheme as
Leaflet (256 px tiles, zoom level doubling the world size).

A MapTransform is a value object: the hosting surface hands out a new one
whenever the view changes, and hit-testing asks for the current one on every
click.

Classes:
    MapTransform: Geographic <-> container-pixel projection for one view state
"""

import math
from dataclasses import dataclass
from typing import Tuple

from pyproj import Transformer

from core.features import Bounds, LatLng

TILE_SIZE = 256
MERCATOR_LAT_BOUND = 85.05112878
# Half the circumference of the EPSG:3857 sphere in meters
MERCATOR_HALF_EXTENT = 20037508.342789244

_TO_MERCATOR = Transformer.from_crs('EPSG:4326', 'EPSG:3857', always_xy=True)
_FROM_MERCATOR = Transformer.from_crs('EPSG:3857', 'EPSG:4326', always_xy=True)

Point = Tuple[float, float]


def clamp_latitude(lat: float) -> float:
    return max(min(float(lat), MERCATOR_LAT_BOUND), -MERCATOR_LAT_BOUND)


@dataclass(frozen=True)
class MapTransform:
    """
    Projection parameters for one view state.

    Parameters:
    -----------
    center : LatLng
        Geographic center of the map container
    zoom : float
        Leaflet-style zoom level (fractional zoom allowed)
    width, height : int
        Container size in pixels
    tile_size : int
        Tile edge length in pixels at integer zoom
    """

    center: LatLng
    zoom: float
    width: int
    height: int
    tile_size: int = TILE_SIZE

    @property
    def world_size(self) -> float:
        return self.tile_size * (2 ** self.zoom)

    def _world_pixel(self, latlng: LatLng) -> Point:
        lat, lng = latlng
        mx, my = _TO_MERCATOR.transform(float(lng), clamp_latitude(lat))
        scale = self.world_size / (2 * MERCATOR_HALF_EXTENT)
        return (mx + MERCATOR_HALF_EXTENT) * scale, (MERCATOR_HALF_EXTENT - my) * scale

    def _origin(self) -> Point:
        cx, cy = self._world_pixel(self.center)
        return cx - self.width / 2.0, cy - self.height / 2.0

    def project(self, latlng: LatLng) -> Point:
        """Return the container-pixel position of ``latlng`` (x right, y down)."""
        wx, wy = self._world_pixel(latlng)
        ox, oy = self._origin()
        return wx - ox, wy - oy

    def unproject(self, point: Point) -> LatLng:
        """Return the geographic coordinate under a container-pixel position."""
        ox, oy = self._origin()
        scale = (2 * MERCATOR_HALF_EXTENT) / self.world_size
        mx = (point[0] + ox) * scale - MERCATOR_HALF_EXTENT
        my = MERCATOR_HALF_EXTENT - (point[1] + oy) * scale
        lng, lat = _FROM_MERCATOR.transform(mx, my)
        return lat, lng

    def contains_point(self, point: Point) -> bool:
        return 0 <= point[0] <= self.width and 0 <= point[1] <= self.height

    def visible_bounds(self, pad_px: float = 0.0) -> Bounds:
        """
        Geographic bounds of the container, optionally grown by ``pad_px`` on each side.

        Returns:
        --------
        Bounds
            (south, west, north, east)
        """
        north, west = self.unproject((-pad_px, -pad_px))
        south, east = self.unproject((self.width + pad_px, self.height + pad_px))
        return south, west, north, east

    def with_view(self, center: LatLng = None, zoom: float = None) -> 'MapTransform':
        """Return a transform for a panned and/or zoomed view."""
        return MapTransform(
            center=self.center if center is None else center,
            zoom=self.zoom if zoom is None else zoom,
            width=self.width,
            height=self.height,
            tile_size=self.tile_size
        )


def pixel_distance(a: Point, b: Point) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])
