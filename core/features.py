"""
Feature data model for Map Inspector.

This module defines the transient and per-redraw objects shared by the hit-test,
grouping and popup modules.

Classes:
    GeometryKind: Geometry kinds that can be hit-tested
    RenderedFeature: One drawn geometry with its cached popup content
    FeatureRegistry: Immutable snapshot of all features from one redraw
    ClickEvent: A single click, from the map background or from a feature
    FeatureMatch: A feature under the pointer with its resolved layer identity
    LayerGroup: Matches sharing one layer-type key
    GroupedResult: Ordered groups plus the complete match list

Functions:
    sequence_depth: Count list/tuple nesting levels before scalars
    geometry_bounds: Geographic bounding box of point/polyline/polygon data
"""

import math
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, List, Optional, Sequence, Tuple

LatLng = Tuple[float, float]
Bounds = Tuple[float, float, float, float]  # (south, west, north, east)


class GeometryKind(str, Enum):
    POINT = 'point'
    POLYLINE = 'polyline'
    POLYGON = 'polygon'


class MalformedGeometryError(ValueError):
    """Raised when a feature's coordinates cannot be hit-tested."""


def _is_empty_sequence(value: object) -> bool:
    return isinstance(value, (list, tuple)) and not value


def sequence_depth(value: object) -> int:
    """
    Return how many list/tuple levels ``value`` contains before scalars.

    Each level is measured through its first non-empty member, so an empty
    leading path does not hide the paths after it.
    """
    depth = 0
    current = value
    while isinstance(current, (list, tuple)) and current:
        depth += 1
        current = next((item for item in current if not _is_empty_sequence(item)), current[0])
    return depth


def as_latlng(value: Any) -> LatLng:
    """
    Coerce a coordinate pair into a ``(lat, lng)`` tuple of finite floats.

    Raises:
    -------
    MalformedGeometryError
        If the value is not a pair of finite numbers
    """
    try:
        lat, lng = float(value[0]), float(value[1])
    except (TypeError, ValueError, IndexError) as e:
        raise MalformedGeometryError(f"Invalid coordinate {value!r}") from e
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise MalformedGeometryError(f"Non-finite coordinate {value!r}")
    return lat, lng


def polyline_paths(geometry: Any) -> List[Sequence[Any]]:
    """
    Normalize polyline data to a list of paths.

    Accepts a single ordered list of coordinates or a list of such lists.
    Empty paths are dropped.
    """
    depth = sequence_depth(geometry)
    if depth == 2:
        return [geometry]
    if depth == 3:
        return [path for path in geometry if not _is_empty_sequence(path)]
    raise MalformedGeometryError(f"Polyline coordinates have unexpected nesting depth {depth}")


def geometry_bounds(kind: GeometryKind, geometry: Any) -> Optional[Bounds]:
    """
    Compute the geographic bounding box of a feature's geometry.

    For polygons only the outer ring is considered, matching the hit test.
    Returns None when the geometry is malformed; the hit test reports the
    error itself when the feature is clicked.
    """
    try:
        if kind == GeometryKind.POINT:
            points = [as_latlng(geometry)]
        elif kind == GeometryKind.POLYLINE:
            points = [as_latlng(c) for path in polyline_paths(geometry) for c in path]
        else:
            points = [as_latlng(c) for c in geometry[0]]
    except (MalformedGeometryError, TypeError, IndexError):
        return None

    if not points:
        return None
    lats = [p[0] for p in points]
    lngs = [p[1] for p in points]
    return min(lats), min(lngs), max(lats), max(lngs)


@dataclass(frozen=True)
class RenderedFeature:
    """
    One drawn geometry.

    ``geometry`` holds a single ``(lat, lng)`` for points, an ordered list of
    coordinates (or a list of paths) for polylines, and a list of rings for
    polygons with the outer boundary first. ``popup_content`` is captured when
    the feature is drawn and never updated afterwards.
    """

    feature_id: str
    kind: GeometryKind
    geometry: Any
    layer_type: Optional[str] = None
    layer_title: Optional[str] = None
    popup_content: Optional[str] = None
    backup_content: Optional[str] = None
    bounds: Optional[Bounds] = field(init=False, compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, 'kind', GeometryKind(self.kind))
        object.__setattr__(self, 'bounds', geometry_bounds(self.kind, self.geometry))


@dataclass(frozen=True)
class FeatureRegistry:
    """All features produced by one redraw. Replaced, never edited."""

    features: Tuple[RenderedFeature, ...] = ()
    generation: int = 0

    def __iter__(self) -> Iterator[RenderedFeature]:
        return iter(self.features)

    def __len__(self) -> int:
        return len(self.features)

    def get(self, feature_id: str) -> Optional[RenderedFeature]:
        for feature in self.features:
            if feature.feature_id == feature_id:
                return feature
        return None


@dataclass
class ClickEvent:
    """
    A click at a geographic coordinate.

    ``source`` is 'map' for background clicks, 'feature' for clicks delivered
    to a feature, and 'synthetic' for the event re-issued after a feature
    click was intercepted.
    """

    latlng: LatLng
    source: str = 'map'
    feature_id: Optional[str] = None
    propagation_stopped: bool = False
    default_prevented: bool = False

    def stop_propagation(self):
        self.propagation_stopped = True

    def prevent_default(self):
        self.default_prevented = True

    def synthesize(self) -> 'ClickEvent':
        """Return a fresh event carrying the same geographic point."""
        return ClickEvent(latlng=self.latlng, source='synthetic')


@dataclass(frozen=True)
class FeatureMatch:
    feature: RenderedFeature
    layer_type: str
    title: str
    content: str


@dataclass
class LayerGroup:
    key: str
    title: str
    matches: List[FeatureMatch] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.matches)


@dataclass
class GroupedResult:
    """
    Matches bucketed by layer-type key.

    ``groups`` keeps discovery order and holds at most the configured number of
    keys; ``matches`` is every match, including those whose group overflowed.
    """

    groups: 'OrderedDict[str, LayerGroup]' = field(default_factory=OrderedDict)
    matches: List[FeatureMatch] = field(default_factory=list)
    dropped_keys: List[str] = field(default_factory=list)

    @property
    def total_matches(self) -> int:
        return len(self.matches)

    def __len__(self) -> int:
        return len(self.groups)
