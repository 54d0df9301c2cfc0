import logging
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]

# Top-level packages (config, core, utils, templates) import from the project root
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.features import GeometryKind, RenderedFeature  # noqa: E402
from core.surface import HeadlessMapSurface  # noqa: E402
from core.transform import MapTransform  # noqa: E402

CENTER = (43.2081, -71.5376)


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    root = logging.getLogger("mapinspect")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.NOTSET)


@pytest.fixture
def transform():
    return MapTransform(center=CENTER, zoom=14, width=800, height=600)


@pytest.fixture
def surface(transform):
    return HeadlessMapSurface(transform)


def offset(transform, latlng, dx, dy=0.0):
    """Geographic coordinate ``dx``/``dy`` container pixels away from ``latlng``."""
    x, y = transform.project(latlng)
    return transform.unproject((x + dx, y + dy))


def square(center, half_size):
    lat, lng = center
    return [
        (lat - half_size, lng - half_size),
        (lat - half_size, lng + half_size),
        (lat + half_size, lng + half_size),
        (lat + half_size, lng - half_size),
        (lat - half_size, lng - half_size),
    ]


def point_feature(feature_id, latlng, layer_type=None, title=None, content=None, backup=None):
    return RenderedFeature(
        feature_id=feature_id,
        kind=GeometryKind.POINT,
        geometry=latlng,
        layer_type=layer_type,
        layer_title=title,
        popup_content=content if content is not None else f"<p>{feature_id}</p>",
        backup_content=backup
    )


def polygon_feature(feature_id, rings, layer_type=None, title=None, content=None, backup=None):
    return RenderedFeature(
        feature_id=feature_id,
        kind=GeometryKind.POLYGON,
        geometry=rings,
        layer_type=layer_type,
        layer_title=title,
        popup_content=content if content is not None else f"<p>{feature_id}</p>",
        backup_content=backup
    )


def polyline_feature(feature_id, coords, layer_type=None, title=None, content=None):
    return RenderedFeature(
        feature_id=feature_id,
        kind=GeometryKind.POLYLINE,
        geometry=coords,
        layer_type=layer_type,
        layer_title=title,
        popup_content=content if content is not None else f"<p>{feature_id}</p>"
    )
