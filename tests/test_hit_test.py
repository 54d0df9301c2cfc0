import pytest

import core.hit_test as hit_test
from core.features import MalformedGeometryError
from core.hit_test import (
    ToleranceOptions,
    matches,
    point_in_ring,
    polygon_matches,
)
from core.transform import pixel_distance
from conftest import CENTER, offset, point_feature, polygon_feature, polyline_feature, square


def pentagon(center, radius):
    lat, lng = center
    return [
        (lat + radius, lng),
        (lat + radius * 0.3, lng + radius),
        (lat - radius, lng + radius * 0.6),
        (lat - radius, lng - radius * 0.6),
        (lat + radius * 0.3, lng - radius),
        (lat + radius, lng),
    ]


class TestPoint:
    def test_click_twenty_pixels_away_misses(self, transform):
        feature = point_feature('p1', CENTER)
        click = offset(transform, CENTER, 20)
        assert not matches(feature, click, transform)

    def test_click_ten_pixels_away_hits(self, transform):
        feature = point_feature('p1', CENTER)
        click = offset(transform, CENTER, 6, 8)
        assert matches(feature, click, transform)

    @pytest.mark.parametrize('dx, dy', [(0, 0), (5, 0), (14, 0), (0, -14.5), (16, 0), (12, 12), (30, 40)])
    def test_match_iff_within_tolerance(self, transform, dx, dy):
        feature = point_feature('p1', CENTER)
        click = offset(transform, CENTER, dx, dy)
        distance = pixel_distance(transform.project(CENTER), transform.project(click))
        assert matches(feature, click, transform) == (distance <= 15)

    def test_tolerance_is_in_pixels_not_degrees(self, transform):
        feature = point_feature('p1', CENTER)
        click = offset(transform, CENTER, 10)
        assert matches(feature, click, transform)
        zoomed_in = transform.with_view(zoom=transform.zoom + 1)
        assert not matches(feature, click, zoomed_in)

    def test_custom_tolerance(self, transform):
        feature = point_feature('p1', CENTER)
        click = offset(transform, CENTER, 20)
        assert matches(feature, click, transform, ToleranceOptions(tolerance_px=25))

    def test_malformed_point_raises(self, transform):
        feature = point_feature('bad', ('north', 'west'))
        with pytest.raises(MalformedGeometryError):
            matches(feature, CENTER, transform)


class TestPolygon:
    def test_click_inside_pentagon(self, transform):
        feature = polygon_feature('poly', [pentagon(CENTER, 0.01)])
        assert matches(feature, CENTER, transform)

    def test_click_outside_bounds_rejected_without_ray_cast(self, transform, monkeypatch):
        def fail(*args):
            raise AssertionError("ray cast should not run")

        monkeypatch.setattr(hit_test, 'point_in_ring', fail)
        feature = polygon_feature('poly', [pentagon(CENTER, 0.01)])
        assert not matches(feature, (CENTER[0] + 0.5, CENTER[1]), transform)

    def test_click_in_bounds_but_outside_ring(self, transform):
        feature = polygon_feature('poly', [pentagon(CENTER, 0.01)])
        # Bounding-box corner, cut off by the pentagon's upper-right edge
        corner = (CENTER[0] + 0.0099, CENTER[1] + 0.0099)
        assert not matches(feature, corner, transform)

    def test_holes_are_ignored(self, transform):
        outer = square(CENTER, 0.02)
        hole = square(CENTER, 0.005)
        feature = polygon_feature('donut', [outer, hole])
        assert matches(feature, CENTER, transform)

    def test_open_ring_accepted(self, transform):
        ring = square(CENTER, 0.01)[:-1]
        assert polygon_matches([ring], CENTER)

    def test_degenerate_ring_raises(self):
        with pytest.raises(MalformedGeometryError):
            point_in_ring(CENTER, [(0, 0), (1, 1)])

    def test_missing_outer_ring_raises(self, transform):
        feature = polygon_feature('empty', [])
        with pytest.raises(MalformedGeometryError):
            matches(feature, CENTER, transform)

    def test_polygon_result_does_not_depend_on_zoom(self, transform):
        feature = polygon_feature('poly', [square(CENTER, 0.01)])
        click = (CENTER[0] + 0.009, CENTER[1])
        for zoom in (5, 10, 18):
            assert matches(feature, click, transform.with_view(zoom=zoom))


class TestPolyline:
    def test_near_vertex_hits(self, transform):
        start = offset(transform, CENTER, -300)
        end = offset(transform, CENTER, 300)
        feature = polyline_feature('line', [start, end])
        assert matches(feature, offset(transform, CENTER, -295, 3), transform)

    def test_segment_midpoint_far_from_vertices_misses(self, transform):
        start = offset(transform, CENTER, -300)
        end = offset(transform, CENTER, 300)
        feature = polyline_feature('line', [start, end])
        assert not matches(feature, CENTER, transform)

    def test_multi_path_polyline(self, transform):
        first = [offset(transform, CENTER, -200), offset(transform, CENTER, -100)]
        second = [offset(transform, CENTER, 100), offset(transform, CENTER, 200)]
        feature = polyline_feature('multi', [first, second])
        assert matches(feature, offset(transform, CENTER, 195), transform)

    def test_empty_leading_path_ignored(self, transform):
        end = offset(transform, CENTER, 200)
        feature = polyline_feature('gappy', [[], [CENTER, end]])
        assert feature.bounds is not None
        assert matches(feature, offset(transform, CENTER, 3), transform)
        assert not matches(feature, offset(transform, CENTER, 100), transform)

    def test_only_empty_paths_raises(self, transform):
        feature = polyline_feature('hollow', [[], []])
        with pytest.raises(MalformedGeometryError):
            matches(feature, CENTER, transform)

    def test_empty_polyline_raises(self, transform):
        feature = polyline_feature('empty', [])
        with pytest.raises(MalformedGeometryError):
            matches(feature, CENTER, transform)


def test_same_input_gives_same_answer(transform):
    features = [
        point_feature('p', CENTER),
        polygon_feature('poly', [square(CENTER, 0.01)]),
        polyline_feature('line', [CENTER, offset(transform, CENTER, 100)]),
    ]
    click = offset(transform, CENTER, 4, 4)
    first = [matches(f, click, transform) for f in features]
    second = [matches(f, click, transform) for f in features]
    assert first == second == [True, True, True]
