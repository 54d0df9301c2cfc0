import geopandas as gpd
import pytest
from shapely.geometry import Point, box

import map_inspector
from core.popup_controller import PresentationKind
from utils.logger import setup_logging

LAT, LNG = 43.2081, -71.5376


@pytest.fixture
def layer_files(tmp_path):
    parcels = tmp_path / 'parcels.geojson'
    gpd.GeoDataFrame(
        {'OWNER': ['Town of Concord', 'State'],
         'geometry': [box(LNG - 0.01, LAT - 0.01, LNG + 0.01, LAT + 0.01),
                      box(LNG - 0.02, LAT - 0.02, LNG + 0.02, LAT + 0.02)]},
        crs='EPSG:4326'
    ).to_file(parcels, driver='GeoJSON')

    stations = tmp_path / 'fire_stations.geojson'
    gpd.GeoDataFrame(
        {'NAME': ['Station 4'], 'geometry': [Point(LNG, LAT)]},
        crs='EPSG:4326'
    ).to_file(stations, driver='GeoJSON')

    return [str(parcels), str(stations)]


def test_inspect_point_overlapping_layers(layer_files):
    presentation = map_inspector.inspect_point(layer_files, LAT, LNG)
    assert presentation.kind == PresentationKind.TABBED
    assert [tab.label for tab in presentation.tabs] == ['Parcels (2)', 'Fire Stations']
    assert 'Town of Concord' in presentation.tabs[0].body


def test_inspect_point_single_layer(layer_files):
    presentation = map_inspector.inspect_point(layer_files, LAT + 0.015, LNG)
    assert presentation.kind == PresentationKind.SINGLE
    assert 'State' in presentation.html


def test_inspect_point_nothing(layer_files):
    presentation = map_inspector.inspect_point(layer_files, LAT + 1, LNG)
    assert presentation.kind == PresentationKind.NONE


def test_main_writes_map(layer_files, tmp_path, monkeypatch):
    monkeypatch.setattr(map_inspector, 'setup_logging', lambda **kwargs: setup_logging(tmp_path / 'logs', **kwargs))
    output_path = map_inspector.main(layer_files, 'run', output_dir=tmp_path / 'out')

    assert output_path == tmp_path / 'out' / 'run'
    assert (output_path / 'index.html').exists()
    assert (output_path / 'metadata.json').exists()


def test_main_reports_failure(tmp_path, monkeypatch):
    monkeypatch.setattr(map_inspector, 'setup_logging', lambda **kwargs: setup_logging(tmp_path / 'logs', **kwargs))
    assert map_inspector.main([str(tmp_path / 'missing.geojson')], output_dir=tmp_path) is None


def test_cli_inspect_prints_popup(layer_files, tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(map_inspector, 'setup_logging', lambda **kwargs: setup_logging(tmp_path / 'logs', **kwargs))
    exit_code = map_inspector.cli(['inspect', *layer_files, '--lat', str(LAT), '--lng', str(LNG)])
    assert exit_code == 0
    assert 'mi-disambiguation' in capsys.readouterr().out
