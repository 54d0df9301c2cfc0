"""
Core modules for Map Inspector.

This package contains the hit-testing and popup disambiguation engine and the
modules that feed it and host it.

Modules:
    features: Rendered features, registry snapshots, clicks and match groups
    transform: Geographic to container-pixel projection
    hit_test: Point, polyline and polygon hit tests
    grouping: Layer identity resolution and grouping of matches
    popup_controller: Single vs. tabbed popup composition and tab switching
    click_arbiter: Session context funnelling feature and map clicks
    surface: Rendering surface protocols and the headless surface
    feature_builder: Build rendered features from layer files
    map_builder: Generate interactive Leaflet maps
    output_generator: Save output files and metadata
"""

__version__ = '1.0.0'
