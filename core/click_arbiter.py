"""
Click arbitration for Map Inspector.

MapSession is the session-scoped context for one mounted map. It owns the
current feature registry snapshot and the single open popup, and funnels both
click entry points into one aggregation routine:

    Idle -> FeatureClicked | MapClicked -> Suppressed -> Aggregating -> PopupOpen -> Idle

Feature clicks are intercepted so the mapping library never opens its own
single-feature popup; background clicks scan the whole registry because
overlapping features can sit under a pixel that only the topmost one received.

Classes:
    ArbitrationState: States of the click state machine
    MapSession: Registry, popup and click handling for one mounted map
"""

from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from config.config_loader import merge_inspector_settings
from core import hit_test
from core.features import ClickEvent, FeatureMatch, FeatureRegistry, LatLng, RenderedFeature, as_latlng
from core.grouping import LayerCatalog, group, resolve_match
from core.popup_controller import Presentation, PresentationKind, PopupController
from core.surface import MapSurface, PopupHandle
from core.transform import MapTransform
from utils.logger import get_logger

logger = get_logger(__name__)


class ArbitrationState(str, Enum):
    IDLE = 'idle'
    FEATURE_CLICKED = 'feature_clicked'
    MAP_CLICKED = 'map_clicked'
    SUPPRESSED = 'suppressed'
    AGGREGATING = 'aggregating'
    POPUP_OPEN = 'popup_open'


def bounds_overlap(a, b) -> bool:
    return not (a[2] < b[0] or a[0] > b[2] or a[3] < b[1] or a[1] > b[3])


class MapSession:
    """
    Hit-testing and popup state for one mounted map.

    Parameters:
    -----------
    surface : MapSurface
        Rendering surface supplying the transform and popups
    settings : Optional[Dict]
        Inspector settings (see config_loader.load_inspector_settings)
    catalog : Optional[LayerCatalog]
        Known layers for the content-sniffing fallback
    transform_provider : Optional[Callable[[], MapTransform]]
        Returns the transform current at call time. Defaults to
        ``surface.current_transform``

    Example:
        >>> with MapSession(surface, settings, catalog) as session:
        ...     session.redraw(features)
        ...     session.resolve_at((43.2, -71.5))
    """

    def __init__(
        self,
        surface: MapSurface,
        settings: Optional[Dict] = None,
        catalog: Optional[LayerCatalog] = None,
        transform_provider: Optional[Callable[[], MapTransform]] = None,
        controller: Optional[PopupController] = None
    ):
        self.surface = surface
        self.settings = merge_inspector_settings(settings)
        self.catalog = catalog or LayerCatalog(content_sniffing=self.settings['content_sniffing'])
        self.transform_provider = transform_provider or surface.current_transform
        self.controller = controller or PopupController(self.settings)
        self.options = hit_test.ToleranceOptions.from_settings(self.settings)

        self._registry = FeatureRegistry()
        self._popup: Optional[PopupHandle] = None
        self.state = ArbitrationState.IDLE
        self.mounted = False
        self.last_presentation: Optional[Presentation] = None

    # Lifecycle

    def __enter__(self) -> 'MapSession':
        self.mount()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.unmount()

    def mount(self) -> None:
        """Attach click handlers once the surface reports it is ready."""
        self.mounted = True
        self.surface.ready.add_done_callback(self._attach_handlers)

    def _attach_handlers(self, fut) -> None:
        if not self.mounted:
            return
        if fut.cancelled() or fut.exception() is not None:
            logger.warning("Map surface never became ready; click interception not attached")
            return
        self.surface.set_click_handlers(self.on_feature_click, self.on_map_click)
        logger.debug("Click handlers attached")

    def unmount(self) -> None:
        self.close_popup()
        self.mounted = False
        self.surface.clear_click_handlers()
        self._registry = FeatureRegistry(generation=self._registry.generation)
        logger.debug("Map session unmounted")

    # Registry

    @property
    def registry(self) -> FeatureRegistry:
        return self._registry

    def redraw(self, features: Iterable[RenderedFeature]) -> FeatureRegistry:
        """
        Replace the registry with a new snapshot built from ``features``.

        The snapshot is fully built before it becomes visible to clicks.
        """
        snapshot = FeatureRegistry(
            features=tuple(features),
            generation=self._registry.generation + 1
        )
        self.surface.draw(snapshot)
        self._registry = snapshot
        logger.debug(f"Registry generation {snapshot.generation}: {len(snapshot)} features")
        return snapshot

    # Popup

    @property
    def popup(self) -> Optional[PopupHandle]:
        return self._popup

    def close_popup(self) -> None:
        if self._popup is not None:
            self._popup.close()
            self._popup = None
        # Also closes a popup the library opened on its own
        self.surface.close_popup()
        if self.state == ArbitrationState.POPUP_OPEN:
            self._transition(ArbitrationState.IDLE)

    # Click entry points

    def on_feature_click(self, event: ClickEvent) -> None:
        """Intercept a click delivered to a single feature."""
        self._transition(ArbitrationState.FEATURE_CLICKED)
        event.stop_propagation()
        event.prevent_default()
        self._transition(ArbitrationState.SUPPRESSED)
        self.close_popup()
        self._aggregate(event.synthesize())

    def on_map_click(self, event: ClickEvent) -> None:
        """Handle a click on the map background."""
        if event.propagation_stopped:
            return
        self._transition(ArbitrationState.MAP_CLICKED)
        self._aggregate(event)

    def resolve_at(self, latlng: LatLng) -> Presentation:
        """Resolve and present disambiguation at a geographic point."""
        self._transition(ArbitrationState.MAP_CLICKED)
        return self._aggregate(ClickEvent(latlng=latlng, source='synthetic'))

    # Aggregation

    def _aggregate(self, event: ClickEvent) -> Presentation:
        self.close_popup()
        self._transition(ArbitrationState.AGGREGATING)

        latlng = as_latlng(event.latlng)
        matches = self.scan(latlng)
        grouped = group(matches, max_groups=self.settings['max_groups'])
        presentation = self.controller.compose(grouped, latlng)
        self.last_presentation = presentation

        self._popup = self.controller.present(self.surface, presentation)
        if presentation.kind == PresentationKind.NONE:
            logger.debug(f"No features at {latlng}")
            self._transition(ArbitrationState.IDLE)
        else:
            logger.debug(
                f"{grouped.total_matches} feature(s) in {len(grouped)} group(s) at {latlng}"
            )
            self._transition(ArbitrationState.POPUP_OPEN)
        return presentation

    def scan(self, latlng: LatLng, registry: Optional[FeatureRegistry] = None) -> List[FeatureMatch]:
        """
        Hit-test every feature in one registry snapshot.

        Each feature is tested and resolved inside its own failure boundary.
        """
        registry = self._registry if registry is None else registry
        transform = self.transform_provider()
        cull_bounds = self._cull_bounds(latlng, transform)

        results = []
        for feature in registry:
            if cull_bounds is not None and feature.bounds is not None \
                    and not bounds_overlap(feature.bounds, cull_bounds):
                continue
            try:
                if not hit_test.matches(feature, latlng, transform, self.options):
                    continue
                match = resolve_match(feature, self.catalog)
            except Exception as e:
                logger.warning(f"Skipping feature {feature.feature_id}: {e}")
                continue
            if match is not None:
                results.append(match)
        return results

    def _cull_bounds(self, latlng: LatLng, transform: MapTransform):
        if not self.settings['viewport_culling']:
            return None
        if not transform.contains_point(transform.project(latlng)):
            return None
        bounds = transform.visible_bounds(pad_px=self.options.tolerance_px)
        # Views spanning the antimeridian wrap; skip culling there
        if bounds[1] > bounds[3]:
            return None
        return bounds

    def _transition(self, new_state: ArbitrationState) -> None:
        if new_state != self.state:
            logger.debug(f"Click state {self.state.value} -> {new_state.value}")
        self.state = new_state
