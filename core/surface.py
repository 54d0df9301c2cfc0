"""
Rendering surface interfaces for Map Inspector.

The click arbiter and popup controller talk to the mapping library only
through the protocols below. A surface supplies the current map transform,
opens and closes the single popup, and reports readiness through futures:
``ready`` resolves once the map can accept click handlers, and each popup's
``mounted`` future resolves with the popup's root node once its markup is in
the document (or with None if no root is available).

HeadlessMapSurface is the in-memory implementation used for scripted
inspection and for the test suite. Its ``click`` method replays the mapping
library's native event order: the feature's own handler first, then the
library's default single-feature popup unless prevented, then the map click
unless propagation was stopped.

Classes:
    PopupRoot, PopupHandle, MapSurface: Surface protocols
    HeadlessPopupRoot: Tracks panel visibility and the active tab button
    HeadlessPopup: One opened popup
    HeadlessMapSurface: In-memory map surface
"""

import re
from concurrent.futures import Future
from typing import Callable, Dict, List, Optional, Protocol
from core.features import ClickEvent, FeatureRegistry, LatLng
from core.transform import MapTransform
from utils.logger import get_logger

logger = get_logger(__name__)

ClickHandler = Callable[[ClickEvent], None]
TabClickHandler = Callable[[Optional[str]], None]

TAB_BUTTON_RE = re.compile(
    r'<button[^>]*class="mi-tab-btn(?P<active> active)?"[^>]*data-tab="(?P<key>[^"]+)"'
)


class PopupRoot(Protocol):
    def add_click_listener(self, handler: TabClickHandler) -> None:
        """Install a delegated click listener receiving the clicked tab's data-tab value."""

    def dom_keys(self) -> List[str]:
        """data-tab values of every tab button currently in the popup."""

    def set_panel_visible(self, dom_key: str, visible: bool) -> None:
        ...

    def set_tab_active(self, dom_key: str, active: bool) -> None:
        ...


class PopupHandle(Protocol):
    latlng: LatLng
    html: str
    mounted: Future
    closed: bool

    def close(self) -> None:
        ...


class MapSurface(Protocol):
    ready: Future

    def current_transform(self) -> MapTransform:
        ...

    def open_popup(self, latlng: LatLng, html: str) -> PopupHandle:
        ...

    def close_popup(self) -> None:
        ...

    def draw(self, registry: FeatureRegistry) -> None:
        ...

    def set_click_handlers(self, on_feature_click: ClickHandler, on_map_click: ClickHandler) -> None:
        ...

    def clear_click_handlers(self) -> None:
        ...


class HeadlessPopupRoot:
    """Root node of a mounted headless popup."""

    def __init__(self, tab_keys: List[str], active_key: Optional[str] = None):
        self.tab_keys = list(tab_keys)
        self.panels: Dict[str, bool] = {key: key == active_key for key in self.tab_keys}
        self.active_tabs: Dict[str, bool] = {key: key == active_key for key in self.tab_keys}
        self._listeners: List[TabClickHandler] = []

    @classmethod
    def from_html(cls, markup: str) -> 'HeadlessPopupRoot':
        keys = []
        active = None
        for found in TAB_BUTTON_RE.finditer(markup):
            keys.append(found.group('key'))
            if found.group('active') and active is None:
                active = found.group('key')
        return cls(keys, active)

    def add_click_listener(self, handler: TabClickHandler) -> None:
        self._listeners.append(handler)

    def dom_keys(self) -> List[str]:
        return list(self.tab_keys)

    def set_panel_visible(self, dom_key: str, visible: bool) -> None:
        self.panels[dom_key] = visible

    def set_tab_active(self, dom_key: str, active: bool) -> None:
        self.active_tabs[dom_key] = active

    def add_tab(self, dom_key: str) -> None:
        self.tab_keys.append(dom_key)
        self.panels[dom_key] = False
        self.active_tabs[dom_key] = False

    def click(self, dom_key: Optional[str]) -> None:
        """Dispatch a click on the tab button with ``dom_key`` (None = outside any tab)."""
        for listener in list(self._listeners):
            listener(dom_key)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    @property
    def visible_panels(self) -> List[str]:
        return [key for key, visible in self.panels.items() if visible]

    @property
    def active_tab_keys(self) -> List[str]:
        return [key for key, active in self.active_tabs.items() if active]


class HeadlessPopup:
    def __init__(self, surface: 'HeadlessMapSurface', latlng: LatLng, html: str):
        self._surface = surface
        self.latlng = latlng
        self.html = html
        self.mounted: Future = Future()
        self.closed = False
        self.root: Optional[HeadlessPopupRoot] = None

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if not self.mounted.done():
            self.mounted.cancel()
        self._surface._forget(self)


class HeadlessMapSurface:
    """
    In-memory MapSurface.

    Parameters:
    -----------
    transform : MapTransform
        Initial view
    auto_ready : bool
        Resolve ``ready`` immediately
    auto_mount : bool
        Mount every popup as soon as it opens; otherwise call ``mount_popup``
    """

    def __init__(self, transform: MapTransform, auto_ready: bool = True, auto_mount: bool = True):
        self._transform = transform
        self.auto_mount = auto_mount
        self.ready: Future = Future()
        self.registry = FeatureRegistry()
        self.popup: Optional[HeadlessPopup] = None
        self.history: List[HeadlessPopup] = []
        self._on_feature_click: Optional[ClickHandler] = None
        self._on_map_click: Optional[ClickHandler] = None
        if auto_ready:
            self.ready.set_result(self)

    def current_transform(self) -> MapTransform:
        return self._transform

    def set_view(self, center: LatLng = None, zoom: float = None) -> None:
        self._transform = self._transform.with_view(center=center, zoom=zoom)

    def draw(self, registry: FeatureRegistry) -> None:
        self.registry = registry

    def set_click_handlers(self, on_feature_click: ClickHandler, on_map_click: ClickHandler) -> None:
        self._on_feature_click = on_feature_click
        self._on_map_click = on_map_click

    def clear_click_handlers(self) -> None:
        self._on_feature_click = None
        self._on_map_click = None

    def open_popup(self, latlng: LatLng, html: str) -> HeadlessPopup:
        # One popup at a time, as in Leaflet's default map popup behaviour
        self.close_popup()
        popup = HeadlessPopup(self, latlng, html)
        self.popup = popup
        self.history.append(popup)
        if self.auto_mount:
            self.mount_popup()
        return popup

    def mount_popup(self, with_root: bool = True) -> None:
        """Resolve the open popup's ``mounted`` future, optionally without a DOM root."""
        popup = self.popup
        if popup is None or popup.mounted.done():
            return
        popup.root = HeadlessPopupRoot.from_html(popup.html) if with_root else None
        popup.mounted.set_result(popup.root)

    def close_popup(self) -> None:
        if self.popup is not None:
            self.popup.close()

    def _forget(self, popup: HeadlessPopup) -> None:
        if self.popup is popup:
            self.popup = None

    def click(self, latlng: LatLng, feature_id: Optional[str] = None) -> ClickEvent:
        """
        Simulate a user click, optionally landing on the feature ``feature_id``.

        Returns the last event dispatched.
        """
        if feature_id is not None:
            event = ClickEvent(latlng=latlng, source='feature', feature_id=feature_id)
            if self._on_feature_click is not None:
                self._on_feature_click(event)
            if not event.default_prevented:
                feature = self.registry.get(feature_id)
                if feature is not None and feature.popup_content:
                    logger.debug(f"Library default popup opened for {feature_id}")
                    self.open_popup(latlng, feature.popup_content)
            if event.propagation_stopped:
                return event

        event = ClickEvent(latlng=latlng, source='map')
        if self._on_map_click is not None:
            self._on_map_click(event)
        return event
