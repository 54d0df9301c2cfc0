"""
Popup disambiguation for Map Inspector.

Decides how a grouped click result is shown:
- no matches: nothing opens
- one match: the feature's own popup content, without tabs
- several matches: a tabbed popup with one tab per layer group

Tab switching is wired through a single delegated click listener on the popup
root, installed only after the surface reports the popup as mounted. If the
popup never mounts, mounts without a root, or is closed first, switching is
skipped and the first tab stays visible.

Classes:
    PresentationKind: none / single / tabbed
    Tab: One tab button and its panel
    TabState: Active tab of an open tabbed popup
    Presentation: Composed popup ready to be opened
    PopupController: Composes and opens popups
"""

import itertools
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from config.config_loader import merge_inspector_settings
from core.features import FeatureMatch, GroupedResult, LatLng, LayerGroup
from core.surface import MapSurface, PopupHandle, PopupRoot
from utils.html_generators import join_entries, tab_label
from utils.logger import get_logger

logger = get_logger(__name__)

TEMPLATES_DIR = Path(__file__).parent.parent / 'templates'


class PresentationKind(str, Enum):
    NONE = 'none'
    SINGLE = 'single'
    TABBED = 'tabbed'


@dataclass
class Tab:
    key: str
    dom_key: str
    label: str
    body: str
    active: bool = False


class TabState:
    """Which group's panel is visible. Exactly one key is active."""

    def __init__(self, keys: List[str]):
        if not keys:
            raise ValueError("TabState needs at least one tab")
        self.keys = list(keys)
        self.active_key = self.keys[0]

    def activate(self, key: str) -> bool:
        if key not in self.keys:
            return False
        self.active_key = key
        return True

    def is_active(self, key: str) -> bool:
        return key == self.active_key


@dataclass
class Presentation:
    kind: PresentationKind
    latlng: LatLng
    html: Optional[str] = None
    tabs: List[Tab] = field(default_factory=list)
    tab_state: Optional[TabState] = None
    match: Optional[FeatureMatch] = None

    def tab_for_dom_key(self, dom_key: str) -> Optional[Tab]:
        for tab in self.tabs:
            if tab.dom_key == dom_key:
                return tab
        return None


def build_tabs(groups: List[LayerGroup], separator: str) -> List[Tab]:
    tabs = []
    for index, layer_group in enumerate(groups):
        tabs.append(Tab(
            key=layer_group.key,
            dom_key=f'tab-{index}',
            label=tab_label(layer_group.title, layer_group.count),
            body=join_entries([m.content for m in layer_group.matches], separator),
            active=index == 0
        ))
    return tabs


class PopupController:
    """
    Composes popups from grouped matches and opens them on a surface.

    The controller only reads match content; features are never modified.
    """

    def __init__(self, settings: Optional[Dict] = None, env: Optional[Environment] = None):
        self.settings = merge_inspector_settings(settings)
        if env is None:
            env = Environment(
                loader=FileSystemLoader(str(TEMPLATES_DIR)),
                autoescape=select_autoescape(['html'])
            )
        self._template = env.get_template('tabbed_popup.html')
        self._popup_ids = itertools.count(1)

    def compose(self, grouped: GroupedResult, latlng: LatLng) -> Presentation:
        if grouped.total_matches == 0:
            return Presentation(kind=PresentationKind.NONE, latlng=latlng)

        if grouped.total_matches == 1:
            match = grouped.matches[0]
            return Presentation(
                kind=PresentationKind.SINGLE, latlng=latlng, html=match.content, match=match
            )

        tabs = build_tabs(list(grouped.groups.values()), self.settings['entry_separator'])
        html = self._template.render(
            popup_id=next(self._popup_ids),
            tabs=tabs,
            max_width=self.settings['popup_max_width'],
            max_height=self.settings['popup_max_height']
        )
        return Presentation(
            kind=PresentationKind.TABBED,
            latlng=latlng,
            html=html,
            tabs=tabs,
            tab_state=TabState([tab.key for tab in tabs])
        )

    def present(self, surface: MapSurface, presentation: Presentation) -> Optional[PopupHandle]:
        """Open the composed popup; tabbed popups get tab switching once mounted."""
        if presentation.kind == PresentationKind.NONE:
            return None

        handle = surface.open_popup(presentation.latlng, presentation.html)
        if presentation.kind == PresentationKind.TABBED:
            handle.mounted.add_done_callback(
                lambda fut: self._on_mounted(fut, handle, presentation)
            )
        return handle

    def _on_mounted(self, fut: Future, handle: PopupHandle, presentation: Presentation):
        if fut.cancelled():
            logger.debug("Popup closed before it mounted; tab switching not attached")
            return
        if fut.exception() is not None:
            logger.debug(f"Popup failed to mount ({fut.exception()}); tabs stay on first panel")
            return
        root = fut.result()
        if root is None or handle.closed:
            logger.debug("Popup root unavailable; tabs stay on first panel")
            return
        self.attach_tab_switching(root, presentation)

    def attach_tab_switching(self, root: PopupRoot, presentation: Presentation) -> None:
        """
        Install one delegated listener that handles clicks on every tab button.

        Buttons are looked up in the root when clicked, so tabs added after the
        popup mounted switch like the composed ones. TabState only follows
        tabs that belong to a layer group.
        """
        tab_state = presentation.tab_state

        def on_tab_click(dom_key: Optional[str]):
            if dom_key is None:
                return
            dom_keys = root.dom_keys()
            if dom_key not in dom_keys:
                return
            for key in dom_keys:
                selected = key == dom_key
                root.set_panel_visible(key, selected)
                root.set_tab_active(key, selected)
            for tab in presentation.tabs:
                tab.active = tab.dom_key == dom_key

            tab = presentation.tab_for_dom_key(dom_key)
            if tab is not None:
                tab_state.activate(tab.key)
            logger.debug(f"Switched popup tab to '{tab.key if tab else dom_key}'")

        root.add_click_listener(on_tab_click)
