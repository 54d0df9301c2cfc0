import pytest

from core.grouping import LayerCatalog, group, resolve_match
from core.popup_controller import PopupController, PresentationKind, TabState
from core.surface import HeadlessMapSurface
from conftest import CENTER, point_feature, polygon_feature, square


@pytest.fixture
def controller():
    return PopupController()


def grouped(*features):
    catalog = LayerCatalog()
    return group([resolve_match(f, catalog) for f in features])


def overlapping_layers():
    """Two parcel polygons and one fire station under the same click."""
    return grouped(
        polygon_feature('parcel-1', [square(CENTER, 0.01)], layer_type='A', title='Layer A',
                        content='<p>Lot 1</p>'),
        point_feature('station-1', CENTER, layer_type='B', title='Layer B', content='<p>Station 9</p>'),
        polygon_feature('parcel-2', [square(CENTER, 0.02)], layer_type='A', title='Layer A',
                        content='<p>Lot 2</p>'),
    )


class TestCompose:
    def test_nothing_matched(self, controller):
        presentation = controller.compose(grouped(), CENTER)
        assert presentation.kind == PresentationKind.NONE
        assert presentation.html is None

    def test_single_match_shows_own_content(self, controller):
        presentation = controller.compose(grouped(point_feature('p', CENTER, content='<p>Only</p>')), CENTER)
        assert presentation.kind == PresentationKind.SINGLE
        assert presentation.html == '<p>Only</p>'
        assert presentation.match.feature.feature_id == 'p'
        assert presentation.tabs == []

    def test_tabs_per_layer_group(self, controller):
        presentation = controller.compose(overlapping_layers(), CENTER)
        assert presentation.kind == PresentationKind.TABBED
        assert [tab.label for tab in presentation.tabs] == ['Layer A (2)', 'Layer B']
        assert presentation.html.count('<button') == 2
        assert 'class="mi-tab-btn active" data-tab="tab-0"' in presentation.html
        assert presentation.tab_state.active_key == 'A'

    def test_group_members_concatenated_with_separator(self, controller):
        presentation = controller.compose(overlapping_layers(), CENTER)
        body = presentation.tabs[0].body
        assert body.index('Lot 1') < body.index('Lot 2')
        assert 'mi-entry-separator' in body

    def test_only_first_panel_visible(self, controller):
        html = controller.compose(overlapping_layers(), CENTER).html
        assert 'data-tab="tab-0" style="display: block;"' in html
        assert 'data-tab="tab-1" style="display: none;"' in html

    def test_two_features_from_one_layer_still_tabbed(self, controller):
        result = grouped(
            point_feature('a', CENTER, layer_type='A', title='Layer A'),
            point_feature('b', CENTER, layer_type='A', title='Layer A'),
        )
        presentation = controller.compose(result, CENTER)
        assert presentation.kind == PresentationKind.TABBED
        assert [tab.label for tab in presentation.tabs] == ['Layer A (2)']

    def test_titles_are_escaped_but_content_is_not(self, controller):
        result = grouped(
            point_feature('a', CENTER, layer_type='A', title='<b>Bold</b>', content='<em>a</em>'),
            point_feature('b', CENTER, layer_type='B', title='B'),
        )
        html = controller.compose(result, CENTER).html
        assert '&lt;b&gt;Bold&lt;/b&gt;' in html
        assert '<em>a</em>' in html

    def test_popup_sizes_from_settings(self):
        controller = PopupController({'popup_max_width': 320, 'popup_max_height': 240})
        html = controller.compose(overlapping_layers(), CENTER).html
        assert 'max-width: 320px' in html
        assert 'max-height: 240px' in html


class TestPresent:
    def test_none_opens_nothing(self, controller, surface):
        presentation = controller.compose(grouped(), CENTER)
        assert controller.present(surface, presentation) is None
        assert surface.popup is None

    def test_single_popup_opened(self, controller, surface):
        presentation = controller.compose(grouped(point_feature('p', CENTER, content='<p>x</p>')), CENTER)
        handle = controller.present(surface, presentation)
        assert surface.popup is handle
        assert handle.html == '<p>x</p>'
        assert handle.root.listener_count == 0

    def test_tab_switching(self, controller, surface):
        presentation = controller.compose(overlapping_layers(), CENTER)
        handle = controller.present(surface, presentation)
        root = handle.root

        assert root.listener_count == 1
        assert root.visible_panels == ['tab-0']

        root.click('tab-1')
        assert root.visible_panels == ['tab-1']
        assert root.active_tab_keys == ['tab-1']
        assert presentation.tab_state.active_key == 'B'
        assert [tab.active for tab in presentation.tabs] == [False, True]

        root.click('tab-0')
        assert root.visible_panels == ['tab-0']
        assert presentation.tab_state.active_key == 'A'

    def test_clicks_outside_tabs_ignored(self, controller, surface):
        presentation = controller.compose(overlapping_layers(), CENTER)
        root = controller.present(surface, presentation).root
        root.click(None)
        root.click('tab-9')
        assert root.visible_panels == ['tab-0']
        assert presentation.tab_state.active_key == 'A'

    def test_tab_added_after_mount_switches(self, controller, surface):
        presentation = controller.compose(overlapping_layers(), CENTER)
        root = controller.present(surface, presentation).root

        root.add_tab('tab-2')
        root.click('tab-2')
        assert root.visible_panels == ['tab-2']
        assert root.active_tab_keys == ['tab-2']
        assert [tab.active for tab in presentation.tabs] == [False, False]
        # Not a layer group, so the active group is unchanged
        assert presentation.tab_state.active_key == 'A'

        root.click('tab-1')
        assert root.visible_panels == ['tab-1']
        assert presentation.tab_state.active_key == 'B'

    def test_listener_waits_for_mount(self, controller, transform):
        surface = HeadlessMapSurface(transform, auto_mount=False)
        presentation = controller.compose(overlapping_layers(), CENTER)
        handle = controller.present(surface, presentation)
        assert handle.root is None

        surface.mount_popup()
        assert handle.root.listener_count == 1
        handle.root.click('tab-1')
        assert handle.root.visible_panels == ['tab-1']

    def test_mount_without_root_keeps_first_tab(self, controller, transform):
        surface = HeadlessMapSurface(transform, auto_mount=False)
        presentation = controller.compose(overlapping_layers(), CENTER)
        controller.present(surface, presentation)
        surface.mount_popup(with_root=False)
        assert presentation.tab_state.active_key == 'A'

    def test_popup_closed_before_mount(self, controller, transform):
        surface = HeadlessMapSurface(transform, auto_mount=False)
        first = controller.present(surface, controller.compose(overlapping_layers(), CENTER))
        second = controller.present(surface, controller.compose(overlapping_layers(), CENTER))

        assert first.closed
        assert first.mounted.cancelled()
        assert surface.popup is second

        surface.mount_popup()
        assert second.root.listener_count == 1

    def test_mount_failure_keeps_first_tab(self, controller, transform):
        surface = HeadlessMapSurface(transform, auto_mount=False)
        presentation = controller.compose(overlapping_layers(), CENTER)
        handle = controller.present(surface, presentation)
        handle.mounted.set_exception(RuntimeError('detached'))
        assert presentation.tab_state.active_key == 'A'


def test_invalid_group_cap_rejected():
    with pytest.raises(ValueError):
        PopupController({'max_groups': 0})


def test_tab_state_requires_keys():
    with pytest.raises(ValueError):
        TabState([])


def test_tab_state_activation():
    state = TabState(['A', 'B'])
    assert state.is_active('A')
    assert not state.activate('C')
    assert state.activate('B')
    assert state.is_active('B') and not state.is_active('A')
