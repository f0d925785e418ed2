from __future__ import annotations

import pytest

from geo.bounds import ViewportBounds
from geo.filter import FilterCriteria
from lifecycle.controller import MapSurfaceState
from locations.colors import MONO_COLOR, ColorMode, category_color


@pytest.fixture
def abc(make_location):
    return {
        "A": make_location("A", -33.0, 151.0, category="Music Industry"),
        "B": make_location("B", -37.0, 145.0, category="Other"),
        "C": make_location("C", -28.0, 153.0, category="Visual Arts, Design & Craft"),
        "D": make_location("D", -27.5, 152.9, category="Other"),
    }


@pytest.fixture
def passes():
    return []


@pytest.fixture
def view(make_view, scheduler, passes):
    v = make_view(on_reconcile=passes.append)
    v.fit.suppress()
    v.mount("pk.test")
    scheduler.run_until_idle()
    assert v.state == MapSurfaceState.IDLE
    return v


ALL_AUSTRALIA = ViewportBounds(north=-10.0, south=-44.0, east=155.0, west=112.0)


def test_viewport_expansion_creates_only_the_new_marker(view, passes, abc):
    view.set_bounds(ViewportBounds(north=-27.0, south=-34.0, east=154.0, west=150.0))
    view.set_locations([abc["A"], abc["B"], abc["C"]])

    assert {e.id for e in view.visible} == {"A", "C"}
    assert sorted(passes[-1].created) == ["A", "C"]
    a, c = view.reconciler.native_marker("A"), view.reconciler.native_marker("C")

    view.set_bounds(ALL_AUSTRALIA)

    assert passes[-1].created == ["B"]
    assert passes[-1].removed == []
    assert view.reconciler.native_marker("A") is a
    assert view.reconciler.native_marker("C") is c


def test_color_mode_switch_restyles_without_churn(view, passes, abc):
    modes = []
    view.on_color_mode_change = modes.append
    view.set_bounds(ALL_AUSTRALIA)
    view.set_locations([abc["A"], abc["B"], abc["C"]])
    created = view.controller.surface.markers_created

    view.set_color_mode("monochrome")

    stats = passes[-1]
    assert stats.created == [] and stats.removed == []
    assert sorted(stats.restyled) == ["A", "B", "C"]
    assert view.controller.surface.markers_created == created
    assert {m.element.color for m in view.controller.surface.markers} == {MONO_COLOR}
    assert modes == [ColorMode.MONOCHROME]

    view.set_color_mode(ColorMode.BY_CATEGORY)
    assert view.reconciler.native_marker("A").element.color == category_color("Music Industry")


def test_blueprint_switch_rebuilds_markers_one_to_one(view, scheduler, abc):
    view.set_bounds(ALL_AUSTRALIA)
    view.set_locations([abc["A"], abc["B"], abc["C"]])
    surface = view.controller.surface
    before = set(view.reconciler.live_ids)
    removed_before = surface.markers_removed

    view.set_style("blueprint")
    assert surface.markers_removed - removed_before == 3
    scheduler.run_until_idle()

    assert view.state == MapSurfaceState.IDLE
    assert view.reconciler.live_ids == before
    assert len(surface.markers) == 3
    themed = set(view.styles.last_report.themed)
    assert {"water", "road-primary", "building"} <= themed


def test_dataset_refresh_swaps_only_changed_ids(view, passes, abc, make_location):
    view.set_bounds(ALL_AUSTRALIA)
    view.set_locations([abc["A"], abc["B"], abc["C"]])
    a = view.reconciler.native_marker("A")
    c = view.reconciler.native_marker("C")

    moved_c = make_location("C", -28.2, 153.1, category="Visual Arts, Design & Craft")
    view.set_locations([abc["A"], moved_c, abc["D"]])

    stats = passes[-1]
    assert stats.removed == ["B"]
    assert stats.created == ["D"]
    assert stats.moved == ["C"]
    assert view.reconciler.native_marker("A") is a
    assert view.reconciler.native_marker("C") is c
    assert (c.lat, c.lng) == (-28.2, 153.1)


def test_first_load_frames_once_and_filtering_keeps_camera(make_view, scheduler, make_location):
    view = make_view()
    rows = [
        make_location("p1", -28.00, 153.40, name="Surf Club"),
        make_location("p2", -28.05, 153.45, name="Studio One"),
        make_location("p3", -27.95, 153.35, name="Studio Two"),
        make_location("p4", -28.10, 153.30, name="Gallery"),
        make_location("p5", -27.90, 153.50, name="Hall"),
    ]
    view.set_locations(rows)
    view.mount("pk.test")
    scheduler.run_until_idle()
    surface = view.controller.surface
    assert len(surface.fit_calls) == 1
    camera = (surface.center, surface.zoom)
    assert len(view.visible) == 5

    view.set_filters(FilterCriteria(search="studio"))
    scheduler.run_until_idle()

    assert {e.id for e in view.visible} == {"p2", "p3"}
    assert view.reconciler.live_ids == {"p2", "p3"}
    assert len(surface.fit_calls) == 1
    assert (surface.center, surface.zoom) == camera


def test_marker_click_selects_location(view, abc):
    picked = []
    view.on_location_select = picked.append
    view.set_bounds(ALL_AUSTRALIA)
    view.set_locations([abc["A"]])

    view.controller.surface.click_marker(view.reconciler.native_marker("A"))
    assert picked == [abc["A"]]

    view.select("A")
    assert view.reconciler.native_marker("A").element.selected


def test_favorites_decorate_and_filter(view, abc):
    view.set_bounds(ALL_AUSTRALIA)
    view.set_locations([abc["A"], abc["B"]])
    view.set_favorites({"B"})
    assert view.reconciler.native_marker("B").element.favorite

    view.set_filters(FilterCriteria(favorites_only=True))
    assert view.reconciler.live_ids == {"B"}


def test_add_mode_forwards_map_clicks_and_places_temp_marker(view, scheduler):
    clicks = []
    view.on_map_click = lambda lat, lng: clicks.append((lat, lng))
    surface = view.controller.surface

    surface.click_map(-28.0, 153.0)
    assert clicks == []

    view.set_add_mode(True)
    surface.click_map(-28.0, 153.0)
    assert clicks == [(-28.0, 153.0)]

    view.set_temp_marker((-28.0, 153.0))
    assert len(surface.markers) == 1
    assert len(view.reconciler) == 0

    # Survives a style swap.
    view.set_style("light")
    assert surface.markers == []
    scheduler.run_until_idle()
    assert [(m.lat, m.lng) for m in surface.markers] == [(-28.0, 153.0)]

    view.set_add_mode(False)
    assert surface.markers == []
    assert view.temp_marker is None


def test_bounds_changes_reach_the_host(make_view, scheduler):
    seen = []
    view = make_view(on_bounds_change=seen.append)
    view.mount("pk.test")
    scheduler.run_until_idle()
    assert len(seen) == 1
    assert seen[0] == view.bounds


def test_host_callback_errors_are_contained(view, abc):
    def broken(entity):
        raise RuntimeError("host bug")

    view.on_location_select = broken
    view.set_bounds(ALL_AUSTRALIA)
    view.set_locations([abc["A"]])
    view.controller.surface.click_marker(view.reconciler.native_marker("A"))
    assert view.reconciler.live_ids == {"A"}


def test_unmount_destroys_markers_and_stops_updates(view, abc):
    view.set_bounds(ALL_AUSTRALIA)
    view.set_locations([abc["A"], abc["B"]])
    surface = view.controller.surface

    view.unmount()
    view.unmount()

    assert surface.removed
    assert len(view.reconciler) == 0
    view.set_locations([abc["C"]])
    assert len(view.reconciler) == 0
    assert view.state == MapSurfaceState.DESTROYED


def test_resize_is_coalesced(view, scheduler):
    surface = view.controller.surface
    for w in (1000, 1100, 1200):
        view.observe_resize(w, 700)
    scheduler.run_until_idle()
    assert surface.resize_count == 1
    assert surface.width == 1200


def test_long_session_does_not_accumulate_timers(view, scheduler):
    surface = view.controller.surface
    for n in range(50):
        surface.jump_to((-28.0 + n * 0.01, 153.0), 9.0)
        scheduler.run_until_idle()
    assert surface.pending_timers == 0
