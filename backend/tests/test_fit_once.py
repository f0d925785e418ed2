from __future__ import annotations

from camera.fit_once import FitState, dataset_bounds
from geo.bounds import ViewportBounds
from geo.filter import FilterCriteria


def test_frames_first_non_empty_dataset_once(make_view, scheduler, make_location):
    view = make_view()
    view.mount("pk.test")
    scheduler.run_until_idle()
    surface = view.controller.surface

    view.set_locations([])
    scheduler.run_until_idle()
    assert surface.fit_calls == []
    assert view.fit.state == FitState.ARMED

    view.set_locations([make_location("a", -33.0, 151.0), make_location("b", -28.0, 153.0)])
    scheduler.run_until_idle()
    assert len(surface.fit_calls) == 1
    call = surface.fit_calls[0]
    assert call["padding"] == 50.0
    assert call["maxZoom"] == 12.0
    assert call["bounds"] == {"north": -28.0, "south": -33.0, "east": 153.0, "west": 151.0}

    for n in range(5):
        view.set_locations([make_location(f"x{n}", -20.0 - n, 140.0 + n)])
        scheduler.run_until_idle()
    assert len(surface.fit_calls) == 1


def test_dataset_before_ready_is_framed_on_ready(make_view, scheduler, make_location):
    view = make_view()
    view.set_locations([make_location("a", -33.0, 151.0)])
    view.mount("pk.test")
    assert view.fit.state == FitState.ARMED

    scheduler.run_until_idle()
    surface = view.controller.surface
    assert len(surface.fit_calls) == 1
    assert view.fit.state == FitState.FIRED
    # A single point fits at the zoom ceiling.
    assert surface.zoom == 12.0


def test_remount_rearms_the_latch(make_view, scheduler, make_location):
    view = make_view()
    view.set_locations([make_location("a", -33.0, 151.0)])
    view.mount("pk.test")
    scheduler.run_until_idle()
    assert view.fit.state == FitState.FIRED

    view.unmount()
    assert view.fit.state == FitState.ARMED


def test_suppressed_fit_keeps_host_camera(make_view, scheduler, make_location):
    view = make_view()
    view.fit.suppress()
    view.set_locations([make_location("a", -33.0, 151.0)])
    view.mount("pk.test")
    scheduler.run_until_idle()
    assert view.controller.surface.fit_calls == []


def test_filter_changes_never_refit(make_view, scheduler, make_location):
    view = make_view()
    view.set_locations([make_location("a", -33.0, 151.0), make_location("b", -28.0, 153.0)])
    view.mount("pk.test")
    scheduler.run_until_idle()

    view.set_filters(FilterCriteria(search="Location a"))
    scheduler.run_until_idle()
    assert len(view.controller.surface.fit_calls) == 1


def test_dataset_bounds_normalize_and_skip_unusable(make_location):
    rows = [
        make_location("swapped", 153.0, -28.0),
        make_location("ok", -33.0, 151.0),
        make_location("nan", float("nan"), 0.0),
    ]
    assert dataset_bounds(rows) == ViewportBounds(north=-28.0, south=-33.0, east=153.0, west=151.0)
    assert dataset_bounds([make_location("nan", float("nan"), 0.0)]) is None


def test_later_dataset_before_mount_does_not_replace_first(make_view, scheduler, make_location):
    view = make_view()
    view.set_locations([make_location("a", -33.0, 151.0), make_location("b", -37.0, 145.0)])
    view.set_locations([make_location("c", -12.0, 130.0)])
    view.mount("pk.test")
    scheduler.run_until_idle()

    assert view.fit.state == FitState.FIRED
    assert view.fit.fitted_bounds == ViewportBounds(north=-33.0, south=-37.0, east=151.0, west=145.0)


def test_dataset_emptied_before_mount_is_still_framed(make_view, scheduler, make_location):
    view = make_view()
    view.set_locations([make_location("a", -33.0, 151.0)])
    view.set_locations([])
    view.mount("pk.test")
    scheduler.run_until_idle()

    assert view.fit.state == FitState.FIRED
    assert len(view.controller.surface.fit_calls) == 1
    assert view.fit.fitted_bounds.south == -33.0
