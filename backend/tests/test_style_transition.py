from __future__ import annotations

from lifecycle.controller import MapSurfaceState
from mapstyle.transition import TransitionPhase


def _booted(make_view, scheduler, make_location, **kwargs):
    view = make_view(**kwargs)
    view.set_locations(
        [
            make_location("a", -28.0, 153.4),
            make_location("b", -28.1, 153.3),
            make_location("c", -27.9, 153.5),
        ]
    )
    view.mount("pk.test")
    scheduler.run_until_idle()
    assert view.state == MapSurfaceState.IDLE
    return view


def test_swap_destroys_and_rebuilds_markers(make_view, scheduler, make_location):
    view = _booted(make_view, scheduler, make_location)
    surface = view.controller.surface
    before = {i: view.reconciler.native_marker(i) for i in view.reconciler.live_ids}
    assert set(before) == {"a", "b", "c"}

    assert view.set_style("light")
    assert view.state == MapSurfaceState.STYLE_TRANSITIONING
    assert len(view.reconciler) == 0
    assert surface.markers == []

    scheduler.run_until_idle()

    assert view.state == MapSurfaceState.IDLE
    assert view.style == "light"
    assert view.reconciler.live_ids == {e.id for e in view.visible}
    assert all(view.reconciler.native_marker(i) is not m for i, m in before.items())
    assert len(surface.markers) == 3
    assert surface.style_url == "mapbox://styles/mapbox/light-v11"


def test_markers_are_not_touched_while_transitioning(make_view, scheduler, make_location):
    view = _booted(make_view, scheduler, make_location)
    view.set_style("streets")

    view.set_locations([make_location("d", -28.0, 153.45)])
    view.select("d")
    assert len(view.reconciler) == 0
    assert view.reconciler.pending

    scheduler.run_until_idle()
    assert view.reconciler.live_ids == {"d"}
    assert view.reconciler.native_marker("d").element.selected


def test_theme_is_applied_after_style_settles(make_view, scheduler, make_location):
    view = _booted(make_view, scheduler, make_location)
    surface = view.controller.surface

    view.set_style("blueprint")
    # Nothing themed until the new style has loaded and the delay elapsed.
    scheduler.advance(0.1)
    assert view.styles.phase in (TransitionPhase.AWAITING_IDLE, TransitionPhase.THEMING)
    assert view.styles.last_report is None

    scheduler.run_until_idle()

    assert surface.get_layer("water").paint["fill-color"] == "#0d2847"
    assert view.styles.last_report is not None
    assert view.styles.phase == TransitionPhase.IDLE


def test_theme_pass_retries_until_style_reports_loaded(make_view, scheduler, make_location):
    view = _booted(make_view, scheduler, make_location)
    surface = view.controller.surface
    view.set_style("blueprint")
    # Load the style, then pretend it is still loading when the theme pass fires.
    scheduler.advance(0.1)
    surface._style_loaded = False
    scheduler.advance(0.16)
    assert view.state == MapSurfaceState.STYLE_TRANSITIONING

    surface._style_loaded = True
    scheduler.run_until_idle()
    assert view.state == MapSurfaceState.IDLE
    assert surface.get_layer("road-primary").paint["line-color"] == "#00d4ff"


def test_rapid_swaps_converge_on_the_last_request(make_view, scheduler, make_location):
    view = _booted(make_view, scheduler, make_location)
    applied = []
    view.on_style_change = applied.append
    surface = view.controller.surface

    view.set_style("blueprint")
    scheduler.advance(0.1)
    view.set_style("satellite")
    view.set_style("outdoors")
    scheduler.run_until_idle()

    assert view.style == "outdoors"
    assert applied == ["outdoors"]
    assert surface.style_url == "mapbox://styles/mapbox/outdoors-v12"
    # The blueprint pass was superseded before it ran.
    assert view.styles.last_report is None
    assert view.reconciler.live_ids == {e.id for e in view.visible}


def test_same_or_unknown_style_is_ignored(make_view, scheduler, make_location):
    view = _booted(make_view, scheduler, make_location)
    swaps = view.controller.surface.style_swaps
    assert not view.set_style("dark")
    assert not view.set_style("does-not-exist")
    assert view.controller.surface.style_swaps == swaps
    assert view.state == MapSurfaceState.IDLE


def test_request_while_booting_is_deferred(make_view, scheduler, make_location):
    view = make_view()
    view.set_locations([make_location("a", -28.0, 153.4)])
    view.mount("pk.test")
    assert view.set_style("light")
    assert view.styles.deferred == "light"

    scheduler.run_until_idle()

    assert view.style == "light"
    assert view.state == MapSurfaceState.IDLE
    assert view.reconciler.live_ids == {"a"}


def test_3d_style_applies_terrain_and_leaving_removes_it(make_view, scheduler, make_location):
    view = _booted(make_view, scheduler, make_location)
    surface = view.controller.surface

    view.set_style("satellite-3d")
    scheduler.run_until_idle()
    assert surface.terrain is not None
    assert surface.get_layer("3d-buildings") is not None
    assert surface.pitch == 60.0

    view.set_style("dark")
    scheduler.run_until_idle()
    assert surface.terrain is None
    assert surface.get_layer("3d-buildings") is None
    assert surface.pitch == 0.0
    assert view.reconciler.live_ids == {e.id for e in view.visible}


def test_leaving_3d_survives_renderer_layer_errors(make_view, scheduler, make_location, monkeypatch):
    view = _booted(make_view, scheduler, make_location)
    surface = view.controller.surface
    view.set_style("satellite-3d")
    scheduler.run_until_idle()

    def broken_get_layer(layer_id):
        raise RuntimeError("layer lookup failed")

    monkeypatch.setattr(surface, "get_layer", broken_get_layer)
    view.set_style("dark")
    scheduler.run_until_idle()

    assert view.style == "dark"
    assert view.state == MapSurfaceState.IDLE
    assert surface.terrain is None
    assert view.reconciler.live_ids == {e.id for e in view.visible}


def test_initial_themed_style_is_themed_after_first_load(make_view, scheduler, make_location):
    view = _booted(make_view, scheduler, make_location, style_name="blueprint")
    surface = view.controller.surface
    assert surface.get_layer("water").paint["fill-color"] == "#0d2847"
    assert view.styles.transitions_completed == 0


def test_teardown_mid_transition_drops_pending_passes(make_view, scheduler, make_location):
    view = _booted(make_view, scheduler, make_location)
    surface = view.controller.surface
    view.set_style("blueprint")
    scheduler.advance(0.1)

    view.unmount()
    scheduler.run_until_idle()

    assert view.state == MapSurfaceState.DESTROYED
    assert surface.removed
    assert view.styles.last_report is None
