from __future__ import annotations

import itertools

import pytest

from geo.bounds import ViewportBounds
from geo.filter import (
    FilterCriteria,
    filter_locations,
    filter_visible,
    matches_search,
)


@pytest.fixture
def dataset(make_location):
    return [
        make_location("a", -33.0, 151.0, category="Music Industry", suburb="Sydney", state="NSW"),
        make_location("b", -37.0, 145.0, category="Other", suburb="Melbourne", state="VIC"),
        make_location(
            "c",
            -28.0,
            153.0,
            category="Music Industry",
            suburb="Gold Coast",
            state="QLD",
            description="Recording studio by the beach",
        ),
        make_location("d", -28.64, 153.61, category="Other", suburb="Byron Bay", state="NSW"),
        make_location("bad", float("nan"), 153.0, category="Other"),
    ]


def _ids(rows):
    return {r.id for r in rows}


def test_bounds_keep_only_points_inside(dataset):
    east_coast = ViewportBounds(north=-27.0, south=-34.0, east=154.0, west=150.0)
    assert _ids(filter_visible(dataset, east_coast)) == {"a", "c", "d"}


def test_no_bounds_means_no_spatial_filter(dataset):
    assert _ids(filter_visible(dataset, None)) == {"a", "b", "c", "d", "bad"}


def test_points_on_the_edge_are_inside(make_location):
    b = ViewportBounds(north=-28.0, south=-30.0, east=153.0, west=151.0)
    assert _ids(filter_visible([make_location("edge", -28.0, 153.0)], b)) == {"edge"}


def test_search_matches_name_suburb_state_and_description(dataset):
    assert _ids(filter_visible(dataset, None, search="gold coast")) == {"c"}
    assert _ids(filter_visible(dataset, None, search="STUDIO")) == {"c"}
    assert _ids(filter_visible(dataset, None, search="nsw")) == {"a", "d"}
    assert matches_search(dataset[0], "")


def test_search_is_a_plain_substring_match(dataset):
    # Whitespace is part of the query.
    assert _ids(filter_visible(dataset, None, search="   ")) == set()
    assert _ids(filter_visible(dataset, None, search="gold ")) == {"c"}
    assert _ids(filter_visible(dataset, None, search="byron  bay")) == set()


def test_category_filter(dataset):
    rows = filter_visible(dataset, None, categories=["Music Industry"])
    assert _ids(rows) == {"a", "c"}


def test_output_keeps_input_order(dataset):
    rows = filter_visible(dataset, None, categories=["Other"])
    assert [r.id for r in rows] == ["b", "d", "bad"]


def test_filters_commute(dataset):
    bounds = ViewportBounds(north=-27.0, south=-38.0, east=154.0, west=144.0)
    criteria = FilterCriteria(search="e", categories=frozenset({"Other"}))

    steps = {
        "bounds": lambda rows: filter_locations(rows, bounds, FilterCriteria()),
        "search": lambda rows: filter_locations(rows, None, FilterCriteria(search=criteria.search)),
        "categories": lambda rows: filter_locations(
            rows, None, FilterCriteria(categories=criteria.categories)
        ),
    }
    expected = _ids(filter_locations(dataset, bounds, criteria))
    assert expected == {"b"}
    for order in itertools.permutations(steps):
        rows = dataset
        for name in order:
            rows = steps[name](rows)
        assert _ids(rows) == expected


def test_antimeridian_bounds_cover_both_sides(make_location):
    rows = [
        make_location("fiji", -17.7, 178.0),
        make_location("samoa", -13.8, -172.0),
        make_location("sydney", -33.9, 151.2),
    ]
    pacific = ViewportBounds(north=0.0, south=-25.0, east=-170.0, west=170.0)
    assert pacific.crosses_antimeridian
    assert len(pacific.boxes()) == 2
    assert _ids(filter_visible(rows, pacific)) == {"fiji", "samoa"}


def test_transposed_entity_is_filtered_at_its_corrected_position(make_location):
    swapped = make_location("swapped", 153.4, -28.0)
    b = ViewportBounds(north=-27.0, south=-29.0, east=154.0, west=153.0)
    assert _ids(filter_visible([swapped], b)) == {"swapped"}


def test_region_presets(dataset):
    rows = filter_locations(dataset, None, FilterCriteria(region="Northern Rivers"))
    assert _ids(rows) == {"d"}
    rows = filter_locations(dataset, None, FilterCriteria(region="Gold Coast"))
    assert _ids(rows) == {"c"}
    rows = filter_locations(dataset, None, FilterCriteria(region="All Australia"))
    assert len(rows) == len(dataset)


def test_favorites_only(dataset):
    rows = filter_locations(
        dataset,
        None,
        FilterCriteria(favorites_only=True),
        favorite_ids={"b", "zzz"},
    )
    assert _ids(rows) == {"b"}


def test_bounds_from_points_and_center():
    b = ViewportBounds.from_points([(-33.0, 151.0), (-28.0, 153.0), (-37.0, 145.0)])
    assert b == ViewportBounds(north=-28.0, south=-37.0, east=153.0, west=145.0)
    assert ViewportBounds.from_points([]) is None
    assert b.center() == (-32.5, 149.0)
    assert ViewportBounds.from_dict(b.as_dict()) == b
