"""Tests for dashboard filtering and sorting."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from core.exceptions import ValidationError
from services.view_filter import FilterSet, SortOption, apply_view_filters, sort_properties

BASE = datetime(2026, 1, 1, tzinfo=timezone.utc)


def record(id_, **fields):
    values = {
        "id": id_,
        "folder_id": "f1",
        "title": f"Piso {id_}",
        "address": "Madrid",
        "notes": "",
        "price": 100000,
        "rooms": 2,
        "bathrooms": 1,
        "environments": 3,
        "sqft": 70,
        "parking": 0,
        "status": "Wishlist",
        "rating": 3,
        "created_at": BASE,
    }
    values.update(fields)
    return values


@pytest.fixture
def records():
    return [
        record("a", price=300000, sqft=120, rating=5, created_at=BASE + timedelta(days=1)),
        record("b", price=150000, sqft=60, rating=2, notes="Reformar cocina", created_at=BASE + timedelta(days=3)),
        record("c", folder_id="f2", price=220000, sqft=90, status="Visited", created_at=BASE + timedelta(days=2)),
        record("d", price=150000, sqft=60, rooms=4, parking=1, title="Chalet Pozuelo", created_at=BASE),
    ]


def ids(items):
    return [item["id"] for item in items]


def test_no_filters_sorts_newest_first(records):
    assert ids(apply_view_filters(records)) == ["b", "c", "a", "d"]


def test_active_folder(records):
    assert ids(apply_view_filters(records, active_folder_id="f2")) == ["c"]


def test_query_matches_title_address_notes_case_insensitively(records):
    assert ids(apply_view_filters(records, query="COCINA")) == ["b"]
    assert ids(apply_view_filters(records, query="pozuelo")) == ["d"]
    assert len(apply_view_filters(records, query="madrid")) == 4


def test_thresholds(records):
    filters = FilterSet(max_price=200000, min_rooms=3)
    assert ids(apply_view_filters(records, filters=filters)) == ["d"]


def test_zero_threshold_is_a_real_filter(records):
    filters = FilterSet(min_parking=0)
    assert len(apply_view_filters(records, filters=filters)) == 4
    assert filters.active_filter_count() == 1


def test_status_and_rating(records):
    assert ids(apply_view_filters(records, filters=FilterSet(status="Visited"))) == ["c"]
    assert ids(apply_view_filters(records, filters=FilterSet(min_rating=4))) == ["a"]


def test_rating_zero_is_ignored(records):
    filters = FilterSet(min_rating=0)
    assert len(apply_view_filters(records, filters=filters)) == 4
    assert filters.active_filter_count() == 0


def test_price_sort_is_stable(records):
    ordered = sort_properties(records, SortOption.PRICE_ASC)
    # b and d tie on price and keep their input order
    assert ids(ordered) == ["b", "d", "c", "a"]
    assert ids(sort_properties(records, "price-desc")) == ["a", "c", "b", "d"]


def test_other_sorts(records):
    assert ids(sort_properties(records, SortOption.OLDEST)) == ["d", "a", "c", "b"]
    assert ids(sort_properties(records, SortOption.SQFT_DESC))[0] == "a"
    assert ids(sort_properties(records, SortOption.RATING_DESC))[0] == "a"


def test_filtering_is_idempotent_and_never_invents(records):
    filters = FilterSet(max_price=250000)
    once = apply_view_filters(records, query="piso", filters=filters, sort="price-asc")
    twice = apply_view_filters(once, query="piso", filters=filters, sort="price-asc")

    assert once == twice
    assert all(item in records for item in once)


def test_input_is_not_mutated(records):
    snapshot = list(records)
    apply_view_filters(records, sort=SortOption.PRICE_DESC)
    assert records == snapshot


def test_from_query_params():
    filters = FilterSet.from_query_params({"max_price": "250000", "min_rooms": "2", "min_sqft": "", "status": ""})

    assert filters.max_price == 250000
    assert filters.min_rooms == 2
    assert filters.min_sqft is None
    assert filters.status is None
    assert filters.active_filter_count() == 2


def test_from_query_params_rejects_garbage():
    with pytest.raises(ValidationError):
        FilterSet.from_query_params({"max_price": "cheap"})


@pytest.mark.parametrize("raw", ["inf", "-inf", "nan", "1e400"])
def test_from_query_params_rejects_non_finite_counts(raw):
    with pytest.raises(ValidationError):
        FilterSet.from_query_params({"min_rooms": raw})
