import pytest

from audience_api.filtermodels import FilterRule
from audience_api.location_expander import (
    LOCATION_EXPANSIONS, expand_location_filter, expand_location_filters,
    filters_from_components, is_location_column, prepare_filters,
)
from audience_api.query_compiler import compile_filters


def loc(column, *tokens, condition="contains", combinator=""):
    return FilterRule(column=column, condition=condition, tokens=tokens, combinator=combinator)


def shape(rules):
    return [(r.column, r.tokens, r.combinator) for r in rules]


@pytest.mark.parametrize("value", ["united states", "United States", "  UNITED STATES "])
def test_country_literal_is_dropped(value):
    assert expand_location_filter(loc("Location", value), has_prior_location=False) == []


def test_country_literal_removed_from_multi_token_rule():
    rules = expand_location_filter(loc("Region", "Texas", "United States"), has_prior_location=False)
    assert shape(rules) == [
        ("Region", ("Texas",), ""),
        ("Location", ("Texas",), "OR"),
    ]


def test_custom_country_literal():
    rule = loc("Location", "Australia")
    assert expand_location_filter(rule, False, country_literal="australia") == []
    assert len(expand_location_filter(rule, False)) == 3


def test_city_state_value_adds_bare_city_locality():
    rules = expand_location_filter(loc("Location", "Springfield, Ohio"), has_prior_location=False)

    assert shape(rules) == [
        ("Location", ("Springfield, Ohio",), ""),
        ("Locality", ("Springfield",), "OR"),
    ]
    assert all(r.condition == "contains" for r in rules)


def test_plain_location_expands_to_locality_and_metro():
    rules = expand_location_filter(loc("Location", "Austin"), has_prior_location=False)
    assert shape(rules) == [
        ("Location", ("Austin",), ""),
        ("Locality", ("Austin",), "OR"),
        ("Metro", ("Austin",), "OR"),
    ]


@pytest.mark.parametrize("column, expected", [
    ("Locality", ["Locality", "Location", "Metro"]),
    ("Region", ["Region", "Location"]),
    ("Postal Code", ["Postal Code"]),
    ("Metro", ["Metro", "Location", "Locality"]),
])
def test_expansion_table(column, expected):
    rules = expand_location_filter(loc(column, "X"), has_prior_location=False)
    assert [r.column for r in rules] == expected
    assert [r.combinator for r in rules] == [""] + ["OR"] * (len(expected) - 1)


def test_prior_location_opens_with_and():
    rules = expand_location_filter(loc("Metro", "Denver"), has_prior_location=True)
    assert [r.combinator for r in rules] == ["AND", "OR", "OR"]


def test_unknown_column_passes_through():
    rules = expand_location_filter(loc("Country", "Canada"), has_prior_location=False)
    assert shape(rules) == [("Country", ("Canada",), "")]


def test_emptiness_rules_pass_through():
    rule = loc("Postal Code", condition="is_not_empty")
    assert expand_location_filters([rule]) == [rule]


def test_sequence_tracks_prior_location():
    rules = expand_location_filters([
        loc("Location", "United States"),
        loc("Region", "Ohio"),
        loc("Locality", "Columbus"),
    ])

    assert shape(rules) == [
        ("Region", ("Ohio",), ""),
        ("Location", ("Ohio",), "OR"),
        ("Locality", ("Columbus",), "AND"),
        ("Location", ("Columbus",), "OR"),
        ("Metro", ("Columbus",), "OR"),
    ]


def test_prepare_filters_puts_locations_first():
    title = loc("Job title", "Nurse")
    email = FilterRule(column="Email", condition="is_not_empty", combinator="AND")
    prepared = prepare_filters([title, loc("Postal Code", "90210"), email])

    assert prepared[0].column == "Postal Code"
    assert prepared[1:] == [title, email]


def test_is_location_column():
    assert all(is_location_column(c) for c in LOCATION_EXPANSIONS)
    assert not is_location_column("Job title")


def test_filters_from_components():
    rules = filters_from_components(city="Boise", state="Idaho", zip_code=" ")
    assert shape(rules) == [
        ("Locality", ("Boise",), ""),
        ("Region", ("Idaho",), "AND"),
    ]
    assert filters_from_components() == []


def test_mixed_city_state_and_bare_values():
    rules = expand_location_filter(loc("Location", "Springfield, Ohio", "Austin"), has_prior_location=False)

    assert shape(rules) == [
        ("Location", ("Springfield, Ohio", "Austin"), ""),
        ("Locality", ("Austin", "Springfield"), "OR"),
        ("Metro", ("Austin",), "OR"),
    ]


@pytest.mark.parametrize("record", [
    {"Locality": "Austin", "Metro": "Austin-Round Rock"},
    {"Metro": "Austin-Round Rock"},
    {"Locality": "Springfield"},
    {"Location": "Springfield, Ohio"},
])
def test_mixed_values_each_reach_their_columns(record, evaluate_query):
    rules = expand_location_filter(loc("Location", "Springfield, Ohio", "Austin"), has_prior_location=False)
    assert evaluate_query(compile_filters(rules), record)


def test_mixed_values_do_not_widen_city_state(evaluate_query):
    rules = expand_location_filter(loc("Location", "Springfield, Ohio", "Austin"), has_prior_location=False)
    assert not evaluate_query(compile_filters(rules), {"Metro": "Springfield, Ohio"})


def test_country_literal_case_is_ignored():
    assert expand_location_filter(loc("Location", "united states"), False, country_literal=" United States ") == []
