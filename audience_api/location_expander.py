"""
Hierarchical location expansion.

A place name can sit in several location columns of a record (free-text
location, city, metro area, ...). One location rule is therefore rewritten
into a run of OR-joined `contains` rules over the related columns, in the
order given by LOCATION_EXPANSIONS.
"""

from typing import Dict, List, Sequence, Tuple

from .config import DEFAULT_COUNTRY_LITERAL
from .filtermodels import FilterRule
from .logging_config import get_logger

logger = get_logger(__name__)

PRIMARY_LOCATION = "Location"
LOCALITY = "Locality"
REGION = "Region"
POSTAL_CODE = "Postal Code"
METRO = "Metro"

#source column -> columns searched, source first
LOCATION_EXPANSIONS: Dict[str, Tuple[str, ...]] = {
    PRIMARY_LOCATION: (PRIMARY_LOCATION, LOCALITY, METRO),
    LOCALITY: (LOCALITY, PRIMARY_LOCATION, METRO),
    REGION: (REGION, PRIMARY_LOCATION),
    POSTAL_CODE: (POSTAL_CODE,),
    METRO: (METRO, PRIMARY_LOCATION, LOCALITY),
}

LOCATION_COLUMNS = frozenset(LOCATION_EXPANSIONS)

#address component -> column it is filtered on
COMPONENT_COLUMNS: Dict[str, str] = {
    "city": LOCALITY,
    "state": REGION,
    "zip": POSTAL_CODE,
}


def is_location_column(column: str) -> bool:
    return column in LOCATION_COLUMNS


def _contains(column: str, tokens: Sequence[str], combinator: str) -> FilterRule:
    return FilterRule(column=column, condition="contains", tokens=tuple(tokens), combinator=combinator)


def _unique(values: Sequence[str]) -> List[str]:
    kept: List[str] = []
    for value in values:
        if value and value not in kept:
            kept.append(value)
    return kept


def _city_parts(values: Sequence[str]) -> List[str]:
    return _unique([value.split(",")[0].strip() for value in values])


def _primary_location_runs(values: Sequence[str]) -> List[Tuple[str, List[str]]]:
    #"City, State" is already specific: only its bare city is added as a locality
    bare = [v for v in values if "," not in v]
    cities = _city_parts([v for v in values if "," in v])
    runs = [
        (PRIMARY_LOCATION, list(values)),
        (LOCALITY, _unique(bare + cities)),
        (METRO, bare),
    ]
    return [(column, tokens) for column, tokens in runs if tokens]


def expand_location_filter(rule: FilterRule, has_prior_location: bool,
                           country_literal: str = DEFAULT_COUNTRY_LITERAL) -> List[FilterRule]:
    """
    Rewrite one location rule into the rules that search its related columns.

    Returns an empty list when the rule only named the whole country.
    """
    if not rule.tokens:
        return [rule]

    country = country_literal.strip().lower()
    values = _unique([t.strip() for t in rule.tokens])
    values = [v for v in values if v.lower() != country]
    if not values:
        logger.debug(f"Dropped country-only location rule on '{rule.column}'")
        return []

    opener = "AND" if has_prior_location else ""

    if rule.column == PRIMARY_LOCATION:
        runs = _primary_location_runs(values)
    else:
        runs = [(column, values) for column in LOCATION_EXPANSIONS.get(rule.column, (rule.column,))]

    return [
        _contains(column, tokens, opener if i == 0 else "OR")
        for i, (column, tokens) in enumerate(runs)
    ]


def expand_location_filters(rules: Sequence[FilterRule],
                            country_literal: str = DEFAULT_COUNTRY_LITERAL) -> List[FilterRule]:
    expanded: List[FilterRule] = []
    seen_location = False

    for rule in rules:
        if rule.condition in ("is_empty", "is_not_empty"):
            expanded.append(rule)
            seen_location = True
            continue

        produced = expand_location_filter(rule, seen_location, country_literal)
        if produced:
            expanded.extend(produced)
            seen_location = True

    return expanded


def prepare_filters(rules: Sequence[FilterRule],
                    country_literal: str = DEFAULT_COUNTRY_LITERAL) -> List[FilterRule]:
    """
    Expand location rules and put them ahead of every other rule.

    Relative order inside each of the two groups is kept.
    """
    location = [r for r in rules if is_location_column(r.column)]
    other = [r for r in rules if not is_location_column(r.column)]

    prepared = expand_location_filters(location, country_literal) + other
    logger.debug(f"Prepared {len(prepared)} filters from {len(rules)} ({len(location)} location)")
    return prepared


def filters_from_components(city: str = "", state: str = "", zip_code: str = "") -> List[FilterRule]:
    """One `contains` rule per given address component, before expansion."""
    given = {"city": city, "state": state, "zip": zip_code}
    rules: List[FilterRule] = []

    for component, value in given.items():
        value = (value or "").strip()
        if not value:
            continue
        rules.append(_contains(COMPONENT_COLUMNS[component], [value], "AND" if rules else ""))

    return rules
