"""
Filter rule compiler.

Turns an ordered list of FilterRule objects into one Elasticsearch bool
query. Pure functions only: no index access, so every output can be
asserted on directly.

Combination
-----------
Rules are read left to right. A rule whose combinator is AND (or "", the
sequence opener) starts a new conjunct; a rule whose combinator is OR joins
the group of the rule right before it. Each group becomes one entry of the
top-level ``must`` list, so

    A, B(OR), C(AND), D(OR)   ->   (A or B) and (C or D)

Callers that need a disjunction must emit the rules next to each other;
location expansion relies on this.
"""

import re
from typing import Any, Dict, List, Sequence

from .filtermodels import FilterRule

Query = Dict[str, Any]


def match_all() -> Query:
    return {"match_all": {}}


#characters with meaning inside a wildcard pattern
_WILDCARD_SPECIALS = re.compile(r"([\\*?])")


def keyword_field(column: str) -> str:
    """Unanalysed sub-field used for exact matches and aggregations."""
    return f"{column}.keyword"


def escape_wildcard(word: str) -> str:
    return _WILDCARD_SPECIALS.sub(r"\\\1", word)


def _any_of(clauses: List[Query]) -> Query:
    return {"bool": {"should": clauses, "minimum_should_match": 1}}


def build_is_empty(column: str) -> Query:
    """Field missing, or present as the empty string."""
    return _any_of([
        {"bool": {"must_not": [{"exists": {"field": column}}]}},
        {"term": {keyword_field(column): ""}},
    ])


def build_is_not_empty(column: str) -> Query:
    """Field present and not the empty string."""
    return {
        "bool": {
            "must": [{"exists": {"field": column}}],
            "must_not": [{"term": {keyword_field(column): ""}}],
        }
    }


def build_contains(column: str, tokens: Sequence[str]) -> Query:
    """
    Every whitespace-separated word of a token must appear somewhere in the
    field (any case, any order); any one token matching is enough.

    ["Car Wash", "Detailing"] -> (*car* and *wash*) or (*detailing*)
    """
    per_token: List[Query] = []
    for raw in tokens:
        words = raw.split()
        if not words:
            per_token.append(match_all())
            continue

        per_token.append({
            "bool": {
                "must": [
                    {
                        "wildcard": {
                            column: {
                                "value": f"*{escape_wildcard(w)}*",
                                "case_insensitive": True,
                            }
                        }
                    }
                    for w in words
                ]
            }
        })

    return _any_of(per_token)


def build_equals(column: str, tokens: Sequence[str]) -> Query:
    """Case-insensitive exact match against any token."""
    return _any_of([
        {"term": {keyword_field(column): {"value": t, "case_insensitive": True}}}
        for t in tokens
    ])


def build_rule(rule: FilterRule) -> Query:
    cond = rule.condition
    col = rule.column

    if cond == "is_empty":
        return build_is_empty(col)
    if cond == "is_not_empty":
        return build_is_not_empty(col)
    if cond == "contains":
        return build_contains(col, rule.tokens)
    if cond == "equals":
        return build_equals(col, rule.tokens)

    #unknown conditions filter nothing out
    return match_all()


def compile_filters(rules: Sequence[FilterRule]) -> Query:
    """
    Compile rules into a single bool query.

    Returns {"match_all": {}} for an empty rule list.
    """
    if not rules:
        return match_all()

    groups: List[List[Query]] = []
    for index, rule in enumerate(rules):
        clause = build_rule(rule)
        if index > 0 and rule.combinator == "OR":
            groups[-1].append(clause)
        else:
            groups.append([clause])

    must = [group[0] if len(group) == 1 else _any_of(group) for group in groups]
    return {"bool": {"must": must}}


def wrap_constant_score(query: Query) -> Query:
    """Non-scoring wrapper for filter-only execution."""
    return {"constant_score": {"filter": query}}
