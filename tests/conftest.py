import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

from audience_api.filtermodels import MatchCandidate
from audience_api.index_client import IndexQueryError

Buckets = Sequence[Tuple[str, int]]


class FakeIndex:
    """
    In-memory stand-in for the search index.

    Results are scripted per term: `exact` gives the exact-phrase count,
    `ranked` the buckets of the boosted query, `fuzzy` those of the fuzzy
    fallback. Terms in `failing` raise `error`.
    """

    def __init__(self, exact: Optional[Dict[str, int]] = None,
                 ranked: Optional[Dict[str, Buckets]] = None,
                 fuzzy: Optional[Dict[str, Buckets]] = None,
                 values: Buckets = (),
                 failing: Sequence[str] = (),
                 error: Optional[Exception] = None):
        self.exact = exact or {}
        self.ranked = ranked or {}
        self.fuzzy = fuzzy or {}
        self.values = values
        self.failing = set(failing)
        self.error = error or IndexQueryError("index unavailable")
        self.calls: List[Tuple[str, str, Optional[str]]] = []
        self.closed = False

    def _check(self, term: Optional[str]) -> None:
        if term in self.failing:
            raise self.error

    async def count(self, column: str, phrase: str) -> int:
        self.calls.append(("count", column, phrase))
        self._check(phrase)
        return self.exact.get(phrase, 0)

    async def aggregate_top_values(self, column: str, query: Optional[Dict[str, Any]],
                                   size: int) -> List[MatchCandidate]:
        if query is None:
            self.calls.append(("values", column, None))
            self._check(None)
            buckets = self.values
        elif "bool" in query:
            term = query["bool"]["should"][0]["match_phrase"][column]["query"]
            self.calls.append(("ranked", column, term))
            self._check(term)
            buckets = self.ranked.get(term, ())
        else:
            term = query["match"][column]["query"]
            self.calls.append(("fuzzy", column, term))
            self._check(term)
            buckets = self.fuzzy.get(term, ())

        return [MatchCandidate(value=v, count=c) for v, c in list(buckets)[:size]]

    async def close(self) -> None:
        self.closed = True


# -----------------------------
#  compiled query evaluation
# -----------------------------

def _field_value(record: Dict[str, Any], field: str) -> Any:
    if field.endswith(".keyword"):
        field = field[: -len(".keyword")]
    return record.get(field)


def _wildcard_regex(pattern: str) -> str:
    out = []
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\" and i + 1 < len(pattern):
            out.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if ch == "*":
            out.append(".*")
        elif ch == "?":
            out.append(".")
        else:
            out.append(re.escape(ch))
        i += 1
    return "".join(out)


def evaluate(query: Dict[str, Any], record: Dict[str, Any]) -> bool:
    """Evaluate the subset of query DSL the compiler emits against one record."""
    (kind, body), = query.items()

    if kind == "match_all":
        return True

    if kind == "constant_score":
        return evaluate(body["filter"], record)

    if kind == "exists":
        return _field_value(record, body["field"]) is not None

    if kind == "term":
        (field, clause), = body.items()
        value = _field_value(record, field)
        if value is None:
            return False
        if isinstance(clause, dict):
            if clause.get("case_insensitive"):
                return str(value).lower() == str(clause["value"]).lower()
            return value == clause["value"]
        return value == clause

    if kind == "wildcard":
        (field, clause), = body.items()
        value = _field_value(record, field)
        if value is None:
            return False
        flags = re.IGNORECASE if clause.get("case_insensitive") else 0
        return re.fullmatch(_wildcard_regex(clause["value"]), str(value), flags | re.DOTALL) is not None

    if kind == "bool":
        must = body.get("must", [])
        must_not = body.get("must_not", [])
        should = body.get("should", [])
        if isinstance(must_not, dict):
            must_not = [must_not]

        if not all(evaluate(q, record) for q in must):
            return False
        if any(evaluate(q, record) for q in must_not):
            return False

        needed = body.get("minimum_should_match", 0 if must or must_not else 1)
        if should and sum(evaluate(q, record) for q in should) < needed:
            return False
        return True

    raise AssertionError(f"unexpected query clause: {kind}")


@pytest.fixture
def evaluate_query():
    return evaluate


@pytest.fixture
def fake_index_cls():
    return FakeIndex
