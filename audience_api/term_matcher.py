"""
Term matching against one index column.

For a candidate term, find how often it occurs verbatim and which canonical
values of the column look like it, ranked by how many records hold them.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .filtermodels import MatchCandidate
from .index_client import SearchIndex
from .logging_config import get_logger

logger = get_logger(__name__)

RANKED_SIZE = 15
FALLBACK_SIZE = 10
#below this many ranked candidates the fuzzy fallback runs
MIN_CANDIDATES = 5

PHRASE_BOOST = 10.0
ALL_WORDS_BOOST = 5.0
FUZZY_PHRASE_BOOST = 3.0


@dataclass(frozen=True)
class TermMatch:
    exact_count: int = 0
    candidates: List[MatchCandidate] = field(default_factory=list)
    error: Optional[str] = None


def ranked_query(column: str, term: str) -> Dict[str, Any]:
    words = term.lower().split()

    should: List[Dict[str, Any]] = [
        {"match_phrase": {column: {"query": term, "boost": PHRASE_BOOST}}},
        {
            "bool": {
                "must": [{"match": {column: {"query": w, "operator": "and"}}} for w in words],
                "boost": ALL_WORDS_BOOST,
            }
        },
    ]
    if len(words) > 1:
        should.append({
            "match": {
                column: {
                    "query": " ".join(words),
                    "operator": "and",
                    "fuzziness": "AUTO",
                    "boost": FUZZY_PHRASE_BOOST,
                }
            }
        })

    return {"bool": {"should": should, "minimum_should_match": 1}}


def fuzzy_query(column: str, term: str) -> Dict[str, Any]:
    return {"match": {column: {"query": term, "fuzziness": "AUTO"}}}


def _merge(candidates: List[MatchCandidate], extra: List[MatchCandidate],
           term_lower: str) -> List[MatchCandidate]:
    seen = {c.value for c in candidates}
    merged = list(candidates)
    for c in extra:
        if c.value in seen or c.value.lower() == term_lower:
            continue
        seen.add(c.value)
        merged.append(c)
    return merged


async def match_term(index: SearchIndex, term: str, column: str) -> TermMatch:
    """
    Exact count plus count-ranked alternatives for `term` in `column`.

    Index failures are logged and reported through TermMatch.error with an
    empty result; they are never raised.
    """
    term_lower = term.lower()

    try:
        exact_count = await index.count(column, term)

        ranked = await index.aggregate_top_values(column, ranked_query(column, term), RANKED_SIZE)
        candidates = [c for c in ranked if c.value.lower() != term_lower]

        if len(candidates) < MIN_CANDIDATES:
            logger.debug(f"Only {len(candidates)} ranked candidates for {term!r}, trying fuzzy fallback")
            fallback = await index.aggregate_top_values(column, fuzzy_query(column, term), FALLBACK_SIZE)
            candidates = _merge(candidates, fallback, term_lower)

    except Exception as e:
        logger.warning(f"Matching {term!r} on '{column}' failed: {e}", exc_info=True)
        return TermMatch(error=str(e) or e.__class__.__name__)

    candidates.sort(key=lambda c: c.count, reverse=True)
    logger.debug(f"{term!r}: exact={exact_count}, {len(candidates)} candidates")
    return TermMatch(exact_count=exact_count, candidates=candidates)
