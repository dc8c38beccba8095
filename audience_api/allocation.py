"""
Allocation of canonical values to candidate terms.

Terms are handled one at a time, in the order given. Each term's winner is
recorded in a per-call `used` set, and a value in that set cannot win again
for a later term: first come, first served. No backtracking happens, so a
later term can end up with a weaker alternate purely because of ordering.
"""

from typing import List, Sequence, Set

from .filtermodels import MatchCandidate, ReconciliationResult, Winner
from .index_client import SearchIndex
from .logging_config import get_logger
from .term_matcher import TermMatch, match_term

logger = get_logger(__name__)

MAX_ALTERNATES = 5


def _by_count(candidates: Sequence[MatchCandidate]) -> List[MatchCandidate]:
    return sorted(candidates, key=lambda c: c.count, reverse=True)


def pick_winner(term: str, match: TermMatch, used: Set[str]) -> ReconciliationResult:
    """Choose the winner for one term; does not touch `used`."""
    control = MatchCandidate(value=term, count=match.exact_count)
    control_taken = term.lower() in used

    available = _by_count([c for c in match.candidates if c.value.lower() not in used])

    if not available:
        winner = Winner(value=term, count=control.count, is_control=True,
                        matched=control.count > 0 and not control_taken)
        alternates: List[MatchCandidate] = []
    else:
        best, rest = available[0], available[1:]
        if control_taken or control.count == 0 or best.count > control.count:
            winner = Winner(value=best.value, count=best.count, matched=True)
            alternates = rest if control_taken else [control, *rest]
        else:
            winner = Winner(value=term, count=control.count, is_control=True, matched=True)
            alternates = available

    return ReconciliationResult(
        term=term,
        winner=winner,
        alternates=tuple(_by_count(alternates)[:MAX_ALTERNATES]),
        error=match.error,
    )


async def allocate(index: SearchIndex, terms: Sequence[str], column: str) -> List[ReconciliationResult]:
    """
    Reconcile `terms` against `column`, one result per term, in input order.

    A failed index lookup degrades that term to its own control (count 0)
    with the error attached; the remaining terms are still processed.
    """
    used: Set[str] = set()
    results: List[ReconciliationResult] = []

    for term in terms:
        match = await match_term(index, term, column)
        result = pick_winner(term, match, used)
        used.add(result.winner.value.lower())
        results.append(result)

        if result.error:
            logger.warning(f"{term!r} degraded to control: {result.error}")
        else:
            logger.debug(f"{term!r} -> {result.winner.value!r} ({result.winner.count})")

    logger.info(f"Allocated {len(results)} terms on '{column}'")
    return results


def used_values(results: Sequence[ReconciliationResult]) -> List[str]:
    return [r.winner.value.lower() for r in results]
