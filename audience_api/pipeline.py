"""
Description-to-query pipeline.

description -> candidate terms per role -> allocated winners -> filter
rules -> location expansion -> compiled query.

Roles are independent of each other and run concurrently; terms inside a
role are allocated sequentially.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

from .allocation import allocate
from .config import Settings
from .extraction import CandidateExtractor
from .filtermodels import FilterRule, ReconciliationResult
from .index_client import SearchIndex
from .location_expander import prepare_filters
from .logging_config import get_logger
from .query_compiler import compile_filters

logger = get_logger(__name__)


@dataclass(frozen=True)
class AudienceFilters:
    matches: Dict[str, List[ReconciliationResult]]
    filters: List[FilterRule]
    query: Dict[str, Any]


def rule_from_results(column: str, results: Sequence[ReconciliationResult]) -> List[FilterRule]:
    """
    One `contains` rule holding every confirmed winner of a role.

    Winners with no records behind them are left out; a role with no
    confirmed winner contributes no rule.
    """
    tokens: List[str] = []
    for r in results:
        if r.winner.count > 0 and r.winner.value not in tokens:
            tokens.append(r.winner.value)

    if not tokens:
        return []

    return [FilterRule(column=column, condition="contains", tokens=tuple(tokens), combinator="AND")]


async def reconcile_role(description: str, role: str, index: SearchIndex,
                         extractor: CandidateExtractor, settings: Settings) -> List[ReconciliationResult]:
    terms = await extractor.extract(description, role)
    if not terms:
        logger.info(f"No {role} terms extracted")
        return []

    return await allocate(index, terms, settings.column_for(role))


async def build_audience_filters(description: str, roles: Sequence[str], index: SearchIndex,
                                 extractor: CandidateExtractor, settings: Settings) -> AudienceFilters:
    roles = list(dict.fromkeys(roles))

    per_role = await asyncio.gather(*(
        reconcile_role(description, role, index, extractor, settings) for role in roles
    ))
    matches = dict(zip(roles, per_role))

    rules: List[FilterRule] = []
    for role in roles:
        rules.extend(rule_from_results(settings.column_for(role), matches[role]))

    filters = prepare_filters(rules, settings.country_literal)
    query = compile_filters(filters)

    logger.info(f"Audience built: {len(filters)} filters across {len(roles)} roles")
    return AudienceFilters(matches=matches, filters=filters, query=query)
