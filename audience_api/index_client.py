from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol

from elasticsearch import ApiError, AsyncElasticsearch, TransportError

from .config import Settings
from .filtermodels import MatchCandidate
from .logging_config import get_logger
from .query_compiler import keyword_field

logger = get_logger(__name__)

TOP_VALUES_AGG = "top_values"


class IndexQueryError(Exception):
    """A search index call failed or timed out."""


class SearchIndex(Protocol):
    async def count(self, column: str, phrase: str) -> int: ...

    async def aggregate_top_values(self, column: str, query: Optional[Dict[str, Any]],
                                   size: int) -> List[MatchCandidate]: ...

    async def close(self) -> None: ...


def elastic_auth(settings: Settings) -> Dict[str, Any]:
    """Client auth keyword arguments; an API key wins over basic auth."""
    if settings.elastic_api_key:
        return {"api_key": settings.elastic_api_key}
    if settings.es_username and settings.es_password:
        return {"basic_auth": (settings.es_username, settings.es_password)}
    return {}


def exact_phrase_query(column: str, phrase: str) -> Dict[str, Any]:
    return {"match_phrase": {keyword_field(column): phrase}}


def top_values_aggregation(column: str, size: int) -> Dict[str, Any]:
    return {
        TOP_VALUES_AGG: {
            "terms": {
                "field": keyword_field(column),
                "size": size,
                "order": {"_count": "desc"},
            }
        }
    }


def buckets_to_candidates(buckets: List[Dict[str, Any]]) -> List[MatchCandidate]:
    return [
        MatchCandidate(value=str(b["key"]), count=int(b["doc_count"]))
        for b in buckets
        if str(b.get("key", "")).strip()
    ]


class ElasticIndex:
    """SearchIndex backed by one Elasticsearch index."""

    def __init__(self, client: AsyncElasticsearch, index_name: str, timeout: float = 5.0):
        self.client = client
        self.index_name = index_name
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "ElasticIndex":
        client = AsyncElasticsearch(settings.elastic_url, **elastic_auth(settings))
        logger.info(f"Search index client created: {settings.elastic_url} / {settings.index_name}")
        return cls(client, settings.index_name, timeout=settings.index_timeout)

    def _scoped(self) -> AsyncElasticsearch:
        return self.client.options(request_timeout=self.timeout)

    async def count(self, column: str, phrase: str) -> int:
        try:
            resp = await self._scoped().count(
                index=self.index_name,
                query=exact_phrase_query(column, phrase),
            )
        except (ApiError, TransportError) as e:
            logger.error(f"Count failed for {column}={phrase!r}: {e}")
            raise IndexQueryError(f"count on '{column}' failed: {e}") from e

        total = int(resp["count"])
        logger.debug(f"Exact count {column}={phrase!r}: {total}")
        return total

    async def aggregate_top_values(self, column: str, query: Optional[Dict[str, Any]],
                                   size: int) -> List[MatchCandidate]:
        try:
            resp = await self._scoped().search(
                index=self.index_name,
                size=0,
                query=query or {"match_all": {}},
                aggs=top_values_aggregation(column, size),
            )
        except (ApiError, TransportError) as e:
            logger.error(f"Aggregation failed on {column}: {e}")
            raise IndexQueryError(f"aggregation on '{column}' failed: {e}") from e

        buckets = resp["aggregations"][TOP_VALUES_AGG]["buckets"]
        logger.debug(f"Aggregation on {column} returned {len(buckets)} buckets")
        return buckets_to_candidates(buckets)

    async def close(self) -> None:
        await self.client.close()
        logger.debug("Search index client closed")


@asynccontextmanager
async def open_index(settings: Settings) -> AsyncIterator[ElasticIndex]:
    index = ElasticIndex.from_settings(settings)
    try:
        yield index
    finally:
        await index.close()
