from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .allocation import allocate, used_values
from .config import Settings, get_settings
from .extraction import CandidateExtractor
from .filtermodels import (
    AudienceRequest, AudienceResponse, CompileRequest, CompileResponse,
    DistinctValuesResponse, LocationComponents, MatchesResponse,
    ReconcileRequest, VerifyTermsRequest,
)
from .index_client import IndexQueryError, SearchIndex, open_index
from .location_expander import expand_location_filters, filters_from_components, prepare_filters
from .logging_config import get_logger, setup_logging
from .pipeline import build_audience_filters
from .query_compiler import compile_filters

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings.log_level)

    extractor = CandidateExtractor.from_settings(settings)
    async with open_index(settings) as index:
        app.state.index = index
        app.state.extractor = extractor
        logger.info("Audience filter API started")
        try:
            yield
        finally:
            await extractor.close()


app = FastAPI(title="Audience Filter Reconciliation API", version="0.2.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_settings().cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)


def get_index(request: Request) -> SearchIndex:
    return request.app.state.index


def get_extractor(request: Request) -> CandidateExtractor:
    return request.app.state.extractor


def json_response(payload: Any) -> JSONResponse:
    return JSONResponse(
        content=payload,
        media_type="application/json; charset=utf-8",
        headers={"Cache-Control": "no-store"},
    )


def resolve_column(column: Optional[str], role: str, settings: Settings) -> str:
    if column and column.strip():
        return column.strip()
    return settings.column_for(role)


@app.get("/")
def manifest(settings: Settings = Depends(get_settings)) -> JSONResponse:
    payload = {
        "name": "Audience Filter Reconciliation",
        "index": settings.index_name,
        "roles": settings.role_columns,
    }
    return json_response(payload)


@app.get("/healthy")
def health() -> JSONResponse:
    return json_response({"status": "ok"})


@app.post("/verify-terms")
async def verify_terms(
    body: VerifyTermsRequest,
    index: SearchIndex = Depends(get_index),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    terms = [t.strip() for t in body.terms if t and t.strip()]
    if not terms:
        raise HTTPException(status_code=422, detail="Provide at least one non-blank term")

    column = resolve_column(body.column, body.role, settings)
    results = await allocate(index, terms, column)

    response = MatchesResponse(matches=results, used_values=used_values(results))
    return json_response(response.model_dump(mode="json", exclude_none=True))


@app.post("/reconcile")
async def reconcile(
    body: ReconcileRequest,
    index: SearchIndex = Depends(get_index),
    extractor: CandidateExtractor = Depends(get_extractor),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    terms = [t.strip() for t in (body.terms or []) if t and t.strip()]
    description = (body.description or "").strip()

    if not terms and not description:
        raise HTTPException(
            status_code=422,
            detail="Provide a description or a non-empty terms list"
        )

    if not terms:
        terms = await extractor.extract(description, body.role)

    column = resolve_column(body.column, body.role, settings)
    results = await allocate(index, terms, column) if terms else []

    response = MatchesResponse(matches=results, used_values=used_values(results), terms=terms)
    return json_response(response.model_dump(mode="json", exclude_none=True))


@app.post("/audience")
async def audience(
    body: AudienceRequest,
    index: SearchIndex = Depends(get_index),
    extractor: CandidateExtractor = Depends(get_extractor),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    built = await build_audience_filters(body.description, body.roles, index, extractor, settings)

    response = AudienceResponse(matches=built.matches, filters=built.filters, query=built.query)
    return json_response(response.model_dump(mode="json", exclude_none=True))


@app.post("/compile")
def compile_endpoint(body: CompileRequest, settings: Settings = Depends(get_settings)) -> JSONResponse:
    filters = prepare_filters(body.filters, settings.country_literal) if body.expand_locations else list(body.filters)

    response = CompileResponse(filters=filters, query=compile_filters(filters))
    return json_response(response.model_dump(mode="json"))


@app.post("/location/filters")
def location_filters(body: LocationComponents, settings: Settings = Depends(get_settings)) -> JSONResponse:
    rules = filters_from_components(city=body.city or "", state=body.state or "", zip_code=body.zip or "")
    if not rules:
        raise HTTPException(status_code=422, detail="Provide at least one of city, state or zip")

    filters = expand_location_filters(rules, settings.country_literal)
    response = CompileResponse(filters=filters, query=compile_filters(filters))
    return json_response(response.model_dump(mode="json"))


@app.get("/columns/{column}/values")
async def distinct_values(
    column: str,
    limit: int = Query(100, ge=1, le=1000),
    index: SearchIndex = Depends(get_index),
) -> JSONResponse:
    try:
        values = await index.aggregate_top_values(column, None, limit)
    except IndexQueryError as e:
        raise HTTPException(status_code=502, detail=str(e))

    response = DistinctValuesResponse(column=column, values=values)
    return json_response(response.model_dump(mode="json"))
