"""FastAPI application wiring the search pipeline."""
from __future__ import annotations

import logging
import warnings
from typing import Literal

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .config import settings
from .context import PipelineContext, build_context
from .entities import Query as SearchQuery
from .entities import QueryOptions
from .errors import AllSourcesFailedError, FilterExhaustionWarning, InvalidQueryError
from .models import (
    ErrorResponse,
    SearchResponse,
    SuggestionsData,
    SuggestionsResponse,
    TrendingData,
    TrendingResponse,
)
from .pipeline import SearchPipeline, suggest, trending

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL = logging.getLevelName(settings.log_level.upper())
GENERIC_FAILURE = "Failed to search products"

# ``force=True`` replaces uvicorn's default handlers so pipeline timing lines
# share one format.
logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, force=True)
for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "httpx"):
    logging.getLogger(name).setLevel(LOG_LEVEL)
logging.captureWarnings(True)
warnings.simplefilter("always", FilterExhaustionWarning)

logger = logging.getLogger(__name__)
logger.info("Logging configured at %s", settings.log_level.upper())

app = FastAPI(title="Product Search Service")


def _error(status: int, message: str, detail: str | None = None) -> JSONResponse:
    body = ErrorResponse(message=message, error=detail if settings.development_mode else None)
    return JSONResponse(status_code=status, content=body.model_dump(exclude_none=True))


@app.exception_handler(InvalidQueryError)
async def invalid_query_handler(request: Request, exc: InvalidQueryError) -> JSONResponse:
    return _error(400, str(exc))


@app.exception_handler(RequestValidationError)
async def validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    field = errors[0].get("loc", ())[-1] if errors and errors[0].get("loc") else None
    if field == "query":
        message = "Search query is required"
    return _error(400, message, str(errors))


@app.exception_handler(AllSourcesFailedError)
async def all_sources_failed_handler(request: Request, exc: AllSourcesFailedError) -> JSONResponse:
    logger.error("All sources failed: %s", exc)
    return _error(500, GENERIC_FAILURE, str(exc))


@app.exception_handler(Exception)
async def unexpected_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Search request failed")
    return _error(500, GENERIC_FAILURE, repr(exc))


@app.on_event("startup")
async def startup_event() -> None:
    if getattr(app.state, "context", None) is None:
        app.state.context = build_context(settings)
    app.state.pipeline = SearchPipeline(app.state.context)


@app.on_event("shutdown")
async def shutdown_event() -> None:
    context: PipelineContext | None = getattr(app.state, "context", None)
    if context is not None:
        await context.aclose()


@app.get("/search", response_model=SearchResponse)
async def search(
    query: str = Query(..., description="Search query"),
    category: str | None = None,
    priceRange: Literal["low", "medium", "high"] | None = None,
    sortBy: Literal["relevance", "price_low", "price_high", "rating"] = "relevance",
    page: int = Query(1, ge=1),
) -> SearchResponse:
    options = QueryOptions(category=category, price_range=priceRange, sort_by=sortBy, page=page)
    result = await app.state.pipeline.search(SearchQuery(query, options))
    return SearchResponse(data=result)


@app.get("/search/suggestions", response_model=SuggestionsResponse)
async def suggestions(query: str = "") -> SuggestionsResponse:
    return SuggestionsResponse(data=SuggestionsData(suggestions=suggest(query)))


@app.get("/search/trending", response_model=TrendingResponse)
async def trending_searches() -> TrendingResponse:
    return TrendingResponse(data=TrendingData(trending=trending()))
