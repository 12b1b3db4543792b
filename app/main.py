"""FastAPI entrypoint exposing TMDb-backed browse listings."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import Settings, get_settings
from app.services.browse import (
    BrowseConfigError,
    BrowseService,
    InvalidBrowseQuery,
    query_from_category_params,
    query_from_tag_params,
)
from app.services.models import BrowseQuery, BrowseResult
from app.services.strategies import check_strategy_table
from app.services.tmdb import (
    TMDbAuthError,
    TMDbError,
    TMDbRateLimited,
    TMDbServerError,
    TMDbTimeout,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Refuse to serve with an inconsistent category table."""

    check_strategy_table()
    yield


app = FastAPI(title="TMDb Browse Service", lifespan=lifespan)


class BrowseItem(BaseModel):
    id: str
    title: str
    poster: str = ""
    rate: str = ""
    year: str = ""


class BrowseResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: int = 200
    message: str = "success"
    items: list[BrowseItem] = Field(default_factory=list, alias="list")


@app.exception_handler(StarletteHTTPException)
async def _error_envelope(_: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        {"error": exc.detail},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


def get_browse_service(settings: Settings = Depends(get_settings)) -> BrowseService:
    return BrowseService(settings)


@app.get("/api/tmdb", response_model=BrowseResponse)
def browse_by_tag(
    response: Response,
    tag: str | None = Query(default=None),
    type: str | None = Query(default=None),
    page_size: str | None = Query(default=None, alias="pageSize"),
    page_start: str | None = Query(default=None, alias="pageStart"),
    service: BrowseService = Depends(get_browse_service),
    settings: Settings = Depends(get_settings),
) -> BrowseResponse:
    """Browse by a tag label (``热门``, ``日本``...) or free-text search term."""

    try:
        query = query_from_tag_params(tag=tag, type=type, page_size=page_size, page_start=page_start)
    except InvalidBrowseQuery as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _run_browse(service, query, response, settings)


@app.get("/api/tmdb/categories", response_model=BrowseResponse)
def browse_by_category(
    response: Response,
    kind: str | None = Query(default=None),
    category: str | None = Query(default=None),
    type: str | None = Query(default=None),
    limit: str | None = Query(default=None),
    start: str | None = Query(default=None),
    service: BrowseService = Depends(get_browse_service),
    settings: Settings = Depends(get_settings),
) -> BrowseResponse:
    """Browse by category plus a region/genre ``type`` selector."""

    try:
        query = query_from_category_params(
            kind=kind,
            category=category,
            type=type,
            limit=limit,
            start=start,
        )
    except InvalidBrowseQuery as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _run_browse(service, query, response, settings)


def _run_browse(
    service: BrowseService,
    query: BrowseQuery,
    response: Response,
    settings: Settings,
) -> BrowseResponse:
    try:
        result = service.browse(query)
    except BrowseConfigError as exc:
        logger.error("TMDB_API_KEY is not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="API key not configured",
        ) from exc
    except TMDbTimeout as exc:
        raise HTTPException(
            status_code=status.HTTP_408_REQUEST_TIMEOUT,
            detail="timeout, please retry",
        ) from exc
    except TMDbAuthError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="invalid upstream credential",
        ) from exc
    except TMDbRateLimited as exc:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="rate limited, try later",
        ) from exc
    except TMDbServerError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="upstream server error",
        ) from exc
    except TMDbError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="failed to fetch TMDb data",
        ) from exc
    except Exception as exc:
        logger.exception("Unexpected failure while browsing %r", query.category)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="failed to fetch TMDb data",
        ) from exc

    _set_cache_headers(response, settings.cache_max_age)
    return _result_to_response(result)


def _set_cache_headers(response: Response, max_age: int) -> None:
    response.headers["Cache-Control"] = f"public, max-age={max_age}"
    # Time-based, so only a weak validator.
    response.headers["ETag"] = f'W/"{int(time.time() * 1000)}"'


def _result_to_response(result: BrowseResult) -> BrowseResponse:
    return BrowseResponse(
        code=result.code,
        message=result.message,
        items=[
            BrowseItem(id=item.id, title=item.title, poster=item.poster, rate=item.rate, year=item.year)
            for item in result.items
        ],
    )
