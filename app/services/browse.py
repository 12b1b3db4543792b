"""Browse orchestration: adapt query parameters, resolve, fetch, normalize."""

from __future__ import annotations

import logging

import httpx

from app.core.config import Settings
from app.services.models import BrowseQuery, BrowseResult, Kind, NormalizedItem
from app.services.strategies import resolve_strategy
from app.services.tmdb import TMDbClient


logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

_KIND_ALIASES: dict[str, Kind] = {"movie": "movie", "tv": "series", "series": "series"}


class InvalidBrowseQuery(ValueError):
    """Raised when inbound parameters are missing or out of range."""


class BrowseConfigError(RuntimeError):
    """Raised when the service itself is misconfigured (no API key)."""


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _label(value: str | None) -> str | None:
    # Free-text labels are passed on untouched; they double as search terms.
    return value or None


def _parse_int(raw: str | None, *, default: int, name: str, problem: str) -> int:
    raw = _clean(raw)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise InvalidBrowseQuery(f"{problem}: {name} must be an integer") from exc


def _validate(
    *,
    kind_name: str,
    raw_kind: str,
    category: str,
    refinement: str | None,
    raw_limit: str | None,
    raw_start: str | None,
    limit_name: str,
    start_name: str,
) -> BrowseQuery:
    kind = _KIND_ALIASES.get(raw_kind.lower())
    if kind is None:
        raise InvalidBrowseQuery(f"invalid kind: {kind_name} must be tv or movie")

    limit = _parse_int(raw_limit, default=DEFAULT_PAGE_SIZE, name=limit_name, problem="invalid page size")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise InvalidBrowseQuery(f"invalid page size: {limit_name} must be between 1 and {MAX_PAGE_SIZE}")

    start = _parse_int(raw_start, default=0, name=start_name, problem="invalid page offset")
    if start < 0:
        raise InvalidBrowseQuery(f"invalid page offset: {start_name} must not be negative")

    return BrowseQuery(kind=kind, category=category, refinement=refinement, limit=limit, start=start)


def query_from_tag_params(
    *,
    tag: str | None,
    type: str | None,
    page_size: str | None = None,
    page_start: str | None = None,
) -> BrowseQuery:
    """Adapt ``tag``/``type``/``pageSize``/``pageStart`` parameters."""

    tag, type = _label(tag), _clean(type)
    if tag is None or type is None:
        raise InvalidBrowseQuery("missing required parameter: tag or type")
    return _validate(
        kind_name="type",
        raw_kind=type,
        category=tag,
        refinement=None,
        raw_limit=page_size,
        raw_start=page_start,
        limit_name="pageSize",
        start_name="pageStart",
    )


def query_from_category_params(
    *,
    kind: str | None,
    category: str | None,
    type: str | None,
    limit: str | None = None,
    start: str | None = None,
) -> BrowseQuery:
    """Adapt ``kind``/``category``/``type``/``limit``/``start`` parameters.

    Here ``type`` is a region/genre selector such as ``japanese`` or
    ``documentary`` rather than the content kind.
    """

    kind, category, type = _clean(kind), _label(category), _clean(type)
    if kind is None or category is None or type is None:
        raise InvalidBrowseQuery("missing required parameter: kind or category or type")
    return _validate(
        kind_name="kind",
        raw_kind=kind,
        category=category,
        refinement=type,
        raw_limit=limit,
        raw_start=start,
        limit_name="limit",
        start_name="start",
    )


def upstream_page(start: int, limit: int) -> int:
    """TMDb pages are 1-indexed; offsets inside a page round down."""

    return start // limit + 1


class BrowseService:
    """Serve one browse request with a single TMDb call."""

    def __init__(self, settings: Settings, *, transport: httpx.BaseTransport | None = None) -> None:
        self.api_key = settings.tmdb_api_key
        self.client = TMDbClient(settings=settings, transport=transport)

    def browse(self, query: BrowseQuery) -> BrowseResult:
        if not self.api_key:
            raise BrowseConfigError("API key not configured")

        strategy = resolve_strategy(query.category, query.kind, query.refinement)
        if strategy is None:
            logger.info("Category %r has no %s listing; returning empty list", query.category, query.kind)
            return BrowseResult(items=[])

        strategy = strategy.with_params(page=upstream_page(query.start, query.limit))
        logger.debug("Browsing %s with %s", strategy.endpoint, strategy.as_params())
        page = self.client.fetch_page(strategy)
        items: list[NormalizedItem] = [self.client.normalize(item, query.kind) for item in page.results]
        return BrowseResult(items=items)
