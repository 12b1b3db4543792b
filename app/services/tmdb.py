"""Thin wrapper around the TMDb API to fetch browse listings."""

from __future__ import annotations

import json
import logging
import re
import time
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from app.core.config import Settings, get_settings
from app.services.models import Kind, NormalizedItem, UpstreamStrategy


logger = logging.getLogger(__name__)

_YEAR_RE = re.compile(r"\d{4}", re.ASCII)


class TMDbError(Exception):
    """Base exception for TMDb-related failures."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TMDbTimeout(TMDbError):
    """Raised when TMDb does not answer within the configured timeout."""


class TMDbAuthError(TMDbError):
    """Raised when TMDb rejects our API key (401)."""


class TMDbRateLimited(TMDbError):
    """Raised when TMDb answers 429 Too Many Requests."""


class TMDbServerError(TMDbError):
    """Raised for 5xx answers from TMDb."""


class UpstreamItem(BaseModel):
    """One entry of a TMDb ``results`` array; movie and TV fields side by side."""

    model_config = ConfigDict(extra="ignore")

    id: int
    title: str | None = None
    original_title: str | None = None
    name: str | None = None
    original_name: str | None = None
    poster_path: str | None = None
    vote_average: float | None = None
    release_date: str | None = None
    first_air_date: str | None = None
    overview: str | None = None


class UpstreamPage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    page: int = 1
    results: list[UpstreamItem] = []
    total_pages: int = 0
    total_results: int = 0


def _error_for_status(status_code: int) -> type[TMDbError]:
    if status_code == 401:
        return TMDbAuthError
    if status_code == 429:
        return TMDbRateLimited
    if status_code >= 500:
        return TMDbServerError
    return TMDbError


def extract_year(raw: str | None) -> str:
    """Return the leading ``YYYY`` of a ``YYYY-MM-DD`` date, or ``""``.

    Only the first hyphen-delimited segment is considered; a date that does
    not start with four digits yields ``""`` rather than a year found later
    in the string.
    """

    if not raw:
        return ""
    head = raw.strip().split("-", 1)[0]
    return head if _YEAR_RE.fullmatch(head) else ""


def format_rating(vote_average: float | None) -> str:
    # TMDb reports 0 for titles nobody rated yet.
    if not vote_average:
        return ""
    return f"{vote_average:.1f}"


class TMDbClient:
    """Simple TMDb HTTP client using API key auth.

    Explicit arguments win; anything left unset comes from ``settings``, and
    only a client built without ``settings`` reads the process environment.
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        default_language: str | None = None,
        default_region: str | None = None,
        image_base: str | None = None,
        poster_size: str | None = None,
        timeout: float | None = None,
        user_agent: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.api_key = api_key or settings.tmdb_api_key
        self.base_url = (base_url or settings.tmdb_base_url).rstrip("/")
        self.default_language = default_language or settings.tmdb_language
        self.default_region = default_region or settings.tmdb_region
        self.image_base = (image_base or settings.tmdb_image_base).rstrip("/")
        self.poster_size = poster_size or settings.tmdb_poster_size
        self.timeout = timeout or settings.tmdb_timeout
        self.user_agent = user_agent or settings.tmdb_user_agent
        self.transport = transport

    def build_url(self, strategy: UpstreamStrategy) -> str:
        """Full request URL: credentials and locale first, then strategy params."""

        if not self.api_key:
            raise TMDbError("TMDB_API_KEY is not configured")
        query: dict[str, Any] = {
            "api_key": self.api_key,
            "language": self.default_language,
            "region": self.default_region,
        }
        query.update(strategy.as_params())
        params = {key: value for key, value in query.items() if value is not None}
        return str(httpx.URL(f"{self.base_url}{strategy.endpoint}", params=params))

    def fetch_page(self, strategy: UpstreamStrategy) -> UpstreamPage:
        """Issue exactly one GET for ``strategy`` and parse the listing.

        ``self.timeout`` bounds the whole call, body included: a server that
        trickles bytes is cut off once the deadline passes.
        """

        url = self.build_url(strategy)
        headers = {"Accept": "application/json", "User-Agent": self.user_agent}
        deadline = time.monotonic() + self.timeout
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                with client.stream("GET", url, headers=headers) as response:
                    self._check_status(response, strategy)
                    body = self._read_body(response, deadline)
        except httpx.TimeoutException as exc:
            logger.warning("TMDb request to %s timed out after %ss", strategy.endpoint, self.timeout)
            raise TMDbTimeout(f"TMDb request timed out after {self.timeout}s") from exc
        except httpx.HTTPError as exc:
            logger.warning("TMDb request to %s failed: %s", strategy.endpoint, exc)
            raise TMDbError(f"TMDb request failed: {exc}") from exc

        try:
            payload = json.loads(body)
            logger.debug("TMDb payload for %s: %s", strategy.endpoint, payload)
            return UpstreamPage.model_validate(payload)
        except (ValueError, ValidationError) as exc:
            raise TMDbError(f"Unexpected TMDb payload: {exc}") from exc

    def _check_status(self, response: httpx.Response, strategy: UpstreamStrategy) -> None:
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status_code = response.status_code
            logger.warning("TMDb %s answered %s", strategy.endpoint, status_code)
            raise _error_for_status(status_code)(
                f"TMDb API error: {status_code}", status_code=status_code
            ) from exc

    def _read_body(self, response: httpx.Response, deadline: float) -> bytes:
        # Per-read timeouts alone never stop a slow but steady stream.
        chunks: list[bytes] = []
        for chunk in response.iter_bytes():
            if time.monotonic() > deadline:
                raise httpx.ReadTimeout("TMDb response exceeded the deadline", request=response.request)
            chunks.append(chunk)
        return b"".join(chunks)

    def normalize(self, item: UpstreamItem, kind: Kind) -> NormalizedItem:
        """Reshape one upstream record into the frontend item format."""

        if kind == "movie":
            title = item.title or item.original_title
            released = item.release_date
        else:
            title = item.name or item.original_name
            released = item.first_air_date
        return NormalizedItem(
            id=str(item.id),
            title=title or "",
            poster=self._build_poster_url(item.poster_path),
            rate=format_rating(item.vote_average),
            year=extract_year(released),
        )

    def _build_poster_url(self, path: str | None) -> str:
        if not path:
            return ""
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self.image_base}/{self.poster_size}{path}"
