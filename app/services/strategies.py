"""Map browse categories onto TMDb list/discover/search requests.

Every category the frontend knows is declared once in ``CATEGORY_RULES``;
``resolve_strategy`` only looks things up. Labels arrive either in the
canonical English form (``"top rated"``) or in the frontend's Chinese form
(``"高分"``). Anything that is not a known label becomes a free-text search.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping

from app.services.models import Kind, ParamValue, UpstreamStrategy

logger = logging.getLogger(__name__)

KINDS: tuple[Kind, ...] = ("movie", "series")

# TMDb genre ids
GENRE_ANIMATION = 16
GENRE_DOCUMENTARY = 99
GENRE_REALITY = 10764


@dataclass(frozen=True)
class CategoryRule:
    """One row of the category table."""

    label: str
    endpoints: Mapping[Kind, str]
    extra: tuple[tuple[str, ParamValue], ...] = ()
    aliases: tuple[str, ...] = ()


def _by_region(country: str) -> tuple[tuple[str, ParamValue], ...]:
    return (("with_origin_country", country), ("sort_by", "popularity.desc"))


def _by_genre(genre_id: int) -> tuple[tuple[str, ParamValue], ...]:
    return (("with_genres", str(genre_id)), ("sort_by", "popularity.desc"))


_DISCOVER = {"movie": "/discover/movie", "series": "/discover/tv"}

CATEGORY_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(
        label="popular",
        endpoints={"movie": "/movie/popular", "series": "/tv/popular"},
        aliases=("热门",),
    ),
    CategoryRule(
        label="now playing",
        endpoints={"movie": "/movie/now_playing", "series": "/tv/on_the_air"},
        aliases=("最新",),
    ),
    CategoryRule(
        label="upcoming",
        endpoints={"movie": "/movie/upcoming", "series": "/tv/airing_today"},
        aliases=("即将上映",),
    ),
    CategoryRule(
        label="top rated",
        endpoints={"movie": "/movie/top_rated", "series": "/tv/top_rated"},
        aliases=("高分", "豆瓣高分"),
    ),
    CategoryRule(label="by-region:CN", endpoints=_DISCOVER, extra=_by_region("CN"), aliases=("华语",)),
    CategoryRule(label="by-region:US", endpoints=_DISCOVER, extra=_by_region("US"), aliases=("欧美",)),
    CategoryRule(label="by-region:KR", endpoints=_DISCOVER, extra=_by_region("KR"), aliases=("韩国",)),
    CategoryRule(label="by-region:JP", endpoints=_DISCOVER, extra=_by_region("JP"), aliases=("日本",)),
    CategoryRule(
        label="by-genre:animation",
        endpoints=_DISCOVER,
        extra=_by_genre(GENRE_ANIMATION),
        aliases=("动漫",),
    ),
    CategoryRule(
        label="by-genre:documentary",
        endpoints=_DISCOVER,
        extra=_by_genre(GENRE_DOCUMENTARY),
        aliases=("纪录片",),
    ),
    # Reality/variety only exists as a TV genre upstream.
    CategoryRule(
        label="by-genre:variety",
        endpoints={"series": "/discover/tv"},
        extra=_by_genre(GENRE_REALITY),
        aliases=("综艺",),
    ),
    CategoryRule(
        label="hidden gems",
        endpoints=_DISCOVER,
        extra=(("sort_by", "vote_average.desc"), ("vote_count.gte", 100)),
        aliases=("冷门佳片",),
    ),
)

# Sub-selectors sent as ``type`` by the category endpoint.
REFINEMENTS: dict[str, str] = {
    "domestic": "by-region:CN",
    "american": "by-region:US",
    "korean": "by-region:KR",
    "japanese": "by-region:JP",
    "animation": "by-genre:animation",
    "documentary": "by-genre:documentary",
    "show": "by-genre:variety",
    "variety": "by-genre:variety",
}

SEARCH_ENDPOINTS: dict[Kind, str] = {"movie": "/search/movie", "series": "/search/tv"}


def _normalize_label(label: str) -> str:
    return label.strip().lower()


def _build_index(rules: tuple[CategoryRule, ...]) -> dict[str, CategoryRule]:
    index: dict[str, CategoryRule] = {}
    for rule in rules:
        for name in (rule.label, *rule.aliases):
            index[_normalize_label(name)] = rule
    return index


_RULES_BY_LABEL = _build_index(CATEGORY_RULES)


def check_strategy_table(
    rules: tuple[CategoryRule, ...] = CATEGORY_RULES,
    refinements: Mapping[str, str] = REFINEMENTS,
) -> None:
    """Fail loudly if the category table is inconsistent.

    Called once from the application lifespan so a broken table never serves
    traffic.
    """

    problems: list[str] = []
    seen: dict[str, str] = {}
    for rule in rules:
        if not rule.endpoints:
            problems.append(f"{rule.label!r} supports no kind")
        for kind, endpoint in rule.endpoints.items():
            if kind not in KINDS:
                problems.append(f"{rule.label!r} declares unknown kind {kind!r}")
            if not endpoint or not endpoint.startswith("/"):
                problems.append(f"{rule.label!r} has invalid {kind} endpoint {endpoint!r}")
        for name in (rule.label, *rule.aliases):
            key = _normalize_label(name)
            if not key:
                problems.append(f"{rule.label!r} has a blank alias")
            elif key in seen and seen[key] != rule.label:
                problems.append(f"{name!r} is claimed by both {seen[key]!r} and {rule.label!r}")
            seen.setdefault(key, rule.label)
    labels = {rule.label for rule in rules}
    for selector, target in refinements.items():
        if target not in labels:
            problems.append(f"refinement {selector!r} points at undefined category {target!r}")
    if problems:
        raise RuntimeError("Invalid category table: " + "; ".join(problems))
    logger.info("Category table OK: %d rules, %d refinements", len(rules), len(refinements))


def base_params(kind: Kind) -> tuple[tuple[str, ParamValue], ...]:
    if kind == "movie":
        return (("include_adult", False), ("include_video", False))
    return (("include_adult", False),)


def find_rule(category: str, refinement: str | None = None) -> CategoryRule | None:
    """Return the table row for a refinement selector or category label."""

    if refinement:
        target = REFINEMENTS.get(_normalize_label(refinement))
        if target is not None:
            return _RULES_BY_LABEL[_normalize_label(target)]
    return _RULES_BY_LABEL.get(_normalize_label(category))


def resolve_strategy(
    category: str,
    kind: Kind,
    refinement: str | None = None,
) -> UpstreamStrategy | None:
    """Resolve a browse category into the TMDb request to issue.

    Returns ``None`` when the category exists but cannot apply to ``kind``
    (variety shows for movies); callers answer those with an empty list.
    """

    rule = find_rule(category, refinement)
    if rule is None:
        return UpstreamStrategy(
            endpoint=SEARCH_ENDPOINTS[kind],
            params=base_params(kind) + (("query", category),),
        )
    endpoint = rule.endpoints.get(kind)
    if endpoint is None:
        return None
    return UpstreamStrategy(endpoint=endpoint, params=base_params(kind) + rule.extra)
