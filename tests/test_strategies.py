import pytest

from app.services import strategies
from app.services.models import UpstreamStrategy
from app.services.strategies import (
    CATEGORY_RULES,
    CategoryRule,
    check_strategy_table,
    resolve_strategy,
)


def test_shipped_table_is_consistent():
    check_strategy_table()


@pytest.mark.parametrize("rule", CATEGORY_RULES, ids=lambda rule: rule.label)
def test_every_known_label_resolves_deterministically(rule):
    for kind in rule.endpoints:
        for label in (rule.label, *rule.aliases):
            first = resolve_strategy(label, kind)
            second = resolve_strategy(label, kind)
            assert first == second
            assert first.endpoint == rule.endpoints[kind]
            assert first.as_params()["include_adult"] is False


@pytest.mark.parametrize(
    ("label", "kind", "endpoint"),
    [
        ("热门", "movie", "/movie/popular"),
        ("最新", "movie", "/movie/now_playing"),
        ("即将上映", "movie", "/movie/upcoming"),
        ("高分", "movie", "/movie/top_rated"),
        ("豆瓣高分", "movie", "/movie/top_rated"),
        ("popular", "series", "/tv/popular"),
        ("Now Playing", "series", "/tv/on_the_air"),
        ("upcoming", "series", "/tv/airing_today"),
        ("top rated", "series", "/tv/top_rated"),
    ],
)
def test_listing_categories(label, kind, endpoint):
    strategy = resolve_strategy(label, kind)
    assert strategy.endpoint == endpoint


def test_movie_baseline_excludes_adult_and_video():
    strategy = resolve_strategy("热门", "movie")
    assert strategy.params == (("include_adult", False), ("include_video", False))


def test_series_baseline_has_no_video_flag():
    strategy = resolve_strategy("热门", "series")
    assert strategy.params == (("include_adult", False),)


@pytest.mark.parametrize(
    ("label", "country"),
    [("华语", "CN"), ("欧美", "US"), ("韩国", "KR"), ("日本", "JP"), ("by-region:JP", "JP")],
)
def test_region_categories_use_discover(label, country):
    strategy = resolve_strategy(label, "series")
    assert strategy.endpoint == "/discover/tv"
    params = strategy.as_params()
    assert params["with_origin_country"] == country
    assert params["sort_by"] == "popularity.desc"


def test_genre_categories_use_discover():
    animation = resolve_strategy("动漫", "movie").as_params()
    documentary = resolve_strategy("纪录片", "movie").as_params()
    assert animation["with_genres"] == "16"
    assert documentary["with_genres"] == "99"
    assert animation["sort_by"] == documentary["sort_by"] == "popularity.desc"


def test_hidden_gems_sorts_by_rating_with_vote_floor():
    strategy = resolve_strategy("冷门佳片", "movie")
    assert strategy.endpoint == "/discover/movie"
    params = strategy.as_params()
    assert params["sort_by"] == "vote_average.desc"
    assert params["vote_count.gte"] == 100


def test_variety_show_is_series_only():
    assert resolve_strategy("综艺", "movie") is None
    strategy = resolve_strategy("综艺", "series")
    assert strategy.endpoint == "/discover/tv"
    assert strategy.as_params()["with_genres"] == "10764"


@pytest.mark.parametrize("kind, endpoint", [("movie", "/search/movie"), ("series", "/search/tv")])
def test_unknown_label_falls_back_to_search(kind, endpoint):
    strategy = resolve_strategy("星际穿越", kind)
    assert strategy.endpoint == endpoint
    assert strategy.as_params()["query"] == "星际穿越"


def test_refinement_overrides_label():
    strategy = resolve_strategy("热门", "series", refinement="japanese")
    assert strategy.endpoint == "/discover/tv"
    assert strategy.as_params()["with_origin_country"] == "JP"


def test_neutral_refinement_keeps_label():
    assert resolve_strategy("高分", "movie", refinement="all").endpoint == "/movie/top_rated"
    assert resolve_strategy("高分", "series", refinement="tv").endpoint == "/tv/top_rated"


def test_show_refinement_on_movie_is_empty():
    assert resolve_strategy("热门", "movie", refinement="show") is None


def test_with_params_merges_and_drops_absent_values():
    strategy = UpstreamStrategy(endpoint="/movie/popular", params=(("include_adult", False),))
    merged = strategy.with_params(page=3, region=None)
    assert merged.params == (("include_adult", False), ("page", 3))
    assert strategy.params == (("include_adult", False),)


def test_check_rejects_rule_without_endpoints():
    broken = CATEGORY_RULES + (CategoryRule(label="broken", endpoints={}),)
    with pytest.raises(RuntimeError, match="broken"):
        check_strategy_table(broken)


def test_check_rejects_duplicate_alias():
    clash = CATEGORY_RULES + (
        CategoryRule(label="clash", endpoints={"movie": "/movie/popular"}, aliases=("热门",)),
    )
    with pytest.raises(RuntimeError, match="claimed by both"):
        check_strategy_table(clash)


def test_check_rejects_dangling_refinement():
    refinements = dict(strategies.REFINEMENTS, thai="by-region:TH")
    with pytest.raises(RuntimeError, match="thai"):
        check_strategy_table(CATEGORY_RULES, refinements)
