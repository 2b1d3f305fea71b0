"""Search pipeline tests: filtering, ranking, windowing and totals."""

import pytest

from paired_ratings.services.search_service import (
    GenreMode,
    SearchCriteria,
    SearchService,
    SortKey,
    Totals,
    apply_filters,
    rank,
    window,
)
from paired_ratings.services.tmdb_service import ProviderPage, TMDBError, parse_year
from tests.utils import make_item, make_pages


def _sample_items():
    return [
        make_item(1, vote_average=8.1, vote_count=900, year=1999, genre_ids=[28, 18]),
        make_item(2, vote_average=6.4, vote_count=50, year=2010, genre_ids=[35]),
        make_item(3, "tv", vote_average=7.5, vote_count=300, year=None, genre_ids=[18]),
        make_item(
            4,
            "tv",
            vote_average=9.0,
            vote_count=12,
            year=2021,
            genre_ids=[18, 10765],
            origin_country=["KR"],
            original_language="ko",
        ),
        make_item(5, vote_average=7.5, vote_count=300, year=2005, genre_ids=[28]),
    ]


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1999", 1999),
        ("", None),
        ("   ", None),
        ("abcd", None),
        ("99", 99),
        (" 2024 ", 2024),
        ("-5", -5),
        ("19a9", None),
        (None, None),
    ],
)
def test_parse_year(raw, expected):
    assert parse_year(raw) == expected


@pytest.mark.parametrize(
    "params",
    [
        {"min_rating": 7.5},
        {"min_votes": 100},
        {"year_from": 2000, "year_to": 2015},
        {"genre_ids": frozenset({18}), "genre_mode": GenreMode.ANY},
        {"genre_ids": frozenset({18, 28})},
        {"origin_country": "KR", "original_language": "ko"},
        {"media_type": "tv", "min_rating": 8.0},
    ],
)
def test_filter_output_is_subset_and_every_survivor_matches(params):
    items = _sample_items()
    criteria = SearchCriteria(query="x", **params)

    survivors = apply_filters(items, criteria)

    assert all(item in items for item in survivors)
    for item in survivors:
        if criteria.min_rating is not None:
            assert item.vote_average >= criteria.min_rating
        if criteria.min_votes is not None:
            assert item.vote_count >= criteria.min_votes
        if criteria.has_year_filter:
            assert item.year is not None
        if criteria.media_type != "all":
            assert item.media_type == criteria.media_type


def test_rating_and_vote_bounds_are_inclusive():
    criteria = SearchCriteria(query="x", min_rating=7.5, min_votes=300)
    assert [i.id for i in apply_filters(_sample_items(), criteria)] == [1, 3, 5]


def test_items_without_year_survive_only_without_year_bounds():
    items = _sample_items()
    assert 3 in [i.id for i in apply_filters(items, SearchCriteria(query="x"))]
    assert 3 not in [
        i.id for i in apply_filters(items, SearchCriteria(query="x", year_to=2030))
    ]


def test_genre_and_is_subset_of_genre_or():
    items = _sample_items()
    genres = frozenset({18, 28})
    all_ids = {
        i.id
        for i in apply_filters(items, SearchCriteria(query="x", genre_ids=genres))
    }
    any_ids = {
        i.id
        for i in apply_filters(
            items, SearchCriteria(query="x", genre_ids=genres, genre_mode=GenreMode.ANY)
        )
    }
    assert all_ids == {1}
    assert any_ids == {1, 3, 4, 5}
    assert all_ids <= any_ids


@pytest.mark.parametrize("sort", list(SortKey))
def test_sorting_is_idempotent(sort):
    once = rank(_sample_items(), sort)
    assert rank(once, sort) == once


def test_rating_sort_breaks_ties_on_votes_then_title():
    items = [
        make_item(1, title="Zulu", vote_average=7.5, vote_count=300),
        make_item(2, title="Alpha", vote_average=7.5, vote_count=300),
        make_item(3, title="Mid", vote_average=7.5, vote_count=900),
        make_item(4, title="Top", vote_average=8.0, vote_count=1),
    ]
    assert [i.id for i in rank(items, SortKey.RATING)] == [4, 3, 2, 1]


def test_year_sort_puts_missing_years_last():
    ordered = rank(_sample_items(), SortKey.YEAR)
    assert ordered[-1].year is None
    assert [i.year for i in ordered[:-1]] == [2021, 2010, 2005, 1999]


def test_relevance_keeps_provider_order():
    items = _sample_items()
    assert rank(items, SortKey.RELEVANCE) == items


def test_window_out_of_range_is_empty():
    items = _sample_items()
    assert window(items, 20, 20) == []
    assert window(items, 0, 2) == items[:2]


@pytest.mark.parametrize(
    "raw, expected",
    [(None, 1), ("", 1), ("0", 1), ("-3", 1), ("4", 4)],
)
def test_page_clamps_to_one(raw, expected):
    assert SearchCriteria.from_params(q="x", page=raw).page == expected


@pytest.mark.parametrize(
    "params",
    [
        {"media_type": "person"},
        {"sort": "popularity"},
        {"page": "two"},
        {"year_from": "19x9"},
        {"min_rating": "nan"},
        {"genres": "28,action"},
        {"genre_mode": "some"},
    ],
)
def test_malformed_params_raise(params):
    with pytest.raises(ValueError):
        SearchCriteria.from_params(q="x", **params)


def test_genre_string_selects_mode():
    assert SearchCriteria.from_params(genres="28,12").genre_mode == GenreMode.ALL
    assert SearchCriteria.from_params(genres="28|12").genre_mode == GenreMode.ANY
    overridden = SearchCriteria.from_params(genres="28|12", genre_mode="all")
    assert overridden.genre_mode == GenreMode.ALL
    assert overridden.genre_ids == frozenset({28, 12})
    assert overridden.discover_filters().genres == "12,28"


def test_zero_minimums_are_unset():
    criteria = SearchCriteria.from_params(q="x", min_rating="0", min_votes="0")
    assert criteria.min_rating is None
    assert criteria.min_votes is None
    assert not criteria.has_filters


@pytest.mark.asyncio
async def test_empty_request_skips_provider(fake_tmdb):
    result = await SearchService(fake_tmdb).search(SearchCriteria())

    assert result.results == []
    assert result.total_results == 0
    assert result.totals == Totals.EXACT
    assert fake_tmdb.calls == []


@pytest.mark.asyncio
async def test_direct_path_slices_one_provider_page(fake_tmdb):
    items = [make_item(i) for i in range(1, 51)]
    fake_tmdb.search_pages["movie"] = make_pages(items)

    result = await SearchService(fake_tmdb).search(
        SearchCriteria(query="title", media_type="movie", page=2)
    )

    assert fake_tmdb.calls == [("search", "movie", 2)]
    assert [i.id for i in result.results] == list(range(21, 41))
    assert result.total_results == 50
    assert result.total_pages == 3
    assert result.totals == Totals.EXACT
    assert result.provider_calls == 1


@pytest.mark.asyncio
async def test_direct_path_caps_pages_at_provider_limit(fake_tmdb):
    fake_tmdb.search_pages["movie"] = [
        make_pages([make_item(1)], total_results=250_000)[0]
    ]
    fake_tmdb.search_pages["movie"][0].total_pages = 500

    result = await SearchService(fake_tmdb).search(
        SearchCriteria(query="a", media_type="movie")
    )

    assert result.total_pages == 500
    assert result.total_results == 250_000


@pytest.mark.asyncio
async def test_multi_search_with_dropped_people_is_estimated(fake_tmdb):
    pages = make_pages([make_item(1), make_item(2, "tv")], total_results=3)
    pages[0].dropped = 1
    fake_tmdb.search_pages["multi"] = pages

    result = await SearchService(fake_tmdb).search(SearchCriteria(query="star"))

    assert [i.id for i in result.results] == [1, 2]
    assert result.totals == Totals.ESTIMATED


@pytest.mark.asyncio
async def test_accumulates_forty_five_survivors(fake_tmdb):
    # provider pages yield 20, 15 and 10 survivors
    items = []
    for page, passing in enumerate((20, 15, 10)):
        for n in range(20):
            item_id = page * 20 + n + 1
            rating = 8.0 if n < passing else 3.0
            items.append(make_item(item_id, vote_average=rating))
    fake_tmdb.discover_pages["movie"] = make_pages(items)

    result = await SearchService(fake_tmdb).search(
        SearchCriteria(media_type="movie", min_rating=5.0, page=2)
    )

    assert len(result.results) == 20
    assert result.total_results == 45
    assert result.total_pages == 3
    assert result.totals == Totals.EXACT
    assert fake_tmdb.calls == [("discover", "movie", p) for p in (1, 2, 3)]


@pytest.mark.asyncio
async def test_pages_partition_the_filtered_results(fake_tmdb):
    items = [make_item(i, vote_count=i % 3) for i in range(1, 101)]
    fake_tmdb.search_pages["movie"] = make_pages(items)
    expected = [i.id for i in items if i.vote_count >= 1]

    seen = []
    last = None
    for page in range(1, 10):
        last = await SearchService(fake_tmdb).search(
            SearchCriteria(query="t", media_type="movie", min_votes=1, page=page)
        )
        if not last.results:
            break
        seen.extend(i.id for i in last.results)

    assert seen == expected
    assert len(seen) == len(set(seen))
    assert last.totals == Totals.EXACT
    assert last.total_results == len(expected)
    assert last.total_pages == 4


@pytest.mark.asyncio
async def test_sorted_pages_partition_the_whole_stream(fake_tmdb):
    # ratings rise page by page, so the best titles sit on the last provider page
    items = [make_item(i, vote_average=1.0 + i / 10) for i in range(1, 61)]
    fake_tmdb.search_pages["movie"] = make_pages(items)

    seen = []
    for page in (1, 2, 3):
        result = await SearchService(fake_tmdb).search(
            SearchCriteria(query="t", media_type="movie", sort=SortKey.RATING, page=page)
        )
        assert result.totals == Totals.EXACT
        assert result.total_results == 60
        assert result.total_pages == 3
        seen.extend(i.id for i in result.results)

    assert seen == list(range(60, 0, -1))
    assert fake_tmdb.calls == [("search", "movie", p) for p in (1, 2, 3)] * 3


@pytest.mark.asyncio
async def test_unreachable_page_stops_after_first_fetch(fake_tmdb):
    items = [make_item(i, vote_count=1) for i in range(1, 21)]
    fake_tmdb.search_pages["movie"] = [
        ProviderPage(results=items, page=1, total_pages=500, total_results=10000)
    ]

    result = await SearchService(fake_tmdb).search(
        SearchCriteria(query="t", media_type="movie", min_votes=1, page=100000)
    )

    assert fake_tmdb.calls == [("search", "movie", 1)]
    assert result.results == []
    assert result.totals == Totals.ESTIMATED
    assert result.total_pages <= 500


@pytest.mark.asyncio
async def test_estimate_never_undercounts_and_leaves_a_next_page(fake_tmdb):
    items = [make_item(i, vote_count=1 if i % 4 == 0 else 0) for i in range(1, 201)]
    fake_tmdb.search_pages["movie"] = make_pages(items, total_results=200)

    result = await SearchService(fake_tmdb).search(
        SearchCriteria(query="t", media_type="movie", min_votes=1)
    )

    assert result.totals == Totals.ESTIMATED
    assert result.total_results >= len(result.results)
    assert result.total_pages >= result.page + 1


@pytest.mark.asyncio
async def test_all_types_discover_merges_kinds_before_filtering(fake_tmdb):
    fake_tmdb.discover_pages["movie"] = make_pages(
        [
            make_item(1, vote_average=8.0),
            make_item(2, vote_average=6.0),
            make_item(3, vote_average=9.0),
        ]
    )
    fake_tmdb.discover_pages["tv"] = make_pages(
        [
            make_item(11, "tv", vote_average=7.5),
            make_item(12, "tv", vote_average=8.5),
            make_item(13, "tv", vote_average=5.0),
        ]
    )

    result = await SearchService(fake_tmdb).search(
        SearchCriteria(min_rating=7.5, sort=SortKey.RATING)
    )

    assert [(i.media_type, i.id) for i in result.results] == [
        ("movie", 3),
        ("tv", 12),
        ("movie", 1),
        ("tv", 11),
    ]
    assert result.total_results == 4
    assert result.totals == Totals.EXACT
    assert fake_tmdb.calls == [("discover", "movie", 1), ("discover", "tv", 1)]


@pytest.mark.asyncio
async def test_all_types_discover_interleaves_relevance_order(fake_tmdb):
    fake_tmdb.discover_pages["movie"] = make_pages([make_item(1), make_item(2)])
    fake_tmdb.discover_pages["tv"] = make_pages([make_item(11, "tv")])

    result = await SearchService(fake_tmdb).search(SearchCriteria(year_from=1900))

    assert [i.id for i in result.results] == [1, 11, 2]
    assert result.total_results == 3


@pytest.mark.asyncio
async def test_discover_does_not_recheck_origin_country(fake_tmdb):
    # movie discover payloads carry no origin_country
    fake_tmdb.discover_pages["movie"] = make_pages([make_item(1), make_item(2)])

    result = await SearchService(fake_tmdb).search(
        SearchCriteria(media_type="movie", origin_country="KR")
    )

    assert [i.id for i in result.results] == [1, 2]


@pytest.mark.asyncio
async def test_text_search_rechecks_origin_country(fake_tmdb):
    fake_tmdb.search_pages["tv"] = make_pages(
        [make_item(1, "tv", origin_country=["KR"]), make_item(2, "tv", origin_country=["US"])]
    )

    result = await SearchService(fake_tmdb).search(
        SearchCriteria(query="x", media_type="tv", origin_country="KR")
    )

    assert [i.id for i in result.results] == [1]


@pytest.mark.asyncio
async def test_provider_error_aborts_search(fake_tmdb):
    fake_tmdb.search_pages["movie"] = make_pages([make_item(1)])
    fake_tmdb.error = TMDBError("tmdb request failed: 503 Service Unavailable")

    with pytest.raises(TMDBError):
        await SearchService(fake_tmdb).search(
            SearchCriteria(query="x", media_type="movie", sort=SortKey.TITLE)
        )
