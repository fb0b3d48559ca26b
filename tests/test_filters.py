"""Filter compilation, precedence and sorting tests."""

from __future__ import annotations

from datetime import date

from app.filters import (
    FilterSpec,
    RangeFilter,
    compile_genre_expression,
    sort_entries,
)
from app.models import CatalogEntry, CatalogRequest, ListConfig, UserSettings

TODAY = date(2024, 6, 1)


def make_entry(
    number: int,
    *,
    genres: tuple[str, ...] = (),
    year: int | None = None,
    rating: float | None = None,
    runtime: int | None = None,
    name: str | None = None,
    released: str | None = None,
) -> CatalogEntry:
    return CatalogEntry(
        id=f"tt{number:07d}",
        type="movie",
        name=name or f"Movie {number}",
        imdb_rating=rating,
        release_info=str(year) if year else None,
        runtime=runtime,
        genres=genres,
        released=released,
    )


def test_genre_expression_is_and_of_or_groups() -> None:
    predicate = compile_genre_expression("Action, Adventure + Comedy")

    assert predicate(["Action", "Comedy"])
    assert predicate(["Adventure", "Comedy", "Drama"])
    assert not predicate(["Comedy"])
    assert not predicate(["Action", "Adventure"])


def test_bare_term_matches_single_group_form() -> None:
    bare = compile_genre_expression("sci-fi")

    assert bare == compile_genre_expression("(Science Fiction)")
    assert bare == compile_genre_expression("Science Fiction,")
    assert bare(["Science Fiction"])
    assert not bare(["Drama"])


def test_parentheses_are_ignored() -> None:
    assert compile_genre_expression("(Action,Drama)+(Crime)") == compile_genre_expression(
        "Crime + Drama, Action"
    )


def test_blank_expression_matches_everything() -> None:
    predicate = compile_genre_expression("  ")

    assert predicate.groups == ()
    assert predicate([])
    assert predicate(["Horror"])


def test_genre_guard_skips_batches_without_genre_data() -> None:
    compiled = FilterSpec(genre="Comedy").compile()
    bare_batch = [make_entry(1), make_entry(2)]

    assert compiled.apply(bare_batch, today=TODAY) == bare_batch

    mixed = [make_entry(1, genres=("Comedy",)), make_entry(2), make_entry(3, genres=("Drama",))]
    assert [entry.id for entry in compiled.apply(mixed, today=TODAY)] == ["tt0000001"]


def test_range_bounds_reject_missing_values() -> None:
    compiled = FilterSpec(rating_min=7.0).compile()
    batch = [make_entry(1, rating=7.0), make_entry(2), make_entry(3, rating=6.9)]

    assert [entry.id for entry in compiled.apply(batch, today=TODAY)] == ["tt0000001"]


def test_range_filter_is_inclusive() -> None:
    years = RangeFilter(1990, 1999)

    assert years(1990)
    assert years(1999)
    assert not years(2000)
    assert not years(None)
    assert RangeFilter()(None)


def test_hide_unreleased_keeps_unknown_dates() -> None:
    compiled = FilterSpec(hide_unreleased=True).compile()
    batch = [
        make_entry(1, released="2024-05-31"),
        make_entry(2, released="2024-06-02"),
        make_entry(3, released="soon"),
        make_entry(4),
    ]

    kept = compiled.apply(batch, today=TODAY)

    assert [entry.id for entry in kept] == ["tt0000001", "tt0000003", "tt0000004"]


def test_precedence_request_over_list_over_global() -> None:
    list_config = ListConfig(
        name="Weekend",
        url="me/lists/weekend",
        sort_by="year",
        sort_order="asc",
        genre="Drama",
        rating_min=6,
        hide_unreleased=False,
    )
    settings = UserSettings(hide_unreleased_all=True)
    request = CatalogRequest.from_extras({"sort": "rating", "genre": "Comedy"})

    spec = FilterSpec.resolve(request, list_config, settings)

    assert spec.sort == "rating"
    assert spec.order == "asc"
    assert spec.genre == "Comedy"
    assert spec.rating_min == 6
    assert spec.hide_unreleased is False

    inherited = FilterSpec.resolve(CatalogRequest(), ListConfig(name="Plain"), settings)
    assert inherited.hide_unreleased is True
    assert inherited.order == "desc"


def test_equivalent_requests_share_a_cache_key() -> None:
    plain = FilterSpec.resolve(CatalogRequest())
    explicit = FilterSpec.resolve(CatalogRequest.from_extras({"order": "desc", "skip": "0"}))
    assert plain.cache_key() == explicit.cache_key()

    first = FilterSpec.resolve(
        CatalogRequest.from_extras({"genre": "Comedy+Action", "ratingMin": "7"})
    )
    second = FilterSpec.resolve(
        CatalogRequest.from_extras({"genre": "action + comedy", "ratingMin": "7.0"})
    )
    assert first.cache_key() == second.cache_key()

    sorted_spec = FilterSpec.resolve(CatalogRequest.from_extras({"sort": "year"}))
    assert sorted_spec.cache_key() != plain.cache_key()


def test_narrowing_only_for_genre_year_or_rating() -> None:
    assert not FilterSpec(sort="year").is_narrowing
    assert not FilterSpec(hide_unreleased=True).is_narrowing
    assert not FilterSpec(genre=" () ").is_narrowing
    assert FilterSpec(genre="Drama").is_narrowing
    assert FilterSpec(year_max=1999).is_narrowing
    assert FilterSpec(rating_min=5.5).is_narrowing


def test_sort_entries_by_each_field() -> None:
    entries = [
        make_entry(1, year=2001, rating=6.5, runtime=90, name="beta"),
        make_entry(2, year=1999, rating=None, runtime=120, name="Alpha"),
        make_entry(3, year=2010, rating=8.1, runtime=None, name="gamma"),
    ]

    assert [e.id for e in sort_entries(entries, "year", "desc")] == [
        "tt0000003",
        "tt0000001",
        "tt0000002",
    ]
    assert [e.id for e in sort_entries(entries, "rating", "desc")][-1] == "tt0000002"
    assert [e.id for e in sort_entries(entries, "runtime", "asc")][0] == "tt0000003"
    assert [e.name for e in sort_entries(entries, "name", "asc")] == ["Alpha", "beta", "gamma"]
    assert sort_entries(entries, None) == entries
