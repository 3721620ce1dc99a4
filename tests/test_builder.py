import pytest
from conftest import Author, Book, ids
from sqlalchemy import String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from fastapi_querykit import builder
from fastapi_querykit.core import Filter
from fastapi_querykit.exceptions import (
    InvalidDirective,
    MalformedFilter,
    ModelMismatch,
    TypeMismatch,
    UnsupportedOperator,
)
from fastapi_querykit.operators import FilterOperator


class _SettingsBase(DeclarativeBase):
    pass


class Setting(_SettingsBase):
    __tablename__ = "settings"

    id: Mapped[int] = mapped_column(primary_key=True)
    value: Mapped[str] = mapped_column(String(50))


def run(session, queryable):
    return list(session.scalars(queryable.statement).all())


def compose(options, model=Book):
    return builder.compose(builder.new(model), model, options)


class TestClassification:
    def test_zero_options_is_identity(self):
        queryable = builder.new(Book)

        result, custom = builder.compose(queryable, Book, [])

        assert result is queryable
        assert custom == []

    def test_unknown_key_is_returned_as_custom(self):
        queryable = builder.new(Book)

        result, custom = builder.compose(queryable, Book, {"foo": "bar"})

        assert custom == [("foo", "bar")]
        assert result is queryable

    def test_custom_options_keep_input_order(self):
        _, custom = compose([("foo", 1), ("title", "Mort"), ("bar", 2)])

        assert custom == [("foo", 1), ("bar", 2)]

    def test_filter_on_unknown_field_is_custom(self):
        option = {"field": "rating", "operator": "greater_than", "value": 4}

        queryable, custom = compose({"filters": [option]})

        assert custom == [option]
        assert "WHERE" not in str(queryable.statement)

    def test_explicit_field_set_overrides_schema(self):
        queryable = builder.new(Book)

        _, custom = builder.compose(queryable, Book, {"title": "Mort", "year": 1987}, fields=["title"])

        assert custom == [("year", 1987)]

    def test_mapping_without_field_key_is_a_pair(self):
        queryable, custom = compose([{"value": "on", "op": "dark_mode"}], model=Setting)

        assert custom == [("op", "dark_mode")]
        assert "setting.value = " in str(queryable.statement)

    def test_queryable_bound_to_another_model_is_rejected(self):
        with pytest.raises(ModelMismatch) as exc:
            builder.compose(builder.new(Author), Book, {"title": "Mort"})
        assert exc.value.status_code == 400
        assert isinstance(exc.value, ValueError)

    def test_malformed_filter(self):
        with pytest.raises(MalformedFilter) as exc:
            compose({"filters": [{"field": "title", "value": "Mort"}]})
        assert exc.value.status_code == 400

    def test_filters_must_be_a_list(self):
        with pytest.raises(MalformedFilter):
            compose({"filters": "title"})

    def test_unsupported_operator(self):
        with pytest.raises(UnsupportedOperator):
            compose({"filters": [{"field": "title", "op": "sounds_like", "value": "Mort"}]})

    def test_in_with_scalar_fails_before_execution(self):
        with pytest.raises(TypeMismatch):
            compose({"filters": [{"field": "id", "operator": "in", "value": 3}]})


class TestFieldFilters:
    def test_bare_field_is_equality(self, session):
        queryable, _ = compose({"title": "Mort"})

        assert ids(run(session, queryable)) == [5]
        assert "WHERE book.title = " in str(queryable.statement)

    def test_filters_compose_as_conjunction(self, session):
        queryable, _ = compose({
            "filters": [
                {"field": "title", "operator": "equals", "value": "Book: Part 1"},
                {"field": "author_id", "operator": "equals", "value": 2},
            ]
        })

        assert run(session, queryable) == []

        queryable, _ = compose({
            "filters": [
                {"field": "title", "operator": "like", "value": "Book"},
                {"field": "author_id", "operator": "equals", "value": 1},
            ]
        })

        assert ids(run(session, queryable)) == [1, 2]

    def test_filter_records_are_accepted(self, session):
        queryable, _ = compose([Filter(field="year", operator=FilterOperator.GREATER_THAN, value=1988)])

        assert ids(run(session, queryable)) == [3, 4]

    @pytest.mark.parametrize(
        "operator, value, expected",
        [
            ("equals", 1987, [5]),
            ("not_equals", 1987, [1, 2, 3, 4]),
            ("less_than", 1971, [1]),
            ("less_or_equal", 1971, [1, 2]),
            ("greater_than", 1989, [4]),
            ("greater_or_equal", 1989, [3, 4]),
            ("in", [1968, 1992], [1, 4]),
            ("not_in", [1968, 1992], [2, 3, 5]),
        ],
    )
    def test_comparisons(self, session, operator, value, expected):
        queryable, _ = compose({"filters": [{"field": "year", "operator": operator, "value": value}]})

        assert ids(run(session, queryable)) == expected

    def test_null_checks(self, session):
        empty, _ = compose({"filters": [{"field": "subtitle", "operator": "is_empty", "value": True}]})
        present, _ = compose({"filters": [{"field": "subtitle", "operator": "not_empty", "value": True}]})

        assert ids(run(session, empty)) == [1, 3, 5]
        assert ids(run(session, present)) == [2, 4]

    def test_substring_operators(self, session):
        like, _ = compose({"filters": [{"field": "title", "operator": "like", "value": "Guard"}]})
        not_like, _ = compose({"filters": [{"field": "title", "operator": "not_like", "value": "Book"}]})
        fuzzy, _ = compose({"filters": [{"field": "title", "operator": "fuzzy_match", "value": "small"}]})
        not_ilike, _ = compose({"filters": [{"field": "title", "operator": "not_ilike", "value": "o"}]})

        assert ids(run(session, like)) == [3]
        assert ids(run(session, not_like)) == [3, 4, 5]
        assert ids(run(session, fuzzy)) == [4]
        assert ids(run(session, not_ilike)) == [3]

    def test_like_and_single_token_matches(self, session):
        queryable, _ = compose({"filters": [{"field": "title", "operator": "like_and", "value": "Book"}]})

        assert ids(run(session, queryable)) == [1, 2]

    def test_like_and_requires_every_token(self, session):
        both, _ = compose({"filters": [{"field": "title", "operator": "like_and", "value": "Book 1"}]})
        one_missing, _ = compose({"filters": [{"field": "title", "operator": "like_and", "value": "Book Gods"}]})

        assert ids(run(session, both)) == [1]
        assert run(session, one_missing) == []

    def test_repeated_like_and_filters_accumulate(self, session):
        queryable, _ = compose({
            "filters": [
                {"field": "title", "operator": "like_and", "value": ["Book"]},
                {"field": "title", "operator": "like_and", "value": ["2"]},
            ]
        })

        assert ids(run(session, queryable)) == [2]

    def test_like_or_matches_any_token(self, session):
        queryable, _ = compose({"filters": [{"field": "title", "operator": "ilike_or", "value": "mort gods"}]})

        assert ids(run(session, queryable)) == [4, 5]

    def test_like_or_without_tokens_matches_nothing(self, session):
        queryable, _ = compose({"filters": [{"field": "title", "operator": "like_or", "value": ""}]})

        assert run(session, queryable) == []


class TestDirectives:
    def test_order_by_single_field(self, session):
        queryable, _ = compose({"order_by": "year"})

        assert [book.id for book in run(session, queryable)] == [1, 2, 5, 3, 4]

    def test_order_by_direction_mapping(self, session):
        queryable, _ = compose({"order_by": {"desc": "year"}})

        assert [book.id for book in run(session, queryable)] == [4, 3, 5, 2, 1]

    def test_order_by_list_and_sort_syntax(self, session):
        queryable, _ = compose({"order_by": ["author_id:desc", ("asc", "title")]})

        assert [book.id for book in run(session, queryable)] == [3, 5, 4, 1, 2]

    def test_order_by_unknown_field(self):
        with pytest.raises(InvalidDirective):
            compose({"order_by": "rating"})

    def test_order_by_unknown_direction(self):
        with pytest.raises(InvalidDirective):
            compose({"order_by": {"sideways": "title"}})

    def test_group_by(self, session):
        queryable, _ = compose({"group_by": "author_id"})

        assert "GROUP BY book.author_id" in str(queryable.statement)
        assert len(run(session, queryable)) == 2

    def test_limit(self, session):
        queryable, _ = compose({"order_by": "id", "limit": 2})

        assert [book.id for book in run(session, queryable)] == [1, 2]

    def test_limit_from_a_query_string(self, session):
        queryable, _ = compose({"order_by": "id", "limit": "2"})

        assert [book.id for book in run(session, queryable)] == [1, 2]

    @pytest.mark.parametrize("value", [-1, "-1", "two", 1.5, True, [2]])
    def test_invalid_limit(self, value):
        with pytest.raises(InvalidDirective):
            compose({"limit": value})

    def test_preload(self, session):
        queryable, _ = compose({"preload": "author", "title": "Mort"})

        [book] = run(session, queryable)

        assert "author" in book.__dict__
        assert book.author.name == "Terry Pratchett"

    def test_nested_preload(self, session):
        queryable, _ = compose({"preload": ["author.books"], "id": 1})

        [book] = run(session, queryable)

        assert ids(book.author.books) == [1, 2]

    def test_preload_unknown_relationship(self):
        with pytest.raises(InvalidDirective):
            compose({"preload": "publisher"})

    def test_preload_is_kept_out_of_the_base_statement(self):
        queryable, _ = compose({"preload": "author"})

        assert len(queryable.loaders) == 1
        assert queryable.statement is not queryable.base
        assert str(queryable.base) == str(builder.new(Book).base)

    def test_paginate_applies_limit_and_offset(self, session):
        queryable, _ = compose({"order_by": "id", "paginate": {"page": 2, "per_page": 2}})

        assert [book.id for book in run(session, queryable)] == [3, 4]
        assert queryable.pagination.page == 2
        assert queryable.pagination.per_page == 2

    def test_paginate_true_uses_defaults(self):
        queryable, _ = compose({"paginate": True})

        assert queryable.pagination.page == 1
        assert queryable.pagination.per_page == 20

    def test_paginate_wins_over_limit(self, session):
        queryable, _ = compose([("paginate", {"per_page": 3}), ("limit", 1), ("order_by", "id")])

        assert [book.id for book in run(session, queryable)] == [1, 2, 3]

    def test_paginate_false_is_ignored(self):
        queryable, _ = compose({"paginate": False})

        assert queryable.pagination is None

    def test_page_past_the_end_is_empty(self, session):
        queryable, _ = compose({"paginate": {"page": 3, "per_page": 5}})

        assert run(session, queryable) == []

    def test_filters_are_applied_before_directives(self):
        queryable, _ = compose([("order_by", "year"), ("title", "Mort")])
        sql = str(queryable.statement)

        assert sql.index("WHERE") < sql.index("ORDER BY")
