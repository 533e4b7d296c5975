"""Tests for the query parser."""

import pytest

from content_collections.query.ast import (
    And,
    Comparison,
    ComparisonOperator,
    FieldRef,
    Not,
    Or,
    SortClause,
    SortDirection,
)
from content_collections.query.errors import (
    PageSizeError,
    QueryError,
    QuerySyntaxError,
    UnknownFieldError,
)
from content_collections.query.parser import parse_query, parse_query_params


def _cmp(name, op, value, index=None, case_insensitive=False):
    return Comparison(
        field=FieldRef(name, index),
        operator=ComparisonOperator(op),
        value=value,
        case_insensitive=case_insensitive,
    )


class TestQueryParameters:
    def test_empty_query(self, blog_schema):
        expr = parse_query("", blog_schema)
        assert expr.filter is None
        assert expr.order_by == ()
        assert expr.top is None
        assert expr.skip is None
        assert expr.select is None

    def test_all_parameters(self, blog_schema):
        expr = parse_query(
            "filter=draft eq false&orderby=publishDate desc, title&top=10&skip=20&select=title,publishDate",
            blog_schema,
        )
        assert expr.filter == _cmp("draft", "eq", False)
        assert expr.order_by == (
            SortClause(FieldRef("publishDate"), SortDirection.DESC),
            SortClause(FieldRef("title"), SortDirection.ASC),
        )
        assert expr.top == 10
        assert expr.skip == 20
        assert expr.select == ("title", "publishDate")

    def test_dollar_prefix_is_accepted(self, blog_schema):
        expr = parse_query("$filter=rating gt 3&$top=5", blog_schema)
        assert expr.filter == _cmp("rating", "gt", 3)
        assert expr.top == 5

    def test_percent_encoding(self, blog_schema):
        expr = parse_query("filter=title%20eq%20'a%26b'", blog_schema)
        assert expr.filter == _cmp("title", "eq", "a&b")

    def test_ampersand_inside_literal(self, blog_schema):
        expr = parse_query("filter=title eq 'Q&A'&top=1", blog_schema)
        assert expr.filter == _cmp("title", "eq", "Q&A")
        assert expr.top == 1

    def test_params_mapping(self, blog_schema):
        expr = parse_query_params({"$filter": "author eq 'Jane'", "top": 3}, blog_schema)
        assert expr.filter == _cmp("author", "eq", "Jane")
        assert expr.top == 3

    @pytest.mark.parametrize(
        "query",
        ["limit=5", "top=1&top=2", "filter"],
    )
    def test_malformed_parameters(self, blog_schema, query):
        with pytest.raises(QuerySyntaxError):
            parse_query(query, blog_schema)


class TestPaging:
    @pytest.mark.parametrize("query", ["top=0", "top=-1", "top=abc", "skip=-2", "top=101"])
    def test_out_of_range(self, blog_schema, query):
        with pytest.raises(PageSizeError):
            parse_query(query, blog_schema)

    def test_custom_max_page_size(self, blog_schema):
        assert parse_query("top=500", blog_schema, max_page_size=1000).top == 500
        with pytest.raises(PageSizeError, match="maximum page size of 10"):
            parse_query("top=11", blog_schema, max_page_size=10)

    def test_skip_zero_is_allowed(self, blog_schema):
        assert parse_query("skip=0", blog_schema).skip == 0


class TestFilterGrammar:
    def test_precedence_or_and_not(self, blog_schema):
        expr = parse_query(
            "filter=draft eq true or rating gt 3 and not author eq 'Jane'", blog_schema
        )
        assert expr.filter == Or(
            _cmp("draft", "eq", True),
            And(_cmp("rating", "gt", 3), Not(_cmp("author", "eq", "Jane"))),
        )

    def test_parentheses_override_precedence(self, blog_schema):
        expr = parse_query("filter=(draft eq true or rating gt 3) and title eq 'x'", blog_schema)
        assert expr.filter == And(
            Or(_cmp("draft", "eq", True), _cmp("rating", "gt", 3)),
            _cmp("title", "eq", "x"),
        )

    def test_left_associative(self, blog_schema):
        expr = parse_query("filter=rating gt 1 and rating lt 5 and draft eq false", blog_schema)
        assert expr.filter == And(
            And(_cmp("rating", "gt", 1), _cmp("rating", "lt", 5)),
            _cmp("draft", "eq", False),
        )

    def test_string_function_forms_are_equivalent(self, blog_schema):
        function_form = parse_query("filter=contains(title, 'py')", blog_schema)
        infix_form = parse_query("filter=title contains 'py'", blog_schema)
        assert function_form.filter == infix_form.filter == _cmp("title", "contains", "py")

    def test_startswith_endswith(self, blog_schema):
        expr = parse_query("filter=startswith(title,'How') and endswith(author,'son')", blog_schema)
        assert expr.filter == And(
            _cmp("title", "startswith", "How"), _cmp("author", "endswith", "son")
        )

    def test_case_fold_both_sides(self, blog_schema):
        expr = parse_query("filter=tolower(author) eq tolower('JANE')", blog_schema)
        assert expr.filter == _cmp("author", "eq", "JANE", case_insensitive=True)

    def test_toupper_is_equivalent(self, blog_schema):
        lower = parse_query("filter=tolower(author) eq tolower('x')", blog_schema)
        upper = parse_query("filter=toupper(author) eq toupper('x')", blog_schema)
        assert lower.filter == upper.filter

    def test_case_fold_one_side_is_rejected(self, blog_schema):
        with pytest.raises(QuerySyntaxError, match="both sides"):
            parse_query("filter=tolower(author) eq 'jane'", blog_schema)
        with pytest.raises(QuerySyntaxError, match="both sides"):
            parse_query("filter=author eq tolower('jane')", blog_schema)

    def test_array_any_and_index(self, blog_schema):
        expr = parse_query("filter=tags eq 'python' or tags[0] eq 'rust'", blog_schema)
        assert expr.filter == Or(
            _cmp("tags", "eq", "python"), _cmp("tags", "eq", "rust", index=0)
        )

    def test_date_literal(self, blog_schema):
        expr = parse_query("filter=publishDate ge '2024-01-01'", blog_schema)
        assert expr.filter == _cmp("publishDate", "ge", "2024-01-01")

    def test_escaped_quote_in_literal(self, blog_schema):
        expr = parse_query("filter=title eq 'It''s here'", blog_schema)
        assert expr.filter == _cmp("title", "eq", "It's here")


class TestFilterErrors:
    def test_unknown_field(self, blog_schema):
        with pytest.raises(UnknownFieldError) as exc_info:
            parse_query("filter=titel eq 'x'", blog_schema)
        error = exc_info.value
        assert error.field == "titel"
        assert error.parameter == "filter"
        assert error.position == 1
        assert "title" in error.available

    def test_unknown_field_in_orderby_and_select(self, blog_schema):
        with pytest.raises(UnknownFieldError):
            parse_query("orderby=nope", blog_schema)
        with pytest.raises(UnknownFieldError):
            parse_query("select=title,nope", blog_schema)

    @pytest.mark.parametrize(
        "filter_text, fragment",
        [
            ("rating eq 'five'", "numeric literal"),
            ("title eq 5", "quoted string"),
            ("draft eq 'yes'", "true or false"),
            ("draft gt true", "not defined for boolean"),
            ("publishDate gt 'soon'", "ISO-8601"),
            ("contains(rating, '1')", "needs a string field"),
            ("title[0] eq 'x'", "cannot be indexed"),
        ],
    )
    def test_type_checked_literals(self, blog_schema, filter_text, fragment):
        with pytest.raises(QuerySyntaxError, match=fragment):
            parse_query(f"filter={filter_text}", blog_schema)

    @pytest.mark.parametrize(
        "filter_text",
        [
            "title eq",
            "title 'x'",
            "(title eq 'x'",
            "title eq 'x' and",
            "title eq 'x' title eq 'y'",
            "contains(title 'x')",
        ],
    )
    def test_syntax_errors(self, blog_schema, filter_text):
        with pytest.raises(QuerySyntaxError):
            parse_query(f"filter={filter_text}", blog_schema)

    def test_error_position_points_at_problem(self, blog_schema):
        with pytest.raises(QueryError) as exc_info:
            parse_query("filter=title eq 'x' and rating eq 'high'", blog_schema)
        assert exc_info.value.position == 28
        assert exc_info.value.to_dict()["parameter"] == "filter"

    def test_sort_by_array_requires_index(self, blog_schema):
        with pytest.raises(QuerySyntaxError, match="Cannot sort by array field"):
            parse_query("orderby=tags", blog_schema)
        expr = parse_query("orderby=tags[0] desc", blog_schema)
        assert expr.order_by == (SortClause(FieldRef("tags", 0), SortDirection.DESC),)

    def test_select_deduplicates(self, blog_schema):
        assert parse_query("select=title,title,author", blog_schema).select == ("title", "author")
