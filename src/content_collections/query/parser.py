"""
Parser for collection queries.

A query is a set of parameters in query-string form:

  filter=publishDate ge '2024-01-01' and not draft eq true
  &orderby=publishDate desc, title
  &top=10&skip=20
  &select=title,publishDate

Filter grammar (``or`` binds loosest, all binary operators left-associative):

  expression := and_expr ("or" and_expr)*
  and_expr   := unary ("and" unary)*
  unary      := "not" unary | primary
  primary    := "(" expression ")"
              | ("contains" | "startswith" | "endswith") "(" field "," literal ")"
              | fold "(" field ")" op fold "(" literal ")"
              | field op literal
  field      := IDENTIFIER ("[" NUMBER "]")?
  fold       := "tolower" | "toupper"
  literal    := STRING | NUMBER | "true" | "false"

Field references are checked against the collection schema while parsing,
so a typo is an error rather than an empty result.
"""

import re
from typing import Any, Mapping
from urllib.parse import unquote

from content_collections.query.ast import (
    And,
    Comparison,
    ComparisonOperator,
    FieldRef,
    FilterNode,
    Not,
    Or,
    QueryExpression,
    SortClause,
    SortDirection,
)
from content_collections.query.errors import PageSizeError, QuerySyntaxError, UnknownFieldError
from content_collections.query.lexer import COMPARISON_TOKENS, QueryLexer, Token, TokenType
from content_collections.schema.model import CollectionSchema, FieldDefinition, FieldKind
from content_collections.schema.values import is_number, to_datetime
from content_collections.utils import split_outside_quotes

DEFAULT_MAX_PAGE_SIZE = 100

QUERY_PARAMETERS = ("filter", "orderby", "top", "skip", "select")

_NON_NEGATIVE_INT_RE = re.compile(r"^\d+$")

_OPERATORS = {
    TokenType.EQ: ComparisonOperator.EQ,
    TokenType.NE: ComparisonOperator.NE,
    TokenType.GT: ComparisonOperator.GT,
    TokenType.LT: ComparisonOperator.LT,
    TokenType.GE: ComparisonOperator.GE,
    TokenType.LE: ComparisonOperator.LE,
    TokenType.CONTAINS: ComparisonOperator.CONTAINS,
    TokenType.STARTSWITH: ComparisonOperator.STARTS_WITH,
    TokenType.ENDSWITH: ComparisonOperator.ENDS_WITH,
}

_STRING_FUNCTION_TOKENS = {TokenType.CONTAINS, TokenType.STARTSWITH, TokenType.ENDSWITH}
_FOLD_TOKENS = {TokenType.TOLOWER, TokenType.TOUPPER}


def parse_query(
    query_string: str,
    schema: CollectionSchema,
    max_page_size: int = DEFAULT_MAX_PAGE_SIZE,
) -> QueryExpression:
    """Parse a serialized query string into a QueryExpression.

    Parameters are ``&``-separated ``key=value`` pairs; keys may carry an
    OData-style ``$`` prefix. Values are percent-decoded. An ``&`` inside a
    quoted literal does not split parameters.

    Raises:
        QueryError: (or a subclass) for any malformed parameter.
    """
    params: dict[str, str] = {}
    for segment in split_outside_quotes(query_string or "", "&"):
        if not segment.strip():
            continue
        key, sep, value = segment.partition("=")
        key = unquote(key).strip()
        if not sep:
            raise QuerySyntaxError(
                "Expected 'key=value' parameter", parameter=key or None, fragment=segment
            )
        params_key = _canonical_key(key)
        if params_key in params:
            raise QuerySyntaxError("Parameter given more than once", parameter=params_key)
        params[params_key] = unquote(value)

    return parse_query_params(params, schema, max_page_size=max_page_size)


def parse_query_params(
    params: Mapping[str, Any],
    schema: CollectionSchema,
    max_page_size: int = DEFAULT_MAX_PAGE_SIZE,
) -> QueryExpression:
    """Parse already-split query parameters (e.g. from an HTTP layer)."""
    normalized: dict[str, Any] = {}
    for key, value in params.items():
        canonical = _canonical_key(key)
        if canonical in normalized:
            raise QuerySyntaxError("Parameter given more than once", parameter=canonical)
        normalized[canonical] = value

    query_filter = None
    order_by: tuple[SortClause, ...] = ()
    select = None

    text = _text(normalized.get("filter"))
    if text:
        query_filter = QueryParser(QueryLexer(text, "filter").tokenize(), schema, "filter").parse_filter()

    text = _text(normalized.get("orderby"))
    if text:
        order_by = QueryParser(QueryLexer(text, "orderby").tokenize(), schema, "orderby").parse_order_by()

    text = _text(normalized.get("select"))
    if text:
        select = QueryParser(QueryLexer(text, "select").tokenize(), schema, "select").parse_select()

    top = _parse_count(normalized.get("top"), "top")
    skip = _parse_count(normalized.get("skip"), "skip")

    if top is not None and top <= 0:
        raise PageSizeError("top must be greater than 0", parameter="top", fragment=str(top))
    if top is not None and top > max_page_size:
        raise PageSizeError(
            f"top must not exceed the maximum page size of {max_page_size}",
            parameter="top",
            fragment=str(top),
        )

    return QueryExpression(
        filter=query_filter,
        order_by=order_by,
        top=top,
        skip=skip,
        select=select,
    )


def _canonical_key(key: str) -> str:
    canonical = key.strip().lstrip("$").lower()
    if canonical not in QUERY_PARAMETERS:
        raise QuerySyntaxError(
            f"Unknown query parameter (expected one of: {', '.join(QUERY_PARAMETERS)})",
            parameter=key,
        )
    return canonical


def _text(value: Any) -> str | None:
    if value is None:
        return None
    return str(value).strip()


def _parse_count(value: Any, parameter: str) -> int | None:
    """Parse top/skip: a non-negative integer, or None when absent."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        number = value
    else:
        text = str(value).strip()
        if not _NON_NEGATIVE_INT_RE.match(text):
            raise PageSizeError(
                f"{parameter} must be a non-negative integer", parameter=parameter, fragment=text
            )
        number = int(text)
    if number < 0:
        raise PageSizeError(
            f"{parameter} must be a non-negative integer", parameter=parameter, fragment=str(number)
        )
    return number


class QueryParser:
    """Recursive-descent parser for one query parameter."""

    def __init__(self, tokens: list[Token], schema: CollectionSchema, parameter: str = "filter"):
        self.tokens = tokens
        self.schema = schema
        self.parameter = parameter
        self.pos = 0

    # --- Entry points ---

    def parse_filter(self) -> FilterNode:
        """Parse a complete filter expression."""
        expression = self._parse_or_expression()
        self._expect_end()
        return expression

    def parse_order_by(self) -> tuple[SortClause, ...]:
        """Parse ``field [asc|desc] (, field [asc|desc])*``."""
        clauses = []
        while True:
            field_token = self._current()
            field_ref = self._parse_field_ref()
            if field_ref.index is None and self.schema.properties[field_ref.name].kind == FieldKind.ARRAY:
                raise self._error(
                    f"Cannot sort by array field '{field_ref.name}' (address an element, e.g. {field_ref.name}[0])",
                    field_token,
                )

            direction = SortDirection.ASC
            if self._check(TokenType.ASC):
                self._advance()
            elif self._check(TokenType.DESC):
                direction = SortDirection.DESC
                self._advance()

            clauses.append(SortClause(field=field_ref, direction=direction))

            if self._check(TokenType.COMMA):
                self._advance()
                continue
            break

        self._expect_end()
        return tuple(clauses)

    def parse_select(self) -> tuple[str, ...]:
        """Parse a comma-separated projection list."""
        fields: list[str] = []
        while True:
            token = self._current()
            if not self._check(TokenType.IDENTIFIER):
                raise self._error("Expected field name", token)
            self._advance()
            self._require_field(token.value, token)
            if token.value not in fields:
                fields.append(token.value)

            if self._check(TokenType.COMMA):
                self._advance()
                continue
            break

        self._expect_end()
        return tuple(fields)

    # --- Boolean structure ---

    def _parse_or_expression(self) -> FilterNode:
        left = self._parse_and_expression()
        while self._check(TokenType.OR):
            self._advance()
            right = self._parse_and_expression()
            left = Or(left=left, right=right)
        return left

    def _parse_and_expression(self) -> FilterNode:
        left = self._parse_unary_expression()
        while self._check(TokenType.AND):
            self._advance()
            right = self._parse_unary_expression()
            left = And(left=left, right=right)
        return left

    def _parse_unary_expression(self) -> FilterNode:
        if self._check(TokenType.NOT):
            self._advance()
            return Not(operand=self._parse_unary_expression())
        return self._parse_primary_expression()

    def _parse_primary_expression(self) -> FilterNode:
        # Parenthesized expression
        if self._check(TokenType.LPAREN):
            self._advance()
            expression = self._parse_or_expression()
            self._consume(TokenType.RPAREN, "Expected ')' after expression")
            return expression

        # Function form: contains(field, 'value')
        if self._current().type in _STRING_FUNCTION_TOKENS and self._peek().type == TokenType.LPAREN:
            return self._parse_string_function()

        # Case-folded comparison: tolower(field) eq tolower('value')
        if self._current().type in _FOLD_TOKENS:
            return self._parse_folded_comparison()

        return self._parse_comparison()

    # --- Comparisons ---

    def _parse_comparison(self) -> Comparison:
        field_token = self._current()
        field_ref = self._parse_field_ref()
        operator = self._parse_operator()

        if self._current().type in _FOLD_TOKENS:
            raise self._error(
                "Case-fold function must be applied to both sides of a comparison", self._current()
            )

        value_token = self._current()
        value = self._parse_literal()
        self._check_operand(field_ref, operator, value, value_token, field_token)
        return Comparison(field=field_ref, operator=operator, value=value)

    def _parse_string_function(self) -> Comparison:
        operator = _OPERATORS[self._advance().type]
        self._consume(TokenType.LPAREN, f"Expected '(' after {operator.value}")
        field_token = self._current()

        # contains(tolower(field), tolower('x')) is accepted; these are
        # case-insensitive already, so the fold changes nothing.
        folded = self._current().type in _FOLD_TOKENS
        if folded:
            field_ref = self._parse_folded(self._parse_field_ref)
        else:
            field_ref = self._parse_field_ref()

        self._consume(TokenType.COMMA, f"Expected ',' in {operator.value}()")

        value_token = self._current()
        if self._current().type in _FOLD_TOKENS:
            if not folded:
                raise self._error(
                    "Case-fold function must be applied to both sides of a comparison", value_token
                )
            value = self._parse_folded(self._parse_literal)
        elif folded:
            raise self._error(
                "Case-fold function must be applied to both sides of a comparison", value_token
            )
        else:
            value = self._parse_literal()

        self._consume(TokenType.RPAREN, f"Expected ')' after {operator.value} arguments")
        self._check_operand(field_ref, operator, value, value_token, field_token)
        return Comparison(field=field_ref, operator=operator, value=value)

    def _parse_folded_comparison(self) -> Comparison:
        field_token = self._current()
        field_ref = self._parse_folded(self._parse_field_ref)
        operator = self._parse_operator()

        value_token = self._current()
        if self._current().type not in _FOLD_TOKENS:
            raise self._error(
                "Case-fold function must be applied to both sides of a comparison", value_token
            )
        value = self._parse_folded(self._parse_literal)
        self._check_operand(field_ref, operator, value, value_token, field_token, folded=True)
        return Comparison(
            field=field_ref,
            operator=operator,
            value=value,
            # string functions ignore case regardless
            case_insensitive=not operator.is_string_function,
        )

    def _parse_folded(self, inner):
        """Parse ``tolower(<inner>)`` / ``toupper(<inner>)``."""
        self._advance()
        self._consume(TokenType.LPAREN, "Expected '(' after case-fold function")
        result = inner()
        self._consume(TokenType.RPAREN, "Expected ')' after case-fold argument")
        return result

    def _parse_operator(self) -> ComparisonOperator:
        token = self._current()
        if token.type not in COMPARISON_TOKENS:
            raise self._error(
                "Expected comparison operator (eq, ne, gt, lt, ge, le, contains, startswith, endswith)",
                token,
            )
        self._advance()
        return _OPERATORS[token.type]

    def _parse_literal(self) -> Any:
        token = self._current()
        if token.type == TokenType.STRING:
            self._advance()
            return token.value
        if token.type == TokenType.NUMBER:
            self._advance()
            if any(c in token.value for c in ".eE"):
                return float(token.value)
            return int(token.value)
        if token.type == TokenType.BOOLEAN:
            self._advance()
            return token.value == "true"
        raise self._error("Expected literal (quoted string, number, true or false)", token)

    # --- Fields ---

    def _parse_field_ref(self) -> FieldRef:
        token = self._current()
        if not self._check(TokenType.IDENTIFIER):
            raise self._error("Expected field name", token)
        self._advance()
        definition = self._require_field(token.value, token)

        index = None
        if self._check(TokenType.LBRACKET):
            bracket = self._advance()
            if definition.kind != FieldKind.ARRAY:
                raise self._error(f"Field '{token.value}' is not an array and cannot be indexed", bracket)
            index_token = self._current()
            if not self._check(TokenType.NUMBER) or not index_token.value.isdigit():
                raise self._error("Expected non-negative integer array index", index_token)
            self._advance()
            index = int(index_token.value)
            self._consume(TokenType.RBRACKET, "Expected ']' after array index")

        return FieldRef(name=token.value, index=index)

    def _require_field(self, name: str, token: Token) -> FieldDefinition:
        definition = self.schema.field(name)
        if definition is None:
            raise UnknownFieldError(
                name,
                self.schema.field_names,
                parameter=self.parameter,
                position=token.position,
                fragment=name,
            )
        return definition

    def _target_definition(self, field_ref: FieldRef) -> FieldDefinition:
        """The definition a comparison actually tests: the element shape for arrays."""
        definition = self.schema.properties[field_ref.name]
        if definition.kind == FieldKind.ARRAY and definition.items is not None:
            return definition.items
        return definition

    def _check_operand(
        self,
        field_ref: FieldRef,
        operator: ComparisonOperator,
        value: Any,
        value_token: Token,
        field_token: Token,
        folded: bool = False,
    ) -> None:
        """Reject literals that can never be compared with the field's kind."""
        definition = self._target_definition(field_ref)
        kind = definition.kind

        if kind == FieldKind.ARRAY:
            raise self._error(f"Cannot compare nested array field '{field_ref}'", field_token)

        if operator.is_string_function or folded:
            if kind not in (FieldKind.STRING, FieldKind.DATE):
                raise self._error(
                    f"'{operator.value}' needs a string field, '{field_ref}' is {definition.type_hint}",
                    field_token,
                )
            if not isinstance(value, str):
                raise self._error(f"'{operator.value}' needs a quoted string literal", value_token)
            return

        if kind == FieldKind.STRING and not isinstance(value, str):
            raise self._error(
                f"Field '{field_ref}' is a string; expected a quoted string literal", value_token
            )
        if kind == FieldKind.NUMBER and not is_number(value):
            raise self._error(f"Field '{field_ref}' is a number; expected a numeric literal", value_token)
        if kind == FieldKind.BOOLEAN:
            if not isinstance(value, bool):
                raise self._error(f"Field '{field_ref}' is a boolean; expected true or false", value_token)
            if operator.is_ordering:
                raise self._error(
                    f"Operator '{operator.value}' is not defined for boolean field '{field_ref}'",
                    field_token,
                )
        if kind == FieldKind.DATE:
            if not isinstance(value, str) or to_datetime(value) is None:
                raise self._error(
                    f"Field '{field_ref}' is a date; expected a quoted ISO-8601 date", value_token
                )

    # --- Helper methods ---

    def _error(self, message: str, token: Token) -> QuerySyntaxError:
        return QuerySyntaxError(
            message,
            parameter=self.parameter,
            position=token.position,
            fragment=token.value if token.type != TokenType.EOF else "end of input",
        )

    def _current(self) -> Token:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return self.tokens[-1]  # EOF

    def _peek(self) -> Token:
        if self.pos + 1 < len(self.tokens):
            return self.tokens[self.pos + 1]
        return self.tokens[-1]

    def _advance(self) -> Token:
        token = self._current()
        if not self._is_at_end():
            self.pos += 1
        return token

    def _check(self, token_type: TokenType) -> bool:
        if self._is_at_end():
            return False
        return self._current().type == token_type

    def _consume(self, token_type: TokenType, message: str) -> Token:
        if not self._check(token_type):
            raise self._error(message, self._current())
        return self._advance()

    def _expect_end(self) -> None:
        if not self._is_at_end():
            raise self._error("Unexpected trailing input", self._current())

    def _is_at_end(self) -> bool:
        return self._current().type == TokenType.EOF
