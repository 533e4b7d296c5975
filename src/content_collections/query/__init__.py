"""
Query language for content collections.

Parses OData-flavoured query strings (filter/orderby/top/skip/select) into a
typed AST and executes them against a collection's items.
"""

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
from content_collections.query.errors import (
    PageSizeError,
    QueryError,
    QuerySyntaxError,
    UnknownFieldError,
)
from content_collections.query.executor import QueryResult, execute_query
from content_collections.query.lexer import QueryLexer, Token, TokenType
from content_collections.query.parser import (
    DEFAULT_MAX_PAGE_SIZE,
    QueryParser,
    parse_query,
    parse_query_params,
)
from content_collections.query.serializer import to_query_string

__all__ = [
    # AST
    "And",
    "Comparison",
    "ComparisonOperator",
    "FieldRef",
    "FilterNode",
    "Not",
    "Or",
    "QueryExpression",
    "SortClause",
    "SortDirection",
    # Errors
    "PageSizeError",
    "QueryError",
    "QuerySyntaxError",
    "UnknownFieldError",
    # Executor
    "QueryResult",
    "execute_query",
    # Lexer
    "QueryLexer",
    "Token",
    "TokenType",
    # Parser
    "DEFAULT_MAX_PAGE_SIZE",
    "QueryParser",
    "parse_query",
    "parse_query_params",
    # Serializer
    "to_query_string",
]
