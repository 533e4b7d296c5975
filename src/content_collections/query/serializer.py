"""
Canonical serialization of query expressions.

``to_query_string`` renders a QueryExpression back into query-string form
using the smallest set of parentheses that preserves the tree shape, the
function form for string operators and explicit sort directions. Parsing
the result yields an equal expression.
"""

from typing import Any

from content_collections.query.ast import (
    And,
    Comparison,
    FilterNode,
    Not,
    Or,
    QueryExpression,
    SortClause,
)

# Binding strength; higher binds tighter.
_PRECEDENCE = {Or: 1, And: 2, Not: 3, Comparison: 4}


def to_query_string(expression: QueryExpression) -> str:
    """Render an expression in canonical query-string form."""
    params = []
    if expression.filter is not None:
        params.append(("filter", filter_to_string(expression.filter)))
    if expression.order_by:
        params.append(("orderby", ", ".join(sort_clause_to_string(c) for c in expression.order_by)))
    if expression.skip is not None:
        params.append(("skip", str(expression.skip)))
    if expression.top is not None:
        params.append(("top", str(expression.top)))
    if expression.select:
        params.append(("select", ",".join(expression.select)))

    # Only '%' needs escaping: the parser percent-decodes values and splits on
    # '&' outside quoted literals.
    return "&".join(f"{key}={value.replace('%', '%25')}" for key, value in params)


def filter_to_string(node: FilterNode) -> str:
    """Render a filter tree."""
    if isinstance(node, Comparison):
        return _comparison_to_string(node)

    if isinstance(node, Not):
        return f"not {_child(node.operand, _PRECEDENCE[Not], is_right=False)}"

    if isinstance(node, (And, Or)):
        keyword = "and" if isinstance(node, And) else "or"
        precedence = _PRECEDENCE[type(node)]
        left = _child(node.left, precedence, is_right=False)
        right = _child(node.right, precedence, is_right=True)
        return f"{left} {keyword} {right}"

    raise TypeError(f"Unknown filter node: {type(node).__name__}")


def sort_clause_to_string(clause: SortClause) -> str:
    return f"{clause.field} {clause.direction.value}"


def literal_to_string(value: Any) -> str:
    """Render a literal so the lexer reads back the same value."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    text = str(value).replace("'", "''")
    return f"'{text}'"


def _child(node: FilterNode, parent_precedence: int, is_right: bool) -> str:
    text = filter_to_string(node)
    precedence = _PRECEDENCE[type(node)]
    # Left-associative: an equal-precedence right child must keep its parens.
    if precedence < parent_precedence or (is_right and precedence == parent_precedence):
        return f"({text})"
    return text


def _comparison_to_string(node: Comparison) -> str:
    field = str(node.field)
    value = literal_to_string(node.value)
    if node.operator.is_string_function:
        return f"{node.operator.value}({field}, {value})"
    if node.case_insensitive:
        return f"tolower({field}) {node.operator.value} tolower({value})"
    return f"{field} {node.operator.value} {value}"
