"""
Executor for collection queries.

Runs a parsed QueryExpression over an ordered sequence of items. The order
of operations is fixed:

  filter -> sort -> count -> offset/limit -> project

``total_count`` is taken after filtering and before paging, so it reports
how many items matched rather than how many were returned.
"""

from dataclasses import dataclass, replace
from typing import Any, Callable, Sequence

from loguru import logger

from content_collections.models import Item
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
from content_collections.schema.model import CollectionSchema, FieldDefinition, FieldKind
from content_collections.schema.values import display_value, kind_matches, to_datetime

_MISSING = object()


@dataclass(frozen=True)
class QueryResult:
    """One page of query results."""

    items: tuple[Item, ...]
    total_count: int
    offset: int = 0
    page_size: int | None = None

    @property
    def returned(self) -> int:
        return len(self.items)


def execute_query(
    expression: QueryExpression,
    items: Sequence[Item],
    schema: CollectionSchema,
) -> QueryResult:
    """Execute a query against an ordered item sequence.

    Args:
        expression: Parsed query.
        items: Items in their natural (input) order.
        schema: Schema the expression was parsed against.

    Returns:
        The requested page and the post-filter match count.
    """
    # --- Filter ---
    if expression.filter is not None:
        matched = [item for item in items if evaluate_filter(expression.filter, item, schema)]
    else:
        matched = list(items)

    # --- Sort ---
    if expression.order_by:
        matched = sort_items(matched, expression.order_by, schema)

    # --- Count ---
    total_count = len(matched)

    # --- Page ---
    offset = expression.skip or 0
    end = offset + expression.top if expression.top is not None else None
    page = matched[offset:end]

    # --- Project ---
    if expression.select:
        page = [project_item(item, expression.select) for item in page]

    logger.debug(
        "Query executed",
        input_count=len(items),
        total_count=total_count,
        returned=len(page),
        offset=offset,
    )
    return QueryResult(
        items=tuple(page),
        total_count=total_count,
        offset=offset,
        page_size=expression.top,
    )


# --- Filtering ---


def evaluate_filter(node: FilterNode, item: Item, schema: CollectionSchema) -> bool:
    """Evaluate a filter tree against one item."""
    if isinstance(node, Comparison):
        return _evaluate_comparison(node, item, schema)
    if isinstance(node, And):
        return evaluate_filter(node.left, item, schema) and evaluate_filter(node.right, item, schema)
    if isinstance(node, Or):
        return evaluate_filter(node.left, item, schema) or evaluate_filter(node.right, item, schema)
    if isinstance(node, Not):
        return not evaluate_filter(node.operand, item, schema)
    raise TypeError(f"Unknown filter node: {type(node).__name__}")


def resolve_field(item: Item, field: FieldRef) -> Any:
    """Return the item's value for a field reference, or ``_MISSING``."""
    value = item.metadata.get(field.name)
    if value is None:
        return _MISSING
    if field.index is None:
        return value
    if not isinstance(value, (list, tuple)) or field.index >= len(value):
        return _MISSING
    element = value[field.index]
    return _MISSING if element is None else element


def _evaluate_comparison(node: Comparison, item: Item, schema: CollectionSchema) -> bool:
    definition = schema.field(node.field.name)
    value = resolve_field(item, node.field)

    # Missing values never satisfy a comparison, "ne" included.
    if value is _MISSING or definition is None:
        return False

    # --- Arrays match when any element matches ---
    if definition.kind == FieldKind.ARRAY:
        element_definition = definition.items
        if node.field.index is not None:
            candidates = [value]
        elif isinstance(value, (list, tuple)):
            candidates = [v for v in value if v is not None]
        else:
            return False
        if element_definition is None:
            return False
        return any(_compare(node, element_definition, candidate) for candidate in candidates)

    return _compare(node, definition, value)


def _compare(node: Comparison, definition: FieldDefinition, value: Any) -> bool:
    operator = node.operator
    literal = node.value

    # --- Substring operators: always case-insensitive, on the text form ---
    if operator.is_string_function:
        text = str(display_value(value)).casefold()
        needle = str(literal).casefold()
        if operator == ComparisonOperator.CONTAINS:
            return needle in text
        if operator == ComparisonOperator.STARTS_WITH:
            return text.startswith(needle)
        return text.endswith(needle)

    left, right = _coerce_pair(definition, value, literal, node.case_insensitive)
    if left is _MISSING or right is _MISSING:
        return False

    try:
        if operator == ComparisonOperator.EQ:
            return left == right
        if operator == ComparisonOperator.NE:
            return left != right
        if operator == ComparisonOperator.GT:
            return left > right
        if operator == ComparisonOperator.LT:
            return left < right
        if operator == ComparisonOperator.GE:
            return left >= right
        if operator == ComparisonOperator.LE:
            return left <= right
    except TypeError:
        # Mismatched runtime types (unvalidated input) never match.
        return False
    raise ValueError(f"Unsupported operator: {operator}")  # pragma: no cover


def _coerce_pair(
    definition: FieldDefinition, value: Any, literal: Any, case_insensitive: bool
) -> tuple[Any, Any]:
    """Bring an item value and a literal into a comparable form for the field kind."""
    if definition.kind == FieldKind.DATE:
        left = to_datetime(value)
        right = to_datetime(literal)
        return (left if left is not None else _MISSING, right if right is not None else _MISSING)

    # Values of the wrong shape (invalid items) never match.
    if not kind_matches(definition.kind, value):
        return _MISSING, _MISSING

    if definition.kind == FieldKind.STRING and case_insensitive:
        return str(value).casefold(), str(literal).casefold()

    return value, literal


# --- Sorting ---


def sort_items(
    items: list[Item], order_by: Sequence[SortClause], schema: CollectionSchema
) -> list[Item]:
    """Stable multi-key sort.

    Keys are applied from last to first so earlier keys dominate; Python's
    sort is stable in both directions, so ties keep their input order.
    Missing values sort before present ones ascending and after them
    descending.
    """
    result = list(items)
    for clause in reversed(order_by):
        key = _sort_key_function(clause, schema)
        result = sorted(result, key=key, reverse=clause.direction == SortDirection.DESC)
    return result


def _sort_key_function(clause: SortClause, schema: CollectionSchema) -> Callable[[Item], tuple]:
    definition = schema.resolve_path(str(clause.field))

    def sort_key(item: Item) -> tuple:
        value = resolve_field(item, clause.field)
        if value is _MISSING or definition is None:
            return (0,)
        if definition.kind == FieldKind.DATE:
            parsed = to_datetime(value)
            return (0,) if parsed is None else (1, parsed)
        if not kind_matches(definition.kind, value):
            return (0,)
        return (1, value)

    return sort_key


# --- Projection ---


def project_item(item: Item, fields: Sequence[str]) -> Item:
    """Keep the identifier, path and the selected metadata fields only."""
    metadata = {name: item.metadata[name] for name in fields if name in item.metadata}
    return replace(item, metadata=metadata, body=None)
