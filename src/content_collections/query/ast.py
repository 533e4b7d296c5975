"""
Abstract Syntax Tree (AST) definitions for collection queries.

All nodes are frozen dataclasses so two parses of equivalent text compare
equal, which is what makes parse -> serialize -> parse checkable.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class ComparisonOperator(Enum):
    """Comparison operators, valued by their query-language keyword."""

    EQ = "eq"
    NE = "ne"
    GT = "gt"
    LT = "lt"
    GE = "ge"
    LE = "le"
    CONTAINS = "contains"
    STARTS_WITH = "startswith"
    ENDS_WITH = "endswith"

    @property
    def is_string_function(self) -> bool:
        """contains/startswith/endswith: always case-insensitive substring tests."""
        return self in STRING_FUNCTIONS

    @property
    def is_ordering(self) -> bool:
        return self in ORDERING_OPERATORS


STRING_FUNCTIONS = frozenset(
    {ComparisonOperator.CONTAINS, ComparisonOperator.STARTS_WITH, ComparisonOperator.ENDS_WITH}
)
ORDERING_OPERATORS = frozenset(
    {ComparisonOperator.GT, ComparisonOperator.LT, ComparisonOperator.GE, ComparisonOperator.LE}
)


class SortDirection(Enum):
    """Sort direction for orderby clauses."""

    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class FieldRef:
    """Reference to a schema field, optionally to one element of an array field."""

    name: str
    index: int | None = None

    def __str__(self) -> str:
        if self.index is None:
            return self.name
        return f"{self.name}[{self.index}]"


@dataclass(frozen=True)
class Comparison:
    """Leaf of the filter tree: ``field op literal``."""

    field: FieldRef
    operator: ComparisonOperator
    value: Any
    case_insensitive: bool = False  # tolower() applied to both sides


@dataclass(frozen=True)
class And:
    left: "FilterNode"
    right: "FilterNode"


@dataclass(frozen=True)
class Or:
    left: "FilterNode"
    right: "FilterNode"


@dataclass(frozen=True)
class Not:
    operand: "FilterNode"


FilterNode = Union[Comparison, And, Or, Not]


@dataclass(frozen=True)
class SortClause:
    """One orderby key."""

    field: FieldRef
    direction: SortDirection = SortDirection.ASC


@dataclass(frozen=True)
class QueryExpression:
    """Complete query AST."""

    filter: FilterNode | None = None
    order_by: tuple[SortClause, ...] = ()
    top: int | None = None  # page size
    skip: int | None = None  # offset
    select: tuple[str, ...] | None = None  # projection

    def __repr__(self) -> str:
        parts = ["QueryExpression("]
        details = []
        if self.filter is not None:
            details.append("filter=...")
        if self.order_by:
            details.append(f"order_by={len(self.order_by)}")
        if self.top is not None:
            details.append(f"top={self.top}")
        if self.skip is not None:
            details.append(f"skip={self.skip}")
        if self.select:
            details.append(f"select={list(self.select)}")
        return parts[0] + ", ".join(details) + ")"
