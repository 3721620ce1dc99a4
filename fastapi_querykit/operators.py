# fastapi_querykit/operators.py

from enum import Enum

from sqlalchemy import JSON, all_, and_, any_, cast, false, not_, or_, true
from sqlalchemy.dialects.postgresql import ARRAY as PG_ARRAY, JSONB
from sqlalchemy.types import ARRAY

from .exceptions import TypeMismatch, UnsupportedOperator


class FilterOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    LESS_THAN = "less_than"
    LESS_OR_EQUAL = "less_or_equal"
    GREATER_THAN = "greater_than"
    GREATER_OR_EQUAL = "greater_or_equal"
    IS_EMPTY = "is_empty"
    NOT_EMPTY = "not_empty"
    IN = "in"
    NOT_IN = "not_in"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    LIKE = "like"
    NOT_LIKE = "not_like"
    ILIKE = "ilike"
    NOT_ILIKE = "not_ilike"
    LIKE_AND = "like_and"
    LIKE_OR = "like_or"
    ILIKE_AND = "ilike_and"
    ILIKE_OR = "ilike_or"


OPERATOR_ALIASES = {
    "==": FilterOperator.EQUALS,
    "eq": FilterOperator.EQUALS,
    "!=": FilterOperator.NOT_EQUALS,
    "ne": FilterOperator.NOT_EQUALS,
    "<": FilterOperator.LESS_THAN,
    "lt": FilterOperator.LESS_THAN,
    "<=": FilterOperator.LESS_OR_EQUAL,
    "lte": FilterOperator.LESS_OR_EQUAL,
    ">": FilterOperator.GREATER_THAN,
    "gt": FilterOperator.GREATER_THAN,
    ">=": FilterOperator.GREATER_OR_EQUAL,
    "gte": FilterOperator.GREATER_OR_EQUAL,
    "empty": FilterOperator.IS_EMPTY,
    "=~": FilterOperator.ILIKE,
    "fuzzy_match": FilterOperator.ILIKE,
}


def parse_operator(raw) -> FilterOperator:
    if isinstance(raw, FilterOperator):
        return raw
    if isinstance(raw, str):
        if raw in OPERATOR_ALIASES:
            return OPERATOR_ALIASES[raw]
        try:
            return FilterOperator(raw)
        except ValueError:
            pass
    raise UnsupportedOperator(raw)


def _pattern(value) -> str:
    return f"%{value}%"


def _tokens(column, value) -> list[str]:
    """Whitespace-split a string, or take a list of strings as is."""
    if isinstance(value, str):
        return value.split()
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return list(value)
    raise TypeMismatch(f"Expected a string or a list of strings for '{column.key}', got {value!r}")


def _collection(column, value) -> list:
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise TypeMismatch(f"Expected a list value for '{column.key}', got {value!r}")
    return list(value)


def _flag(column, value) -> bool:
    if not isinstance(value, bool):
        raise TypeMismatch(f"Expected true or false for '{column.key}', got {value!r}")
    return value


def _is_empty_operator(column, value):
    return column.is_(None) if _flag(column, value) else column.is_not(None)


def _not_empty_operator(column, value):
    return column.is_not(None) if _flag(column, value) else column.is_(None)


def _contains_operator(column, value, negate=False):
    column_type = column.expression.type
    if isinstance(column_type, PG_ARRAY):
        expr = column.contains([value])
    elif isinstance(column_type, ARRAY):
        # NOT (v = ANY(c)) is v <> ALL(c)
        return value != all_(column) if negate else value == any_(column)
    elif isinstance(column_type, JSONB):
        expr = column.contains(cast([value], JSONB))
    elif isinstance(column_type, JSON):
        expr = cast(column, JSONB).contains(cast([value], JSONB))
    else:
        raise TypeMismatch(f"'{column.key}' is not a list-valued field")
    return not_(expr) if negate else expr


def _like_and_operator(column, value):
    return and_(true(), *[column.like(_pattern(v)) for v in _tokens(column, value)])


def _like_or_operator(column, value):
    return or_(false(), *[column.like(_pattern(v)) for v in _tokens(column, value)])


def _ilike_and_operator(column, value):
    return and_(true(), *[column.ilike(_pattern(v)) for v in _tokens(column, value)])


def _ilike_or_operator(column, value):
    return or_(false(), *[column.ilike(_pattern(v)) for v in _tokens(column, value)])


COMPARISON_OPERATORS = {
    FilterOperator.EQUALS: lambda col, v: col == v,
    FilterOperator.NOT_EQUALS: lambda col, v: col != v,
    FilterOperator.LESS_THAN: lambda col, v: col < v,
    FilterOperator.LESS_OR_EQUAL: lambda col, v: col <= v,
    FilterOperator.GREATER_THAN: lambda col, v: col > v,
    FilterOperator.GREATER_OR_EQUAL: lambda col, v: col >= v,
    FilterOperator.IS_EMPTY: _is_empty_operator,
    FilterOperator.NOT_EMPTY: _not_empty_operator,
    FilterOperator.IN: lambda col, v: col.in_(_collection(col, v)),
    FilterOperator.NOT_IN: lambda col, v: col.not_in(_collection(col, v)),
    FilterOperator.CONTAINS: _contains_operator,
    FilterOperator.NOT_CONTAINS: lambda col, v: _contains_operator(col, v, negate=True),
    FilterOperator.LIKE: lambda col, v: col.like(_pattern(v)),
    FilterOperator.NOT_LIKE: lambda col, v: col.not_like(_pattern(v)),
    FilterOperator.ILIKE: lambda col, v: col.ilike(_pattern(v)),
    FilterOperator.NOT_ILIKE: lambda col, v: col.not_ilike(_pattern(v)),
    FilterOperator.LIKE_AND: _like_and_operator,
    FilterOperator.LIKE_OR: _like_or_operator,
    FilterOperator.ILIKE_AND: _ilike_and_operator,
    FilterOperator.ILIKE_OR: _ilike_or_operator,
}


def apply_operator(column, operator: FilterOperator, value):
    try:
        fn = COMPARISON_OPERATORS[operator]
    except KeyError:
        raise UnsupportedOperator(operator)
    return fn(column, value)
