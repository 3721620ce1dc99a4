# fastapi_querykit/builder.py

import logging
from collections.abc import Mapping
from typing import Any, Iterable, Optional

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import asc, desc
from sqlalchemy.orm import RelationshipProperty, selectinload

from . import paginator
from .core import DIRECTIVE_KEYS, Filter, classify_options
from .exceptions import InvalidDirective, ModelMismatch
from .operators import apply_operator
from .queryable import Queryable, schema_fields

logger = logging.getLogger(__name__)

ORDER_DIRECTIONS = {
    "asc": lambda col: asc(col),
    "desc": lambda col: desc(col),
    "asc_nulls_first": lambda col: asc(col).nulls_first(),
    "asc_nulls_last": lambda col: asc(col).nulls_last(),
    "desc_nulls_first": lambda col: desc(col).nulls_first(),
    "desc_nulls_last": lambda col: desc(col).nulls_last(),
}

_LIMIT = TypeAdapter(int)


def new(model) -> Queryable:
    """Start a query over `model`, bound to its snake_case alias."""
    return Queryable.new(model)


def compose(
    queryable: Queryable,
    model,
    options,
    fields: Optional[Iterable[str]] = None,
) -> tuple[Queryable, list[Any]]:
    """
    Apply field filters and standard directives in `options` to `queryable`.

    Returns the new queryable and the options that are neither schema fields
    nor directives, in the order they were given, for the caller to resolve.
    All errors are raised here, before anything touches the database.
    """
    if queryable.model is not model:
        raise ModelMismatch(
            f"Queryable is bound to {queryable.model.__name__}, not {model.__name__}"
        )

    fields = schema_fields(model) if fields is None else tuple(fields)
    filters, directives, custom = classify_options(options, fields)

    if not filters and not directives:
        return queryable, custom

    for field_filter in filters:
        queryable = apply_filter(queryable, field_filter)

    for key in DIRECTIVE_KEYS:
        for directive_key, value in directives:
            if directive_key == key:
                queryable = DIRECTIVES[key](queryable, value, fields)

    if custom:
        logger.debug("Forwarding %d custom option(s) for %s", len(custom), queryable.name)
    return queryable, custom


def apply_filter(queryable: Queryable, field_filter: Filter) -> Queryable:
    column = queryable.column(field_filter.field)
    return queryable.where(apply_operator(column, field_filter.operator, field_filter.value))


def _resolve_field(queryable: Queryable, name, fields, directive: str):
    if not isinstance(name, str) or name not in fields:
        raise InvalidDirective(f"Invalid {directive} field: {name!r}")
    return queryable.column(name)


def _order_clause(queryable: Queryable, direction, name, fields):
    try:
        order = ORDER_DIRECTIONS[str(direction).lower()]
    except KeyError:
        raise InvalidDirective(f"Invalid sort direction: {direction!r}")
    return order(_resolve_field(queryable, name, fields, "order_by"))


def _order_clauses(queryable: Queryable, value, fields) -> list:
    if isinstance(value, str):
        # "title" or "title:desc"
        try:
            name, direction = value.split(":")
        except ValueError:
            name, direction = value, "asc"
        return [_order_clause(queryable, direction, name, fields)]
    if isinstance(value, Mapping):
        return [
            _order_clause(queryable, direction, name, fields)
            for direction, names in value.items()
            for name in (names if isinstance(names, (list, tuple)) else [names])
        ]
    if isinstance(value, tuple) and len(value) == 2 and str(value[0]).lower() in ORDER_DIRECTIONS:
        return [_order_clause(queryable, value[0], value[1], fields)]
    if isinstance(value, (list, tuple)):
        clauses = []
        for item in value:
            clauses.extend(_order_clauses(queryable, item, fields))
        return clauses
    raise InvalidDirective(f"Invalid order_by value: {value!r}")


def apply_order_by(queryable: Queryable, value, fields) -> Queryable:
    return queryable.order_by(*_order_clauses(queryable, value, fields))


def apply_group_by(queryable: Queryable, value, fields) -> Queryable:
    names = value if isinstance(value, (list, tuple)) else [value]
    return queryable.group_by(*[_resolve_field(queryable, name, fields, "group_by") for name in names])


def apply_limit(queryable: Queryable, value, fields) -> Queryable:
    if value is None:
        return queryable.limit(None)
    # query strings arrive as text, so "10" is a limit of 10
    if isinstance(value, bool):
        raise InvalidDirective(f"Invalid limit: {value!r}")
    try:
        limit = _LIMIT.validate_python(value)
    except ValidationError:
        raise InvalidDirective(f"Invalid limit: {value!r}")
    if limit < 0:
        raise InvalidDirective(f"Invalid limit: {value!r}")
    return queryable.limit(limit)


def _loader(queryable: Queryable, path: str):
    loader = None
    current = queryable.entity
    for attr in path.split("."):
        relationship = getattr(current, attr, None)
        if relationship is None or not isinstance(getattr(relationship, "property", None), RelationshipProperty):
            raise InvalidDirective(f"Invalid preload: '{path}' is not a relationship")
        loader = selectinload(relationship) if loader is None else loader.selectinload(relationship)
        current = relationship.property.mapper.class_
    return loader


def apply_preload(queryable: Queryable, value, fields) -> Queryable:
    paths = value if isinstance(value, (list, tuple)) else [value]
    if not all(isinstance(path, str) and path for path in paths):
        raise InvalidDirective(f"Invalid preload value: {value!r}")
    return queryable.preload(*[_loader(queryable, path) for path in paths])


def apply_paginate(queryable: Queryable, value, fields) -> Queryable:
    if value is None or value is False:
        return queryable
    params = paginator.normalize({} if value is True else value)
    offset, limit = paginator.offset_limit(params)
    logger.debug("Paginating %s: offset=%d limit=%d", queryable.name, offset, limit)
    return queryable.paginated(params, offset=offset, limit=limit)


DIRECTIVES = {
    "order_by": apply_order_by,
    "group_by": apply_group_by,
    "limit": apply_limit,
    "preload": apply_preload,
    "paginate": apply_paginate,
}
