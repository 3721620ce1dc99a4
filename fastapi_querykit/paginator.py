# fastapi_querykit/paginator.py

"""
Page arithmetic for composed queries.

`normalize` clamps raw page input, `build` turns a row count into page
metadata and `changed` tells whether new raw input points at another page.
The row count itself is delegated to an injected counter so nothing here
executes SQL on its own.
"""

import inspect
import logging
from collections.abc import Mapping
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError
from sqlalchemy import Select, func, select

from .config import settings
from .queryable import Queryable

logger = logging.getLogger(__name__)

RowCounter = Callable[[Select], Union[int, Awaitable[int]]]

_INT = TypeAdapter(int)


class PaginationParams(BaseModel):
    model_config = ConfigDict(frozen=True)

    page: int = settings.DEFAULT_PAGE
    per_page: int = settings.DEFAULT_PER_PAGE


class PaginationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_count: int
    total_pages: int
    per_page: int
    current_page: int
    has_next: bool
    has_previous: bool
    next_page: Optional[int] = None
    previous_page: Optional[int] = None
    original_params: Any = None


def _coerce_int(value) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return _INT.validate_python(value)
    except ValidationError:
        return None


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def normalize(raw_params) -> PaginationParams:
    """
    Clamp raw `page` / `per_page` input into bounds.

    Accepts a mapping, a list of `(key, value)` pairs or `PaginationParams`;
    anything else yields the defaults. Values that are missing or can't be
    read as integers fall back to the defaults.
    """
    if isinstance(raw_params, PaginationParams):
        raw_params = raw_params.model_dump()
    elif isinstance(raw_params, (list, tuple)):
        try:
            raw_params = dict(raw_params)
        except (TypeError, ValueError):
            raw_params = {}
    elif not isinstance(raw_params, Mapping):
        raw_params = {}

    page = _coerce_int(raw_params.get("page"))
    per_page = _coerce_int(raw_params.get("per_page"))

    return PaginationParams(
        page=_clamp(
            settings.DEFAULT_PAGE if page is None else page,
            settings.MIN_PAGE,
            settings.MAX_PAGE,
        ),
        per_page=_clamp(
            settings.DEFAULT_PER_PAGE if per_page is None else per_page,
            settings.MIN_PER_PAGE,
            settings.MAX_PER_PAGE,
        ),
    )


def total_pages(total_count: int, per_page: int) -> int:
    if total_count == 0:
        return 0
    return -(-total_count // per_page)


def offset_limit(params: PaginationParams) -> tuple[int, int]:
    return (params.page - 1) * params.per_page, params.per_page


def count_statement(queryable) -> Select:
    if isinstance(queryable, Queryable):
        return queryable.count_statement()
    rows = queryable.limit(None).offset(None).order_by(None)
    return select(func.count()).select_from(rows.subquery())


def _result(total_count: int, params: PaginationParams, raw_params) -> PaginationResult:
    pages = total_pages(total_count, params.per_page)
    page = params.page
    has_next = page < pages
    has_previous = page > 1

    if pages and page > pages:
        logger.warning("Requested page %d of %d", page, pages)

    return PaginationResult(
        total_count=total_count,
        total_pages=pages,
        per_page=params.per_page,
        current_page=page,
        has_next=has_next,
        has_previous=has_previous,
        next_page=page + 1 if has_next else None,
        previous_page=page - 1 if has_previous else None,
        original_params=raw_params,
    )


def build(queryable, raw_params, row_counter: RowCounter) -> PaginationResult:
    """
    Compute page metadata for `queryable`.

    `row_counter` receives a count statement over the filtered rows with any
    limit and offset removed and must return the count as an int.
    """
    params = normalize(raw_params)
    total_count = row_counter(count_statement(queryable))
    if inspect.isawaitable(total_count):
        if inspect.iscoroutine(total_count):
            total_count.close()
        raise TypeError("row_counter returned an awaitable; use abuild() instead")
    logger.debug("Paginating %d row(s) with %r", total_count, params)
    return _result(total_count, params, raw_params)


async def abuild(queryable, raw_params, row_counter: RowCounter) -> PaginationResult:
    """Like `build`, awaiting the row counter when it is a coroutine function."""
    params = normalize(raw_params)
    total_count = row_counter(count_statement(queryable))
    if inspect.isawaitable(total_count):
        total_count = await total_count
    logger.debug("Paginating %d row(s) with %r", total_count, params)
    return _result(total_count, params, raw_params)


def changed(result: PaginationResult, raw_params) -> bool:
    params = normalize(raw_params)
    return result.current_page != params.page or result.per_page != params.per_page


def session_counter(session) -> Callable[[Select], int]:
    """Row counter backed by a SQLAlchemy `Session`."""
    def count(stmt: Select) -> int:
        return session.execute(stmt).scalar_one()
    return count


def async_session_counter(session) -> Callable[[Select], Awaitable[int]]:
    """Row counter backed by a SQLAlchemy `AsyncSession`."""
    async def count(stmt: Select) -> int:
        result = await session.execute(stmt)
        return result.scalar_one()
    return count
