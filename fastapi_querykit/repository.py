# fastapi_querykit/repository.py

import logging
from typing import Any, Generic, Optional, TypeVar, Union

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from . import builder, paginator
from .exceptions import UnresolvedOption
from .paginator import PaginationResult
from .queryable import Queryable

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


class Repository(Generic[ModelT]):
    """
    Read access to one mapped model through `compose` and the paginator.

    Subclasses resolve their own custom options by overriding
    `apply_custom_option`:

        class BookRepository(Repository[Book]):
            def apply_custom_option(self, queryable, option):
                key, value = option
                if key == "published_after":
                    return queryable.where(queryable.entity.year > value)
                return super().apply_custom_option(queryable, option)
    """

    def __init__(self, model: type[ModelT], session: Session):
        self.model = model
        self.session = session

    def new(self) -> Queryable:
        return builder.new(self.model)

    def query(self, options=None, queryable: Optional[Queryable] = None) -> Queryable:
        queryable = self.new() if queryable is None else queryable
        queryable, custom = builder.compose(queryable, self.model, options)
        for option in custom:
            queryable = self.apply_custom_option(queryable, option)
        return queryable

    def apply_custom_option(self, queryable: Queryable, option: Any) -> Queryable:
        raise UnresolvedOption(option)

    def list(self, options=None) -> Union[list[ModelT], tuple[list[ModelT], PaginationResult]]:
        """
        Rows matching `options`.

        When `paginate` was requested, returns `(rows, PaginationResult)` with
        the metadata counted over all matching rows.
        """
        queryable = self.query(options)
        rows = list(self.session.scalars(queryable.statement).all())
        if queryable.pagination is None:
            return rows
        page = paginator.build(
            queryable,
            queryable.pagination,
            paginator.session_counter(self.session),
        )
        return rows, page

    def _by_id(self, id, options) -> Queryable:
        queryable = self.query(options)
        mapper = inspect(self.model)
        primary_key = mapper.primary_key
        if len(primary_key) != 1:
            raise ValueError(f"{self.model.__name__} does not have a single-column primary key")
        column = queryable.column(mapper.get_property_by_column(primary_key[0]).key)
        return queryable.where(column == id)

    def get(self, id, options=None) -> Optional[ModelT]:
        return self.session.scalars(self._by_id(id, options).statement).one_or_none()

    def get_one(self, id, options=None) -> ModelT:
        """Like `get`, raising `NoResultFound` when nothing matches."""
        return self.session.scalars(self._by_id(id, options).statement).one()

    def one(self, options=None) -> Optional[ModelT]:
        """Single matching row or None; raises `MultipleResultsFound` when ambiguous."""
        return self.session.scalars(self.query(options).statement).one_or_none()

    def count(self, options=None) -> int:
        queryable = self.query(options)
        return self.session.execute(queryable.count_statement()).scalar_one()
