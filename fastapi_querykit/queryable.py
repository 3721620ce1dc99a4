# fastapi_querykit/queryable.py

import re
from dataclasses import dataclass, replace
from typing import Any, Optional

from sqlalchemy import Select, func, inspect, select
from sqlalchemy.orm import aliased
from sqlalchemy.orm.util import AliasedClass

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def binding_name(model) -> str:
    """
    Alias under which the root entity of `model` is selected.

    BookAuthor -> book_author, HTTPRequestLog -> http_request_log
    """
    return _CAMEL_BOUNDARY.sub("_", model.__name__).lower()


def schema_fields(model) -> tuple[str, ...]:
    """Mapped column keys of `model`, in declaration order."""
    return tuple(attr.key for attr in inspect(model).column_attrs)


@dataclass(frozen=True, eq=False)
class Queryable:
    """
    Immutable query over one mapped model, selected under a fixed alias.

    Loader options are kept apart from the base statement so that the row
    count can be taken over the filtered rows only.
    """
    model: Any
    entity: AliasedClass
    name: str
    base: Select
    loaders: tuple = ()
    pagination: Optional[Any] = None

    @classmethod
    def new(cls, model) -> "Queryable":
        name = binding_name(model)
        entity = aliased(model, name=name)
        return cls(model=model, entity=entity, name=name, base=select(entity))

    @property
    def statement(self) -> Select:
        return self.base.options(*self.loaders) if self.loaders else self.base

    def column(self, field_name: str):
        return getattr(self.entity, field_name)

    def where(self, *predicates) -> "Queryable":
        return replace(self, base=self.base.where(*predicates))

    def order_by(self, *clauses) -> "Queryable":
        return replace(self, base=self.base.order_by(*clauses))

    def group_by(self, *clauses) -> "Queryable":
        return replace(self, base=self.base.group_by(*clauses))

    def limit(self, limit: Optional[int]) -> "Queryable":
        return replace(self, base=self.base.limit(limit))

    def offset(self, offset: Optional[int]) -> "Queryable":
        return replace(self, base=self.base.offset(offset))

    def preload(self, *loaders) -> "Queryable":
        return replace(self, loaders=self.loaders + loaders)

    def paginated(self, params, offset: int, limit: int) -> "Queryable":
        return replace(
            self,
            base=self.base.limit(limit).offset(offset),
            pagination=params,
        )

    def count_statement(self) -> Select:
        """SELECT count(*) over the filtered rows, ignoring limit, offset and ordering."""
        rows = self.base.limit(None).offset(None).order_by(None)
        return select(func.count()).select_from(rows.subquery())
