from .builder import compose, new
from .core import Filter
from .dependencies import ComposedQuery, QueryBuilder
from .exceptions import (
    InvalidDirective,
    MalformedFilter,
    ModelMismatch,
    QueryKitError,
    TypeMismatch,
    UnresolvedOption,
    UnsupportedOperator,
)
from .operators import FilterOperator
from .paginator import PaginationParams, PaginationResult
from .queryable import Queryable
from .repository import Repository

__all__ = [
    "compose",
    "new",
    "Filter",
    "FilterOperator",
    "Queryable",
    "PaginationParams",
    "PaginationResult",
    "Repository",
    "QueryBuilder",
    "ComposedQuery",
    "QueryKitError",
    "MalformedFilter",
    "UnsupportedOperator",
    "TypeMismatch",
    "InvalidDirective",
    "UnresolvedOption",
    "ModelMismatch",
]
