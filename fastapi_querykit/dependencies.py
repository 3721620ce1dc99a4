# fastapi_querykit/dependencies.py

from typing import Any, NamedTuple, Type

from fastapi import Depends, Request

from .builder import compose, new
from .core import FILTERS_KEY, parse_filter_query
from .params import RESERVED_PARAMS, QueryParams
from .queryable import Queryable


class ComposedQuery(NamedTuple):
    queryable: Queryable
    custom_options: list[Any]


def options_from_request(request: Request, params: QueryParams) -> list:
    options = []
    filters = parse_filter_query(params.filters)
    if filters:
        options.append((FILTERS_KEY, filters))
    options.extend(
        (key, value)
        for key, value in request.query_params.multi_items()
        if key not in RESERVED_PARAMS
    )
    if params.order_by():
        options.append(("order_by", params.order_by()))
    if params.preloads():
        options.append(("preload", params.preloads()))
    if params.paginate is not None:
        options.append(("paginate", params.paginate))
    return options


def QueryBuilder(model: Type):
    def wrapper(
        request: Request,
        params: QueryParams = Depends()
    ) -> ComposedQuery:
        return ComposedQuery(*compose(new(model), model, options_from_request(request, params)))
    return Depends(wrapper)
