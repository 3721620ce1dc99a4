# fastapi_querykit/core.py

import json
import logging
from collections.abc import Mapping
from typing import Any, Iterable, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .exceptions import MalformedFilter
from .operators import FilterOperator, parse_operator

logger = logging.getLogger(__name__)

FILTERS_KEY = "filters"

# Applied in this order regardless of where they appear in the options.
DIRECTIVE_KEYS = ("order_by", "group_by", "limit", "preload", "paginate")


class Filter(BaseModel):
    """A single field predicate: `{"field": ..., "operator": ..., "value": ...}`."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    field: str
    operator: FilterOperator = Field(alias="op")
    value: Any

    @field_validator("operator", mode="before")
    @classmethod
    def _parse_operator(cls, raw):
        return parse_operator(raw)


class ClassifiedOptions(NamedTuple):
    filters: list[Filter]
    directives: list[tuple[str, Any]]
    custom: list[Any]


def is_filter_shaped(option) -> bool:
    return isinstance(option, Mapping) and "field" in option


def parse_filter(raw) -> Filter:
    """
    Parse a filter mapping into a `Filter`.

    Raises:
        MalformedFilter: `field`, `operator` (or `op`) or `value` is missing.
        UnsupportedOperator: the operator is not one of `FilterOperator`.
    """
    if isinstance(raw, Filter):
        return raw
    if not isinstance(raw, Mapping):
        raise MalformedFilter(f"Invalid filter format: {raw!r}")

    missing = [key for key in ("field", "value") if key not in raw]
    if "operator" not in raw and "op" not in raw:
        missing.insert(1, "operator")
    if missing:
        raise MalformedFilter(f"Filter {dict(raw)!r} is missing {', '.join(missing)}")
    if not isinstance(raw["field"], str):
        raise MalformedFilter(f"Filter field must be a string, got {raw['field']!r}")

    operator = raw["operator"] if "operator" in raw else raw["op"]
    return Filter(field=raw["field"], operator=parse_operator(operator), value=raw["value"])


def iter_options(options) -> Iterable[Any]:
    """
    Yield options one at a time: `(key, value)` pairs, `Filter`s or filter mappings.

    A top-level mapping is always a set of `key: value` pairs. Inside a list,
    mappings with a `field` key are filters and other mappings are expanded
    into their items.
    """
    if options is None:
        return
    if isinstance(options, Mapping):
        yield from options.items()
        return
    for option in options:
        if isinstance(option, Mapping) and not is_filter_shaped(option):
            yield from option.items()
        else:
            yield option


def classify_options(options, fields) -> ClassifiedOptions:
    """
    Split options into field filters, standard directives and custom options.

    Options are visited in iteration order. Bare `(field, value)` pairs become
    equality filters. Anything that is neither a schema field nor a directive
    is returned untouched in `custom`.
    """
    fields = frozenset(fields)
    filters: list[Filter] = []
    directives: list[tuple[str, Any]] = []
    custom: list[Any] = []

    def visit(option, nested: bool = False):
        if isinstance(option, Filter) or is_filter_shaped(option):
            parsed = parse_filter(option)
            if parsed.field in fields:
                filters.append(parsed)
            else:
                custom.append(option)
            return

        if not isinstance(option, tuple) or len(option) != 2:
            custom.append(option)
            return

        key, value = option
        if key == FILTERS_KEY and not nested:
            if isinstance(value, Mapping):
                value = list(value.items())
            if not isinstance(value, (list, tuple)):
                raise MalformedFilter(f"'{FILTERS_KEY}' must be a list, got {value!r}")
            for inner in iter_options(value):
                visit(inner, nested=True)
        elif key in fields:
            filters.append(Filter(field=key, operator=FilterOperator.EQUALS, value=value))
        elif key in DIRECTIVE_KEYS:
            directives.append((key, value))
        else:
            custom.append(option)

    for option in iter_options(options):
        visit(option)

    logger.debug(
        "Classified options: %d filter(s), %d directive(s), %d custom",
        len(filters), len(directives), len(custom),
    )
    return ClassifiedOptions(filters, directives, custom)


def parse_filter_query(filters: Optional[str]) -> Optional[list]:
    """
    Decode the `filters` request parameter.

    A JSON array is a list of filters; a JSON object is a set of
    `field: value` equality pairs.
    """
    if not filters:
        return None
    try:
        parsed = json.loads(filters)
    except ValueError as e:
        raise MalformedFilter(f"Invalid filter JSON: {e}")
    if isinstance(parsed, dict):
        return list(parsed.items())
    if not isinstance(parsed, list):
        raise MalformedFilter("Filters must be a JSON array or object")
    return parsed
