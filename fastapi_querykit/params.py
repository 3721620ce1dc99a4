# fastapi_querykit/params.py

from typing import Optional

from fastapi import Query

# Request parameters consumed by QueryParams; everything else in the query
# string is passed to compose() as a (key, value) option.
RESERVED_PARAMS = frozenset({"filters", "sort", "page", "per_page", "preload"})


class QueryParams:
    def __init__(
        self,
        filters: Optional[str] = Query(
            None,
            description="A JSON array of filters or a JSON object of field/value pairs.",
            examples=['[{"field": "title", "operator": "ilike", "value": "book"}]'],
        ),
        sort: Optional[str] = Query(None, description="e.g. title:asc or year:desc,title"),
        page: Optional[str] = Query(None, description="Page number, clamped to 1..100."),
        per_page: Optional[str] = Query(None, description="Rows per page, clamped to 1..100."),
        preload: Optional[str] = Query(None, description="Comma-separated relationships to eager-load."),
    ):
        self.filters = filters
        self.sort = sort
        self.page = page
        self.per_page = per_page
        self.preload = preload

    @property
    def paginate(self) -> Optional[dict]:
        if self.page is None and self.per_page is None:
            return None
        return {"page": self.page, "per_page": self.per_page}

    def order_by(self) -> list[str]:
        return [part.strip() for part in (self.sort or "").split(",") if part.strip()]

    def preloads(self) -> list[str]:
        return [part.strip() for part in (self.preload or "").split(",") if part.strip()]
