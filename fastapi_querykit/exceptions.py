# fastapi_querykit/exceptions.py

from fastapi import HTTPException


class QueryKitError(HTTPException):
    """Base class for errors raised while composing a query.

    Every error is a 400 so FastAPI reports it as a client error without
    a dedicated exception handler.
    """

    def __init__(self, detail: str):
        super().__init__(status_code=400, detail=detail)

    def __str__(self) -> str:
        return self.detail


class MalformedFilter(QueryKitError):
    pass


class UnsupportedOperator(QueryKitError):
    def __init__(self, operator):
        self.operator = operator
        super().__init__(f"Operator '{operator}' is not supported")


class TypeMismatch(QueryKitError, TypeError):
    pass


class InvalidDirective(QueryKitError):
    pass


class UnresolvedOption(QueryKitError):
    def __init__(self, option):
        self.option = option
        super().__init__(f"No handler for query option {option!r}")


class ModelMismatch(QueryKitError, ValueError):
    pass
