"""Query-string driven filtering, sorting, field selection and pagination.

Supported syntax::

    ?difficulty=easy&price[lt]=1500     filtering (gte, gt, lte, lt, ne)
    ?sort=-ratings_average,price        sorting, "-" for descending
    ?fields=name,price                  field selection on the output
    ?page=2&limit=10                    pagination
"""

from __future__ import annotations

import decimal
import operator
import re
import uuid
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import Any

from fastapi import Request
from sqlalchemy import Select
from sqlalchemy.orm import DeclarativeBase

from natours.errors import ValidationFailed

RESERVED_PARAMS = frozenset({"page", "sort", "limit", "fields"})
DEFAULT_LIMIT = 100
MAX_LIMIT = 1000

_OPERATORS: dict[str, Callable[[Any, Any], Any]] = {
    "eq": operator.eq,
    "ne": operator.ne,
    "gt": operator.gt,
    "gte": operator.ge,
    "lt": operator.lt,
    "lte": operator.le,
}
_FILTER_KEY = re.compile(r"^(?P<field>\w+)(?:\[(?P<op>gte|gt|lte|lt|ne)\])?$")


def _split(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def _positive_int(name: str, value: str | None, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        number = int(value)
    except ValueError:
        raise ValidationFailed(f"Invalid {name}: {value}") from None
    if number < 1:
        raise ValidationFailed(f"Invalid {name}: {value}")
    return number


def _coerce(column, raw: str) -> Any:
    """Convert a query-string value to the Python type of ``column``."""
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return raw
    try:
        if python_type is bool:
            lowered = raw.lower()
            if lowered not in ("true", "false", "1", "0"):
                raise ValueError(raw)
            return lowered in ("true", "1")
        if python_type is uuid.UUID:
            return uuid.UUID(raw)
        if python_type is datetime:
            return datetime.fromisoformat(raw)
        return python_type(raw)
    except (ValueError, TypeError, decimal.InvalidOperation):
        raise ValidationFailed(f"Invalid {column.key}: {raw}") from None


class QueryOptions:
    """Parsed list-endpoint options, applied to a ``SELECT`` for one model."""

    def __init__(self, params: Mapping[str, str]) -> None:
        self.filters = {k: v for k, v in params.items() if k not in RESERVED_PARAMS}
        self.sort = _split(params.get("sort"))
        self.fields = _split(params.get("fields"))
        self.page = _positive_int("page", params.get("page"), 1)
        self.limit = min(_positive_int("limit", params.get("limit"), DEFAULT_LIMIT), MAX_LIMIT)

    @classmethod
    def from_request(cls, request: Request, ignore: Iterable[str] = ()) -> QueryOptions:
        skipped = set(ignore)
        return cls({k: v for k, v in request.query_params.items() if k not in skipped})

    def apply(
        self,
        query: Select,
        model: type[DeclarativeBase],
        allowed: Iterable[str] | None = None,
    ) -> Select:
        """Add WHERE, ORDER BY, OFFSET and LIMIT clauses for ``model`` to ``query``.

        ``allowed`` restricts which columns may be filtered and sorted on.
        """
        columns = model.__table__.columns
        usable = set(allowed) if allowed is not None else set(columns.keys())

        for key, raw in self.filters.items():
            match = _FILTER_KEY.match(key)
            if match is None or match["field"] not in usable:
                raise ValidationFailed(f"Invalid filter field: {key}")
            column = getattr(model, match["field"])
            op = _OPERATORS[match["op"] or "eq"]
            query = query.where(op(column, _coerce(columns[match["field"]], raw)))

        order_by = []
        for field in self.sort or (["-created_at"] if "created_at" in usable else []):
            name = field.lstrip("-")
            if name not in usable:
                raise ValidationFailed(f"Invalid sort field: {name}")
            column = getattr(model, name)
            order_by.append(column.desc() if field.startswith("-") else column.asc())
        if order_by:
            query = query.order_by(*order_by)

        return query.offset((self.page - 1) * self.limit).limit(self.limit)

    def select_fields(self, data: dict[str, Any]) -> dict[str, Any]:
        """Keep only the requested fields (plus ``id``) of a serialized document."""
        if not self.fields:
            return data
        wanted = set(self.fields) | {"id"}
        return {k: v for k, v in data.items() if k in wanted}
