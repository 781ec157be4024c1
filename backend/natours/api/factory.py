"""Generic CRUD handlers shared by the tour, user, review and booking routers.

Each function is parameterized by the model class; routers add their own
default predicates (e.g. active users only, no secret tours) as extra
``where`` clauses.
"""

import uuid
from collections.abc import Iterable
from typing import Any, TypeVar

from pydantic import BaseModel
from sqlalchemy import ColumnElement, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import DeclarativeBase

from natours.api.query import QueryOptions
from natours.errors import NotFound

ModelT = TypeVar("ModelT", bound=DeclarativeBase)


def _not_found() -> NotFound:
    return NotFound("No document found with that ID")


async def get_all(
    db: AsyncSession,
    model: type[ModelT],
    options: QueryOptions,
    *where: ColumnElement[bool],
    allowed: Iterable[str] | None = None,
) -> list[ModelT]:
    """Return one page of ``model`` rows matching ``where`` and the query options."""
    query = options.apply(select(model).where(*where), model, allowed)
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_one(
    db: AsyncSession,
    model: type[ModelT],
    obj_id: uuid.UUID,
    *where: ColumnElement[bool],
    options: tuple = (),
) -> ModelT:
    """Fetch a row by primary key or raise ``NotFound``."""
    query = select(model).where(model.id == obj_id, *where)
    if options:
        query = query.options(*options)
    result = await db.execute(query)
    obj = result.scalar_one_or_none()
    if obj is None:
        raise _not_found()
    return obj


async def create_one(db: AsyncSession, model: type[ModelT], data: dict[str, Any]) -> ModelT:
    obj = model(**data)
    db.add(obj)
    await db.flush()
    await db.refresh(obj)
    return obj


async def update_one(
    db: AsyncSession,
    model: type[ModelT],
    obj_id: uuid.UUID,
    body: BaseModel,
    *where: ColumnElement[bool],
) -> ModelT:
    """Partially update a row. Only explicitly set fields are changed."""
    obj = await get_one(db, model, obj_id, *where)
    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(obj, field, value)
    db.add(obj)
    await db.flush()
    await db.refresh(obj)
    return obj


async def delete_one(
    db: AsyncSession,
    model: type[DeclarativeBase],
    obj_id: uuid.UUID,
    *where: ColumnElement[bool],
) -> None:
    obj = await get_one(db, model, obj_id, *where)
    await db.delete(obj)
    await db.flush()


def list_response(items: Iterable[Any], schema: type[BaseModel], options: QueryOptions) -> dict[str, Any]:
    """Serialize a page as ``{"status", "results", "data"}`` honouring ``?fields=``."""
    data = [options.select_fields(schema.model_validate(item).model_dump(mode="json")) for item in items]
    return {"status": "success", "results": len(data), "data": data}
