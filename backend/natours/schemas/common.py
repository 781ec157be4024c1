"""Response envelopes shared by every JSON endpoint."""

from collections.abc import Iterable
from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class DataResponse(BaseModel, Generic[T]):
    """``{"status": "success", "data": ...}`` wrapper for single documents."""

    status: str = "success"
    data: T


class MessageResponse(BaseModel):
    """Generic message response."""

    status: str = "success"
    message: str


def reject_explicit_nulls(model: BaseModel, fields: Iterable[str]) -> None:
    """Raise ``ValueError`` for any of ``fields`` explicitly sent as ``null``.

    Partial-update schemas type every field as optional so it may be left
    out, but a column that is NOT NULL cannot be cleared.
    """
    cleared = sorted(f for f in fields if f in model.model_fields_set and getattr(model, f) is None)
    if cleared:
        raise ValueError(f"{', '.join(cleared)} cannot be null")
