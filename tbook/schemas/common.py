"""Shared Pydantic base classes and the API response envelope."""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base schema exchanged with the client in camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class ApiResponse(CamelModel, Generic[T]):
    """Envelope wrapping every JSON response body."""

    success: bool = True
    data: T | None = None
    error: str | None = None
    message: str | None = None
