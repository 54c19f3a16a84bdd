from typing import Generic, List, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class APIModel(BaseModel):
    """Reads from ORM rows, accepts snake_case or camelCase, dumps camelCase by alias."""
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


class Page(BaseModel, Generic[T]):
    data: List[T]
    total: int
    page: int
    limit: int
    totalPages: int


class BulkResult(BaseModel):
    matched: int
    modified: int
