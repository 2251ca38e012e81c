from typing import Generic, List, TypeVar
from pydantic import BaseModel

T = TypeVar("T")

class PaginationMeta(BaseModel):
    total: int
    take: int
    skip: int
    has_more: bool
    total_pages: int
    current_page: int

class Page(BaseModel, Generic[T]):
    data: List[T]
    pagination: PaginationMeta

class MessageResponse(BaseModel):
    message: str
