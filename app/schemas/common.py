# app/schemas/common.py
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """對外 JSON 使用 camelCase；輸入同時接受 snake_case。"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class PageLinks(CamelModel):
    first: str
    last: str
    prev: Optional[str] = None
    next: Optional[str] = None


class PageMeta(CamelModel):
    total: int
    page: int
    limit: int
    total_pages: int
    links: Optional[PageLinks] = None


class ApiResponse(CamelModel, Generic[T]):
    success: bool = True
    message: str = "OK"
    status_code: int = 200
    data: T


class PaginatedResponse(CamelModel, Generic[T]):
    success: bool = True
    message: str = "OK"
    status_code: int = 200
    data: list[T]
    meta: PageMeta


class MessageOut(CamelModel):
    message: str


def ok(data: T, message: str = "OK") -> ApiResponse[T]:
    return ApiResponse(data=data, message=message, status_code=200)


def created(data: T, message: str = "Created") -> ApiResponse[T]:
    return ApiResponse(data=data, message=message, status_code=201)


def ok_with_meta(data: list, meta: PageMeta, message: str = "OK") -> PaginatedResponse:
    return PaginatedResponse(data=data, meta=meta, message=message, status_code=200)
