# app/api/v1/endpoints/examples.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from app.core.config import settings
from app.core.deps import get_example_service
from app.schemas.common import ApiResponse, PaginatedResponse, created, ok, ok_with_meta
from app.schemas.example import ExampleCreate, ExampleDeleted, ExampleRead, ExampleUpdate
from app.services.examples import ExampleService
from app.utils.pagination import build_page_meta

router = APIRouter(tags=["examples"])


@router.get("", response_model=PaginatedResponse[ExampleRead])
async def list_examples(
    request: Request,
    search: Optional[str] = Query(default=None, max_length=255),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.PAGINATION_DEFAULT_LIMIT, ge=1, le=settings.PAGINATION_MAX_LIMIT),
    service: ExampleService = Depends(get_example_service),
):
    items, total = await service.list(search, page, limit)
    meta = build_page_meta(request.url, total, page, limit)
    return ok_with_meta([ExampleRead.model_validate(e) for e in items], meta)


@router.get("/{example_id}", response_model=ApiResponse[ExampleRead])
async def get_example(example_id: int, service: ExampleService = Depends(get_example_service)):
    return ok(ExampleRead.model_validate(await service.get(example_id)))


@router.post("", response_model=ApiResponse[ExampleRead], status_code=status.HTTP_201_CREATED)
async def create_example(payload: ExampleCreate, service: ExampleService = Depends(get_example_service)):
    example = await service.create(payload)
    return created(ExampleRead.model_validate(example), "Example created successfully")


@router.put("/{example_id}", response_model=ApiResponse[ExampleRead])
async def update_example(
    example_id: int,
    payload: ExampleUpdate,
    service: ExampleService = Depends(get_example_service),
):
    example = await service.update(example_id, payload)
    return ok(ExampleRead.model_validate(example), "Example updated successfully")


# soft delete
@router.delete("/{example_id}", response_model=ApiResponse[ExampleDeleted])
async def delete_example(example_id: int, service: ExampleService = Depends(get_example_service)):
    await service.delete(example_id)
    return ok(ExampleDeleted(), "Example deleted successfully")
