# app/services/examples.py
from typing import List, Optional, Tuple

from app.core.errors import NotFoundError
from app.models.examples import Example
from app.repositories.examples import ExampleRepository
from app.schemas.example import ExampleCreate, ExampleUpdate


class ExampleService:
    def __init__(self, repo: ExampleRepository):
        self.repo = repo

    async def list(self, search: Optional[str], page: int, limit: int) -> Tuple[List[Example], int]:
        search = (search or "").strip() or None
        return await self.repo.list(search, offset=(page - 1) * limit, limit=limit)

    async def get(self, example_id: int) -> Example:
        example = await self.repo.get(example_id)
        if example is None:
            raise NotFoundError("Example not found")
        return example

    async def create(self, payload: ExampleCreate) -> Example:
        return await self.repo.create(payload.name, payload.description)

    async def update(self, example_id: int, payload: ExampleUpdate) -> Example:
        example = await self.get(example_id)
        values = payload.model_dump(exclude_unset=True)
        # name 不可清空；description 可明確設為 null
        if values.get("name", "") is None:
            values.pop("name")
        if not values:
            return example
        return await self.repo.update(example, values)

    async def delete(self, example_id: int) -> None:
        example = await self.get(example_id)
        await self.repo.soft_delete(example)
