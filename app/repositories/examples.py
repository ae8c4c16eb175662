# app/repositories/examples.py
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import utcnow
from app.models.examples import Example


class ExampleRepository:
    """所有查詢都排除已軟刪除的資料。"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list(self, search: Optional[str], offset: int, limit: int) -> Tuple[List[Example], int]:
        q = select(Example).where(Example.deleted_at.is_(None))
        if search:
            q = q.where(Example.name.icontains(search, autoescape=True))

        total = (await self.db.execute(select(func.count()).select_from(q.subquery()))).scalar_one()
        rows = await self.db.execute(
            q.order_by(Example.created_at.desc(), Example.id.desc()).offset(offset).limit(limit)
        )
        return list(rows.scalars().all()), int(total)

    async def get(self, example_id: int) -> Optional[Example]:
        res = await self.db.execute(
            select(Example).where(Example.id == example_id, Example.deleted_at.is_(None))
        )
        return res.scalar_one_or_none()

    async def create(self, name: str, description: Optional[str]) -> Example:
        example = Example(name=name, description=description)
        self.db.add(example)
        await self.db.commit()
        await self.db.refresh(example)
        return example

    async def update(self, example: Example, values: dict) -> Example:
        for field, value in values.items():
            setattr(example, field, value)
        await self.db.commit()
        await self.db.refresh(example)
        return example

    async def soft_delete(self, example: Example) -> None:
        example.deleted_at = utcnow()
        await self.db.commit()
