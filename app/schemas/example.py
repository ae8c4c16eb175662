# app/schemas/example.py
from datetime import datetime
from typing import Optional

from pydantic import Field

from app.schemas.common import CamelModel


class ExampleCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None


class ExampleUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None


class ExampleRead(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ExampleDeleted(CamelModel):
    deleted: bool = True
