from __future__ import annotations

import math
from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    total: int
    page: int
    limit: int
    total_pages: int
    items: list[T]

    @classmethod
    def build(cls, items: list, total: int, page: int, limit: int) -> "Page[T]":
        return cls(
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit) if limit else 0,
            items=items,
        )


class Message(BaseModel):
    message: str
