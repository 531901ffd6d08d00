"""
Offset pagination shared by the list endpoints.
"""

import math
from typing import Generic, List, TypeVar

from pydantic import BaseModel
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    data: List[T]
    total: int
    page: int
    page_size: int
    total_pages: int


async def paginate(db: AsyncSession, query: Select, page: int, page_size: int) -> tuple[list, int]:
    """Run `query` for one page. Returns (rows, total matching rows)."""
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_query)).scalar_one()

    result = await db.execute(query.offset((page - 1) * page_size).limit(page_size))
    return list(result.scalars().unique().all()), total


def total_pages(total: int, page_size: int) -> int:
    return math.ceil(total / page_size) if page_size else 0
