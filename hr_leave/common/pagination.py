"""Page/page_size pagination for list endpoints."""

import math
from typing import Any, Callable, Generic, Optional, Sequence, TypeVar

from fastapi import Query
from pydantic import BaseModel
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_leave.common.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

T = TypeVar("T")


class PaginationParams:
    """Query-string pagination, injected with ``Depends(PaginationParams)``."""

    def __init__(
        self,
        page: int = Query(default=1, ge=1, description="1-based page number"),
        page_size: int = Query(
            default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, description="Rows per page",
        ),
    ) -> None:
        self.page = page
        self.page_size = page_size

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class PaginationMeta(BaseModel):
    page: int
    page_size: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def for_total(cls, params: PaginationParams, total: int) -> "PaginationMeta":
        pages = math.ceil(total / params.page_size) if total else 0
        return cls(
            page=params.page,
            page_size=params.page_size,
            total=total,
            total_pages=pages,
            has_next=params.page < pages,
            has_prev=params.page > 1,
        )


class PaginatedResponse(BaseModel, Generic[T]):
    """``{"data": [...], "meta": {...}}``"""

    data: Sequence[T]
    meta: PaginationMeta


async def paginate(
    session: AsyncSession,
    query: Select,
    params: PaginationParams,
    *,
    transform: Optional[Callable[[Any], Any]] = None,
) -> PaginatedResponse:
    """Run *query* for one page and count the full result set.

    The caller owns ordering; *transform* maps each ORM row before it is
    placed in ``data``.
    """
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await session.execute(count_query)).scalar_one()

    page_query = query.offset(params.offset).limit(params.page_size)
    rows: Sequence[Any] = (await session.execute(page_query)).scalars().all()
    if transform is not None:
        rows = [transform(row) for row in rows]

    return PaginatedResponse(data=rows, meta=PaginationMeta.for_total(params, total))
