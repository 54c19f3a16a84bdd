import math
from typing import Any, Callable, List, Optional, Sequence, Tuple, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from trafficdesk.core.config import settings
from trafficdesk.schemas.common import Page
from trafficdesk.services.validation import raise_for_errors, validate_pagination

T = TypeVar("T")


def resolve_paging(page: Optional[int] = None, limit: Optional[int] = None) -> Tuple[int, int]:
    """Apply defaults and reject out-of-range page/limit values."""
    page = 1 if page is None else page
    limit = settings.DEFAULT_PAGE_SIZE if limit is None else limit
    raise_for_errors(validate_pagination(page, limit, settings.MAX_PAGE_SIZE))
    return page, limit


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


def build_page(data: List[Any], total: int, page: int, limit: int) -> Page:
    return Page(data=data, total=total, page=page, limit=limit, totalPages=total_pages(total, limit))


def paginate_list(items: Sequence[T], page: int, limit: int,
                  transform: Optional[Callable[[T], Any]] = None) -> Page:
    """Slice an already-filtered, already-ordered sequence."""
    skip = (page - 1) * limit
    window = list(items[skip:skip + limit])
    if transform is not None:
        window = [transform(item) for item in window]
    return build_page(window, len(items), page, limit)


async def paginate_query(db: AsyncSession, query: Select, page: int, limit: int) -> Tuple[List[Any], int]:
    """
    Count every row matching `query`, then fetch one page of it.

    Returns the page rows (scalars) and the total count.
    """
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_query)).scalar_one()

    skip = (page - 1) * limit
    if skip >= total:
        return [], total

    result = await db.execute(query.offset(skip).limit(limit))
    return list(result.scalars().all()), total
