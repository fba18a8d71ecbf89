"""Cursor pagination matching the OpenAI list endpoints (limit/order/after/before)"""

from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any, TypeVar

from fastapi import HTTPException
from sqlalchemy import Select, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from ..models.common import ListResponse, PaginationParams

T = TypeVar("T")


def _beyond(
    created_col: InstrumentedAttribute,
    id_col: InstrumentedAttribute,
    created_at: datetime,
    row_id: str,
    *,
    greater: bool,
):
    """Strict ``(created_at, id)`` comparison against a cursor row."""
    if greater:
        return or_(
            created_col > created_at,
            and_(created_col == created_at, id_col > row_id),
        )
    return or_(
        created_col < created_at,
        and_(created_col == created_at, id_col < row_id),
    )


async def _cursor_created_at(
    session: AsyncSession,
    stmt: Select,
    created_col: InstrumentedAttribute,
    id_col: InstrumentedAttribute,
    cursor: str,
) -> datetime:
    """Resolve a cursor within the listed rows; ids from other lists are rejected."""
    created_at = await session.scalar(
        stmt.with_only_columns(created_col).where(id_col == cursor).limit(1)
    )
    if created_at is None:
        raise HTTPException(400, f"Invalid cursor '{cursor}'")
    return created_at


async def paginate(
    session: AsyncSession,
    stmt: Select,
    *,
    created_col: InstrumentedAttribute,
    id_col: InstrumentedAttribute,
    params: PaginationParams,
) -> tuple[Sequence[Any], bool]:
    """Apply ``params`` to ``stmt`` and return ``(rows, has_more)``.

    ``after`` returns rows following the cursor in the requested order,
    ``before`` rows preceding it. For ``before`` alone the query runs in the
    opposite direction and the page is flipped back afterwards so callers
    always receive rows in the requested order.
    """
    descending = params.order == "desc"
    listed = stmt

    if params.after:
        created_at = await _cursor_created_at(
            session, listed, created_col, id_col, params.after
        )
        stmt = stmt.where(
            _beyond(created_col, id_col, created_at, params.after, greater=not descending)
        )
    if params.before:
        created_at = await _cursor_created_at(
            session, listed, created_col, id_col, params.before
        )
        stmt = stmt.where(
            _beyond(created_col, id_col, created_at, params.before, greater=descending)
        )

    reverse = bool(params.before) and not params.after
    query_descending = descending != reverse
    if query_descending:
        stmt = stmt.order_by(created_col.desc(), id_col.desc())
    else:
        stmt = stmt.order_by(created_col.asc(), id_col.asc())

    result = await session.scalars(stmt.limit(params.limit + 1))
    rows = list(result.all())
    has_more = len(rows) > params.limit
    rows = rows[: params.limit]
    if reverse:
        rows.reverse()
    return rows, has_more


def paginated_object(
    rows: Sequence[Any],
    has_more: bool,
    convert: Callable[[Any], T],
) -> ListResponse[T]:
    data = [convert(row) for row in rows]
    return ListResponse(
        data=data,
        first_id=getattr(data[0], "id", None) if data else None,
        last_id=getattr(data[-1], "id", None) if data else None,
        has_more=has_more,
    )
