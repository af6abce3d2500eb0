"""Shared "load or 404" helpers for services and routers."""

from typing import TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from looms.middleware.exceptions import ResourceNotFoundError

M = TypeVar("M")


async def get_or_404(
    db: AsyncSession,
    model: type[M],
    ident: str,
    label: str,
    *,
    active_only: bool = False,
    for_update: bool = False,
    options: tuple = (),
) -> M:
    """Load one row by primary key or raise ResourceNotFoundError.

    active_only skips soft-deleted reference rows (is_active == False).
    for_update takes a row lock and refreshes any identity-mapped copy.
    """
    stmt = select(model).where(model.id == ident)
    if active_only:
        stmt = stmt.where(model.is_active == True)  # noqa: E712
    if options:
        stmt = stmt.options(*options)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)

    obj = (await db.execute(stmt)).scalar_one_or_none()
    if obj is None:
        raise ResourceNotFoundError(label, ident)
    return obj
