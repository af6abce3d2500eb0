"""Machine-side reactions to lot lifecycle events."""

import logging

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from looms.models.machine import Machine
from looms.services.events import LotClosed, dispatcher

logger = logging.getLogger(__name__)


@dispatcher.subscribe(LotClosed)
async def release_current_lot(db: AsyncSession, event: LotClosed) -> None:
    """Clear current_taka_id on every machine still pointing at the closed lot."""
    result = await db.execute(
        update(Machine)
        .where(Machine.current_taka_id == event.lot_id)
        .values(current_taka_id=None)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount:
        logger.info(
            "Released lot %s from %d machine(s) (%s)",
            event.lot_id, result.rowcount, event.reason,
        )
