"""
Sequence number allocation
Project: Order Ledger
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.models import SequenceCounter

logger = logging.getLogger(__name__)

ORDER_NO = "order_no"
CLIENT_NO = "client_no"


class SequenceService:
    """
    Hands out sequential numbers from named counters.

    The counter row is locked (SELECT ... FOR UPDATE) and incremented in the
    caller's transaction, so a rolled back creation does not burn a number.
    """

    async def next_value(self, db: AsyncSession, name: str) -> int:
        result = await db.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == name)
            .with_for_update()
        )
        counter = result.scalar_one_or_none()

        if counter is None:
            counter = SequenceCounter(name=name, value=0)
            db.add(counter)

        counter.value += 1
        await db.flush()

        logger.debug("Sequence %s -> %s", name, counter.value)
        return counter.value


sequence_service = SequenceService()
