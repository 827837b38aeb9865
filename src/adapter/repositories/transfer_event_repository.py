"""SQLAlchemy implementation of TransferEventRepository"""

from typing import List
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.transfer_event_repository import TransferEventRepository
from src.domain.transfer_event import TransferEvent


class SqlAlchemyTransferEventRepository(TransferEventRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, event: TransferEvent) -> TransferEvent:
        self.session.add(event)
        await self.session.flush()
        await self.session.refresh(event)
        return event

    async def list_by_transfer(self, transfer_id: int) -> List[TransferEvent]:
        stmt = (
            select(TransferEvent)
            .where(TransferEvent.transfer_id == transfer_id)
            .order_by(TransferEvent.created_at, TransferEvent.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
