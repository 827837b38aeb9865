"""SQLAlchemy implementation of SlotReservationRepository

Slot exclusivity comes from the partial unique index on
(event_id, start_time) for ACTIVE rows: a second insert for a held slot
fails at flush time with IntegrityError.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.slot_reservation_repository import SlotReservationRepository
from src.domain.slot_reservation import SlotReservation, ReservationStatus


class SqlAlchemySlotReservationRepository(SlotReservationRepository):
    """
    SQLAlchemy implementation of SlotReservationRepository

    Features:
    - Constraint-backed insert (no read-then-write window)
    - Conditional ACTIVE -> RELEASED/EXPIRED transitions
    - Bulk expiry sweep
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, reservation: SlotReservation) -> SlotReservation:
        """
        Insert a new ACTIVE reservation

        Raises:
            IntegrityError: If an ACTIVE reservation already holds the slot
        """
        self.session.add(reservation)
        await self.session.flush()
        await self.session.refresh(reservation)
        return reservation

    async def get_by_id(self, reservation_id: str) -> Optional[SlotReservation]:
        stmt = (
            select(SlotReservation)
            .where(SlotReservation.id == reservation_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_active_for_slot(
        self, event_id: str, start_time: datetime
    ) -> Optional[SlotReservation]:
        stmt = (
            select(SlotReservation)
            .where(
                SlotReservation.event_id == event_id,
                SlotReservation.start_time == start_time,
                SlotReservation.status == ReservationStatus.ACTIVE,
            )
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def end_if_active(
        self, reservation_id: str, status: ReservationStatus, ended_at: datetime
    ) -> bool:
        """
        Conditionally move an ACTIVE reservation to RELEASED or EXPIRED

        Returns:
            True if this call performed the transition
        """
        stmt = (
            update(SlotReservation)
            .where(
                SlotReservation.id == reservation_id,
                SlotReservation.status == ReservationStatus.ACTIVE,
            )
            .values(status=status, released_at=ended_at)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def expire_all_before(self, now: datetime) -> int:
        stmt = (
            update(SlotReservation)
            .where(
                SlotReservation.status == ReservationStatus.ACTIVE,
                SlotReservation.expires_at <= now,
            )
            .values(status=ReservationStatus.EXPIRED, released_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0
