"""ExpireReservations Use Case

Sweeps lapsed holds so abandoned checkouts stop blocking their slots.
"""

import logging
from datetime import datetime
from typing import Optional
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.slot_reservation_repository import SlotReservationRepository
from .dtos import ExpireReservationsResultDTO

logger = logging.getLogger(__name__)


class ExpireReservations:
    def __init__(self, uow: UnitOfWork, reservation_repo: SlotReservationRepository):
        self.uow = uow
        self.reservation_repo = reservation_repo

    async def execute(self, now: Optional[datetime] = None) -> Result[ExpireReservationsResultDTO]:
        now = now or datetime.utcnow()

        try:
            expired_count = await self.reservation_repo.expire_all_before(now)
            await self.uow.commit()

            if expired_count:
                logger.info(f"Expired {expired_count} lapsed slot reservations")

            return Return.ok(
                ExpireReservationsResultDTO(expired_count=expired_count, executed_at=now)
            )

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="EXPIRE_RESERVATIONS_FAILED",
                    message="Failed to expire reservations",
                    reason=str(e),
                )
            )
