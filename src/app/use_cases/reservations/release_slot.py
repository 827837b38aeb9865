"""ReleaseSlot Use Case

Gives a held slot back, e.g. when the guest abandons payment.
"""

import logging
from datetime import datetime
from typing import Optional
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.slot_reservation_repository import SlotReservationRepository
from src.domain.slot_reservation import ReservationStatus, SlotReservation
from .dtos import ReservationResponseDTO

logger = logging.getLogger(__name__)


class ReleaseSlot:
    """
    Use Case: Release a slot reservation

    Business Rules:
    1. Only ACTIVE reservations transition (ACTIVE -> RELEASED)
    2. Releasing a released or expired reservation is a no-op success
    3. When requester_id is given it must match the holder
    """

    def __init__(self, uow: UnitOfWork, reservation_repo: SlotReservationRepository):
        self.uow = uow
        self.reservation_repo = reservation_repo

    async def execute(
        self,
        reservation_id: str,
        requester_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Result[ReservationResponseDTO]:
        now = now or datetime.utcnow()

        try:
            reservation = await self.reservation_repo.get_by_id(reservation_id)
            if not reservation:
                return Return.err(
                    Error(
                        code="RESERVATION_NOT_FOUND",
                        message=f"Reservation {reservation_id} not found",
                    )
                )

            if requester_id is not None and reservation.requester_id != requester_id:
                return Return.err(
                    Error(
                        code="RESERVATION_FORBIDDEN",
                        message="Reservation is held by another requester",
                        reason=f"requester_id={requester_id}",
                    )
                )

            if reservation.status != ReservationStatus.ACTIVE:
                return Return.ok(self._to_response_dto(reservation))

            released = await self.reservation_repo.end_if_active(
                reservation_id, ReservationStatus.RELEASED, now
            )
            await self.uow.commit()

            if released:
                logger.info(f"Reservation {reservation_id} released")

            reservation = await self.reservation_repo.get_by_id(reservation_id)
            return Return.ok(self._to_response_dto(reservation))

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="RELEASE_SLOT_FAILED",
                    message="Failed to release reservation",
                    reason=str(e),
                )
            )

    def _to_response_dto(self, reservation: SlotReservation) -> ReservationResponseDTO:
        return ReservationResponseDTO(
            reservation_id=reservation.id,
            event_id=reservation.event_id,
            requester_id=reservation.requester_id,
            start_time=reservation.start_time,
            end_time=reservation.end_time,
            expires_at=reservation.expires_at,
            checkout_session_id=reservation.checkout_session_id,
            status=reservation.status.value,
        )
