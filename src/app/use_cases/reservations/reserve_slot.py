"""ReserveSlot Use Case

Grants a bookable slot to at most one requester at a time. The partial
unique index on active reservations decides races; this use case only
interprets the outcome of the insert.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy.exc import IntegrityError
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.slot_reservation_repository import SlotReservationRepository
from src.domain.slot_reservation import SlotReservation, ReservationStatus
from .dtos import ReserveSlotCommandDTO, ReservationResponseDTO

logger = logging.getLogger(__name__)


class ReserveSlot:
    """
    Use Case: Reserve a slot for one requester

    Business Rules:
    1. At most one ACTIVE reservation per (event_id, start_time)
    2. The same requester re-reserving a held slot gets their own hold back
    3. A holder whose hold already lapsed is expired and the slot re-granted
    4. Losing the race is SLOT_CONFLICT, an expected outcome

    Flow:
    1. Insert ACTIVE reservation and commit
    2. On uniqueness violation, roll back and read the current holder
    3. Same requester -> replay; lapsed holder -> expire and insert once more
    4. Otherwise -> SLOT_CONFLICT
    """

    MAX_INSERT_ATTEMPTS = 2

    def __init__(
        self,
        uow: UnitOfWork,
        reservation_repo: SlotReservationRepository,
        hold_minutes: int = 30,
    ):
        self.uow = uow
        self.reservation_repo = reservation_repo
        self.hold_minutes = hold_minutes

    async def execute(
        self, command: ReserveSlotCommandDTO, now: Optional[datetime] = None
    ) -> Result[ReservationResponseDTO]:
        """
        Execute slot reservation

        Args:
            command: ReserveSlotCommandDTO with event, requester and slot bounds
            now: Reference time (defaults to utcnow)

        Returns:
            Result[ReservationResponseDTO]: Granted reservation or error
        """
        now = now or datetime.utcnow()

        if command.end_time <= command.start_time:
            return Return.err(
                Error(
                    code="INVALID_SLOT",
                    message="Slot end_time must be after start_time",
                    reason=f"start_time={command.start_time}, end_time={command.end_time}",
                )
            )

        try:
            for _ in range(self.MAX_INSERT_ATTEMPTS):
                reservation = SlotReservation(
                    event_id=command.event_id,
                    requester_id=command.requester_id,
                    start_time=command.start_time,
                    end_time=command.end_time,
                    expires_at=now + timedelta(minutes=self.hold_minutes),
                    checkout_session_id=command.checkout_session_id,
                    status=ReservationStatus.ACTIVE,
                    created_at=now,
                )

                try:
                    created = await self.reservation_repo.create(reservation)
                    await self.uow.commit()
                except IntegrityError:
                    await self.uow.rollback()
                else:
                    logger.info(
                        f"Slot {command.event_id}@{command.start_time.isoformat()} "
                        f"reserved by {command.requester_id} ({created.id})"
                    )
                    return Return.ok(self._to_response_dto(created))

                holder = await self.reservation_repo.get_active_for_slot(
                    command.event_id, command.start_time
                )

                if holder is None:
                    # Holder left between our insert and read
                    continue

                if holder.expires_at <= now:
                    await self.reservation_repo.end_if_active(
                        holder.id, ReservationStatus.EXPIRED, now
                    )
                    await self.uow.commit()
                    logger.info(f"Expired lapsed reservation {holder.id} while re-granting slot")
                    continue

                if holder.requester_id == command.requester_id:
                    return Return.ok(self._to_response_dto(holder, replayed=True))

                return self._conflict(command, holder)

            holder = await self.reservation_repo.get_active_for_slot(
                command.event_id, command.start_time
            )
            return self._conflict(command, holder)

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="RESERVE_SLOT_FAILED",
                    message="Failed to reserve slot",
                    reason=str(e),
                )
            )

    def _conflict(
        self, command: ReserveSlotCommandDTO, holder: Optional[SlotReservation]
    ) -> Result[ReservationResponseDTO]:
        logger.info(
            f"Slot {command.event_id}@{command.start_time.isoformat()} already held; "
            f"rejected {command.requester_id}"
        )
        return Return.err(
            Error(
                code="SLOT_CONFLICT",
                message="This time slot is currently reserved by another requester",
                reason=f"expires_at={holder.expires_at.isoformat()}" if holder else None,
            )
        )

    def _to_response_dto(
        self, reservation: SlotReservation, replayed: bool = False
    ) -> ReservationResponseDTO:
        return ReservationResponseDTO(
            reservation_id=reservation.id,
            event_id=reservation.event_id,
            requester_id=reservation.requester_id,
            start_time=reservation.start_time,
            end_time=reservation.end_time,
            expires_at=reservation.expires_at,
            checkout_session_id=reservation.checkout_session_id,
            status=reservation.status.value,
            replayed=replayed,
        )
