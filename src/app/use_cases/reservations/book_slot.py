"""BookSlot Use Case

Entry point of a guest booking: opens a checkout session and holds the slot
for it. Repeated submissions with the same idempotency key replay the first
successful result instead of opening another session.
"""

import logging
from typing import Optional
from libs.result import Result, Return, Error
from src.app.services.idempotency_cache import IdempotencyCache
from src.app.services.payment_gateway import CheckoutGateway, CheckoutSessionRequest
from src.domain.settlement_error import SettlementError
from .dtos import BookSlotCommandDTO, BookingResponseDTO, ReserveSlotCommandDTO
from .reserve_slot import ReserveSlot

logger = logging.getLogger(__name__)


class BookSlot:
    """
    Use Case: Book a slot through a checkout session

    Business Rules:
    1. Idempotency: a cached result for the key is returned as-is
    2. The checkout session exists before the slot is held, so the hold
       always refers to a payable session
    3. If the slot cannot be held, the session is expired (compensation)
    4. Only successful bookings are cached

    Flow:
    1. Idempotency cache lookup
    2. Create checkout session
    3. ReserveSlot with the session id
    4. On failure expire the session and return the reservation error
    5. Cache and return the booking
    """

    def __init__(
        self,
        cache: IdempotencyCache,
        checkout_gateway: CheckoutGateway,
        reserve_slot: ReserveSlot,
        success_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
    ):
        self.cache = cache
        self.checkout_gateway = checkout_gateway
        self.reserve_slot = reserve_slot
        self.success_url = success_url
        self.cancel_url = cancel_url

    async def execute(self, command: BookSlotCommandDTO) -> Result[BookingResponseDTO]:
        """
        Execute booking

        Args:
            command: BookSlotCommandDTO with idempotency key, slot and price

        Returns:
            Result[BookingResponseDTO]: Checkout session plus held reservation
        """
        cached = await self.cache.get(command.idempotency_key)
        if cached is not None:
            try:
                response = BookingResponseDTO.model_validate(cached)
                return Return.ok(response.model_copy(update={"replayed": True}))
            except ValueError as e:
                logger.error(f"Discarding unusable cached booking {command.idempotency_key}: {e}")
                await self.cache.delete(command.idempotency_key)

        try:
            session = await self.checkout_gateway.create_session(
                CheckoutSessionRequest(
                    event_id=command.event_id,
                    requester_id=command.requester_id,
                    amount=command.amount,
                    currency=command.currency,
                    start_time=command.start_time,
                    end_time=command.end_time,
                    success_url=self.success_url,
                    cancel_url=self.cancel_url,
                    metadata=command.metadata,
                )
            )
        except SettlementError as e:
            logger.error(f"Checkout session creation failed for {command.event_id}: {e}")
            return Return.err(
                Error(
                    code="CHECKOUT_FAILED",
                    message="Failed to create checkout session",
                    reason=str(e),
                )
            )

        reserved = await self.reserve_slot.execute(
            ReserveSlotCommandDTO(
                event_id=command.event_id,
                requester_id=command.requester_id,
                start_time=command.start_time,
                end_time=command.end_time,
                checkout_session_id=session.session_id,
            )
        )

        if reserved.is_err():
            await self._expire_session(session.session_id)
            return Return.err(reserved.error)

        reservation = reserved.value
        if reservation.checkout_session_id != session.session_id:
            # Requester already holds this slot under an earlier checkout
            await self._expire_session(session.session_id)
            return Return.err(
                Error(
                    code="SLOT_ALREADY_HELD",
                    message="You already hold this time slot with a pending checkout",
                    reason=f"reservation_id={reservation.reservation_id}",
                )
            )

        response = BookingResponseDTO(
            session_id=session.session_id,
            url=session.url,
            reservation_id=reservation.reservation_id,
            expires_at=reservation.expires_at,
        )
        await self.cache.set(command.idempotency_key, response.model_dump(mode="json"))

        return Return.ok(response)

    async def _expire_session(self, session_id: str):
        try:
            await self.checkout_gateway.expire_session(session_id)
        except SettlementError as e:
            logger.error(f"Failed to expire checkout session {session_id}: {e}")
