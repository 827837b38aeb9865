"""Booking API Routes

FastAPI routes for slot reservations and checkout-backed bookings.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Header, status
from sqlmodel.ext.asyncio.session import AsyncSession

from libs.result import Error
from src.api.error import ClientError
from src.api.schemas.booking_request import (
    BookSlotRequestSchema,
    ReleaseReservationRequestSchema,
    ReserveSlotRequestSchema,
)
from src.app.use_cases.reservations.dtos import (
    BookingResponseDTO,
    BookSlotCommandDTO,
    ReservationResponseDTO,
    ReserveSlotCommandDTO,
)
from src.app.use_cases.reservations.book_slot import BookSlot
from src.app.use_cases.reservations.release_slot import ReleaseSlot
from src.app.use_cases.reservations.reserve_slot import ReserveSlot
from src.adapter.repositories.slot_reservation_repository import SqlAlchemySlotReservationRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import get_config, get_idempotency_cache, get_payment_gateway, get_session

router = APIRouter(tags=["Bookings"])

SLOT_CONFLICT_RESPONSE = {
    "description": "Slot is held by another requester",
    "content": {
        "application/json": {
            "example": {
                "error": {
                    "code": "SLOT_CONFLICT",
                    "message": "Slot evt_R1 2025-06-01T10:00:00-2025-06-01T11:00:00 is already reserved"
                }
            }
        }
    }
}


@router.post(
    "/bookings",
    response_model=BookingResponseDTO,
    status_code=status.HTTP_200_OK,
    responses={
        409: SLOT_CONFLICT_RESPONSE,
        502: {"description": "Payment processor rejected the checkout session"},
    }
)
async def book_slot(
    request: BookSlotRequestSchema,
    idempotency_key: Optional[str] = Header(default=None),
    session: AsyncSession = Depends(get_session),
    cache=Depends(get_idempotency_cache),
    checkout_gateway=Depends(get_payment_gateway),
    config=Depends(get_config),
):
    """
    Book a slot: open a checkout session and hold the slot for it.

    Retrying with the same `Idempotency-Key` header within the cache TTL
    returns the first successful response with `replayed: true` and opens
    no new checkout session.

    **Returns:**
    - 200: Checkout session and held reservation
    - 409: Slot held by someone else
    - 502: Payment processor error
    - 400: Missing Idempotency-Key or invalid body
    """
    if not idempotency_key:
        raise ClientError(Error(code="VALIDATION_ERROR", message="Idempotency-Key header is required"))

    reserve_slot = ReserveSlot(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemySlotReservationRepository(session),
        hold_minutes=config.RESERVATION_HOLD_MINUTES,
    )

    command = BookSlotCommandDTO(
        idempotency_key=idempotency_key,
        event_id=request.event_id,
        requester_id=request.requester_id,
        start_time=request.start_time,
        end_time=request.end_time,
        amount=request.amount,
        currency=request.currency,
        metadata=request.metadata,
    )

    use_case = BookSlot(
        cache,
        checkout_gateway,
        reserve_slot,
        success_url=config.CHECKOUT_SUCCESS_URL,
        cancel_url=config.CHECKOUT_CANCEL_URL,
    )
    result = await use_case.execute(command)

    if result.is_err():
        raise ClientError.from_error(result.error)

    return result.value


@router.post(
    "/reservations",
    response_model=ReservationResponseDTO,
    status_code=status.HTTP_201_CREATED,
    responses={409: SLOT_CONFLICT_RESPONSE}
)
async def reserve_slot(
    request: ReserveSlotRequestSchema,
    session: AsyncSession = Depends(get_session),
    config=Depends(get_config),
):
    """
    Hold a slot for a requester.

    At most one active reservation exists per (event_id, start_time);
    a different end time for the same start still conflicts.
    Re-reserving a slot the requester already holds returns the existing
    reservation with `replayed: true`.
    """
    use_case = ReserveSlot(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemySlotReservationRepository(session),
        hold_minutes=config.RESERVATION_HOLD_MINUTES,
    )
    result = await use_case.execute(ReserveSlotCommandDTO(**request.model_dump()))

    if result.is_err():
        raise ClientError.from_error(result.error)

    return result.value


@router.post(
    "/reservations/{reservation_id}/release",
    response_model=ReservationResponseDTO,
    status_code=status.HTTP_200_OK,
    responses={
        403: {"description": "Reservation belongs to another requester"},
        404: {"description": "Reservation not found"},
    }
)
async def release_reservation(
    reservation_id: str,
    request: ReleaseReservationRequestSchema,
    session: AsyncSession = Depends(get_session),
):
    """
    Release a held slot. Only the requester holding it may release it.

    Releasing a reservation that is no longer active is a no-op.
    """
    use_case = ReleaseSlot(SqlAlchemyUnitOfWork(session), SqlAlchemySlotReservationRepository(session))
    result = await use_case.execute(
        reservation_id,
        requester_id=request.requester_id,
    )

    if result.is_err():
        raise ClientError.from_error(result.error)

    return result.value
