"""Data Transfer Objects for Reservation Use Cases

Pydantic models for command inputs and response outputs.
"""

from datetime import datetime
from typing import Dict, Optional
from pydantic import BaseModel, Field


class ReserveSlotCommandDTO(BaseModel):
    """
    Command DTO for reserving a slot

    Used as input to ReserveSlot use case.
    """

    event_id: str = Field(
        ...,
        description="Bookable event/resource identifier"
    )

    requester_id: str = Field(
        ...,
        description="Guest e-mail or user id"
    )

    start_time: datetime = Field(
        ...,
        description="Slot start"
    )

    end_time: datetime = Field(
        ...,
        description="Slot end (must be after start_time)"
    )

    checkout_session_id: Optional[str] = Field(
        default=None,
        description="Checkout session paying for this slot"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "event_id": "evt_R1",
                "requester_id": "guest@example.com",
                "start_time": "2025-06-01T10:00:00",
                "end_time": "2025-06-01T11:00:00",
                "checkout_session_id": "cs_test_a1",
            }
        }


class ReservationResponseDTO(BaseModel):
    """
    Response DTO for reservation operations

    Returned by ReserveSlot and ReleaseSlot.
    """

    reservation_id: str = Field(..., description="Reservation ID")
    event_id: str = Field(..., description="Event/resource identifier")
    requester_id: str = Field(..., description="Holder of the reservation")
    start_time: datetime = Field(..., description="Slot start")
    end_time: datetime = Field(..., description="Slot end")
    expires_at: datetime = Field(..., description="When the hold lapses")
    checkout_session_id: Optional[str] = Field(default=None, description="Paying checkout session")
    status: str = Field(..., description="active, released or expired")
    replayed: bool = Field(
        default=False,
        description="True when the requester already held this slot"
    )


class ExpireReservationsResultDTO(BaseModel):
    """
    Result DTO for the reservation expiry sweep
    """

    expired_count: int = Field(..., description="Reservations moved to expired")
    executed_at: datetime = Field(..., description="Sweep reference time")


class BookSlotCommandDTO(BaseModel):
    """
    Command DTO for booking a slot

    Used as input to BookSlot use case. Repeating the same idempotency_key
    within the cache TTL replays the first successful result.
    """

    idempotency_key: str = Field(
        ...,
        min_length=1,
        description="Client token identifying this logical booking attempt"
    )

    event_id: str = Field(..., description="Bookable event/resource identifier")
    requester_id: str = Field(..., description="Guest e-mail or user id")
    start_time: datetime = Field(..., description="Slot start")
    end_time: datetime = Field(..., description="Slot end")

    amount: int = Field(
        ...,
        gt=0,
        description="Price in minor units"
    )

    currency: str = Field(default="eur", description="ISO 4217 currency code")

    metadata: Dict[str, str] = Field(
        default_factory=dict,
        description="Extra metadata forwarded to the checkout session"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "idempotency_key": "book:guest@example.com:evt_R1:2025-06-01T10:00",
                "event_id": "evt_R1",
                "requester_id": "guest@example.com",
                "start_time": "2025-06-01T10:00:00",
                "end_time": "2025-06-01T11:00:00",
                "amount": 10000,
                "currency": "eur",
            }
        }


class BookingResponseDTO(BaseModel):
    """
    Response DTO for BookSlot

    This is the value stored in the idempotency cache.
    """

    session_id: str = Field(..., description="Checkout session id")
    url: Optional[str] = Field(default=None, description="Hosted checkout URL")
    reservation_id: str = Field(..., description="Slot reservation held for the session")
    expires_at: datetime = Field(..., description="When the reservation lapses")
    replayed: bool = Field(default=False, description="True when served from the idempotency cache")
