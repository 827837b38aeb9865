"""Request schemas for Booking API

Pydantic models for validating incoming HTTP requests.
"""

from datetime import datetime
from typing import Dict, Optional
from pydantic import BaseModel, Field, model_validator


class SlotRequestSchema(BaseModel):
    event_id: str = Field(..., min_length=1, description="Bookable event/resource identifier")
    requester_id: str = Field(..., min_length=1, description="Guest e-mail or user id")
    start_time: datetime = Field(..., description="Slot start")
    end_time: datetime = Field(..., description="Slot end")

    @model_validator(mode="after")
    def validate_window(self):
        """Ensure the slot ends after it starts"""
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class BookSlotRequestSchema(SlotRequestSchema):
    """
    Request schema for booking a slot

    Used for POST /bookings endpoint. The idempotency key travels in the
    Idempotency-Key header.
    """

    amount: int = Field(..., gt=0, description="Price in minor units")
    currency: str = Field(default="eur", min_length=3, max_length=3, description="ISO 4217 code")
    metadata: Dict[str, str] = Field(default_factory=dict, description="Forwarded to checkout")

    class Config:
        json_schema_extra = {
            "example": {
                "event_id": "evt_R1",
                "requester_id": "guest@example.com",
                "start_time": "2025-06-01T10:00:00",
                "end_time": "2025-06-01T11:00:00",
                "amount": 10000,
                "currency": "eur",
            }
        }


class ReserveSlotRequestSchema(SlotRequestSchema):
    """
    Request schema for reserving a slot

    Used for POST /reservations endpoint.
    """

    checkout_session_id: Optional[str] = Field(default=None, description="Paying checkout session")


class ReleaseReservationRequestSchema(BaseModel):
    requester_id: str = Field(..., min_length=1, description="Must match the reservation holder")
