"""Slot Reservation Domain Entity

Exclusivity claim on an (event, start time) slot held by one requester
while their payment is in progress.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import String, text
from src.domain.base import BaseModel, enum_column, generate_uuid


class ReservationStatus(str, Enum):
    """Slot reservation states"""
    ACTIVE = "active"
    RELEASED = "released"   # Payment abandoned or booking cancelled
    EXPIRED = "expired"     # Hold timed out


class SlotReservation(BaseModel, table=True):
    """
    Slot Reservation - One requester's hold on a bookable slot

    Domain Rules:
    - At most one ACTIVE reservation per (event_id, start_time), enforced by a
      partial unique index; the database is the arbiter, not application reads
    - A requester re-reserving a slot they already hold observes their own row
    - Rows only ever move ACTIVE -> RELEASED or ACTIVE -> EXPIRED
    """

    __tablename__ = "slot_reservations"
    __table_args__ = (
        Index(
            'uq_slot_reservations_active_slot',
            'event_id',
            'start_time',
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
        Index('ix_slot_reservations_expires_at', 'expires_at'),
        Index('ix_slot_reservations_requester', 'requester_id'),
    )

    id: str = Field(
        default_factory=generate_uuid,
        sa_column=Column(String(36), primary_key=True),
        description="Reservation identifier (UUID)"
    )

    event_id: str = Field(
        sa_column=Column(String(255), nullable=False),
        description="Bookable event/resource"
    )

    requester_id: str = Field(
        sa_column=Column(String(255), nullable=False),
        description="Guest identifier (e-mail or user id)"
    )

    start_time: datetime = Field(
        description="Slot start"
    )

    end_time: datetime = Field(
        description="Slot end"
    )

    expires_at: datetime = Field(
        description="When the hold lapses if payment does not complete"
    )

    checkout_session_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True, unique=True),
        description="Checkout session paying for this slot"
    )

    status: ReservationStatus = Field(
        default=ReservationStatus.ACTIVE,
        sa_column=enum_column(ReservationStatus),
        description="Reservation status"
    )

    released_at: Optional[datetime] = Field(
        default=None,
        description="When the reservation left ACTIVE"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Reservation creation timestamp"
    )

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": "8f14e45f-ceea-467f-a0e6-6b7c3a1f0d2e",
                "event_id": "evt_R1",
                "requester_id": "guest@example.com",
                "start_time": "2025-06-01T10:00:00",
                "end_time": "2025-06-01T11:00:00",
                "expires_at": "2025-05-20T09:30:00",
                "checkout_session_id": "cs_test_a1",
                "status": "active",
            }
        }
