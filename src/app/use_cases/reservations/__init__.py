"""Slot reservation use cases"""
from .reserve_slot import ReserveSlot
from .release_slot import ReleaseSlot
from .expire_reservations import ExpireReservations
from .book_slot import BookSlot
from .dtos import (
    ReserveSlotCommandDTO,
    ReservationResponseDTO,
    ExpireReservationsResultDTO,
    BookSlotCommandDTO,
    BookingResponseDTO,
)

__all__ = [
    "ReserveSlot",
    "ReleaseSlot",
    "ExpireReservations",
    "BookSlot",
    "ReserveSlotCommandDTO",
    "ReservationResponseDTO",
    "ExpireReservationsResultDTO",
    "BookSlotCommandDTO",
    "BookingResponseDTO",
]
