"""Slot Reservation Repository Interface

Defines the contract for slot reservation persistence operations.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from src.domain.slot_reservation import SlotReservation, ReservationStatus


class SlotReservationRepository(ABC):
    """
    Repository interface for SlotReservation persistence

    Slot exclusivity is enforced by the storage layer: create() fails with
    IntegrityError when another ACTIVE reservation holds the same slot.
    """

    @abstractmethod
    async def create(self, reservation: SlotReservation) -> SlotReservation:
        """
        Insert a new ACTIVE reservation

        Args:
            reservation: SlotReservation entity to persist

        Returns:
            Created SlotReservation

        Raises:
            IntegrityError: If an ACTIVE reservation already holds the slot
        """
        pass

    @abstractmethod
    async def get_by_id(self, reservation_id: str) -> Optional[SlotReservation]:
        """
        Retrieve reservation by ID

        Args:
            reservation_id: Reservation ID

        Returns:
            SlotReservation if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_active_for_slot(
        self, event_id: str, start_time: datetime
    ) -> Optional[SlotReservation]:
        """
        Retrieve the ACTIVE holder of a slot

        Args:
            event_id: Event/resource identifier
            start_time: Slot start

        Returns:
            Active SlotReservation if the slot is held, None otherwise
        """
        pass

    @abstractmethod
    async def end_if_active(
        self, reservation_id: str, status: ReservationStatus, ended_at: datetime
    ) -> bool:
        """
        Conditionally move an ACTIVE reservation to RELEASED or EXPIRED

        Args:
            reservation_id: Reservation ID
            status: Target status (RELEASED or EXPIRED)
            ended_at: Transition timestamp

        Returns:
            True if this call performed the transition, False if the
            reservation was not ACTIVE
        """
        pass

    @abstractmethod
    async def expire_all_before(self, now: datetime) -> int:
        """
        Expire every ACTIVE reservation whose hold lapsed at or before now

        Args:
            now: Reference time

        Returns:
            Number of reservations expired
        """
        pass
