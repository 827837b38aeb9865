from .slot_reservation_repository import SlotReservationRepository
from .transfer_record_repository import TransferRecordRepository
from .transfer_event_repository import TransferEventRepository

__all__ = [
    "SlotReservationRepository",
    "TransferRecordRepository",
    "TransferEventRepository",
]
