from .base import BaseModel, generate_uuid
from .transfer_record import TransferRecord, TransferStatus
from .transfer_event import TransferEvent, TransferEventType
from .slot_reservation import SlotReservation, ReservationStatus
from .settlement_error import SettlementError, SettlementErrorKind

__all__ = [
    "BaseModel",
    "generate_uuid",
    "TransferRecord",
    "TransferStatus",
    "TransferEvent",
    "TransferEventType",
    "SlotReservation",
    "ReservationStatus",
    "SettlementError",
    "SettlementErrorKind",
]
