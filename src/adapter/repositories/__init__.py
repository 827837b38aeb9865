from .slot_reservation_repository import SqlAlchemySlotReservationRepository
from .transfer_record_repository import SqlAlchemyTransferRecordRepository
from .transfer_event_repository import SqlAlchemyTransferEventRepository

__all__ = [
    "SqlAlchemySlotReservationRepository",
    "SqlAlchemyTransferRecordRepository",
    "SqlAlchemyTransferEventRepository",
]
