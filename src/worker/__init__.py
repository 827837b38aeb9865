"""Background workers for the settlement service"""
from .transfer_scheduler import TransferSchedulerWorker
from .reservation_sweeper import ReservationSweeperWorker

__all__ = ["TransferSchedulerWorker", "ReservationSweeperWorker"]
