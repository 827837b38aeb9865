"""Transfer settlement use cases"""
from .create_transfer_record import CreateTransferRecord
from .process_due_transfers import ProcessDueTransfers
from .cancel_transfer import CancelTransfer
from .approve_transfer import ApproveTransfer
from .annotate_transfer import AnnotateTransfer
from .resolve_transfer import ResolveTransfer
from .list_transfers import ListTransfers
from .get_transfer import GetTransfer
from .dtos import (
    CreateTransferCommandDTO,
    CreateTransferResponseDTO,
    TransferRecordDTO,
    TransferEventDTO,
    TransferDetailDTO,
    ListTransfersResponseDTO,
    TransitionOutcome,
    TransitionResultDTO,
    SchedulerRunSummaryDTO,
    CancelTransferCommandDTO,
    ApproveTransferCommandDTO,
    AnnotateTransferCommandDTO,
    ResolutionOutcome,
    ResolveTransferCommandDTO,
)

__all__ = [
    "CreateTransferRecord",
    "ProcessDueTransfers",
    "CancelTransfer",
    "ApproveTransfer",
    "AnnotateTransfer",
    "ResolveTransfer",
    "ListTransfers",
    "GetTransfer",
    "CreateTransferCommandDTO",
    "CreateTransferResponseDTO",
    "TransferRecordDTO",
    "TransferEventDTO",
    "TransferDetailDTO",
    "ListTransfersResponseDTO",
    "TransitionOutcome",
    "TransitionResultDTO",
    "SchedulerRunSummaryDTO",
    "CancelTransferCommandDTO",
    "ApproveTransferCommandDTO",
    "AnnotateTransferCommandDTO",
    "ResolutionOutcome",
    "ResolveTransferCommandDTO",
]
