"""ResolveTransfer Use Case

Manual override: an operator closes a transfer that needs approval without
another automatic attempt, either because it was paid out-of-band or
because it is abandoned.
"""

import logging
from datetime import datetime
from typing import Optional
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.transfer_record_repository import TransferRecordRepository
from src.app.repositories.transfer_event_repository import TransferEventRepository
from src.domain.transfer_event import TransferEvent, TransferEventType
from src.domain.transfer_record import TransferStatus
from .dtos import ResolutionOutcome, ResolveTransferCommandDTO, TransferRecordDTO, to_transfer_dto

logger = logging.getLogger(__name__)


class ResolveTransfer:
    """
    Use Case: Resolve a transfer requiring approval

    Business Rules:
    1. Only REQUIRES_APPROVAL records can be resolved
    2. outcome=completed -> COMPLETED (transfer_reference may be supplied)
    3. outcome=failed -> FAILED (terminal, never retried)
    """

    def __init__(
        self,
        uow: UnitOfWork,
        transfer_repo: TransferRecordRepository,
        event_repo: TransferEventRepository,
    ):
        self.uow = uow
        self.transfer_repo = transfer_repo
        self.event_repo = event_repo

    async def execute(
        self,
        transfer_id: int,
        command: ResolveTransferCommandDTO,
        now: Optional[datetime] = None,
    ) -> Result[TransferRecordDTO]:
        now = now or datetime.utcnow()

        try:
            record = await self.transfer_repo.get_by_id(transfer_id)
            if not record:
                return Return.err(
                    Error(code="TRANSFER_NOT_FOUND", message=f"Transfer {transfer_id} not found")
                )

            if record.status != TransferStatus.REQUIRES_APPROVAL:
                return Return.err(
                    Error(
                        code="INVALID_TRANSFER_STATE",
                        message=f"Only transfers requiring approval can be resolved (status: {record.status.value})",
                    )
                )

            if command.outcome == ResolutionOutcome.COMPLETED:
                record.status = TransferStatus.COMPLETED
                record.completed_at = now
                if command.transfer_reference:
                    record.transfer_reference = command.transfer_reference
            else:
                record.status = TransferStatus.FAILED

            record.requires_approval = False
            record.admin_user_id = command.operator_id
            record.admin_updated_at = now
            if command.note:
                record.admin_notes = command.note

            updated = await self.transfer_repo.update(record)
            await self.event_repo.create(
                TransferEvent(
                    transfer_id=transfer_id,
                    event_type=TransferEventType.RESOLVED,
                    from_status=TransferStatus.REQUIRES_APPROVAL,
                    to_status=updated.status,
                    actor=command.operator_id,
                    note=command.note,
                    created_at=now,
                )
            )
            await self.uow.commit()

            logger.info(
                f"Transfer {transfer_id} resolved as {command.outcome.value} "
                f"by {command.operator_id} at {now.isoformat()}"
            )
            return Return.ok(to_transfer_dto(updated))

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="RESOLVE_TRANSFER_FAILED",
                    message="Failed to resolve transfer",
                    reason=str(e),
                )
            )
