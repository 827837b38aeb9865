"""ApproveTransfer Use Case

Manual override: an operator sends a transfer that needs approval back to
the scheduler.
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
from .dtos import ApproveTransferCommandDTO, TransferRecordDTO, to_transfer_dto

logger = logging.getLogger(__name__)


class ApproveTransfer:
    """
    Use Case: Approve a transfer for another automatic attempt

    Business Rules:
    1. Only REQUIRES_APPROVAL records can be approved
    2. Approval clears the flag, resets retry_count to 0 and makes the
       record due immediately (REQUIRES_APPROVAL -> PENDING)
    3. The operator and note are recorded on the record and in the audit trail
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
        command: ApproveTransferCommandDTO,
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
                        message=f"Only transfers requiring approval can be approved (status: {record.status.value})",
                    )
                )

            record.status = TransferStatus.PENDING
            record.requires_approval = False
            record.retry_count = 0
            record.next_attempt_at = now
            record.admin_user_id = command.operator_id
            record.admin_updated_at = now
            if command.note:
                record.admin_notes = command.note

            updated = await self.transfer_repo.update(record)
            await self.event_repo.create(
                TransferEvent(
                    transfer_id=transfer_id,
                    event_type=TransferEventType.APPROVED,
                    from_status=TransferStatus.REQUIRES_APPROVAL,
                    to_status=TransferStatus.PENDING,
                    actor=command.operator_id,
                    note=command.note,
                    created_at=now,
                )
            )
            await self.uow.commit()

            logger.info(
                f"Transfer {transfer_id} approved by {command.operator_id} at {now.isoformat()}"
                + (f": {command.note}" if command.note else "")
            )
            return Return.ok(to_transfer_dto(updated))

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="APPROVE_TRANSFER_FAILED",
                    message="Failed to approve transfer",
                    reason=str(e),
                )
            )
