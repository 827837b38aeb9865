"""AnnotateTransfer Use Case

Operator notes on a transfer. Metadata only, the status never changes.
"""

import logging
from datetime import datetime
from typing import Optional
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.transfer_record_repository import TransferRecordRepository
from src.app.repositories.transfer_event_repository import TransferEventRepository
from src.domain.transfer_event import TransferEvent, TransferEventType
from .dtos import AnnotateTransferCommandDTO, TransferRecordDTO, to_transfer_dto

logger = logging.getLogger(__name__)


class AnnotateTransfer:
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
        command: AnnotateTransferCommandDTO,
        now: Optional[datetime] = None,
    ) -> Result[TransferRecordDTO]:
        now = now or datetime.utcnow()

        try:
            record = await self.transfer_repo.get_by_id(transfer_id)
            if not record:
                return Return.err(
                    Error(code="TRANSFER_NOT_FOUND", message=f"Transfer {transfer_id} not found")
                )

            record.admin_notes = command.note
            record.admin_user_id = command.operator_id
            record.admin_updated_at = now

            updated = await self.transfer_repo.update(record)
            await self.event_repo.create(
                TransferEvent(
                    transfer_id=transfer_id,
                    event_type=TransferEventType.ANNOTATED,
                    from_status=updated.status,
                    to_status=updated.status,
                    actor=command.operator_id,
                    note=command.note,
                    created_at=now,
                )
            )
            await self.uow.commit()

            logger.info(f"Transfer {transfer_id} annotated by {command.operator_id} at {now.isoformat()}")
            return Return.ok(to_transfer_dto(updated))

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="ANNOTATE_TRANSFER_FAILED",
                    message="Failed to annotate transfer",
                    reason=str(e),
                )
            )
