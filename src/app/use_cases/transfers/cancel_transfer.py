"""CancelTransfer Use Case

Stops or undoes a provider payout when its booking is refunded.
"""

import logging
from datetime import datetime
from typing import Optional
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.payment_gateway import SettlementGateway
from src.app.repositories.transfer_record_repository import TransferRecordRepository
from src.app.repositories.transfer_event_repository import TransferEventRepository
from src.domain.settlement_error import SettlementError
from src.domain.transfer_event import TransferEvent, TransferEventType
from src.domain.transfer_record import CANCELLABLE_STATUSES, TransferStatus
from .dtos import CancelTransferCommandDTO, TransferRecordDTO, to_transfer_dto
from .process_due_transfers import reversal_idempotency_key

logger = logging.getLogger(__name__)


class CancelTransfer:
    """
    Use Case: Cancel a transfer

    Business Rules:
    1. Not being processed (PENDING/RETRY_SCHEDULED/REQUIRES_APPROVAL) -> CANCELLED
    2. Attempt in flight -> cancel_requested; the scheduler applies it on finalize
    3. COMPLETED, or REQUIRES_APPROVAL after a failed reversal (transfer_reference
       set) -> compensating reversal -> REVERSED
    4. Already CANCELLED or REVERSED -> no-op
    5. FAILED -> INVALID_TRANSFER_STATE
    """

    MAX_ATTEMPTS = 2

    def __init__(
        self,
        uow: UnitOfWork,
        transfer_repo: TransferRecordRepository,
        event_repo: TransferEventRepository,
        settlement_gateway: SettlementGateway,
    ):
        self.uow = uow
        self.transfer_repo = transfer_repo
        self.event_repo = event_repo
        self.settlement_gateway = settlement_gateway

    async def execute(
        self,
        transfer_id: int,
        command: Optional[CancelTransferCommandDTO] = None,
        now: Optional[datetime] = None,
    ) -> Result[TransferRecordDTO]:
        command = command or CancelTransferCommandDTO()
        now = now or datetime.utcnow()

        try:
            # The record can move between our read and write; re-read once
            for _ in range(self.MAX_ATTEMPTS):
                record = await self.transfer_repo.get_by_id(transfer_id)
                if not record:
                    return Return.err(
                        Error(
                            code="TRANSFER_NOT_FOUND",
                            message=f"Transfer {transfer_id} not found",
                        )
                    )

                status = record.status

                if status in (TransferStatus.CANCELLED, TransferStatus.REVERSED):
                    return Return.ok(to_transfer_dto(record))

                if status == TransferStatus.FAILED:
                    return Return.err(
                        Error(
                            code="INVALID_TRANSFER_STATE",
                            message=f"Transfer {transfer_id} is {status.value} and cannot be cancelled",
                        )
                    )

                if status == TransferStatus.COMPLETED or (
                    status == TransferStatus.REQUIRES_APPROVAL and record.transfer_reference
                ):
                    return await self._reverse(record, command, now)

                if status in CANCELLABLE_STATUSES:
                    if await self.transfer_repo.cancel_if_unclaimed(transfer_id, now):
                        await self._record_event(
                            transfer_id, TransferEventType.CANCELLED, status,
                            TransferStatus.CANCELLED, command,
                        )
                        await self.uow.commit()
                        logger.info(f"Transfer {transfer_id} cancelled by {command.actor}")
                        return Return.ok(to_transfer_dto(await self.transfer_repo.get_by_id(transfer_id)))

                    if await self.transfer_repo.request_cancel(transfer_id, now):
                        await self._record_event(
                            transfer_id, TransferEventType.CANCEL_REQUESTED, status, status, command,
                        )
                        await self.uow.commit()
                        logger.info(
                            f"Transfer {transfer_id} is being processed; cancellation requested by {command.actor}"
                        )
                        return Return.ok(to_transfer_dto(await self.transfer_repo.get_by_id(transfer_id)))

                await self.uow.rollback()

            return Return.err(
                Error(
                    code="INVALID_TRANSFER_STATE",
                    message=f"Transfer {transfer_id} changed state during cancellation, try again",
                )
            )

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="CANCEL_TRANSFER_FAILED",
                    message="Failed to cancel transfer",
                    reason=str(e),
                )
            )

    async def _reverse(self, record, command: CancelTransferCommandDTO, now: datetime):
        transfer_id = record.id
        from_status = record.status
        try:
            reversal_reference = await self.settlement_gateway.reverse_transfer(
                record.transfer_reference, record.provider_amount, reversal_idempotency_key(record)
            )
        except SettlementError as e:
            logger.error(f"Reversal of transfer {transfer_id} failed: {e}")
            return Return.err(
                Error(
                    code="REVERSAL_FAILED",
                    message=f"Failed to reverse transfer {transfer_id}",
                    reason=str(e),
                )
            )

        record.status = TransferStatus.REVERSED
        record.reversal_reference = reversal_reference
        record.requires_approval = False
        record.cancel_requested = False
        updated = await self.transfer_repo.update(record)
        await self._record_event(
            transfer_id, TransferEventType.REVERSED, from_status,
            TransferStatus.REVERSED, command, extra=f"reversal_reference={reversal_reference}",
        )
        await self.uow.commit()

        logger.info(f"Transfer {transfer_id} reversed by {command.actor} ({reversal_reference})")
        return Return.ok(to_transfer_dto(updated))

    async def _record_event(
        self,
        transfer_id: int,
        event_type: TransferEventType,
        from_status: TransferStatus,
        to_status: TransferStatus,
        command: CancelTransferCommandDTO,
        extra: Optional[str] = None,
    ):
        note = "; ".join(part for part in (command.reason, extra) if part) or None
        await self.event_repo.create(
            TransferEvent(
                transfer_id=transfer_id,
                event_type=event_type,
                from_status=from_status,
                to_status=to_status,
                actor=command.actor,
                note=note,
            )
        )
