"""CreateTransferRecord Use Case

Records the provider payout owed for a completed booking payment. Called
from the payment-completed webhook, which the processor may deliver more
than once.
"""

import logging
from typing import Mapping
from sqlalchemy.exc import IntegrityError
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.transfer_record_repository import TransferRecordRepository
from src.app.repositories.transfer_event_repository import TransferEventRepository
from src.domain.payout_schedule import (
    DEFAULT_JURISDICTION,
    compute_scheduled_transfer_time,
    required_delay_days_for,
)
from src.domain.transfer_event import TransferEvent, TransferEventType
from src.domain.transfer_record import TransferRecord, TransferStatus
from .dtos import CreateTransferCommandDTO, CreateTransferResponseDTO, to_transfer_dto

logger = logging.getLogger(__name__)


class CreateTransferRecord:
    """
    Use Case: Create a PENDING transfer record for a paid booking

    Business Rules:
    1. Idempotency: one record per payment_intent_id
    2. Conservation: provider_amount + platform_fee == amount, provider_amount > 0
    3. scheduled_transfer_time = session end + max(1, delay - payment aging) days
    4. next_attempt_at starts equal to scheduled_transfer_time
    """

    def __init__(
        self,
        uow: UnitOfWork,
        transfer_repo: TransferRecordRepository,
        event_repo: TransferEventRepository,
        delay_table: Mapping[str, int],
    ):
        self.uow = uow
        self.transfer_repo = transfer_repo
        self.event_repo = event_repo
        self.delay_table = delay_table

    async def execute(self, command: CreateTransferCommandDTO) -> Result[CreateTransferResponseDTO]:
        provider_amount = command.amount - command.platform_fee
        if command.platform_fee < 0 or provider_amount <= 0:
            return Return.err(
                Error(
                    code="INVALID_AMOUNTS",
                    message="Platform fee must be non-negative and leave a positive provider share",
                    reason=f"amount={command.amount}, platform_fee={command.platform_fee}",
                )
            )

        if command.session_end_time <= command.session_start_time:
            return Return.err(
                Error(
                    code="INVALID_SESSION_WINDOW",
                    message="Session end must be after session start",
                )
            )

        try:
            existing = await self.transfer_repo.get_by_payment_intent_id(command.payment_intent_id)
            if existing:
                return Return.ok(
                    CreateTransferResponseDTO(transfer=to_transfer_dto(existing), created=False)
                )

            country_code = (command.country_code or DEFAULT_JURISDICTION).upper()
            required_days = required_delay_days_for(country_code, self.delay_table)
            scheduled_transfer_time = compute_scheduled_transfer_time(
                command.payment_created_at,
                command.session_start_time,
                command.session_end_time,
                required_days,
            )

            record = TransferRecord(
                payment_intent_id=command.payment_intent_id,
                checkout_session_id=command.checkout_session_id,
                event_id=command.event_id,
                booking_id=command.booking_id,
                provider_account_id=command.provider_account_id,
                provider_user_id=command.provider_user_id,
                country_code=country_code,
                amount=command.amount,
                currency=command.currency.lower(),
                platform_fee=command.platform_fee,
                provider_amount=provider_amount,
                payment_created_at=command.payment_created_at,
                session_start_time=command.session_start_time,
                session_end_time=command.session_end_time,
                scheduled_transfer_time=scheduled_transfer_time,
                next_attempt_at=scheduled_transfer_time,
                status=TransferStatus.PENDING,
            )

            try:
                created = await self.transfer_repo.create(record)
                await self.event_repo.create(
                    TransferEvent(
                        transfer_id=created.id,
                        event_type=TransferEventType.CREATED,
                        to_status=TransferStatus.PENDING,
                        actor="system",
                        note=f"scheduled for {scheduled_transfer_time.isoformat()} ({required_days}d holding)",
                    )
                )
                await self.uow.commit()
            except IntegrityError:
                # Concurrent delivery of the same payment won the insert
                await self.uow.rollback()
                existing = await self.transfer_repo.get_by_payment_intent_id(command.payment_intent_id)
                if existing is None:
                    raise
                return Return.ok(
                    CreateTransferResponseDTO(transfer=to_transfer_dto(existing), created=False)
                )

            logger.info(
                f"Transfer record {created.id} created for payment {command.payment_intent_id}: "
                f"{provider_amount} {record.currency} to {command.provider_account_id}, "
                f"scheduled {scheduled_transfer_time.isoformat()}"
            )
            return Return.ok(CreateTransferResponseDTO(transfer=to_transfer_dto(created), created=True))

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="CREATE_TRANSFER_FAILED",
                    message="Failed to create transfer record",
                    reason=str(e),
                )
            )
