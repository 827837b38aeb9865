"""ProcessDueTransfers Use Case

One scheduler pass over due transfer records. Each record is claimed,
attempted and finalized on its own, so a failure on one record never
affects the others, and two overlapping passes never submit the same
record twice.
"""

import logging
import time
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.notification_service import NotificationService
from src.app.services.payment_gateway import SettlementGateway, SettlementRequest
from src.app.services.retry_classifier import RetryClassifier, RetryDisposition
from src.app.repositories.transfer_record_repository import TransferRecordRepository
from src.app.repositories.transfer_event_repository import TransferEventRepository
from src.domain.settlement_error import SettlementError
from src.domain.transfer_event import TransferEvent, TransferEventType
from src.domain.transfer_record import TransferRecord, TransferStatus
from .dtos import SchedulerRunSummaryDTO, TransitionOutcome, TransitionResultDTO

logger = logging.getLogger(__name__)

SCHEDULER_ACTOR = "scheduler"


def transfer_idempotency_key(record: TransferRecord) -> str:
    """Same key on every attempt, so the processor deduplicates retried transfers"""
    return f"transfer:{record.id}:{record.payment_intent_id}"


def reversal_idempotency_key(record: TransferRecord) -> str:
    return f"reversal:{record.id}:{record.payment_intent_id}"


class ProcessDueTransfers:
    """
    Use Case: Drive due transfers to COMPLETED, RETRY_SCHEDULED or REQUIRES_APPROVAL

    Business Rules:
    1. Only PENDING/RETRY_SCHEDULED records with next_attempt_at <= now,
       no pending approval and no live lease are selected
    2. A record is attempted only after its lease is committed
    3. The lease runs from the moment each record is claimed, not from the
       start of the pass
    4. The outcome is written only while the lease is still ours
    5. Transient failures retry with backoff until the budget is spent,
       then escalate; permanent failures escalate immediately
    6. A cancel that arrived during the attempt is honored on finalize:
       success is reversed, failure is cancelled

    Flow per record:
    1. claim (conditional update) + commit
    2. remote transfer with a stable idempotency key
    3. finalize (conditional on claim token) + audit event + commit
    """

    def __init__(
        self,
        uow: UnitOfWork,
        transfer_repo: TransferRecordRepository,
        event_repo: TransferEventRepository,
        settlement_gateway: SettlementGateway,
        classifier: RetryClassifier,
        notification_service: Optional[NotificationService] = None,
        batch_size: int = 100,
        lease_seconds: int = 300,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.uow = uow
        self.transfer_repo = transfer_repo
        self.event_repo = event_repo
        self.settlement_gateway = settlement_gateway
        self.classifier = classifier
        self.notification_service = notification_service
        self.batch_size = batch_size
        self.lease_seconds = lease_seconds
        self.clock = clock

    async def execute(self, now: Optional[datetime] = None) -> Result[SchedulerRunSummaryDTO]:
        """
        Execute one scheduler pass

        Args:
            now: Reference time (defaults to utcnow)

        Returns:
            Result[SchedulerRunSummaryDTO]: Per-record outcomes and counters
        """
        now = now or datetime.utcnow()
        start_time = time.time()

        try:
            due = await self.transfer_repo.get_due(now, self.batch_size)
            # A rollback expires every loaded instance, so keep plain values only
            snapshots = [(record.id, record.status, record.retry_count) for record in due]
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="PROCESS_TRANSFERS_FAILED",
                    message="Failed to select due transfers",
                    reason=str(e),
                )
            )

        if due:
            logger.info(f"Scheduler pass at {now.isoformat()}: {len(due)} due transfers")

        results = []
        for transfer_id, from_status, retry_count in snapshots:
            try:
                result = await self._process_record(transfer_id, from_status, retry_count, now)
            except Exception as e:
                await self.uow.rollback()
                logger.error(f"Unexpected error processing transfer {transfer_id}: {e}")
                result = TransitionResultDTO(
                    transfer_id=transfer_id,
                    outcome=TransitionOutcome.ERROR,
                    from_status=from_status.value,
                    retry_count=retry_count,
                    error_code="UNEXPECTED_ERROR",
                )
            results.append(result)

        summary = SchedulerRunSummaryDTO(
            executed_at=now,
            selected=len(due),
            completed=self._count(results, TransitionOutcome.COMPLETED),
            retry_scheduled=self._count(results, TransitionOutcome.RETRY_SCHEDULED),
            requires_approval=self._count(results, TransitionOutcome.REQUIRES_APPROVAL),
            cancelled=self._count(results, TransitionOutcome.CANCELLED),
            reversed=self._count(results, TransitionOutcome.REVERSED),
            skipped=self._count(results, TransitionOutcome.SKIPPED),
            errors=self._count(results, TransitionOutcome.ERROR),
            results=results,
            execution_time_ms=int((time.time() - start_time) * 1000),
        )

        if due:
            logger.info(
                f"Scheduler pass complete: {summary.completed} completed, "
                f"{summary.retry_scheduled} retrying, {summary.requires_approval} escalated, "
                f"{summary.skipped} skipped, {summary.errors} errors, {summary.execution_time_ms}ms"
            )

        return Return.ok(summary)

    @staticmethod
    def _count(results, outcome: TransitionOutcome) -> int:
        return sum(1 for result in results if result.outcome == outcome)

    async def _process_record(
        self,
        transfer_id: int,
        from_status: TransferStatus,
        retry_count: int,
        now: datetime,
    ) -> TransitionResultDTO:
        record = await self.transfer_repo.get_by_id(transfer_id)
        if record is None or record.status != from_status:
            await self.uow.rollback()
            return self._skipped(transfer_id, from_status, retry_count, "STATE_CHANGED")
        # The lease starts at claim time; the pass reference time may be minutes old
        claimed_at = max(now, self.clock())
        if record.is_claimed(claimed_at):
            await self.uow.rollback()
            logger.info(f"Transfer {transfer_id} is leased by another pass until {record.claim_expires_at}, skipping")
            return self._skipped(transfer_id, from_status, retry_count, "ALREADY_CLAIMED")
        reclaiming = record.claim_token is not None

        claim_token = uuid.uuid4().hex
        claimed = await self.transfer_repo.claim(
            transfer_id, claim_token, claimed_at, claimed_at + timedelta(seconds=self.lease_seconds)
        )
        if not claimed:
            await self.uow.rollback()
            logger.info(f"Transfer {transfer_id} claimed by another pass, skipping")
            return self._skipped(transfer_id, from_status, retry_count, "ALREADY_CLAIMED")

        if reclaiming:
            logger.warning(f"Transfer {transfer_id}: previous claim lease expired, reclaiming")
            await self._record_event(
                transfer_id, TransferEventType.LEASE_EXPIRED, from_status, from_status,
                note="previous scheduler pass did not finalize before its lease expired",
            )
        await self._record_event(transfer_id, TransferEventType.CLAIMED, from_status, from_status)
        await self.uow.commit()

        request = SettlementRequest(
            amount=record.provider_amount,
            currency=record.currency,
            destination=record.provider_account_id,
            idempotency_key=transfer_idempotency_key(record),
            transfer_group=record.checkout_session_id,
            metadata={
                "transfer_id": str(transfer_id),
                "payment_intent_id": record.payment_intent_id,
                "event_id": record.event_id,
            },
        )

        try:
            receipt = await self.settlement_gateway.create_transfer(request)
        except SettlementError as error:
            return await self._on_failure(record, claim_token, from_status, retry_count, error, now)

        return await self._on_success(
            record, claim_token, from_status, retry_count, receipt.transfer_reference, now
        )

    async def _on_success(
        self,
        record: TransferRecord,
        claim_token: str,
        from_status: TransferStatus,
        retry_count: int,
        transfer_reference: str,
        now: datetime,
    ) -> TransitionResultDTO:
        transfer_id = record.id

        if await self._cancel_requested(transfer_id):
            return await self._reverse_after_cancel(
                record, claim_token, from_status, retry_count, transfer_reference, now
            )

        values = {
            "status": TransferStatus.COMPLETED,
            "transfer_reference": transfer_reference,
            "completed_at": now,
            "error_code": None,
            "error_message": None,
        }
        if not await self._finalize(transfer_id, claim_token, values):
            return self._skipped(transfer_id, from_status, retry_count, "CLAIM_LEASE_EXPIRED")

        await self._record_event(
            transfer_id, TransferEventType.COMPLETED, from_status, TransferStatus.COMPLETED,
            note=f"transfer_reference={transfer_reference}",
        )
        await self.uow.commit()

        logger.info(
            f"Transfer {transfer_id} completed: {record.provider_amount} {record.currency} "
            f"to {record.provider_account_id} ({transfer_reference})"
        )
        await self._notify("send_transfer_completed", transfer_id)

        return TransitionResultDTO(
            transfer_id=transfer_id,
            outcome=TransitionOutcome.COMPLETED,
            from_status=from_status.value,
            to_status=TransferStatus.COMPLETED.value,
            retry_count=retry_count,
            transfer_reference=transfer_reference,
        )

    async def _reverse_after_cancel(
        self,
        record: TransferRecord,
        claim_token: str,
        from_status: TransferStatus,
        retry_count: int,
        transfer_reference: str,
        now: datetime,
    ) -> TransitionResultDTO:
        transfer_id = record.id
        try:
            reversal_reference = await self.settlement_gateway.reverse_transfer(
                transfer_reference, record.provider_amount, reversal_idempotency_key(record)
            )
        except SettlementError as error:
            values = {
                "status": TransferStatus.REQUIRES_APPROVAL,
                "requires_approval": True,
                "transfer_reference": transfer_reference,
                "error_code": error.code,
                "error_message": f"reversal after cancellation failed: {error.message}",
            }
            if not await self._finalize(transfer_id, claim_token, values):
                return self._skipped(transfer_id, from_status, retry_count, "CLAIM_LEASE_EXPIRED")
            await self._record_event(
                transfer_id, TransferEventType.ESCALATED, from_status,
                TransferStatus.REQUIRES_APPROVAL, note=values["error_message"],
            )
            await self.uow.commit()
            logger.warning(
                f"Transfer {transfer_id} paid after cancellation and reversal failed: {error}"
            )
            await self._notify("send_requires_approval_alert", transfer_id)
            return TransitionResultDTO(
                transfer_id=transfer_id,
                outcome=TransitionOutcome.REQUIRES_APPROVAL,
                from_status=from_status.value,
                to_status=TransferStatus.REQUIRES_APPROVAL.value,
                retry_count=retry_count,
                error_code=error.code,
                transfer_reference=transfer_reference,
            )

        values = {
            "status": TransferStatus.REVERSED,
            "transfer_reference": transfer_reference,
            "reversal_reference": reversal_reference,
            "cancel_requested": False,
            "completed_at": now,
        }
        if not await self._finalize(transfer_id, claim_token, values):
            return self._skipped(transfer_id, from_status, retry_count, "CLAIM_LEASE_EXPIRED")

        await self._record_event(
            transfer_id, TransferEventType.REVERSED, from_status, TransferStatus.REVERSED,
            note=f"cancelled during attempt; transfer {transfer_reference} reversed ({reversal_reference})",
        )
        await self.uow.commit()
        logger.info(f"Transfer {transfer_id} reversed after cancellation ({reversal_reference})")

        return TransitionResultDTO(
            transfer_id=transfer_id,
            outcome=TransitionOutcome.REVERSED,
            from_status=from_status.value,
            to_status=TransferStatus.REVERSED.value,
            retry_count=retry_count,
            transfer_reference=transfer_reference,
        )

    async def _on_failure(
        self,
        record: TransferRecord,
        claim_token: str,
        from_status: TransferStatus,
        retry_count: int,
        error: SettlementError,
        now: datetime,
    ) -> TransitionResultDTO:
        transfer_id = record.id

        if await self._cancel_requested(transfer_id):
            values = {
                "status": TransferStatus.CANCELLED,
                "cancel_requested": False,
                "error_code": error.code,
                "error_message": error.message,
            }
            if not await self._finalize(transfer_id, claim_token, values):
                return self._skipped(transfer_id, from_status, retry_count, "CLAIM_LEASE_EXPIRED")
            await self._record_event(
                transfer_id, TransferEventType.CANCELLED, from_status, TransferStatus.CANCELLED,
                note=f"cancelled during failed attempt ({error.code})",
            )
            await self.uow.commit()
            logger.info(f"Transfer {transfer_id} cancelled after failed attempt")
            return TransitionResultDTO(
                transfer_id=transfer_id,
                outcome=TransitionOutcome.CANCELLED,
                from_status=from_status.value,
                to_status=TransferStatus.CANCELLED.value,
                retry_count=retry_count,
                error_code=error.code,
            )

        decision = self.classifier.classify(error, retry_count)

        if decision.disposition == RetryDisposition.RETRY:
            next_retry_count = retry_count + 1
            next_attempt_at = now + timedelta(seconds=decision.delay_seconds)
            values = {
                "status": TransferStatus.RETRY_SCHEDULED,
                "retry_count": next_retry_count,
                "next_attempt_at": next_attempt_at,
                "error_code": error.code,
                "error_message": error.message,
            }
            if not await self._finalize(transfer_id, claim_token, values):
                return self._skipped(transfer_id, from_status, retry_count, "CLAIM_LEASE_EXPIRED")
            await self._record_event(
                transfer_id, TransferEventType.RETRY_SCHEDULED, from_status,
                TransferStatus.RETRY_SCHEDULED,
                note=f"retry {next_retry_count} at {next_attempt_at.isoformat()}: {error}",
            )
            await self.uow.commit()
            logger.info(
                f"Transfer {transfer_id} failed transiently ({error.code}), "
                f"retry {next_retry_count} at {next_attempt_at.isoformat()}"
            )
            return TransitionResultDTO(
                transfer_id=transfer_id,
                outcome=TransitionOutcome.RETRY_SCHEDULED,
                from_status=from_status.value,
                to_status=TransferStatus.RETRY_SCHEDULED.value,
                retry_count=next_retry_count,
                error_code=error.code,
            )

        # ESCALATE or FATAL
        values = {
            "status": TransferStatus.REQUIRES_APPROVAL,
            "requires_approval": True,
            "error_code": error.code,
            "error_message": error.message,
        }
        if not await self._finalize(transfer_id, claim_token, values):
            return self._skipped(transfer_id, from_status, retry_count, "CLAIM_LEASE_EXPIRED")
        await self._record_event(
            transfer_id, TransferEventType.ESCALATED, from_status,
            TransferStatus.REQUIRES_APPROVAL,
            note=f"{decision.disposition.value}: {decision.reason}: {error}",
        )
        await self.uow.commit()

        if decision.disposition == RetryDisposition.FATAL:
            logger.warning(f"Transfer {transfer_id} failed permanently ({error.code}), requires approval")
        else:
            logger.warning(
                f"Transfer {transfer_id} exhausted {retry_count} retries ({error.code}), requires approval"
            )
        await self._notify("send_requires_approval_alert", transfer_id)

        return TransitionResultDTO(
            transfer_id=transfer_id,
            outcome=TransitionOutcome.REQUIRES_APPROVAL,
            from_status=from_status.value,
            to_status=TransferStatus.REQUIRES_APPROVAL.value,
            retry_count=retry_count,
            error_code=error.code,
        )

    async def _cancel_requested(self, transfer_id: int) -> bool:
        current = await self.transfer_repo.get_by_id(transfer_id)
        return bool(current and current.cancel_requested)

    async def _finalize(self, transfer_id: int, claim_token: str, values: Dict[str, Any]) -> bool:
        if await self.transfer_repo.finalize(transfer_id, claim_token, values):
            return True
        await self.uow.rollback()
        logger.warning(
            f"Transfer {transfer_id}: claim lease expired before the outcome was recorded; "
            f"a later pass will retry with the same idempotency key"
        )
        return False

    async def _record_event(
        self,
        transfer_id: int,
        event_type: TransferEventType,
        from_status: Optional[TransferStatus],
        to_status: Optional[TransferStatus],
        note: Optional[str] = None,
    ):
        await self.event_repo.create(
            TransferEvent(
                transfer_id=transfer_id,
                event_type=event_type,
                from_status=from_status,
                to_status=to_status,
                actor=SCHEDULER_ACTOR,
                note=note,
            )
        )

    async def _notify(self, method: str, transfer_id: int):
        if not self.notification_service:
            return
        try:
            record = await self.transfer_repo.get_by_id(transfer_id)
            if record:
                await getattr(self.notification_service, method)(record)
        except Exception as e:
            logger.error(f"Notification for transfer {transfer_id} failed: {e}")

    @staticmethod
    def _skipped(
        transfer_id: int, from_status: TransferStatus, retry_count: int, reason: str
    ) -> TransitionResultDTO:
        return TransitionResultDTO(
            transfer_id=transfer_id,
            outcome=TransitionOutcome.SKIPPED,
            from_status=from_status.value,
            retry_count=retry_count,
            error_code=reason,
        )
