"""Transfer Scheduler Background Worker

Periodically pays out provider shares whose holding period has elapsed.
Can be run as a standalone script or triggered through the cron endpoint;
overlapping runs are safe because every record is claimed under a lease.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from src.adapter.repositories.transfer_event_repository import SqlAlchemyTransferEventRepository
from src.adapter.repositories.transfer_record_repository import SqlAlchemyTransferRecordRepository
from src.adapter.services.notification_service import create_notification_service
from src.adapter.services.payment_gateway import HttpPaymentGateway
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.app.services.notification_service import NotificationService
from src.app.services.payment_gateway import SettlementGateway
from src.app.services.retry_classifier import RetryClassifier
from src.app.use_cases.transfers import ProcessDueTransfers, SchedulerRunSummaryDTO

logger = logging.getLogger(__name__)


class TransferSchedulerWorker:
    """
    Background worker for delayed provider payouts

    Features:
    - Runs every SCHEDULER_INTERVAL_SECONDS (2 hours by default)
    - Processes at most TRANSFER_BATCH_SIZE records per pass
    - Bounded retry with exponential backoff, escalation to manual review
    - Can run once or continuously

    Usage:
        # Run once
        worker = TransferSchedulerWorker()
        summary = await worker.run_once()

        # Run continuously
        worker = TransferSchedulerWorker()
        await worker.run_forever(interval_seconds=7200)
    """

    def __init__(
        self,
        db_uri: Optional[str] = None,
        settlement_gateway: Optional[SettlementGateway] = None,
        notification_service: Optional[NotificationService] = None,
        classifier: Optional[RetryClassifier] = None,
        session_factory=None,
    ):
        """
        Initialize the worker

        Args:
            db_uri: Database URI (defaults to ApplicationConfig.DB_URI)
            settlement_gateway: Remote transfer client (defaults to HttpPaymentGateway)
            notification_service: Payout alerts (defaults to config webhook + logs)
            classifier: Retry policy (defaults to config values)
            session_factory: Pre-built session factory; the worker then owns no engine
        """
        self.engine = None
        if session_factory is None:
            self.db_uri = db_uri or ApplicationConfig.DB_URI
            self.engine = create_async_engine(self.db_uri, echo=False, future=True)
            session_factory = sessionmaker(
                self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
            )
        self.async_session_factory = session_factory

        self.settlement_gateway = settlement_gateway or HttpPaymentGateway(
            base_url=ApplicationConfig.PAYMENT_API_URL,
            api_key=ApplicationConfig.PAYMENT_API_KEY,
            timeout=ApplicationConfig.SETTLEMENT_TIMEOUT_SECONDS,
        )
        self.notification_service = notification_service or create_notification_service(
            ApplicationConfig.PAYOUT_NOTIFICATION_WEBHOOK
        )
        self.classifier = classifier or RetryClassifier(
            max_retries=ApplicationConfig.TRANSFER_MAX_RETRIES,
            base_delay_seconds=ApplicationConfig.TRANSFER_RETRY_BASE_DELAY_SECONDS,
            max_delay_seconds=ApplicationConfig.TRANSFER_RETRY_MAX_DELAY_SECONDS,
        )

        logger.info(
            f"TransferSchedulerWorker initialized with "
            f"max_retries={self.classifier.max_retries}, "
            f"batch_size={ApplicationConfig.TRANSFER_BATCH_SIZE}"
        )

    async def run_once(self, now: Optional[datetime] = None) -> Optional[SchedulerRunSummaryDTO]:
        """
        Run one scheduler pass

        Args:
            now: Reference time (default: utcnow)

        Returns:
            SchedulerRunSummaryDTO, or None if the pass could not run
        """
        if not ApplicationConfig.SCHEDULER_ENABLED:
            logger.info("Transfer scheduler is disabled, skipping")
            return None

        async with self.async_session_factory() as session:
            use_case = ProcessDueTransfers(
                uow=SqlAlchemyUnitOfWork(session),
                transfer_repo=SqlAlchemyTransferRecordRepository(session),
                event_repo=SqlAlchemyTransferEventRepository(session),
                settlement_gateway=self.settlement_gateway,
                classifier=self.classifier,
                notification_service=self.notification_service,
                batch_size=ApplicationConfig.TRANSFER_BATCH_SIZE,
                lease_seconds=ApplicationConfig.TRANSFER_CLAIM_LEASE_SECONDS,
            )

            result = await use_case.execute(now=now)

            if result.is_err():
                logger.error(f"Scheduler pass failed: {result.error.message} ({result.error.reason})")
                return None

            return result.value

    async def run_forever(self, interval_seconds: Optional[int] = None):
        """
        Run scheduler passes continuously at specified interval

        Args:
            interval_seconds: Seconds between passes (default: SCHEDULER_INTERVAL_SECONDS)
        """
        interval_seconds = interval_seconds or ApplicationConfig.SCHEDULER_INTERVAL_SECONDS
        logger.info(f"Starting continuous transfer scheduler with {interval_seconds}s interval")

        while True:
            try:
                summary = await self.run_once()
                if summary:
                    logger.info(
                        f"Scheduler cycle complete. {summary.completed}/{summary.selected} completed"
                    )
            except Exception as e:
                logger.error(f"Scheduler cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        """Cleanup resources"""
        if self.engine is not None:
            await self.engine.dispose()
        logger.info("TransferSchedulerWorker shutdown complete")


async def main():
    """
    Entry point for running the worker as a standalone script

    Usage:
        # Run continuously
        python -m src.worker.transfer_scheduler

        # Run a single pass
        python -m src.worker.transfer_scheduler --once

        # Custom interval
        python -m src.worker.transfer_scheduler --interval 600
    """
    import argparse

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Transfer Scheduler Worker")
    parser.add_argument("--once", action="store_true", help="Run a single pass and exit")
    parser.add_argument("--interval", type=int, help="Seconds between passes")
    args = parser.parse_args()

    worker = TransferSchedulerWorker()

    try:
        if args.once:
            summary = await worker.run_once()
            if summary:
                print(f"Scheduler pass complete:")
                print(f"  Selected: {summary.selected}")
                print(f"  Completed: {summary.completed}")
                print(f"  Retry scheduled: {summary.retry_scheduled}")
                print(f"  Requires approval: {summary.requires_approval}")
                print(f"  Skipped: {summary.skipped}")
                print(f"  Errors: {summary.errors}")
                print(f"  Execution time: {summary.execution_time_ms}ms")
        else:
            await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
