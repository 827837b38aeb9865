"""Reservation Sweeper Background Worker

Expires slot reservations whose hold lapsed without a completed payment.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from src.adapter.repositories.slot_reservation_repository import SqlAlchemySlotReservationRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.app.use_cases.reservations import ExpireReservations

logger = logging.getLogger(__name__)


class ReservationSweeperWorker:
    """
    Background worker for lapsed slot holds

    Usage:
        worker = ReservationSweeperWorker()
        await worker.run_once()
        await worker.run_forever(interval_seconds=900)
    """

    def __init__(self, db_uri: Optional[str] = None, session_factory=None):
        self.engine = None
        if session_factory is None:
            self.db_uri = db_uri or ApplicationConfig.DB_URI
            self.engine = create_async_engine(self.db_uri, echo=False, future=True)
            session_factory = sessionmaker(
                self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
            )
        self.async_session_factory = session_factory

    async def run_once(self, now: Optional[datetime] = None) -> int:
        """
        Expire lapsed reservations once

        Returns:
            Number of reservations expired
        """
        async with self.async_session_factory() as session:
            use_case = ExpireReservations(
                uow=SqlAlchemyUnitOfWork(session),
                reservation_repo=SqlAlchemySlotReservationRepository(session),
            )
            result = await use_case.execute(now=now)

            if result.is_err():
                logger.error(f"Reservation sweep failed: {result.error.message}")
                return 0

            return result.value.expired_count

    async def run_forever(self, interval_seconds: Optional[int] = None):
        interval_seconds = interval_seconds or ApplicationConfig.RESERVATION_SWEEP_INTERVAL_SECONDS
        logger.info(f"Starting continuous reservation sweep with {interval_seconds}s interval")

        while True:
            try:
                count = await self.run_once()
                logger.debug(f"Sweep cycle complete. Expired {count} reservations")
            except Exception as e:
                logger.error(f"Sweep cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        """Cleanup resources"""
        if self.engine is not None:
            await self.engine.dispose()
        logger.info("ReservationSweeperWorker shutdown complete")


async def main():
    """
    Entry point for running the worker as a standalone script

    Usage:
        python -m src.worker.reservation_sweeper [--once]
    """
    import sys

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    worker = ReservationSweeperWorker()

    if "--once" in sys.argv:
        count = await worker.run_once()
        print(f"Sweep complete. Expired {count} reservations.")
        await worker.shutdown()
    else:
        try:
            await worker.run_forever()
        except KeyboardInterrupt:
            logger.info("Received shutdown signal")
        finally:
            await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
