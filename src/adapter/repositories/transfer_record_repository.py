"""SQLAlchemy implementation of TransferRecordRepository

Provides persistence for TransferRecord entities. Lease handling uses
conditional UPDATEs (optimistic claims) instead of row locks, so
overlapping scheduler passes never submit the same transfer twice.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import or_, update
from sqlmodel import select, func
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.transfer_record_repository import TransferRecordRepository
from src.domain.transfer_record import (
    CANCELLABLE_STATUSES,
    SCHEDULABLE_STATUSES,
    TransferRecord,
    TransferStatus,
)


def _lease_free(now: datetime):
    return or_(
        TransferRecord.claim_expires_at.is_(None),
        TransferRecord.claim_expires_at <= now,
    )


class SqlAlchemyTransferRecordRepository(TransferRecordRepository):
    """
    SQLAlchemy implementation of TransferRecordRepository

    Features:
    - Idempotent creation via unique payment_intent_id
    - Lease claim/finalize through conditional updates
    - Reads refresh identity-mapped rows so callers see committed state
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, record: TransferRecord) -> TransferRecord:
        """
        Create a new transfer record

        Raises:
            IntegrityError: If payment_intent_id already exists
        """
        self.session.add(record)
        await self.session.flush()
        await self.session.refresh(record)
        return record

    async def get_by_id(self, transfer_id: int) -> Optional[TransferRecord]:
        stmt = (
            select(TransferRecord)
            .where(TransferRecord.id == transfer_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_payment_intent_id(self, payment_intent_id: str) -> Optional[TransferRecord]:
        stmt = (
            select(TransferRecord)
            .where(TransferRecord.payment_intent_id == payment_intent_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_due(self, now: datetime, limit: int = 100) -> List[TransferRecord]:
        """
        Retrieve records the scheduler may attempt now

        Args:
            now: Reference time
            limit: Maximum number of records to return

        Returns:
            Due records, oldest next_attempt_at first
        """
        stmt = (
            select(TransferRecord)
            .where(
                TransferRecord.status.in_(SCHEDULABLE_STATUSES),
                TransferRecord.requires_approval.is_(False),
                TransferRecord.next_attempt_at <= now,
                _lease_free(now),
            )
            .order_by(TransferRecord.next_attempt_at, TransferRecord.id)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def claim(
        self, transfer_id: int, claim_token: str, now: datetime, lease_expires_at: datetime
    ) -> bool:
        """
        Take the processing lease on a record

        The WHERE clause re-checks status and lease, so of two passes racing
        for the same record only one UPDATE matches a row.
        """
        stmt = (
            update(TransferRecord)
            .where(
                TransferRecord.id == transfer_id,
                TransferRecord.status.in_(SCHEDULABLE_STATUSES),
                TransferRecord.requires_approval.is_(False),
                _lease_free(now),
            )
            .values(
                claim_token=claim_token,
                claim_expires_at=lease_expires_at,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def finalize(
        self, transfer_id: int, claim_token: str, values: Dict[str, Any]
    ) -> bool:
        """
        Apply the outcome of an attempt and release the lease

        Returns:
            False if the lease was lost to another pass (nothing is written)
        """
        values = dict(values)
        values.setdefault("claim_token", None)
        values.setdefault("claim_expires_at", None)
        values.setdefault("updated_at", datetime.utcnow())

        stmt = (
            update(TransferRecord)
            .where(
                TransferRecord.id == transfer_id,
                TransferRecord.claim_token == claim_token,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def cancel_if_unclaimed(self, transfer_id: int, now: datetime) -> bool:
        stmt = (
            update(TransferRecord)
            .where(
                TransferRecord.id == transfer_id,
                TransferRecord.status.in_(CANCELLABLE_STATUSES),
                _lease_free(now),
            )
            .values(
                status=TransferStatus.CANCELLED,
                requires_approval=False,
                claim_token=None,
                claim_expires_at=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def request_cancel(self, transfer_id: int, now: datetime) -> bool:
        stmt = (
            update(TransferRecord)
            .where(
                TransferRecord.id == transfer_id,
                TransferRecord.status.in_(SCHEDULABLE_STATUSES),
                TransferRecord.claim_token.is_not(None),
                TransferRecord.claim_expires_at > now,
            )
            .values(cancel_requested=True, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def update(self, record: TransferRecord) -> TransferRecord:
        record.updated_at = datetime.utcnow()
        self.session.add(record)
        await self.session.flush()
        await self.session.refresh(record)
        return record

    async def list(
        self,
        status: Optional[TransferStatus] = None,
        provider_user_id: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[TransferRecord], int]:
        """
        Retrieve transfer records with optional filters and pagination

        Returns:
            Tuple of (records ordered by scheduled_transfer_time DESC, total count)
        """
        conditions = []
        if status is not None:
            conditions.append(TransferRecord.status == status)
        if provider_user_id is not None:
            conditions.append(TransferRecord.provider_user_id == provider_user_id)

        # Get total count
        count_stmt = select(func.count()).select_from(TransferRecord).where(*conditions)
        count_result = await self.session.execute(count_stmt)
        total = count_result.scalar()

        stmt = (
            select(TransferRecord)
            .where(*conditions)
            .order_by(TransferRecord.scheduled_transfer_time.desc(), TransferRecord.id.desc())
            .limit(limit)
            .offset(offset)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total
