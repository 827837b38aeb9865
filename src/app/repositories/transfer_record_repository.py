"""Transfer Record Repository Interface

Defines the contract for transfer record persistence operations.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional
from src.domain.transfer_record import TransferRecord, TransferStatus


class TransferRecordRepository(ABC):
    """
    Repository interface for TransferRecord persistence

    Scheduler concurrency relies on conditional updates:
    - claim() only succeeds for a schedulable record without a live lease
    - finalize() only succeeds while the caller still holds its claim token
    """

    @abstractmethod
    async def create(self, record: TransferRecord) -> TransferRecord:
        """
        Create a new transfer record

        Args:
            record: TransferRecord entity to persist

        Returns:
            Created TransferRecord with generated ID

        Raises:
            IntegrityError: If payment_intent_id already exists
        """
        pass

    @abstractmethod
    async def get_by_id(self, transfer_id: int) -> Optional[TransferRecord]:
        """
        Retrieve transfer record by ID

        Args:
            transfer_id: Transfer record ID

        Returns:
            TransferRecord if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_by_payment_intent_id(self, payment_intent_id: str) -> Optional[TransferRecord]:
        """
        Retrieve transfer record by payment reference

        Args:
            payment_intent_id: Processor payment reference

        Returns:
            TransferRecord if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_due(self, now: datetime, limit: int = 100) -> List[TransferRecord]:
        """
        Retrieve records the scheduler may attempt now

        Selects PENDING/RETRY_SCHEDULED records not awaiting approval whose
        next_attempt_at <= now and whose lease is absent or expired.

        Args:
            now: Reference time
            limit: Maximum number of records to return

        Returns:
            List of due TransferRecords ordered by next_attempt_at
        """
        pass

    @abstractmethod
    async def claim(
        self, transfer_id: int, claim_token: str, now: datetime, lease_expires_at: datetime
    ) -> bool:
        """
        Take the processing lease on a record

        Args:
            transfer_id: Transfer record ID
            claim_token: Token identifying this scheduler pass
            now: Reference time (leases expiring at or before now are reclaimable)
            lease_expires_at: Expiry of the new lease

        Returns:
            True if the lease was acquired, False if another pass holds it or
            the record is no longer schedulable
        """
        pass

    @abstractmethod
    async def finalize(
        self, transfer_id: int, claim_token: str, values: Dict[str, Any]
    ) -> bool:
        """
        Apply the outcome of an attempt and release the lease

        Args:
            transfer_id: Transfer record ID
            claim_token: Token the caller claimed the record with
            values: Column values to set

        Returns:
            True if the caller still held the lease and the update applied
        """
        pass

    @abstractmethod
    async def cancel_if_unclaimed(self, transfer_id: int, now: datetime) -> bool:
        """
        Cancel a record that is not being processed

        Args:
            transfer_id: Transfer record ID
            now: Reference time

        Returns:
            True if the record moved to CANCELLED
        """
        pass

    @abstractmethod
    async def request_cancel(self, transfer_id: int, now: datetime) -> bool:
        """
        Flag a record whose attempt is in flight for cancellation

        The scheduler applies the flag when the attempt resolves.

        Args:
            transfer_id: Transfer record ID
            now: Reference time

        Returns:
            True if the record is schedulable, holds a live lease and was flagged
        """
        pass

    @abstractmethod
    async def update(self, record: TransferRecord) -> TransferRecord:
        """
        Persist changes to an existing transfer record

        Args:
            record: TransferRecord with updated values

        Returns:
            Updated TransferRecord
        """
        pass

    @abstractmethod
    async def list(
        self,
        status: Optional[TransferStatus] = None,
        provider_user_id: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[TransferRecord], int]:
        """
        Retrieve transfer records with optional filters and pagination

        Args:
            status: Optional status filter
            provider_user_id: Optional provider filter
            limit: Maximum number of records to return
            offset: Number of records to skip

        Returns:
            Tuple of (list of TransferRecord, total count)
        """
        pass
