"""Transfer Event Repository Interface

Defines the contract for the transfer audit trail.
"""

from abc import ABC, abstractmethod
from typing import List
from src.domain.transfer_event import TransferEvent


class TransferEventRepository(ABC):
    """
    Repository interface for TransferEvent persistence

    Events are immutable and append-only.
    """

    @abstractmethod
    async def create(self, event: TransferEvent) -> TransferEvent:
        """
        Append an audit event

        Args:
            event: TransferEvent to persist

        Returns:
            Created TransferEvent with generated ID
        """
        pass

    @abstractmethod
    async def list_by_transfer(self, transfer_id: int) -> List[TransferEvent]:
        """
        Retrieve the audit trail of one transfer, oldest first

        Args:
            transfer_id: Transfer record ID

        Returns:
            List of TransferEvent
        """
        pass
