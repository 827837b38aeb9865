"""Notification Service Interface

Defines the contract for alerting operators about payout outcomes.
"""

from abc import ABC, abstractmethod
from src.domain.transfer_record import TransferRecord


class NotificationService(ABC):
    """
    Abstract notification service for payout alerts

    Implementations can send notifications via:
    - Logs
    - Webhook (HTTP POST)
    """

    @abstractmethod
    async def send_requires_approval_alert(self, record: TransferRecord) -> bool:
        """
        Alert operators that a transfer needs manual review

        Args:
            record: TransferRecord that moved to REQUIRES_APPROVAL

        Returns:
            True if notification sent successfully, False otherwise
        """
        pass

    @abstractmethod
    async def send_transfer_completed(self, record: TransferRecord) -> bool:
        """
        Announce a completed payout

        Args:
            record: TransferRecord that moved to COMPLETED

        Returns:
            True if notification sent successfully, False otherwise
        """
        pass
