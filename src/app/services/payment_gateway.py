"""Payment Processor Interfaces

Contracts for the two remote operations the settlement engine depends on:
moving a provider's share to their payout account and managing the
checkout sessions guests pay through.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Optional
from pydantic import BaseModel, Field


class SettlementRequest(BaseModel):
    """Transfer of a provider share to a connected payout account"""

    amount: int = Field(..., gt=0, description="Amount in minor units")
    currency: str = Field(..., description="ISO 4217 currency code")
    destination: str = Field(..., description="Provider payout account id")
    idempotency_key: str = Field(..., description="Stable across retries of the same transfer")
    transfer_group: Optional[str] = Field(default=None, description="Groups transfers of one payment")
    metadata: Dict[str, str] = Field(default_factory=dict)


class SettlementReceipt(BaseModel):
    transfer_reference: str = Field(..., description="Remote transfer id")
    amount: int
    currency: str


class CheckoutSessionRequest(BaseModel):
    """Hosted payment page for one booking"""

    event_id: str
    requester_id: str
    amount: int = Field(..., gt=0, description="Amount in minor units")
    currency: str = Field(default="eur")
    start_time: datetime
    end_time: datetime
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict)


class CheckoutSession(BaseModel):
    session_id: str
    url: Optional[str] = None
    expires_at: Optional[datetime] = None


class SettlementGateway(ABC):
    """
    Remote money movement

    Implementations raise SettlementError for every remote failure so the
    retry classifier sees a single error type.
    """

    @abstractmethod
    async def create_transfer(self, request: SettlementRequest) -> SettlementReceipt:
        """
        Transfer the provider share

        Args:
            request: SettlementRequest with amount, currency, destination, idempotency key

        Returns:
            SettlementReceipt carrying the remote transfer reference

        Raises:
            SettlementError: On any remote failure
        """
        pass

    @abstractmethod
    async def reverse_transfer(
        self, transfer_reference: str, amount: int, idempotency_key: str
    ) -> str:
        """
        Reverse a completed transfer

        Returns:
            Remote reversal reference

        Raises:
            SettlementError: On any remote failure
        """
        pass


class CheckoutGateway(ABC):
    @abstractmethod
    async def create_session(self, request: CheckoutSessionRequest) -> CheckoutSession:
        """
        Create a checkout session

        Raises:
            SettlementError: On any remote failure
        """
        pass

    @abstractmethod
    async def expire_session(self, session_id: str) -> None:
        """
        Expire a checkout session so it can no longer be paid

        Expiring an unknown or already expired session succeeds.

        Raises:
            SettlementError: On any other remote failure
        """
        pass
