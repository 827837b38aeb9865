"""Transfer Record Domain Entity

One pending or settled movement of a provider's share to their payout
account. Created once when a booking payment completes, then driven by the
transfer scheduler until it reaches a terminal state.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import BigInteger, Boolean, CheckConstraint, Integer, String, Text
from src.domain.base import BaseModel, enum_column


class TransferStatus(str, Enum):
    """Transfer lifecycle states"""
    PENDING = "pending"                       # Waiting for its holding period to elapse
    RETRY_SCHEDULED = "retry_scheduled"       # Failed transiently, waiting for next_attempt_at
    COMPLETED = "completed"                   # Paid out (terminal)
    REQUIRES_APPROVAL = "requires_approval"   # Terminal for automation, resolved by an operator
    FAILED = "failed"                         # Abandoned by an operator (terminal)
    CANCELLED = "cancelled"                   # Booking refunded before payout (terminal)
    REVERSED = "reversed"                     # Paid out, then reversed (terminal)


SCHEDULABLE_STATUSES = (TransferStatus.PENDING, TransferStatus.RETRY_SCHEDULED)

CANCELLABLE_STATUSES = (
    TransferStatus.PENDING,
    TransferStatus.RETRY_SCHEDULED,
    TransferStatus.REQUIRES_APPROVAL,
)


class TransferRecord(BaseModel, table=True):
    """
    Transfer Record - Provider payout owed for one paid booking

    Domain Rules:
    - payment_intent_id is unique (one transfer per completed payment)
    - provider_amount + platform_fee == amount, provider_amount > 0
    - Amounts are integers in minor units (cents)
    - scheduled_transfer_time never changes; retries move next_attempt_at
    - claim_token/claim_expires_at form a lease held by one scheduler pass
    - Records are never deleted, only moved to a terminal status
    """

    __tablename__ = "transfer_records"
    __table_args__ = (
        CheckConstraint('provider_amount + platform_fee = amount', name='amount_conservation'),
        CheckConstraint('provider_amount > 0', name='provider_amount_positive'),
        CheckConstraint('platform_fee >= 0', name='platform_fee_non_negative'),
        CheckConstraint('retry_count >= 0', name='retry_count_non_negative'),
        Index('ix_transfer_records_due', 'status', 'next_attempt_at'),
        Index('ix_transfer_records_provider_account', 'provider_account_id'),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True),
        description="Unique transfer record identifier (auto-increment)"
    )

    payment_intent_id: str = Field(
        sa_column=Column(String(255), nullable=False, unique=True, index=True),
        description="Processor payment reference (unique - one transfer per payment)"
    )

    checkout_session_id: str = Field(
        sa_column=Column(String(255), nullable=False),
        description="Checkout session that collected the payment"
    )

    event_id: str = Field(
        sa_column=Column(String(255), nullable=False, index=True),
        description="Bookable event/resource the session belongs to"
    )

    booking_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True),
        description="Booking/meeting reference, if known"
    )

    provider_account_id: str = Field(
        sa_column=Column(String(255), nullable=False),
        description="Provider's payout account at the processor"
    )

    provider_user_id: str = Field(
        sa_column=Column(String(255), nullable=False),
        description="Provider's internal user identifier"
    )

    country_code: str = Field(
        default="DEFAULT",
        sa_column=Column(String(16), nullable=False),
        description="Jurisdiction used to pick the holding period"
    )

    amount: int = Field(
        sa_column=Column(BigInteger, nullable=False),
        description="Total amount charged (minor units)"
    )

    currency: str = Field(
        default="eur",
        sa_column=Column(String(3), nullable=False),
        description="Currency code (ISO 4217, lower case)"
    )

    platform_fee: int = Field(
        sa_column=Column(BigInteger, nullable=False),
        description="Platform fee retained (minor units)"
    )

    provider_amount: int = Field(
        sa_column=Column(BigInteger, nullable=False),
        description="Provider share paid out (amount - platform_fee)"
    )

    payment_created_at: datetime = Field(
        description="When the original payment was made"
    )

    session_start_time: datetime = Field(
        description="Session start"
    )

    session_end_time: datetime = Field(
        description="Session end"
    )

    scheduled_transfer_time: datetime = Field(
        description="Earliest payout time (session end + remaining holding days)"
    )

    next_attempt_at: datetime = Field(
        description="When the scheduler may next attempt the transfer"
    )

    status: TransferStatus = Field(
        default=TransferStatus.PENDING,
        sa_column=enum_column(TransferStatus),
        description="Lifecycle status"
    )

    retry_count: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, default=0),
        description="Number of transient failures that were retried"
    )

    requires_approval: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, default=False),
        description="Set when automation gave up and an operator must act"
    )

    transfer_reference: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True),
        description="Remote transfer id returned by the processor"
    )

    reversal_reference: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True),
        description="Remote reversal id, when a completed transfer was reversed"
    )

    error_code: Optional[str] = Field(
        default=None,
        sa_column=Column(String(100), nullable=True),
        description="Last remote error code"
    )

    error_message: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
        description="Last remote error message"
    )

    claim_token: Optional[str] = Field(
        default=None,
        sa_column=Column(String(64), nullable=True),
        description="Token of the scheduler pass currently holding the lease"
    )

    claim_expires_at: Optional[datetime] = Field(
        default=None,
        description="Lease expiry; past this time the record may be reclaimed"
    )

    cancel_requested: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, default=False),
        description="Cancellation arrived while an attempt was in flight"
    )

    admin_user_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True),
        description="Operator who last acted on the record"
    )

    admin_notes: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
        description="Operator notes"
    )

    admin_updated_at: Optional[datetime] = Field(
        default=None,
        description="When an operator last acted on the record"
    )

    completed_at: Optional[datetime] = Field(
        default=None,
        description="When the transfer completed"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Record creation timestamp"
    )

    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Last update timestamp"
    )

    def is_claimed(self, now: datetime) -> bool:
        """True while another scheduler pass holds a live lease"""
        return (
            self.claim_token is not None
            and self.claim_expires_at is not None
            and self.claim_expires_at > now
        )

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": 1,
                "payment_intent_id": "pi_3Nx8",
                "checkout_session_id": "cs_test_a1",
                "event_id": "evt_R1",
                "provider_account_id": "acct_1Provider",
                "provider_user_id": "user_expert_1",
                "country_code": "PT",
                "amount": 10000,
                "currency": "eur",
                "platform_fee": 1500,
                "provider_amount": 8500,
                "session_start_time": "2025-06-01T10:00:00",
                "session_end_time": "2025-06-01T11:00:00",
                "scheduled_transfer_time": "2025-06-08T11:00:00",
                "status": "pending",
                "retry_count": 0,
            }
        }
