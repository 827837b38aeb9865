"""Transfer Event Domain Entity

Immutable append-only audit trail of transfer transitions and operator actions.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import BigInteger, ForeignKey, Integer, String, Text
from src.domain.base import BaseModel, enum_column
from src.domain.transfer_record import TransferStatus


class TransferEventType(str, Enum):
    """Kinds of audited transfer events"""
    CREATED = "created"
    CLAIMED = "claimed"
    LEASE_EXPIRED = "lease_expired"
    COMPLETED = "completed"
    RETRY_SCHEDULED = "retry_scheduled"
    ESCALATED = "escalated"
    CANCEL_REQUESTED = "cancel_requested"
    CANCELLED = "cancelled"
    REVERSED = "reversed"
    APPROVED = "approved"
    ANNOTATED = "annotated"
    RESOLVED = "resolved"


class TransferEvent(BaseModel, table=True):
    """
    Transfer Event - One audited change to a TransferRecord

    Domain Rules:
    - Events are immutable (append-only)
    - actor is an operator id for admin actions, "scheduler" or "system" otherwise
    """

    __tablename__ = "transfer_events"
    __table_args__ = (
        Index('ix_transfer_events_transfer_created', 'transfer_id', 'created_at'),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True),
        description="Unique event identifier (auto-increment)"
    )

    transfer_id: int = Field(
        sa_column=Column(BigInteger, ForeignKey("transfer_records.id", ondelete="CASCADE"), nullable=False),
        description="Foreign key to TransferRecord"
    )

    event_type: TransferEventType = Field(
        sa_column=enum_column(TransferEventType),
        description="What happened"
    )

    from_status: Optional[TransferStatus] = Field(
        default=None,
        sa_column=enum_column(TransferStatus, nullable=True),
        description="Status before the event"
    )

    to_status: Optional[TransferStatus] = Field(
        default=None,
        sa_column=enum_column(TransferStatus, nullable=True),
        description="Status after the event"
    )

    actor: str = Field(
        sa_column=Column(String(255), nullable=False),
        description="Operator id, 'scheduler' or 'system'"
    )

    note: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
        description="Free-text note or error detail"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Event timestamp (immutable)"
    )
