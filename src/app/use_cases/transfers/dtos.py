"""Data Transfer Objects for Transfer Use Cases

Pydantic models for command inputs and response outputs.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field
from src.domain.transfer_event import TransferEvent
from src.domain.transfer_record import TransferRecord


class CreateTransferCommandDTO(BaseModel):
    """
    Command DTO for recording a completed booking payment

    Used as input to CreateTransferRecord use case.
    """

    payment_intent_id: str = Field(..., description="Processor payment reference (idempotency key)")
    checkout_session_id: str = Field(..., description="Checkout session that collected the payment")
    event_id: str = Field(..., description="Bookable event/resource identifier")
    booking_id: Optional[str] = Field(default=None, description="Booking reference")
    provider_account_id: str = Field(..., description="Provider payout account")
    provider_user_id: str = Field(..., description="Provider user identifier")
    country_code: Optional[str] = Field(default=None, description="Jurisdiction (ISO 3166 alpha-2)")

    amount: int = Field(..., gt=0, description="Total charged in minor units")
    currency: str = Field(default="eur", min_length=3, max_length=3, description="ISO 4217 code")
    platform_fee: int = Field(..., ge=0, description="Platform fee in minor units")

    payment_created_at: datetime = Field(..., description="When the guest paid")
    session_start_time: datetime = Field(..., description="Session start")
    session_end_time: datetime = Field(..., description="Session end")

    class Config:
        json_schema_extra = {
            "example": {
                "payment_intent_id": "pi_3Nabc",
                "checkout_session_id": "cs_test_a1",
                "event_id": "evt_R1",
                "provider_account_id": "acct_1Expert",
                "provider_user_id": "user_expert_1",
                "country_code": "PT",
                "amount": 10000,
                "currency": "eur",
                "platform_fee": 1500,
                "payment_created_at": "2025-06-01T09:00:00",
                "session_start_time": "2025-06-01T10:00:00",
                "session_end_time": "2025-06-01T11:00:00",
            }
        }


class TransferRecordDTO(BaseModel):
    """Read model of a TransferRecord"""

    transfer_id: int
    payment_intent_id: str
    checkout_session_id: str
    event_id: str
    booking_id: Optional[str] = None
    provider_account_id: str
    provider_user_id: str
    country_code: str
    amount: int
    currency: str
    platform_fee: int
    provider_amount: int
    payment_created_at: datetime
    session_start_time: datetime
    session_end_time: datetime
    scheduled_transfer_time: datetime
    next_attempt_at: datetime
    status: str
    retry_count: int
    requires_approval: bool
    cancel_requested: bool
    transfer_reference: Optional[str] = None
    reversal_reference: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    admin_user_id: Optional[str] = None
    admin_notes: Optional[str] = None
    admin_updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


def to_transfer_dto(record: TransferRecord) -> TransferRecordDTO:
    return TransferRecordDTO(
        transfer_id=record.id,
        payment_intent_id=record.payment_intent_id,
        checkout_session_id=record.checkout_session_id,
        event_id=record.event_id,
        booking_id=record.booking_id,
        provider_account_id=record.provider_account_id,
        provider_user_id=record.provider_user_id,
        country_code=record.country_code,
        amount=record.amount,
        currency=record.currency,
        platform_fee=record.platform_fee,
        provider_amount=record.provider_amount,
        payment_created_at=record.payment_created_at,
        session_start_time=record.session_start_time,
        session_end_time=record.session_end_time,
        scheduled_transfer_time=record.scheduled_transfer_time,
        next_attempt_at=record.next_attempt_at,
        status=record.status.value,
        retry_count=record.retry_count,
        requires_approval=record.requires_approval,
        cancel_requested=record.cancel_requested,
        transfer_reference=record.transfer_reference,
        reversal_reference=record.reversal_reference,
        error_code=record.error_code,
        error_message=record.error_message,
        admin_user_id=record.admin_user_id,
        admin_notes=record.admin_notes,
        admin_updated_at=record.admin_updated_at,
        completed_at=record.completed_at,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


class CreateTransferResponseDTO(BaseModel):
    transfer: TransferRecordDTO
    created: bool = Field(..., description="False when the payment was already recorded")


class TransferEventDTO(BaseModel):
    event_id: int
    event_type: str
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    actor: str
    note: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_event(cls, event: TransferEvent) -> "TransferEventDTO":
        return cls(
            event_id=event.id,
            event_type=event.event_type.value,
            from_status=event.from_status.value if event.from_status else None,
            to_status=event.to_status.value if event.to_status else None,
            actor=event.actor,
            note=event.note,
            created_at=event.created_at,
        )


class TransferDetailDTO(BaseModel):
    """Transfer record together with its audit trail"""

    transfer: TransferRecordDTO
    events: List[TransferEventDTO] = Field(default_factory=list)


class ListTransfersResponseDTO(BaseModel):
    transfers: List[TransferRecordDTO]
    total: int = Field(..., description="Total records matching the filters")
    limit: int
    offset: int


class TransitionOutcome(str, Enum):
    """What one scheduler pass did with one record"""
    COMPLETED = "completed"
    RETRY_SCHEDULED = "retry_scheduled"
    REQUIRES_APPROVAL = "requires_approval"
    CANCELLED = "cancelled"
    REVERSED = "reversed"
    SKIPPED = "skipped"          # Claimed by another pass, or lease lost
    ERROR = "error"              # Unexpected failure, record left untouched


class TransitionResultDTO(BaseModel):
    transfer_id: int
    outcome: TransitionOutcome
    from_status: str
    to_status: Optional[str] = None
    retry_count: int
    error_code: Optional[str] = None
    transfer_reference: Optional[str] = None


class SchedulerRunSummaryDTO(BaseModel):
    """
    Result DTO for one scheduler pass

    Returned by ProcessDueTransfers.
    """

    executed_at: datetime = Field(..., description="Reference time of the pass")
    selected: int = Field(..., description="Due records selected")
    completed: int = 0
    retry_scheduled: int = 0
    requires_approval: int = 0
    cancelled: int = 0
    reversed: int = 0
    skipped: int = 0
    errors: int = 0
    results: List[TransitionResultDTO] = Field(default_factory=list)
    execution_time_ms: int = 0


class CancelTransferCommandDTO(BaseModel):
    reason: Optional[str] = Field(default=None, description="Why the booking was cancelled")
    actor: str = Field(default="system", description="Operator id or 'system'")


class ApproveTransferCommandDTO(BaseModel):
    """
    Command DTO for re-queueing a transfer that needs approval

    Approval resets the retry budget and makes the record due immediately.
    """

    operator_id: str = Field(..., min_length=1, description="Operator performing the action")
    note: Optional[str] = Field(default=None, description="Reason for approval")


class AnnotateTransferCommandDTO(BaseModel):
    operator_id: str = Field(..., min_length=1, description="Operator performing the action")
    note: str = Field(..., min_length=1, description="Annotation text")


class ResolutionOutcome(str, Enum):
    COMPLETED = "completed"   # Paid out-of-band
    FAILED = "failed"         # Abandoned


class ResolveTransferCommandDTO(BaseModel):
    """
    Command DTO for closing a transfer that needs approval without another attempt
    """

    operator_id: str = Field(..., min_length=1, description="Operator performing the action")
    outcome: ResolutionOutcome = Field(..., description="completed or failed")
    note: Optional[str] = Field(default=None, description="Resolution note")
    transfer_reference: Optional[str] = Field(
        default=None,
        description="Remote reference of an out-of-band payout"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "operator_id": "admin_42",
                "outcome": "completed",
                "note": "Paid manually after account fix",
                "transfer_reference": "tr_manual_1",
            }
        }

