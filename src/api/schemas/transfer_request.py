"""Request schemas for Transfer API

Pydantic models for validating incoming HTTP requests.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, model_validator


class PaymentCompletedRequestSchema(BaseModel):
    """
    Request schema for the payment-completed webhook

    Used for POST /webhooks/payment-completed endpoint.
    """

    payment_intent_id: str = Field(..., min_length=1, description="Processor payment reference")
    checkout_session_id: str = Field(..., min_length=1, description="Checkout session id")
    event_id: str = Field(..., min_length=1, description="Bookable event/resource identifier")
    booking_id: Optional[str] = Field(default=None, description="Booking reference")
    provider_account_id: str = Field(..., min_length=1, description="Provider payout account")
    provider_user_id: str = Field(..., min_length=1, description="Provider user identifier")
    country_code: Optional[str] = Field(default=None, max_length=16, description="Jurisdiction")
    amount: int = Field(..., gt=0, description="Total charged in minor units")
    currency: str = Field(default="eur", min_length=3, max_length=3, description="ISO 4217 code")
    platform_fee: int = Field(..., ge=0, description="Platform fee in minor units")
    payment_created_at: datetime = Field(..., description="When the guest paid")
    session_start_time: datetime = Field(..., description="Session start")
    session_end_time: datetime = Field(..., description="Session end")

    @model_validator(mode="after")
    def validate_session_window(self):
        if self.session_end_time <= self.session_start_time:
            raise ValueError("session_end_time must be after session_start_time")
        return self

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


class CancelTransferRequestSchema(BaseModel):
    reason: Optional[str] = Field(default=None, description="Why the booking was cancelled")
    actor: str = Field(default="system", min_length=1, description="Operator id or 'system'")


class ApproveTransferRequestSchema(BaseModel):
    operator_id: str = Field(..., min_length=1, description="Operator performing the action")
    note: Optional[str] = Field(default=None, description="Reason for approval")


class AnnotateTransferRequestSchema(BaseModel):
    operator_id: str = Field(..., min_length=1, description="Operator performing the action")
    note: str = Field(..., min_length=1, description="Annotation text")


class ResolveTransferRequestSchema(BaseModel):
    operator_id: str = Field(..., min_length=1, description="Operator performing the action")
    outcome: str = Field(..., pattern="^(completed|failed)$", description="completed or failed")
    note: Optional[str] = Field(default=None, description="Resolution note")
    transfer_reference: Optional[str] = Field(default=None, description="Out-of-band payout reference")
