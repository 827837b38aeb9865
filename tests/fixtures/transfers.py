"""Builders for transfer records used across tests"""

from datetime import datetime, timedelta

from src.domain.transfer_record import TransferRecord, TransferStatus

SESSION_START = datetime(2025, 6, 1, 10, 0)
SESSION_END = datetime(2025, 6, 1, 11, 0)
SCHEDULED_AT = SESSION_END + timedelta(days=7)


def make_transfer_record(**overrides) -> TransferRecord:
    values = dict(
        payment_intent_id="pi_1",
        checkout_session_id="cs_1",
        event_id="evt_R1",
        booking_id="bk_1",
        provider_account_id="acct_1",
        provider_user_id="user_expert_1",
        country_code="PT",
        amount=10000,
        currency="eur",
        platform_fee=1500,
        provider_amount=8500,
        payment_created_at=SESSION_START - timedelta(hours=1),
        session_start_time=SESSION_START,
        session_end_time=SESSION_END,
        scheduled_transfer_time=SCHEDULED_AT,
        next_attempt_at=SCHEDULED_AT,
        status=TransferStatus.PENDING,
        retry_count=0,
        requires_approval=False,
        cancel_requested=False,
        created_at=SESSION_START - timedelta(hours=1),
        updated_at=SESSION_START - timedelta(hours=1),
    )
    values.update(overrides)
    return TransferRecord(**values)
