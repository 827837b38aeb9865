"""Unit tests for payout notification services"""

import pytest
from datetime import datetime
from unittest.mock import AsyncMock

from src.adapter.services.notification_service import (
    CompositeNotificationService,
    LoggingNotificationService,
    WebhookNotificationService,
    create_notification_service,
)
from src.domain.transfer_record import TransferRecord, TransferStatus


@pytest.fixture
def escalated_record():
    return TransferRecord(
        id=7,
        payment_intent_id="pi_7",
        checkout_session_id="cs_7",
        event_id="evt_R1",
        provider_account_id="acct_7",
        provider_user_id="user_7",
        amount=10000,
        platform_fee=1500,
        provider_amount=8500,
        payment_created_at=datetime(2025, 6, 1, 9, 0),
        session_start_time=datetime(2025, 6, 1, 10, 0),
        session_end_time=datetime(2025, 6, 1, 11, 0),
        scheduled_transfer_time=datetime(2025, 6, 8, 11, 0),
        next_attempt_at=datetime(2025, 6, 8, 11, 0),
        status=TransferStatus.REQUIRES_APPROVAL,
        requires_approval=True,
        retry_count=3,
        error_code="http_503",
    )


class TestCreateNotificationService:
    def test_logging_only_without_webhook(self):
        assert isinstance(create_notification_service(None), LoggingNotificationService)

    def test_composite_with_webhook(self):
        service = create_notification_service("https://hooks.test/payouts")

        assert isinstance(service, CompositeNotificationService)
        assert isinstance(service.services[1], WebhookNotificationService)


@pytest.mark.asyncio
class TestWebhookNotificationService:
    async def test_payload_describes_the_record(self, escalated_record):
        service = WebhookNotificationService("https://hooks.test/payouts")
        service._post = AsyncMock(return_value=True)

        assert await service.send_requires_approval_alert(escalated_record) is True

        payload = service._post.await_args.args[0]
        assert payload["type"] == "transfer_requires_approval"
        assert payload["transfer_id"] == 7
        assert payload["status"] == "requires_approval"
        assert payload["retry_count"] == 3


@pytest.mark.asyncio
class TestCompositeNotificationService:
    async def test_one_failing_channel_does_not_stop_others(self, escalated_record):
        broken = LoggingNotificationService()
        broken.send_transfer_completed = AsyncMock(side_effect=RuntimeError("boom"))
        working = LoggingNotificationService()

        service = CompositeNotificationService([broken, working])

        assert await service.send_transfer_completed(escalated_record) is True
