"""Payout alert channels

Log lines for every deployment, plus an optional JSON webhook that
operators point at their chat or paging tool.
"""

import logging
from typing import Any, Dict, Optional
import httpx
from src.app.services.notification_service import NotificationService
from src.domain.transfer_record import TransferRecord

logger = logging.getLogger(__name__)


def _record_payload(alert_type: str, record: TransferRecord) -> Dict[str, Any]:
    return {
        "type": alert_type,
        "transfer_id": record.id,
        "payment_intent_id": record.payment_intent_id,
        "provider_user_id": record.provider_user_id,
        "provider_account_id": record.provider_account_id,
        "provider_amount": record.provider_amount,
        "currency": record.currency,
        "status": record.status.value,
        "retry_count": record.retry_count,
        "error_code": record.error_code,
        "error_message": record.error_message,
        "transfer_reference": record.transfer_reference,
        "scheduled_transfer_time": record.scheduled_transfer_time.isoformat(),
    }


class LoggingNotificationService(NotificationService):
    """Writes payout alerts to the application log"""

    async def send_requires_approval_alert(self, record: TransferRecord) -> bool:
        logger.warning(
            f"[PAYOUT REVIEW] Transfer: {record.id}, "
            f"Provider: {record.provider_user_id}, "
            f"Amount: {record.provider_amount} {record.currency}, "
            f"Retries: {record.retry_count}, "
            f"Error: {record.error_code} {record.error_message}"
        )
        return True

    async def send_transfer_completed(self, record: TransferRecord) -> bool:
        logger.info(
            f"[PAYOUT COMPLETED] Transfer: {record.id}, "
            f"Provider: {record.provider_user_id}, "
            f"Amount: {record.provider_amount} {record.currency}, "
            f"Reference: {record.transfer_reference}"
        )
        return True


class WebhookNotificationService(NotificationService):
    """
    POSTs one JSON document per alert

    A delivery failure is logged and reported as False; it never affects
    the transfer that triggered it.
    """

    def __init__(self, webhook_url: str, timeout: float = 10.0):
        self.webhook_url = webhook_url
        self.timeout = timeout

    async def _post(self, payload: Dict[str, Any]) -> bool:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.webhook_url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
                response.raise_for_status()
                logger.info(
                    f"Webhook notification {payload['type']} sent for transfer "
                    f"{payload['transfer_id']} to {self.webhook_url}"
                )
                return True
        except httpx.HTTPError as e:
            logger.error(
                f"Failed to send webhook notification for transfer {payload['transfer_id']}: {e}"
            )
            return False

    async def send_requires_approval_alert(self, record: TransferRecord) -> bool:
        return await self._post(_record_payload("transfer_requires_approval", record))

    async def send_transfer_completed(self, record: TransferRecord) -> bool:
        return await self._post(_record_payload("transfer_completed", record))


class CompositeNotificationService(NotificationService):
    """Sends each alert to every channel; succeeds if any channel did"""

    def __init__(self, services: list[NotificationService]):
        self.services = services

    async def _fan_out(self, method: str, record: TransferRecord) -> bool:
        success = False
        for service in self.services:
            try:
                if await getattr(service, method)(record):
                    success = True
            except Exception as e:
                logger.error(f"{type(service).__name__}.{method} failed for transfer {record.id}: {e}")
        return success

    async def send_requires_approval_alert(self, record: TransferRecord) -> bool:
        return await self._fan_out("send_requires_approval_alert", record)

    async def send_transfer_completed(self, record: TransferRecord) -> bool:
        return await self._fan_out("send_transfer_completed", record)


def create_notification_service(webhook_url: Optional[str] = None) -> NotificationService:
    """Log channel always; log plus webhook when PAYOUT_NOTIFICATION_WEBHOOK is set"""
    if not webhook_url:
        return LoggingNotificationService()

    return CompositeNotificationService(
        [LoggingNotificationService(), WebhookNotificationService(webhook_url)]
    )
