"""HTTP Payment Processor Gateway

Talks to the payment processor's REST API with httpx and reduces every
remote failure to a SettlementError.
"""

import logging
from typing import Any, Dict, Optional
import httpx
from src.app.services.payment_gateway import (
    CheckoutGateway,
    CheckoutSession,
    CheckoutSessionRequest,
    SettlementGateway,
    SettlementReceipt,
    SettlementRequest,
)
from src.domain.settlement_error import SettlementError, SettlementErrorKind

logger = logging.getLogger(__name__)

# Processor error codes that are not plain validation failures
PROCESSOR_ERROR_KINDS = {
    "account_invalid": SettlementErrorKind.ACCOUNT_INVALID,
    "account_closed": SettlementErrorKind.ACCOUNT_INVALID,
    "amount_too_large": SettlementErrorKind.AMOUNT_LIMIT,
    "insufficient_funds": SettlementErrorKind.AMOUNT_LIMIT,
}

# Codes returned when expiring a session that cannot be paid anyway
SESSION_ALREADY_CLOSED_CODES = {"session_expired", "session_already_expired", "resource_missing"}


def _error_body(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return body["error"]
    return {}


def error_from_response(response: httpx.Response) -> SettlementError:
    """Map a non-2xx processor response to a SettlementError"""
    error = _error_body(response)
    code = error.get("code")
    message = error.get("message") or response.text[:200] or f"HTTP {response.status_code}"

    if response.status_code == 429:
        kind = SettlementErrorKind.RATE_LIMIT
    elif response.status_code >= 500:
        kind = SettlementErrorKind.SERVER_ERROR
    elif 400 <= response.status_code < 500:
        kind = PROCESSOR_ERROR_KINDS.get(code, SettlementErrorKind.VALIDATION)
    else:
        kind = SettlementErrorKind.UNKNOWN

    return SettlementError(kind, code=code or f"http_{response.status_code}", message=message)


class HttpPaymentGateway(SettlementGateway, CheckoutGateway):
    """
    Payment processor client

    Features:
    - Bearer authentication and Idempotency-Key headers
    - Explicit per-call timeout; a timeout is a TIMEOUT error (retryable)
    - Transport failures become NETWORK errors
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize payment gateway

        Args:
            base_url: Processor API base URL
            api_key: Secret API key
            timeout: Seconds allowed per remote call
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    def _headers(self, idempotency_key: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        return headers

    async def _post(
        self, path: str, payload: Dict[str, Any], idempotency_key: Optional[str] = None
    ) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self.transport
            ) as client:
                return await client.post(path, json=payload, headers=self._headers(idempotency_key))
        except httpx.TimeoutException as e:
            raise SettlementError(
                SettlementErrorKind.TIMEOUT, message=f"{path} timed out after {self.timeout}s"
            ) from e
        except httpx.TransportError as e:
            raise SettlementError(SettlementErrorKind.NETWORK, message=str(e)) from e

    async def create_transfer(self, request: SettlementRequest) -> SettlementReceipt:
        payload = {
            "amount": request.amount,
            "currency": request.currency,
            "destination": request.destination,
            "transfer_group": request.transfer_group,
            "metadata": request.metadata,
        }
        response = await self._post("/v1/transfers", payload, request.idempotency_key)
        if response.is_error:
            raise error_from_response(response)

        data = response.json()
        logger.info(
            f"Transfer {data['id']} created: {request.amount} {request.currency} "
            f"to {request.destination}"
        )
        return SettlementReceipt(
            transfer_reference=data["id"],
            amount=data.get("amount", request.amount),
            currency=data.get("currency", request.currency),
        )

    async def reverse_transfer(
        self, transfer_reference: str, amount: int, idempotency_key: str
    ) -> str:
        response = await self._post(
            f"/v1/transfers/{transfer_reference}/reversals",
            {"amount": amount},
            idempotency_key,
        )
        if response.is_error:
            raise error_from_response(response)

        reversal_id = response.json()["id"]
        logger.info(f"Transfer {transfer_reference} reversed ({reversal_id})")
        return reversal_id

    async def create_session(self, request: CheckoutSessionRequest) -> CheckoutSession:
        payload = {
            "amount": request.amount,
            "currency": request.currency,
            "success_url": request.success_url,
            "cancel_url": request.cancel_url,
            "customer_email": request.requester_id,
            "metadata": {
                **request.metadata,
                "event_id": request.event_id,
                "start_time": request.start_time.isoformat(),
                "end_time": request.end_time.isoformat(),
            },
        }
        response = await self._post("/v1/checkout/sessions", payload)
        if response.is_error:
            raise error_from_response(response)

        data = response.json()
        return CheckoutSession(
            session_id=data["id"],
            url=data.get("url"),
            expires_at=data.get("expires_at"),
        )

    async def expire_session(self, session_id: str) -> None:
        response = await self._post(f"/v1/checkout/sessions/{session_id}/expire", {})
        if not response.is_error:
            logger.info(f"Checkout session {session_id} expired")
            return

        error = _error_body(response)
        if response.status_code == 404 or error.get("code") in SESSION_ALREADY_CLOSED_CODES:
            logger.info(f"Checkout session {session_id} already closed")
            return

        raise error_from_response(response)
