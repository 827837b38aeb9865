"""API tests for bookings, webhooks, cron and transfer admin routes

Tests cover:
- Booking idempotency replay and slot conflicts
- Reservation hold and release; only the holder may release
- Payment-completed webhook deduplication and secret check
- Cron key protection and a full scheduler pass
- Operator approve / annotate / resolve / cancel flow
- Validation errors rendered as 400
- Shutdown closes the shared idempotency cache
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

import src.depends
from src.api.app import create_app
from src.app.services.idempotency_cache import IdempotencyCache
from src.domain.settlement_error import SettlementError, SettlementErrorKind
from tests.fixtures import app_config
from tests.fixtures.app_config import TEST_CRON_KEY, TEST_WEBHOOK_SECRET

CRON_HEADERS = {"X-Api-Key": TEST_CRON_KEY}
WEBHOOK_HEADERS = {"X-Webhook-Secret": TEST_WEBHOOK_SECRET}

SLOT = {
    "event_id": "evt_R1",
    "requester_id": "guest@example.com",
    "start_time": "2030-06-01T10:00:00",
    "end_time": "2030-06-01T11:00:00",
}


def payment_payload(payment_intent_id="pi_api_1", **overrides):
    payload = {
        "payment_intent_id": payment_intent_id,
        "checkout_session_id": f"cs_{payment_intent_id}",
        "event_id": "evt_R1",
        "provider_account_id": "acct_1",
        "provider_user_id": "user_expert_1",
        "country_code": "PT",
        "amount": 10000,
        "currency": "eur",
        "platform_fee": 1500,
        "payment_created_at": "2025-06-01T08:00:00",
        "session_start_time": "2025-06-01T10:00:00",
        "session_end_time": "2025-06-01T11:00:00",
    }
    payload.update(overrides)
    return payload


async def record_payment(client, payment_intent_id="pi_api_1"):
    response = await client.post(
        "/webhooks/payment-completed", json=payment_payload(payment_intent_id), headers=WEBHOOK_HEADERS
    )
    assert response.status_code == 201
    return response.json()["transfer"]["transfer_id"]


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
class TestBookings:
    async def test_booking_replays_with_same_idempotency_key(self, client, payment_gateway):
        body = {**SLOT, "amount": 10000}
        headers = {"Idempotency-Key": "book-1"}

        first = await client.post("/bookings", json=body, headers=headers)
        second = await client.post("/bookings", json=body, headers=headers)

        assert first.status_code == 200
        assert second.status_code == 200
        assert first.json()["replayed"] is False
        assert second.json()["replayed"] is True
        assert second.json()["session_id"] == first.json()["session_id"]
        assert len(payment_gateway.sessions) == 1

    async def test_booking_held_slot_by_other_guest_conflicts(self, client, payment_gateway):
        await client.post("/bookings", json={**SLOT, "amount": 10000}, headers={"Idempotency-Key": "a"})

        response = await client.post(
            "/bookings",
            json={**SLOT, "requester_id": "other@example.com", "amount": 10000},
            headers={"Idempotency-Key": "b"},
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "SLOT_CONFLICT"
        assert payment_gateway.expired_sessions == ["cs_test_2"]

    async def test_booking_requires_idempotency_key(self, client):
        response = await client.post("/bookings", json={**SLOT, "amount": 10000})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_invalid_slot_window_is_rejected(self, client):
        body = {**SLOT, "end_time": SLOT["start_time"], "amount": 10000}

        response = await client.post("/bookings", json=body, headers={"Idempotency-Key": "x"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
class TestReservations:
    async def test_reserve_conflict_and_release(self, client):
        created = await client.post("/reservations", json=SLOT)
        assert created.status_code == 201
        reservation_id = created.json()["reservation_id"]

        conflict = await client.post("/reservations", json={**SLOT, "requester_id": "other@example.com"})
        assert conflict.status_code == 409

        forbidden = await client.post(
            f"/reservations/{reservation_id}/release", json={"requester_id": "other@example.com"}
        )
        assert forbidden.status_code == 403

        released = await client.post(
            f"/reservations/{reservation_id}/release", json={"requester_id": SLOT["requester_id"]}
        )
        assert released.status_code == 200
        assert released.json()["status"] == "released"

        regranted = await client.post("/reservations", json={**SLOT, "requester_id": "other@example.com"})
        assert regranted.status_code == 201

    async def test_release_unknown_reservation(self, client):
        response = await client.post(
            "/reservations/missing/release", json={"requester_id": SLOT["requester_id"]}
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "RESERVATION_NOT_FOUND"

    async def test_release_requires_the_holder(self, client):
        created = await client.post("/reservations", json=SLOT)
        reservation_id = created.json()["reservation_id"]

        anonymous = await client.post(f"/reservations/{reservation_id}/release")

        assert anonymous.status_code == 400
        assert anonymous.json()["error"]["code"] == "VALIDATION_ERROR"

        still_held = await client.post("/reservations", json={**SLOT, "requester_id": "other@example.com"})
        assert still_held.status_code == 409


@pytest.mark.asyncio
class TestPaymentWebhook:
    async def test_first_delivery_creates_and_redelivery_returns_existing(self, client):
        first = await client.post(
            "/webhooks/payment-completed", json=payment_payload(), headers=WEBHOOK_HEADERS
        )
        second = await client.post(
            "/webhooks/payment-completed", json=payment_payload(), headers=WEBHOOK_HEADERS
        )

        assert first.status_code == 201
        assert first.json()["created"] is True
        transfer = first.json()["transfer"]
        assert transfer["provider_amount"] == 8500
        assert transfer["status"] == "pending"
        assert transfer["scheduled_transfer_time"] == "2025-06-08T11:00:00"

        assert second.status_code == 200
        assert second.json()["created"] is False
        assert second.json()["transfer"]["transfer_id"] == transfer["transfer_id"]

    async def test_bad_secret_is_rejected(self, client):
        response = await client.post(
            "/webhooks/payment-completed",
            json=payment_payload(),
            headers={"X-Webhook-Secret": "wrong"},
        )

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    async def test_fee_exceeding_amount_is_rejected(self, client):
        response = await client.post(
            "/webhooks/payment-completed",
            json=payment_payload(platform_fee=10000),
            headers=WEBHOOK_HEADERS,
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_AMOUNTS"


@pytest.mark.asyncio
class TestCron:
    async def test_missing_key_is_rejected(self, client):
        response = await client.post("/cron/process-transfers")

        assert response.status_code == 401

    async def test_process_transfers_settles_due_records(self, client, payment_gateway):
        transfer_id = await record_payment(client)

        response = await client.post("/cron/process-transfers", headers=CRON_HEADERS)

        assert response.status_code == 200
        summary = response.json()
        assert summary["selected"] == 1
        assert summary["completed"] == 1
        assert summary["results"][0]["transfer_id"] == transfer_id
        assert payment_gateway.transfer_calls[0].amount == 8500

        again = await client.post("/cron/process-transfers", headers=CRON_HEADERS)
        assert again.json()["selected"] == 0
        assert len(payment_gateway.transfer_calls) == 1

    async def test_expire_reservations(self, client):
        response = await client.post("/cron/expire-reservations", headers=CRON_HEADERS)

        assert response.status_code == 200
        assert response.json()["expired_count"] == 0


@pytest.mark.asyncio
class TestTransferAdmin:
    async def test_requires_cron_key(self, client):
        response = await client.get("/admin/transfers")

        assert response.status_code == 401

    async def test_escalated_transfer_approve_and_complete(self, client, payment_gateway):
        transfer_id = await record_payment(client)
        payment_gateway.transfer_failures.append(
            SettlementError(SettlementErrorKind.ACCOUNT_INVALID, message="account closed")
        )

        summary = (await client.post("/cron/process-transfers", headers=CRON_HEADERS)).json()
        assert summary["requires_approval"] == 1

        listed = await client.get(
            "/admin/transfers", params={"status": "requires_approval"}, headers=CRON_HEADERS
        )
        assert listed.status_code == 200
        assert listed.json()["total"] == 1
        assert listed.json()["transfers"][0]["error_code"] == "account_invalid"

        annotated = await client.post(
            f"/admin/transfers/{transfer_id}/annotate",
            json={"operator_id": "admin_1", "note": "asked expert to fix account"},
            headers=CRON_HEADERS,
        )
        assert annotated.status_code == 200
        assert annotated.json()["status"] == "requires_approval"

        approved = await client.post(
            f"/admin/transfers/{transfer_id}/approve",
            json={"operator_id": "admin_1"},
            headers=CRON_HEADERS,
        )
        assert approved.status_code == 200
        assert approved.json()["status"] == "pending"
        assert approved.json()["retry_count"] == 0

        repeat = await client.post(
            f"/admin/transfers/{transfer_id}/approve",
            json={"operator_id": "admin_1"},
            headers=CRON_HEADERS,
        )
        assert repeat.status_code == 409

        summary = (await client.post("/cron/process-transfers", headers=CRON_HEADERS)).json()
        assert summary["completed"] == 1

        detail = await client.get(f"/admin/transfers/{transfer_id}", headers=CRON_HEADERS)
        assert detail.status_code == 200
        event_types = [event["event_type"] for event in detail.json()["events"]]
        assert "escalated" in event_types
        assert "annotated" in event_types
        assert "approved" in event_types
        assert detail.json()["transfer"]["status"] == "completed"

    async def test_resolve_escalated_transfer_as_failed(self, client, payment_gateway):
        transfer_id = await record_payment(client)
        payment_gateway.transfer_failures.append(SettlementError(SettlementErrorKind.VALIDATION))
        await client.post("/cron/process-transfers", headers=CRON_HEADERS)

        resolved = await client.post(
            f"/admin/transfers/{transfer_id}/resolve",
            json={"operator_id": "admin_1", "outcome": "failed", "note": "refunded guest"},
            headers=CRON_HEADERS,
        )

        assert resolved.status_code == 200
        assert resolved.json()["status"] == "failed"

    async def test_cancel_completed_transfer_reverses_it(self, client, payment_gateway):
        transfer_id = await record_payment(client)
        await client.post("/cron/process-transfers", headers=CRON_HEADERS)

        response = await client.post(
            f"/admin/transfers/{transfer_id}/cancel",
            json={"reason": "booking refunded", "actor": "admin_1"},
            headers=CRON_HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["status"] == "reversed"
        assert payment_gateway.reversals == ["tr_1"]

    async def test_unknown_transfer_is_not_found(self, client):
        response = await client.get("/admin/transfers/999", headers=CRON_HEADERS)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "TRANSFER_NOT_FOUND"

    async def test_invalid_status_filter(self, client):
        response = await client.get("/admin/transfers", params={"status": "bogus"}, headers=CRON_HEADERS)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_STATUS_FILTER"


@pytest.mark.asyncio
class TestShutdown:
    async def test_shutdown_closes_idempotency_cache(self, monkeypatch):
        backend = MagicMock()
        backend.close = AsyncMock()
        monkeypatch.setattr(src.depends, "_idempotency_cache", IdempotencyCache(backend))
        app = create_app(app_config.TestConfig)

        async with app.router.lifespan_context(app):
            backend.close.assert_not_awaited()

        backend.close.assert_awaited_once()
        assert src.depends._idempotency_cache is None
