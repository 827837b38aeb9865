"""Unit tests for CreateTransferRecord use case

Tests cover:
- Schedule computed from jurisdiction delay and payment aging
- Idempotent on payment_intent_id, including a concurrent insert race
- Amount validation
"""

import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.exc import IntegrityError

from src.app.use_cases.transfers.create_transfer_record import CreateTransferRecord
from src.app.use_cases.transfers.dtos import CreateTransferCommandDTO
from src.domain.transfer_event import TransferEventType
from src.domain.transfer_record import TransferStatus
from tests.fixtures.transfers import SESSION_END, SESSION_START, make_transfer_record

DELAYS = {"DEFAULT": 7, "PT": 7, "US": 2}


@pytest.fixture
def mock_transfer_repo():
    repo = MagicMock()
    repo.get_by_payment_intent_id = AsyncMock(return_value=None)

    async def create(record):
        record.id = 42
        return record

    repo.create = AsyncMock(side_effect=create)
    return repo


@pytest.fixture
def mock_event_repo():
    repo = MagicMock()
    repo.create = AsyncMock(side_effect=lambda event: event)
    return repo


@pytest.fixture
def create_use_case(mock_uow, mock_transfer_repo, mock_event_repo):
    return CreateTransferRecord(mock_uow, mock_transfer_repo, mock_event_repo, delay_table=DELAYS)


def make_command(**overrides):
    values = dict(
        payment_intent_id="pi_1",
        checkout_session_id="cs_1",
        event_id="evt_R1",
        provider_account_id="acct_1",
        provider_user_id="user_expert_1",
        country_code="PT",
        amount=10000,
        platform_fee=1500,
        payment_created_at=SESSION_START - timedelta(hours=1),
        session_start_time=SESSION_START,
        session_end_time=SESSION_END,
    )
    values.update(overrides)
    return CreateTransferCommandDTO(**values)


@pytest.mark.asyncio
class TestCreateTransferRecord:
    async def test_record_is_pending_with_provider_share(
        self, create_use_case, mock_uow, mock_event_repo
    ):
        result = await create_use_case.execute(make_command())

        assert result.is_ok()
        assert result.value.created is True
        transfer = result.value.transfer
        assert transfer.transfer_id == 42
        assert transfer.status == "pending"
        assert transfer.provider_amount == 8500
        assert transfer.scheduled_transfer_time == SESSION_END + timedelta(days=7)
        assert transfer.next_attempt_at == transfer.scheduled_transfer_time
        event = mock_event_repo.create.await_args.args[0]
        assert event.event_type == TransferEventType.CREATED
        assert event.to_status == TransferStatus.PENDING
        mock_uow.commit.assert_awaited_once()

    async def test_payment_aging_shortens_holding_period(self, create_use_case):
        result = await create_use_case.execute(
            make_command(payment_created_at=SESSION_START - timedelta(days=10))
        )

        assert result.value.transfer.scheduled_transfer_time == SESSION_END + timedelta(days=1)

    async def test_jurisdiction_specific_delay(self, create_use_case):
        result = await create_use_case.execute(make_command(country_code="us"))

        assert result.value.transfer.country_code == "US"
        assert result.value.transfer.scheduled_transfer_time == SESSION_END + timedelta(days=2)

    async def test_missing_jurisdiction_uses_default(self, create_use_case):
        result = await create_use_case.execute(make_command(country_code=None))

        assert result.value.transfer.country_code == "DEFAULT"
        assert result.value.transfer.scheduled_transfer_time == SESSION_END + timedelta(days=7)


@pytest.mark.asyncio
class TestCreateTransferRecordIdempotency:
    async def test_redelivered_payment_returns_existing(
        self, create_use_case, mock_transfer_repo, mock_uow
    ):
        mock_transfer_repo.get_by_payment_intent_id = AsyncMock(return_value=make_transfer_record(id=7))

        result = await create_use_case.execute(make_command())

        assert result.is_ok()
        assert result.value.created is False
        assert result.value.transfer.transfer_id == 7
        mock_transfer_repo.create.assert_not_called()
        mock_uow.commit.assert_not_called()

    async def test_concurrent_insert_returns_winner(self, create_use_case, mock_transfer_repo, mock_uow):
        mock_transfer_repo.get_by_payment_intent_id = AsyncMock(
            side_effect=[None, make_transfer_record(id=9)]
        )
        mock_transfer_repo.create = AsyncMock(
            side_effect=IntegrityError("INSERT", {}, Exception("duplicate key"))
        )

        result = await create_use_case.execute(make_command())

        assert result.is_ok()
        assert result.value.created is False
        assert result.value.transfer.transfer_id == 9
        mock_uow.rollback.assert_awaited_once()


@pytest.mark.asyncio
class TestCreateTransferRecordValidation:
    async def test_fee_consuming_whole_amount_is_rejected(self, create_use_case, mock_transfer_repo):
        result = await create_use_case.execute(make_command(platform_fee=10000))

        assert result.error.code == "INVALID_AMOUNTS"
        mock_transfer_repo.create.assert_not_called()

    async def test_session_must_end_after_start(self, create_use_case):
        result = await create_use_case.execute(
            make_command(session_end_time=SESSION_START - timedelta(minutes=1))
        )

        assert result.error.code == "INVALID_SESSION_WINDOW"

    async def test_repository_failure_is_wrapped(self, create_use_case, mock_transfer_repo, mock_uow):
        mock_transfer_repo.get_by_payment_intent_id = AsyncMock(side_effect=RuntimeError("db down"))

        result = await create_use_case.execute(make_command())

        assert result.error.code == "CREATE_TRANSFER_FAILED"
        mock_uow.rollback.assert_awaited_once()
