"""Unit tests for ReserveSlot use case

Tests cover:
- Granting a free slot
- Losing the insert race to another requester (SLOT_CONFLICT)
- Same requester re-reserving their own slot
- Re-granting a slot whose holder already lapsed
"""

import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.exc import IntegrityError

from src.app.use_cases.reservations.dtos import ReserveSlotCommandDTO
from src.app.use_cases.reservations.reserve_slot import ReserveSlot
from src.domain.slot_reservation import ReservationStatus, SlotReservation

NOW = datetime(2025, 5, 20, 9, 0)
START = datetime(2025, 6, 1, 10, 0)
END = datetime(2025, 6, 1, 11, 0)


def unique_violation():
    return IntegrityError("INSERT INTO slot_reservations", {}, Exception("UNIQUE constraint failed"))


def make_reservation(requester_id="guest@example.com", expires_at=None, reservation_id="res_1"):
    return SlotReservation(
        id=reservation_id,
        event_id="evt_R1",
        requester_id=requester_id,
        start_time=START,
        end_time=END,
        expires_at=expires_at or NOW + timedelta(minutes=30),
        checkout_session_id="cs_1",
        status=ReservationStatus.ACTIVE,
        created_at=NOW,
    )


@pytest.fixture
def mock_reservation_repo():
    repo = MagicMock()
    repo.create = AsyncMock(side_effect=lambda reservation: reservation)
    repo.get_active_for_slot = AsyncMock(return_value=None)
    repo.end_if_active = AsyncMock(return_value=True)
    return repo


@pytest.fixture
def reserve_use_case(mock_uow, mock_reservation_repo):
    return ReserveSlot(mock_uow, mock_reservation_repo, hold_minutes=30)


@pytest.fixture
def command():
    return ReserveSlotCommandDTO(
        event_id="evt_R1",
        requester_id="guest@example.com",
        start_time=START,
        end_time=END,
        checkout_session_id="cs_1",
    )


@pytest.mark.asyncio
class TestReserveSlotGranted:
    async def test_free_slot_is_reserved(self, reserve_use_case, mock_uow, command):
        result = await reserve_use_case.execute(command, now=NOW)

        assert result.is_ok()
        assert result.value.status == "active"
        assert result.value.replayed is False
        assert result.value.expires_at == NOW + timedelta(minutes=30)
        mock_uow.commit.assert_awaited_once()

    async def test_end_before_start_is_rejected(self, reserve_use_case, mock_reservation_repo):
        command = ReserveSlotCommandDTO(
            event_id="evt_R1", requester_id="guest@example.com", start_time=END, end_time=START
        )

        result = await reserve_use_case.execute(command, now=NOW)

        assert result.is_err()
        assert result.error.code == "INVALID_SLOT"
        mock_reservation_repo.create.assert_not_called()


@pytest.mark.asyncio
class TestReserveSlotContention:
    async def test_slot_held_by_other_requester_conflicts(
        self, reserve_use_case, mock_uow, mock_reservation_repo, command
    ):
        mock_reservation_repo.create = AsyncMock(side_effect=unique_violation())
        mock_reservation_repo.get_active_for_slot = AsyncMock(
            return_value=make_reservation(requester_id="someone@else.com")
        )

        result = await reserve_use_case.execute(command, now=NOW)

        assert result.is_err()
        assert result.error.code == "SLOT_CONFLICT"
        mock_uow.rollback.assert_awaited()

    async def test_same_requester_gets_their_hold_back(
        self, reserve_use_case, mock_reservation_repo, command
    ):
        existing = make_reservation(reservation_id="res_existing")
        mock_reservation_repo.create = AsyncMock(side_effect=unique_violation())
        mock_reservation_repo.get_active_for_slot = AsyncMock(return_value=existing)

        result = await reserve_use_case.execute(command, now=NOW)

        assert result.is_ok()
        assert result.value.reservation_id == "res_existing"
        assert result.value.replayed is True

    async def test_lapsed_holder_is_expired_and_slot_regranted(
        self, reserve_use_case, mock_uow, mock_reservation_repo, command
    ):
        lapsed = make_reservation(
            requester_id="someone@else.com",
            expires_at=NOW - timedelta(minutes=1),
            reservation_id="res_lapsed",
        )
        mock_reservation_repo.create = AsyncMock(
            side_effect=[unique_violation(), make_reservation(reservation_id="res_new")]
        )
        mock_reservation_repo.get_active_for_slot = AsyncMock(return_value=lapsed)

        result = await reserve_use_case.execute(command, now=NOW)

        assert result.is_ok()
        assert result.value.reservation_id == "res_new"
        mock_reservation_repo.end_if_active.assert_awaited_once_with(
            "res_lapsed", ReservationStatus.EXPIRED, NOW
        )

    async def test_holder_gone_after_violation_retries_insert(
        self, reserve_use_case, mock_reservation_repo, command
    ):
        mock_reservation_repo.create = AsyncMock(
            side_effect=[unique_violation(), make_reservation(reservation_id="res_retry")]
        )

        result = await reserve_use_case.execute(command, now=NOW)

        assert result.is_ok()
        assert result.value.reservation_id == "res_retry"


@pytest.mark.asyncio
class TestReserveSlotErrors:
    async def test_unexpected_error_is_wrapped(self, reserve_use_case, mock_uow, mock_reservation_repo, command):
        mock_reservation_repo.create = AsyncMock(side_effect=RuntimeError("db down"))

        result = await reserve_use_case.execute(command, now=NOW)

        assert result.is_err()
        assert result.error.code == "RESERVE_SLOT_FAILED"
        assert "db down" in result.error.reason
        mock_uow.rollback.assert_awaited()
