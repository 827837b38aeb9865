"""Cron Routes

Entry points for the external scheduler. Protected by the X-Api-Key header.
"""

from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from src.api.error import ClientError
from src.app.use_cases.reservations.dtos import ExpireReservationsResultDTO
from src.app.use_cases.reservations.expire_reservations import ExpireReservations
from src.app.use_cases.transfers.dtos import SchedulerRunSummaryDTO
from src.app.use_cases.transfers.process_due_transfers import ProcessDueTransfers
from src.adapter.repositories.slot_reservation_repository import SqlAlchemySlotReservationRepository
from src.adapter.repositories.transfer_event_repository import SqlAlchemyTransferEventRepository
from src.adapter.repositories.transfer_record_repository import SqlAlchemyTransferRecordRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import (
    get_config,
    get_notification_service,
    get_payment_gateway,
    get_retry_classifier,
    get_session,
    verify_cron_key,
)

router = APIRouter(
    prefix="/cron",
    tags=["Cron"],
    dependencies=[Depends(verify_cron_key)],
    responses={401: {"description": "Missing or invalid X-Api-Key"}},
)


@router.post(
    "/process-transfers",
    response_model=SchedulerRunSummaryDTO,
    status_code=status.HTTP_200_OK,
)
async def process_transfers(
    session: AsyncSession = Depends(get_session),
    settlement_gateway=Depends(get_payment_gateway),
    classifier=Depends(get_retry_classifier),
    notification_service=Depends(get_notification_service),
    config=Depends(get_config),
):
    """
    Run one scheduler pass over due transfers.

    Overlapping calls are safe: each record is claimed before its remote
    transfer is attempted, so a record is only attempted by one pass.
    """
    use_case = ProcessDueTransfers(
        uow=SqlAlchemyUnitOfWork(session),
        transfer_repo=SqlAlchemyTransferRecordRepository(session),
        event_repo=SqlAlchemyTransferEventRepository(session),
        settlement_gateway=settlement_gateway,
        classifier=classifier,
        notification_service=notification_service,
        batch_size=config.TRANSFER_BATCH_SIZE,
        lease_seconds=config.TRANSFER_CLAIM_LEASE_SECONDS,
    )
    result = await use_case.execute()

    if result.is_err():
        raise ClientError.from_error(result.error)

    return result.value


@router.post(
    "/expire-reservations",
    response_model=ExpireReservationsResultDTO,
    status_code=status.HTTP_200_OK,
)
async def expire_reservations(session: AsyncSession = Depends(get_session)):
    """Move lapsed active reservations to expired."""
    use_case = ExpireReservations(
        SqlAlchemyUnitOfWork(session), SqlAlchemySlotReservationRepository(session)
    )
    result = await use_case.execute()

    if result.is_err():
        raise ClientError.from_error(result.error)

    return result.value
