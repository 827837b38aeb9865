"""Webhook Routes

Receives payment-completed notifications from the payment processor.
"""

from fastapi import APIRouter, Depends, Response, status
from sqlmodel.ext.asyncio.session import AsyncSession

from src.api.error import ClientError
from src.api.schemas.transfer_request import PaymentCompletedRequestSchema
from src.app.use_cases.transfers.dtos import CreateTransferCommandDTO, CreateTransferResponseDTO
from src.app.use_cases.transfers.create_transfer_record import CreateTransferRecord
from src.adapter.repositories.transfer_event_repository import SqlAlchemyTransferEventRepository
from src.adapter.repositories.transfer_record_repository import SqlAlchemyTransferRecordRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import get_config, get_session, verify_webhook_secret

router = APIRouter(
    prefix="/webhooks",
    tags=["Webhooks"],
    dependencies=[Depends(verify_webhook_secret)],
)


@router.post(
    "/payment-completed",
    response_model=CreateTransferResponseDTO,
    status_code=status.HTTP_201_CREATED,
    responses={
        200: {"description": "Payment already recorded, existing transfer returned"},
        401: {"description": "Invalid webhook secret"},
    }
)
async def payment_completed(
    request: PaymentCompletedRequestSchema,
    response: Response,
    session: AsyncSession = Depends(get_session),
    config=Depends(get_config),
):
    """
    Record the provider payout owed for a paid booking.

    Deliveries are deduplicated on `payment_intent_id`: a repeated delivery
    returns the existing transfer with `created: false` and status 200.
    """
    use_case = CreateTransferRecord(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyTransferRecordRepository(session),
        SqlAlchemyTransferEventRepository(session),
        delay_table=config.PAYOUT_DELAY_DAYS,
    )
    result = await use_case.execute(CreateTransferCommandDTO(**request.model_dump()))

    if result.is_err():
        raise ClientError.from_error(result.error)

    if not result.value.created:
        response.status_code = status.HTTP_200_OK

    return result.value
