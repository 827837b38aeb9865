"""Transfer Admin Routes

Operator endpoints for inspecting and intervening on provider payouts.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from src.api.error import ClientError
from src.api.schemas.transfer_request import (
    AnnotateTransferRequestSchema,
    ApproveTransferRequestSchema,
    CancelTransferRequestSchema,
    ResolveTransferRequestSchema,
)
from src.app.use_cases.transfers.dtos import (
    AnnotateTransferCommandDTO,
    ApproveTransferCommandDTO,
    CancelTransferCommandDTO,
    ListTransfersResponseDTO,
    ResolveTransferCommandDTO,
    TransferDetailDTO,
    TransferRecordDTO,
)
from src.app.use_cases.transfers.annotate_transfer import AnnotateTransfer
from src.app.use_cases.transfers.approve_transfer import ApproveTransfer
from src.app.use_cases.transfers.cancel_transfer import CancelTransfer
from src.app.use_cases.transfers.get_transfer import GetTransfer
from src.app.use_cases.transfers.list_transfers import ListTransfers
from src.app.use_cases.transfers.resolve_transfer import ResolveTransfer
from src.adapter.repositories.transfer_event_repository import SqlAlchemyTransferEventRepository
from src.adapter.repositories.transfer_record_repository import SqlAlchemyTransferRecordRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import get_payment_gateway, get_session, verify_cron_key

router = APIRouter(
    prefix="/admin/transfers",
    tags=["Transfer Admin"],
    dependencies=[Depends(verify_cron_key)],
    responses={
        401: {"description": "Missing or invalid X-Api-Key"},
        404: {"description": "Transfer not found"},
    },
)

INVALID_STATE_RESPONSE = {
    "description": "Transfer is not in a state that allows this action",
    "content": {
        "application/json": {
            "example": {
                "error": {
                    "code": "INVALID_TRANSFER_STATE",
                    "message": "Transfer 42 is pending, only requires_approval transfers can be approved"
                }
            }
        }
    }
}


def _write_use_case(use_case_class, session: AsyncSession):
    return use_case_class(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyTransferRecordRepository(session),
        SqlAlchemyTransferEventRepository(session),
    )


@router.get("", response_model=ListTransfersResponseDTO)
async def list_transfers(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    provider_user_id: Optional[str] = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_session),
):
    """List transfers, newest first, optionally filtered by status and provider."""
    use_case = ListTransfers(SqlAlchemyTransferRecordRepository(session))
    result = await use_case.execute(
        status=status_filter, provider_user_id=provider_user_id, limit=limit, offset=offset
    )

    if result.is_err():
        raise ClientError.from_error(result.error)

    return result.value


@router.get("/{transfer_id}", response_model=TransferDetailDTO)
async def get_transfer(transfer_id: int, session: AsyncSession = Depends(get_session)):
    """Transfer record with its audit trail."""
    use_case = GetTransfer(
        SqlAlchemyTransferRecordRepository(session), SqlAlchemyTransferEventRepository(session)
    )
    result = await use_case.execute(transfer_id)

    if result.is_err():
        raise ClientError.from_error(result.error)

    return result.value


@router.post(
    "/{transfer_id}/approve",
    response_model=TransferRecordDTO,
    status_code=status.HTTP_200_OK,
    responses={409: INVALID_STATE_RESPONSE}
)
async def approve_transfer(
    transfer_id: int,
    request: ApproveTransferRequestSchema,
    session: AsyncSession = Depends(get_session),
):
    """
    Re-queue a transfer that requires approval.

    The retry budget is reset and the transfer becomes due immediately.
    """
    use_case = _write_use_case(ApproveTransfer, session)
    result = await use_case.execute(transfer_id, ApproveTransferCommandDTO(**request.model_dump()))

    if result.is_err():
        raise ClientError.from_error(result.error)

    return result.value


@router.post("/{transfer_id}/annotate", response_model=TransferRecordDTO)
async def annotate_transfer(
    transfer_id: int,
    request: AnnotateTransferRequestSchema,
    session: AsyncSession = Depends(get_session),
):
    """Attach an operator note. Status is not changed."""
    use_case = _write_use_case(AnnotateTransfer, session)
    result = await use_case.execute(transfer_id, AnnotateTransferCommandDTO(**request.model_dump()))

    if result.is_err():
        raise ClientError.from_error(result.error)

    return result.value


@router.post(
    "/{transfer_id}/resolve",
    response_model=TransferRecordDTO,
    responses={409: INVALID_STATE_RESPONSE}
)
async def resolve_transfer(
    transfer_id: int,
    request: ResolveTransferRequestSchema,
    session: AsyncSession = Depends(get_session),
):
    """Close a transfer that requires approval as completed (paid out-of-band) or failed."""
    use_case = _write_use_case(ResolveTransfer, session)
    result = await use_case.execute(transfer_id, ResolveTransferCommandDTO(**request.model_dump()))

    if result.is_err():
        raise ClientError.from_error(result.error)

    return result.value


@router.post(
    "/{transfer_id}/cancel",
    response_model=TransferRecordDTO,
    responses={
        409: INVALID_STATE_RESPONSE,
        502: {"description": "Reversal of a completed transfer failed"},
    }
)
async def cancel_transfer(
    transfer_id: int,
    request: Optional[CancelTransferRequestSchema] = None,
    session: AsyncSession = Depends(get_session),
    settlement_gateway=Depends(get_payment_gateway),
):
    """
    Cancel a transfer after its booking was refunded.

    Pending transfers are cancelled, in-flight ones are flagged for the
    scheduler, and completed ones are reversed.
    """
    use_case = CancelTransfer(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyTransferRecordRepository(session),
        SqlAlchemyTransferEventRepository(session),
        settlement_gateway,
    )
    command = CancelTransferCommandDTO(**request.model_dump()) if request else None
    result = await use_case.execute(transfer_id, command)

    if result.is_err():
        raise ClientError.from_error(result.error)

    return result.value
