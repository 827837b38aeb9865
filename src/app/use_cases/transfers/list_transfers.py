"""ListTransfers Use Case

Paginated listing of transfer records for the admin surface.
"""

from typing import Optional
from libs.result import Result, Return, Error
from src.app.repositories.transfer_record_repository import TransferRecordRepository
from src.domain.transfer_record import TransferStatus
from .dtos import ListTransfersResponseDTO, to_transfer_dto


class ListTransfers:
    MAX_LIMIT = 100

    def __init__(self, transfer_repo: TransferRecordRepository):
        self.transfer_repo = transfer_repo

    async def execute(
        self,
        status: Optional[str] = None,
        provider_user_id: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Result[ListTransfersResponseDTO]:
        """
        List transfer records

        Args:
            status: Optional status filter (e.g. "requires_approval")
            provider_user_id: Optional provider filter
            limit: Page size (1-100)
            offset: Records to skip

        Returns:
            Result[ListTransfersResponseDTO]
        """
        status_filter = None
        if status is not None:
            try:
                status_filter = TransferStatus(status)
            except ValueError:
                return Return.err(
                    Error(
                        code="INVALID_STATUS_FILTER",
                        message=f"Unknown transfer status '{status}'",
                        reason=f"expected one of {[s.value for s in TransferStatus]}",
                    )
                )

        limit = max(1, min(limit, self.MAX_LIMIT))
        offset = max(0, offset)

        try:
            records, total = await self.transfer_repo.list(
                status=status_filter,
                provider_user_id=provider_user_id,
                limit=limit,
                offset=offset,
            )
            return Return.ok(
                ListTransfersResponseDTO(
                    transfers=[to_transfer_dto(record) for record in records],
                    total=total,
                    limit=limit,
                    offset=offset,
                )
            )
        except Exception as e:
            return Return.err(
                Error(
                    code="LIST_TRANSFERS_FAILED",
                    message="Failed to list transfers",
                    reason=str(e),
                )
            )
