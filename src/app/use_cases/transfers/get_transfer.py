"""GetTransfer Use Case

One transfer record with its audit trail.
"""

from libs.result import Result, Return, Error
from src.app.repositories.transfer_record_repository import TransferRecordRepository
from src.app.repositories.transfer_event_repository import TransferEventRepository
from .dtos import TransferDetailDTO, TransferEventDTO, to_transfer_dto


class GetTransfer:
    def __init__(
        self,
        transfer_repo: TransferRecordRepository,
        event_repo: TransferEventRepository,
    ):
        self.transfer_repo = transfer_repo
        self.event_repo = event_repo

    async def execute(self, transfer_id: int) -> Result[TransferDetailDTO]:
        try:
            record = await self.transfer_repo.get_by_id(transfer_id)
            if not record:
                return Return.err(
                    Error(code="TRANSFER_NOT_FOUND", message=f"Transfer {transfer_id} not found")
                )

            events = await self.event_repo.list_by_transfer(transfer_id)
            return Return.ok(
                TransferDetailDTO(
                    transfer=to_transfer_dto(record),
                    events=[TransferEventDTO.from_event(event) for event in events],
                )
            )
        except Exception as e:
            return Return.err(
                Error(
                    code="GET_TRANSFER_FAILED",
                    message="Failed to get transfer",
                    reason=str(e),
                )
            )
