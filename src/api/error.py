"""API error type

Use case errors are raised as ClientError and rendered as
{"error": {"code": ..., "message": ...}}.
"""

from fastapi import status
from libs.result import Error

# Non-400 status codes by error code
ERROR_STATUS_CODES = {
    "SLOT_CONFLICT": status.HTTP_409_CONFLICT,
    "SLOT_ALREADY_HELD": status.HTTP_409_CONFLICT,
    "INVALID_TRANSFER_STATE": status.HTTP_409_CONFLICT,
    "RESERVATION_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "TRANSFER_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "RESERVATION_FORBIDDEN": status.HTTP_403_FORBIDDEN,
    "UNAUTHORIZED": status.HTTP_401_UNAUTHORIZED,
    "CHECKOUT_FAILED": status.HTTP_502_BAD_GATEWAY,
    "REVERSAL_FAILED": status.HTTP_502_BAD_GATEWAY,
}


class ClientError(Exception):
    def __init__(self, error: Error, status_code: int = status.HTTP_400_BAD_REQUEST):
        self.error = error
        self.status_code = status_code
        super().__init__(error.message)

    @classmethod
    def from_error(cls, error: Error) -> "ClientError":
        """ClientError with the status code mapped from the error code"""
        if error.code.endswith("_FAILED") and error.code not in ERROR_STATUS_CODES:
            return cls(error, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
        return cls(error, status_code=ERROR_STATUS_CODES.get(error.code, status.HTTP_400_BAD_REQUEST))

    def to_dict(self) -> dict:
        return {"error": {"code": self.error.code, "message": self.error.message}}
