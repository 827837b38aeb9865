"""Settlement errors raised by the payment processor boundary

Every remote failure is reduced to one SettlementErrorKind. The retry
classifier maps kinds to dispositions through a table, so supporting a new
remote error only needs a new kind/mapping entry.
"""

from enum import Enum
from typing import Optional


class SettlementErrorKind(str, Enum):
    """Shapes of remote settlement failures"""
    NETWORK = "network"                  # Connection refused/reset, DNS
    TIMEOUT = "timeout"                  # No answer within the call timeout
    SERVER_ERROR = "server_error"        # 5xx from the processor
    RATE_LIMIT = "rate_limit"            # 429
    VALIDATION = "validation"            # Malformed or rejected request
    ACCOUNT_INVALID = "account_invalid"  # Destination payout account unusable
    AMOUNT_LIMIT = "amount_limit"        # Amount exceeds what the processor allows
    UNKNOWN = "unknown"


class SettlementError(Exception):
    """Typed failure of a remote settlement/checkout call"""

    def __init__(self, kind: SettlementErrorKind, code: Optional[str] = None, message: str = ""):
        self.kind = kind
        self.code = code or kind.value
        self.message = message or kind.value
        super().__init__(f"{self.code}: {self.message}")
