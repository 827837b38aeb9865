"""Retry/Error Classifier

Decides what happens to a transfer after a failed settlement attempt:
retry later, escalate because the retry budget is spent, or stop because
the failure is permanent.
"""

import logging
from enum import Enum
from typing import Dict, Optional
from pydantic import BaseModel, ConfigDict
from src.domain.settlement_error import SettlementError, SettlementErrorKind

logger = logging.getLogger(__name__)


class ErrorSeverity(str, Enum):
    TRANSIENT = "transient"
    PERMANENT = "permanent"


class RetryDisposition(str, Enum):
    RETRY = "retry"          # Reschedule with backoff
    ESCALATE = "escalate"    # Transient, but retry budget exhausted
    FATAL = "fatal"          # Permanent failure, no automatic retry


# Adding a remote error shape means adding a kind and a row here
ERROR_KIND_DISPOSITIONS: Dict[SettlementErrorKind, ErrorSeverity] = {
    SettlementErrorKind.NETWORK: ErrorSeverity.TRANSIENT,
    SettlementErrorKind.TIMEOUT: ErrorSeverity.TRANSIENT,
    SettlementErrorKind.SERVER_ERROR: ErrorSeverity.TRANSIENT,
    SettlementErrorKind.RATE_LIMIT: ErrorSeverity.TRANSIENT,
    SettlementErrorKind.UNKNOWN: ErrorSeverity.TRANSIENT,
    SettlementErrorKind.VALIDATION: ErrorSeverity.PERMANENT,
    SettlementErrorKind.ACCOUNT_INVALID: ErrorSeverity.PERMANENT,
    SettlementErrorKind.AMOUNT_LIMIT: ErrorSeverity.PERMANENT,
}


class RetryDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    disposition: RetryDisposition
    delay_seconds: Optional[int] = None
    reason: str = ""

    @property
    def should_retry(self) -> bool:
        return self.disposition == RetryDisposition.RETRY


class RetryClassifier:
    """
    Maps a SettlementError and the record's retry_count to a RetryDecision

    Policy:
    - Permanent kinds -> FATAL regardless of remaining budget
    - Transient kinds -> RETRY while retry_count < max_retries
    - Transient kinds with retry_count >= max_retries -> ESCALATE
    - Backoff is base_delay * 2**retry_count, capped at max_delay
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay_seconds: int = 900,
        max_delay_seconds: int = 21600,
    ):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if base_delay_seconds <= 0 or max_delay_seconds < base_delay_seconds:
            raise ValueError("require 0 < base_delay_seconds <= max_delay_seconds")
        self.max_retries = max_retries
        self.base_delay_seconds = base_delay_seconds
        self.max_delay_seconds = max_delay_seconds

    def severity_of(self, error: SettlementError) -> ErrorSeverity:
        return ERROR_KIND_DISPOSITIONS.get(error.kind, ErrorSeverity.TRANSIENT)

    def backoff_seconds(self, retry_count: int) -> int:
        """Delay before the attempt following failure number retry_count + 1"""
        exponent = max(0, retry_count)
        # Avoid building huge ints for large counts
        if exponent >= 32:
            return self.max_delay_seconds
        return min(self.max_delay_seconds, self.base_delay_seconds * (2 ** exponent))

    def classify(self, error: SettlementError, retry_count: int) -> RetryDecision:
        severity = self.severity_of(error)

        if severity == ErrorSeverity.PERMANENT:
            return RetryDecision(
                disposition=RetryDisposition.FATAL,
                reason=f"permanent error {error.kind.value}",
            )

        if retry_count >= self.max_retries:
            return RetryDecision(
                disposition=RetryDisposition.ESCALATE,
                reason=f"retry budget exhausted after {retry_count} retries",
            )

        return RetryDecision(
            disposition=RetryDisposition.RETRY,
            delay_seconds=self.backoff_seconds(retry_count),
            reason=f"transient error {error.kind.value}",
        )
