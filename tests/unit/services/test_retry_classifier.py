"""Unit tests for RetryClassifier

Tests cover:
- Transient errors retry with exponential backoff until the budget is spent
- Exhausted budget escalates
- Permanent errors are fatal on the first attempt
"""

import pytest

from src.app.services.retry_classifier import (
    ErrorSeverity,
    RetryClassifier,
    RetryDisposition,
)
from src.domain.settlement_error import SettlementError, SettlementErrorKind


@pytest.fixture
def classifier():
    return RetryClassifier(max_retries=3, base_delay_seconds=900, max_delay_seconds=21600)


class TestSeverity:
    @pytest.mark.parametrize("kind", [
        SettlementErrorKind.NETWORK,
        SettlementErrorKind.TIMEOUT,
        SettlementErrorKind.SERVER_ERROR,
        SettlementErrorKind.RATE_LIMIT,
        SettlementErrorKind.UNKNOWN,
    ])
    def test_transient_kinds(self, classifier, kind):
        assert classifier.severity_of(SettlementError(kind)) == ErrorSeverity.TRANSIENT

    @pytest.mark.parametrize("kind", [
        SettlementErrorKind.VALIDATION,
        SettlementErrorKind.ACCOUNT_INVALID,
        SettlementErrorKind.AMOUNT_LIMIT,
    ])
    def test_permanent_kinds(self, classifier, kind):
        assert classifier.severity_of(SettlementError(kind)) == ErrorSeverity.PERMANENT


class TestClassify:
    def test_transient_error_with_budget_retries(self, classifier):
        decision = classifier.classify(SettlementError(SettlementErrorKind.TIMEOUT), retry_count=0)

        assert decision.disposition == RetryDisposition.RETRY
        assert decision.should_retry is True
        assert decision.delay_seconds == 900

    def test_delay_doubles_per_retry(self, classifier):
        error = SettlementError(SettlementErrorKind.NETWORK)

        delays = [classifier.classify(error, n).delay_seconds for n in range(3)]

        assert delays == [900, 1800, 3600]

    def test_exhausted_budget_escalates(self, classifier):
        decision = classifier.classify(SettlementError(SettlementErrorKind.SERVER_ERROR), retry_count=3)

        assert decision.disposition == RetryDisposition.ESCALATE
        assert decision.should_retry is False
        assert decision.delay_seconds is None

    def test_permanent_error_is_fatal_even_with_budget(self, classifier):
        decision = classifier.classify(
            SettlementError(SettlementErrorKind.ACCOUNT_INVALID, code="account_closed"), retry_count=0
        )

        assert decision.disposition == RetryDisposition.FATAL
        assert "account_invalid" in decision.reason

    def test_zero_budget_escalates_first_transient_failure(self):
        classifier = RetryClassifier(max_retries=0)

        decision = classifier.classify(SettlementError(SettlementErrorKind.TIMEOUT), retry_count=0)

        assert decision.disposition == RetryDisposition.ESCALATE


class TestBackoff:
    def test_backoff_is_capped(self, classifier):
        assert classifier.backoff_seconds(10) == 21600

    def test_huge_retry_count_does_not_overflow(self, classifier):
        assert classifier.backoff_seconds(10_000) == 21600

    def test_invalid_configuration_is_rejected(self):
        with pytest.raises(ValueError):
            RetryClassifier(max_retries=-1)
        with pytest.raises(ValueError):
            RetryClassifier(base_delay_seconds=600, max_delay_seconds=60)
