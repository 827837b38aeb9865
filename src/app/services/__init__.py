from .unit_of_work import UnitOfWork
from .notification_service import NotificationService
from .cache_backend import CacheBackend, CacheUnavailableError
from .idempotency_cache import IdempotencyCache
from .retry_classifier import RetryClassifier, RetryDecision, RetryDisposition
from .payment_gateway import (
    SettlementGateway,
    CheckoutGateway,
    SettlementRequest,
    SettlementReceipt,
    CheckoutSessionRequest,
    CheckoutSession,
)

__all__ = [
    "UnitOfWork",
    "NotificationService",
    "CacheBackend",
    "CacheUnavailableError",
    "IdempotencyCache",
    "RetryClassifier",
    "RetryDecision",
    "RetryDisposition",
    "SettlementGateway",
    "CheckoutGateway",
    "SettlementRequest",
    "SettlementReceipt",
    "CheckoutSessionRequest",
    "CheckoutSession",
]
