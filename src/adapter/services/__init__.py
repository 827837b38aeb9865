from .unit_of_work import SqlAlchemyUnitOfWork
from .notification_service import (
    LoggingNotificationService,
    WebhookNotificationService,
    CompositeNotificationService,
    create_notification_service,
)
from .cache_backend import (
    RedisCacheBackend,
    LocalCacheBackend,
    FallbackCacheBackend,
    create_cache_backend,
)
from .payment_gateway import HttpPaymentGateway

__all__ = [
    "SqlAlchemyUnitOfWork",
    "LoggingNotificationService",
    "WebhookNotificationService",
    "CompositeNotificationService",
    "create_notification_service",
    "RedisCacheBackend",
    "LocalCacheBackend",
    "FallbackCacheBackend",
    "create_cache_backend",
    "HttpPaymentGateway",
]
