import hmac
from typing import Optional
from fastapi import Header, Request
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession
from config import ApplicationConfig
from libs.result import Error
from src.api.error import ClientError
from src.adapter.services.cache_backend import create_cache_backend
from src.adapter.services.notification_service import create_notification_service
from src.adapter.services.payment_gateway import HttpPaymentGateway
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.app.services.idempotency_cache import IdempotencyCache
from src.app.services.retry_classifier import RetryClassifier

engine = create_async_engine(ApplicationConfig.DB_URI, echo=False, future=True)

AsyncSessionLocal = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)

# Process-wide; degraded cache mode is tracked per process
_idempotency_cache = None


async def get_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session


async def get_unit_of_work():
    async with AsyncSessionLocal() as session:
        yield SqlAlchemyUnitOfWork(session)


def get_idempotency_cache() -> IdempotencyCache:
    global _idempotency_cache
    if _idempotency_cache is None:
        _idempotency_cache = IdempotencyCache(
            create_cache_backend(ApplicationConfig),
            ttl_seconds=ApplicationConfig.IDEMPOTENCY_TTL_SECONDS,
        )
    return _idempotency_cache


async def close_idempotency_cache():
    """Close the process-wide cache, if one was created"""
    global _idempotency_cache
    if _idempotency_cache is not None:
        await _idempotency_cache.close()
        _idempotency_cache = None


def get_payment_gateway() -> HttpPaymentGateway:
    return HttpPaymentGateway(
        base_url=ApplicationConfig.PAYMENT_API_URL,
        api_key=ApplicationConfig.PAYMENT_API_KEY,
        timeout=ApplicationConfig.SETTLEMENT_TIMEOUT_SECONDS,
    )


def get_notification_service():
    return create_notification_service(ApplicationConfig.PAYOUT_NOTIFICATION_WEBHOOK)


def get_retry_classifier() -> RetryClassifier:
    return RetryClassifier(
        max_retries=ApplicationConfig.TRANSFER_MAX_RETRIES,
        base_delay_seconds=ApplicationConfig.TRANSFER_RETRY_BASE_DELAY_SECONDS,
        max_delay_seconds=ApplicationConfig.TRANSFER_RETRY_MAX_DELAY_SECONDS,
    )


def get_config(request: Request):
    return request.app.state.config


def verify_cron_key(request: Request, x_api_key: Optional[str] = Header(default=None)):
    """Reject cron calls without the shared key; an unset key rejects everything"""
    expected = get_config(request).CRON_API_KEY
    if not expected or not x_api_key or not hmac.compare_digest(x_api_key, expected):
        raise ClientError.from_error(
            Error(code="UNAUTHORIZED", message="Missing or invalid X-Api-Key header")
        )


def verify_webhook_secret(request: Request, x_webhook_secret: Optional[str] = Header(default=None)):
    expected = get_config(request).WEBHOOK_SECRET
    if not expected:
        return
    if not x_webhook_secret or not hmac.compare_digest(x_webhook_secret, expected):
        raise ClientError.from_error(
            Error(code="UNAUTHORIZED", message="Missing or invalid X-Webhook-Secret header")
        )
