import os
import yaml

ROOT_PATH = os.path.dirname(__file__)
CONFIG_FILE_PATH = os.path.join(ROOT_PATH, "env.yaml")

if os.path.exists(CONFIG_FILE_PATH):
    with open(CONFIG_FILE_PATH, "r") as r_file:
        data = yaml.safe_load(r_file)
else:
    data = dict()


class ApplicationConfig:
    DB_URI = data.get("DB_URI", "sqlite+aiosqlite:///./settlement.db")
    REDIS_URL = data.get("REDIS_URL", "redis://localhost:6379/0")
    API_PORT = data.get("API_PORT", 8000)
    API_HOST = data.get("API_HOST", "0.0.0.0")
    CORS_ORIGINS = data.get("CORS_ORIGINS", [])
    CORS_ALLOW_CREDENTIALS = data.get("CORS_ALLOW_CREDENTIALS", True)
    LOG_LEVEL = data.get("LOG_LEVEL", "INFO")
    ENABLE_LOGGING_MIDDLEWARE = bool(data.get("ENABLE_LOGGING_MIDDLEWARE", 1))
    ENABLE_SENTRY = data.get("ENABLE_SENTRY", 0)
    DSN_SENTRY = data.get("DSN_SENTRY", "")
    SENTRY_ENVIRONMENT = data.get("SENTRY_ENVIRONMENT", "dev")

    # Idempotency / result cache
    CACHE_BACKEND = data.get("CACHE_BACKEND", "redis")  # "redis" (with local fallback) or "memory"
    IDEMPOTENCY_TTL_SECONDS = data.get("IDEMPOTENCY_TTL_SECONDS", 600)  # 10 minutes
    CACHE_OPERATION_TIMEOUT_SECONDS = data.get("CACHE_OPERATION_TIMEOUT_SECONDS", 0.5)
    CACHE_RECOVERY_PROBE_SECONDS = data.get("CACHE_RECOVERY_PROBE_SECONDS", 30)
    LOCAL_CACHE_SWEEP_INTERVAL_SECONDS = data.get("LOCAL_CACHE_SWEEP_INTERVAL_SECONDS", 60)

    # Transfer scheduler
    SCHEDULER_ENABLED = bool(data.get("SCHEDULER_ENABLED", True))
    SCHEDULER_INTERVAL_SECONDS = data.get("SCHEDULER_INTERVAL_SECONDS", 7200)  # Every 2 hours
    TRANSFER_BATCH_SIZE = data.get("TRANSFER_BATCH_SIZE", 100)
    TRANSFER_MAX_RETRIES = data.get("TRANSFER_MAX_RETRIES", 3)
    TRANSFER_RETRY_BASE_DELAY_SECONDS = data.get("TRANSFER_RETRY_BASE_DELAY_SECONDS", 900)  # 15 minutes
    TRANSFER_RETRY_MAX_DELAY_SECONDS = data.get("TRANSFER_RETRY_MAX_DELAY_SECONDS", 21600)  # 6 hours
    TRANSFER_CLAIM_LEASE_SECONDS = data.get("TRANSFER_CLAIM_LEASE_SECONDS", 300)

    # Holding period per jurisdiction (days after the session ends)
    PAYOUT_DELAY_DAYS = data.get("PAYOUT_DELAY_DAYS", {
        "DEFAULT": 7,
        "PT": 7,
        "ES": 7,
        "GB": 7,
        "US": 2,
        "BR": 30,
    })

    # Slot reservations
    RESERVATION_HOLD_MINUTES = data.get("RESERVATION_HOLD_MINUTES", 30)
    RESERVATION_SWEEP_INTERVAL_SECONDS = data.get("RESERVATION_SWEEP_INTERVAL_SECONDS", 900)

    # Payment processor
    PAYMENT_API_URL = data.get("PAYMENT_API_URL", "http://localhost:9000")
    PAYMENT_API_KEY = data.get("PAYMENT_API_KEY", "")
    SETTLEMENT_TIMEOUT_SECONDS = data.get("SETTLEMENT_TIMEOUT_SECONDS", 20.0)
    CHECKOUT_SUCCESS_URL = data.get("CHECKOUT_SUCCESS_URL", "http://localhost:3000/booking/success")
    CHECKOUT_CANCEL_URL = data.get("CHECKOUT_CANCEL_URL", "http://localhost:3000/booking/cancel")

    # Boundary authentication
    CRON_API_KEY = data.get("CRON_API_KEY", "")
    WEBHOOK_SECRET = data.get("WEBHOOK_SECRET", "")
    PAYOUT_NOTIFICATION_WEBHOOK = data.get("PAYOUT_NOTIFICATION_WEBHOOK", None)
