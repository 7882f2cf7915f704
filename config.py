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
    DB_URI = data.get("DB_URI", "sqlite+aiosqlite:///./activation.db")
    AUTO_CREATE_TABLES = bool(data.get("AUTO_CREATE_TABLES", 1))
    API_PREFIX = data.get("API_PREFIX", "/api")
    API_PORT = data.get("API_PORT", 8000)
    API_HOST = data.get("API_HOST", "0.0.0.0")
    API_RELOAD = bool(data.get("API_RELOAD", 0))
    CORS_ORIGINS = data.get("CORS_ORIGINS", [])
    CORS_ALLOW_CREDENTIALS = data.get("CORS_ALLOW_CREDENTIALS", True)
    LOG_LEVEL = data.get("LOG_LEVEL", "INFO")
    ENABLE_LOGGING_MIDDLEWARE = bool(data.get("ENABLE_LOGGING_MIDDLEWARE", 1))
    ENABLE_SENTRY = data.get("ENABLE_SENTRY", 0)
    DSN_SENTRY = data.get("DSN_SENTRY", "")
    SENTRY_ENVIRONMENT = data.get("SENTRY_ENVIRONMENT", "dev")

    # Stripe
    STRIPE_SECRET_KEY = data.get("STRIPE_SECRET_KEY", "")
    STRIPE_WEBHOOK_SECRET = data.get("STRIPE_WEBHOOK_SECRET", "")
    STRIPE_TIMEOUT_SECONDS = data.get("STRIPE_TIMEOUT_SECONDS", 10.0)
    STRIPE_MAX_RETRIES = data.get("STRIPE_MAX_RETRIES", 3)
    CHECKOUT_SUCCESS_URL = data.get(
        "CHECKOUT_SUCCESS_URL", "http://localhost:3000/checkout/success?transaction_id={transaction_id}"
    )
    CHECKOUT_CANCEL_URL = data.get(
        "CHECKOUT_CANCEL_URL", "http://localhost:3000/checkout/cancelled?transaction_id={transaction_id}"
    )

    # Pricing
    DEFAULT_CURRENCY = data.get("DEFAULT_CURRENCY", "eur")
    DEFAULT_COMMISSION_PERCENT = data.get("DEFAULT_COMMISSION_PERCENT", 12)
    # {"ticket": {"free": 12, "pro": 8}, "offer": {...}}; missing plans use the default
    COMMISSION_RATES = data.get("COMMISSION_RATES", {})
    PLATFORM_PAYEE_REF = data.get("PLATFORM_PAYEE_REF", "platform")
    TRANSACTION_TTL_HOURS = data.get("TRANSACTION_TTL_HOURS", 24)

    # Reconciliation Sweep
    SWEEP_ENABLED = bool(data.get("SWEEP_ENABLED", True))
    SWEEP_MIN_AGE_MINUTES = data.get("SWEEP_MIN_AGE_MINUTES", 30)
    SWEEP_MAX_AGE_HOURS = data.get("SWEEP_MAX_AGE_HOURS", 24)
    SWEEP_BATCH_SIZE = data.get("SWEEP_BATCH_SIZE", 200)
    SWEEP_INTERVAL_SECONDS = data.get("SWEEP_INTERVAL_SECONDS", 600)  # 10 minutes

    # Boost Activation
    ACTIVATION_ENABLED = bool(data.get("ACTIVATION_ENABLED", True))
    ACTIVATION_INTERVAL_SECONDS = data.get("ACTIVATION_INTERVAL_SECONDS", 300)
    ACTIVATION_BATCH_SIZE = data.get("ACTIVATION_BATCH_SIZE", 500)

    # Budget Renewal
    BUDGET_RENEWAL_ENABLED = bool(data.get("BUDGET_RENEWAL_ENABLED", True))
    BUDGET_RENEWAL_INTERVAL_SECONDS = data.get("BUDGET_RENEWAL_INTERVAL_SECONDS", 3600)

    NOTIFICATION_WEBHOOK_URL = data.get("NOTIFICATION_WEBHOOK_URL", None)
