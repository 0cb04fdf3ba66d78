from typing import List

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings

PLACEHOLDER_SECRETS = ("your-secret-key-here", "change-me", "changeme")


class Settings(BaseSettings):
    PROJECT_NAME: str = "Storefront API"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Database (pool settings are ignored for sqlite)
    DATABASE_URL: str
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30

    # Auth
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Checkout
    ORDER_NUMBER_PREFIX: str = "ORD"
    MAX_LINE_QUANTITY: int = 50
    PAYMENT_CURRENCY: str = "INR"
    RAZORPAY_KEY_ID: str = ""
    RAZORPAY_KEY_SECRET: str = ""
    RAZORPAY_WEBHOOK_SECRET: str = ""

    # Outbound mail; ADMIN_NOTIFICATION_EMAIL is comma separated
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    EMAILS_FROM_EMAIL: str = ""
    EMAILS_FROM_NAME: str = "Storefront"
    ADMIN_NOTIFICATION_EMAIL: str = ""

    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"

    FRONTEND_URL: str = "http://localhost:3000"
    BACKEND_CORS_ORIGINS: List[str] = ["http://localhost:3000"]
    SENTRY_DSN: str = ""

    model_config = {
        "env_file": ".env",
        "case_sensitive": True,
        "extra": "ignore",
    }

    @field_validator("ENVIRONMENT")
    @classmethod
    def normalize_environment(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("ORDER_NUMBER_PREFIX")
    @classmethod
    def normalize_order_prefix(cls, value: str) -> str:
        value = value.strip().upper()
        if not value.isalnum():
            raise ValueError("ORDER_NUMBER_PREFIX must be alphanumeric")
        return value

    @model_validator(mode="after")
    def refuse_unsafe_production(self):
        if self.ENVIRONMENT != "production":
            return self
        secret = (self.SECRET_KEY or "").strip()
        if len(secret) < 32 or any(marker in secret.lower() for marker in PLACEHOLDER_SECRETS):
            raise ValueError("SECRET_KEY must be at least 32 chars and not use placeholders in production")
        if self.RAZORPAY_KEY_ID.startswith("rzp_test_"):
            raise ValueError("RAZORPAY_KEY_ID must use live key in production")
        return self

    @property
    def order_notification_recipients(self) -> List[str]:
        return [email.strip() for email in self.ADMIN_NOTIFICATION_EMAIL.split(",") if email.strip()]


settings = Settings()
