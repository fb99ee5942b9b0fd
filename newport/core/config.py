from pydantic_settings import BaseSettings
from typing import Optional
import secrets

class Settings(BaseSettings):
    PROJECT_NAME: str = "Newport Payments API"
    VERSION: str = "1.0.0"

    # DB URL
    DATABASE_URL: str = "sqlite:///./newport.db"
    DATABASE_ECHO: bool = False

    # Security
    SECRET_KEY: str = secrets.token_urlsafe(32)
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Rate Limiting
    RATE_LIMIT_PER_MINUTE: int = 60

    # Payme Payment Gateway
    PAYME_MERCHANT_ID: str = ""
    PAYME_KEY: str = ""
    PAYME_LOGIN: str = "Paycom"
    PAYME_TEST_MODE: bool = True
    PAYME_CHECKOUT_URL: str = "https://checkout.paycom.uz"
    PAYME_TEST_CHECKOUT_URL: str = "https://checkout.test.paycom.uz"
    PAYME_CALLBACK_URL: str = "https://newport.app/payments/complete"
    PAYME_LOCALE: str = "ru"

    # Payments (amounts in sum)
    PAYMENT_MIN_AMOUNT: int = 1000
    PAYMENT_MAX_AMOUNT: int = 10_000_000
    PAYMENT_HISTORY_MAX_LIMIT: int = 100

    # Invites
    INVITE_SECRET: str = secrets.token_hex(32)
    INVITE_TTL_SECONDS: int = 3600
    INVITE_BASE_URL: str = "https://newport.app/invite"

    # Logging
    LOG_FILE: Optional[str] = None
    LOG_LEVEL: str = "INFO"

    class Config:
        case_sensitive = True
        env_file = ".env"

settings = Settings()
