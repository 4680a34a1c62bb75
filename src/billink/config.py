"""Application configuration."""

from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Loads and validates application settings from the environment."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    BOT_TOKEN: str = "YOUR_TELEGRAM_BOT_TOKEN"
    ADMIN_IDS: list[int] = []
    CASHIER_IDS: list[int] = []
    ENCODER_IDS: list[int] = []

    TIMEZONE: str = "Asia/Manila"
    PENALTY_SWEEP_HOUR: int = 2
    PENALTY_SWEEP_MINUTE: int = 0

    MOCEAN_API_TOKEN: str | None = None
    MOCEAN_BRAND: str = "Billink"
    MOCEAN_API_URL: str = "https://rest.moceanapi.com/rest/2/sms"
    SMS_TIMEOUT_SECONDS: float = 10.0

    OTP_TTL_MINUTES: int = 5
    OTP_MAX_ATTEMPTS: int = 5

    BILL_DUE_DAYS: int = 15

    # Fallbacks used whenever the system_settings table has no usable value
    DEFAULT_SENIOR_DISCOUNT_PERCENT: Decimal = Decimal("5")
    SENIOR_CITIZEN_AGE: int = 60
    DEFAULT_LATE_PAYMENT_FEE: Decimal = Decimal("0")
    DEFAULT_GRACE_PERIOD_DAYS: int = 0
    DEFAULT_RATE_PER_UNIT: Decimal = Decimal("30")
    EXCESS_RATE_PER_UNIT: Decimal = Decimal("34.45")
    EXCESS_BASE_AMOUNT: Decimal = Decimal("3235")
    EXCESS_THRESHOLD: Decimal = Decimal("100")


settings = Settings()
