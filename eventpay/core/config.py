from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "local"
    APP_NAME: str = "EventPay API"
    # Comma-separated origins for CORS. If empty, uses localhost defaults.
    CORS_ORIGINS: str = ""

    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    DATABASE_URL: str

    @field_validator("DATABASE_URL", mode="after")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Render and others give postgres://; SQLAlchemy expects postgresql+psycopg2://."""
        if v and v.startswith("postgres://"):
            return "postgresql+psycopg2://" + v[11:]
        return v
    REDIS_URL: str = "redis://localhost:6379/0"

    CLIENT_BASE_URL: str = "http://localhost:5173"
    API_PUBLIC_URL: str = "http://localhost:8000"  # gateway redirect/callback URLs are built from this

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # Checkout / reconciliation
    CURRENCY: str = "INR"
    CHECKOUT_TIMEOUT_MINUTES: int = 30
    EXPIRY_SWEEP_SECONDS: float = 60.0

    GATEWAY_TIMEOUT_SECONDS: int = 10
    GATEWAY_MAX_ATTEMPTS: int = 3
    GATEWAY_BACKOFF_SECONDS: float = 0.5

    PAYMENT_GATEWAY: str = "sandbox"  # sandbox|phonepe
    SANDBOX_WEBHOOK_SECRET: str = "sandbox-secret"

    # PhonePe (pay page + S2S callback, X-VERIFY checksums)
    PHONEPE_HOST_URL: str = "https://api-preprod.phonepe.com/apis/pg-sandbox"
    PHONEPE_MERCHANT_ID: str = ""
    PHONEPE_SALT_KEY: str = ""
    PHONEPE_SALT_INDEX: int = 1


settings = Settings()
