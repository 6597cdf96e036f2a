import os
from decimal import Decimal, InvalidOperation
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


class Settings:
    @staticmethod
    def _get_int(name: str, default: int) -> int:
        return int(os.getenv(name, str(default)))

    @staticmethod
    def _get_bool(name: str, default: bool) -> bool:
        raw = os.getenv(name)
        if raw is None:
            return default
        return raw.strip().lower() in {"1", "true", "yes", "on"}

    @property
    def APP_ENV(self) -> str:
        return os.getenv("APP_ENV", "development").strip().lower()

    @property
    def BASE_URL(self) -> str:
        return os.getenv("BASE_URL", "http://localhost:8000")

    @property
    def DATABASE_URL(self) -> str:
        database_url = os.getenv("DATABASE_URL", "").strip()
        if not database_url:
            raise ValueError("DATABASE_URL is required")
        return database_url

    @property
    def DB_CONNECT_RETRIES(self) -> int:
        return self._get_int("DB_CONNECT_RETRIES", 5)

    @property
    def DB_CONNECT_RETRY_DELAY_SECONDS(self) -> int:
        return self._get_int("DB_CONNECT_RETRY_DELAY_SECONDS", 2)

    @property
    def JWT_SECRET(self) -> str:
        return os.getenv("JWT_SECRET", "change-me-in-production")

    @property
    def JWT_ALGORITHM(self) -> str:
        return os.getenv("JWT_ALGORITHM", "HS256")

    @property
    def JWT_EXPIRE_MINUTES(self) -> int:
        return self._get_int("JWT_EXPIRE_MINUTES", 15)

    @property
    def ADMIN_USERNAME(self) -> str:
        return os.getenv("ADMIN_USERNAME", "").strip()

    @property
    def ADMIN_PASSWORD(self) -> str:
        return os.getenv("ADMIN_PASSWORD", "")

    @property
    def STRIPE_SECRET_KEY(self) -> str:
        return os.getenv("STRIPE_SECRET_KEY", "")

    @property
    def STRIPE_WEBHOOK_SECRET(self) -> str:
        return os.getenv("STRIPE_WEBHOOK_SECRET", "")

    @property
    def STRIPE_WEBHOOK_TOLERANCE_SECONDS(self) -> int:
        return self._get_int("STRIPE_WEBHOOK_TOLERANCE_SECONDS", 300)

    @property
    def STRIPE_SUCCESS_URL(self) -> str:
        return os.getenv(
            "STRIPE_SUCCESS_URL",
            "http://localhost:5173/payment?success=true&session_id={CHECKOUT_SESSION_ID}",
        )

    @property
    def STRIPE_CANCEL_URL(self) -> str:
        return os.getenv("STRIPE_CANCEL_URL", "http://localhost:5173/payment?canceled=true")

    @property
    def CURRENCY(self) -> str:
        return os.getenv("CURRENCY", "usd").strip().lower()

    @property
    def TAX_RATE(self) -> Decimal:
        raw = os.getenv("TAX_RATE", "0").strip() or "0"
        try:
            rate = Decimal(raw)
        except InvalidOperation as exc:
            raise ValueError(f"TAX_RATE must be a decimal fraction, got {raw!r}") from exc
        if rate < 0 or rate >= 1:
            raise ValueError(f"TAX_RATE must be in [0, 1), got {raw!r}")
        return rate

    @property
    def WEBHOOK_ACK_EARLY(self) -> bool:
        return self._get_bool("WEBHOOK_ACK_EARLY", False)

    @property
    def ORDERS_PAGE_MAX(self) -> int:
        return self._get_int("ORDERS_PAGE_MAX", 200)

    @property
    def CORS_ORIGINS(self) -> str:
        return os.getenv("CORS_ORIGINS", "http://localhost:5173")


settings = Settings()

# Validate critical settings
if settings.JWT_SECRET == "change-me-in-production":
    import warnings
    warnings.warn("JWT_SECRET is using default value. Change it in production!", UserWarning)
