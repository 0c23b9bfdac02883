# Central place for all configurable settings. We use Pydantic's
# BaseSettings so values can be read from env vars or a .env file.
# Rail credentials and payout policy knobs all live here.

import json
from typing import Dict, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def safe_json_loads(value):
    try:
        return json.loads(value)
    except Exception:
        return value


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_json_loads=safe_json_loads,
    )

    # Core DB connection string, like sqlite:///./settlement.db or Postgres URL.
    DATABASE_URL: str

    # Secret key used for signing reviewer JWTs.
    SECRET_KEY: str

    # JWT algorithm to use. Default HS256 (symmetric HMAC-SHA256).
    ALGORITHM: str = "HS256"

    # Toggle SQLAlchemy echo logs. Useful for debugging queries locally.
    DB_ECHO: bool = False

    # Platform-transfer rail (Stripe Connect).
    STRIPE_SECRET_KEY: Optional[str] = None

    # Third-party payout rail (PayPal Payouts). Sandbox unless overridden.
    PAYPAL_CLIENT_ID: Optional[str] = None
    PAYPAL_CLIENT_SECRET: Optional[str] = None
    PAYPAL_API_BASE: str = "https://api-m.sandbox.paypal.com"

    # Currency every payout is issued in (minor units everywhere).
    PAYOUT_CURRENCY: str = "USD"

    # Upper bound on a single external rail call. A timeout counts as a
    # dispatch failure and releases the claimed commissions.
    PAYOUT_RAIL_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0)

    # How many times the allocator retries after losing a claim race.
    PAYOUT_CLAIM_MAX_ATTEMPTS: int = Field(default=3, gt=0)

    # Per-rail flat fees in cents. Rails not listed are free.
    PAYOUT_FEE_SCHEDULE_CENTS: Dict[str, int] = Field(
        default_factory=lambda: {"bank_wire": 2500}
    )

    # Floor used when a tenant has no affiliate program row or leaves it unset.
    AFFILIATE_DEFAULT_MINIMUM_PAYOUT_CENTS: int = 5000

    # Year-to-date payouts at or above this need a verified tax document.
    TAX_REPORTING_THRESHOLD_CENTS: int = 60000

    # Bound on referral codes a single affiliate may hold.
    AFFILIATE_MAX_REFERRAL_CODES: int = Field(default=10, gt=0)

    # Failed/cancelled payouts older than this are swept for stale claims.
    FAILED_PAYOUT_CLEANUP_HOURS: int = Field(default=24, gt=0)

    @field_validator("PAYOUT_FEE_SCHEDULE_CENTS", mode="before")
    @classmethod
    def _parse_fee_schedule(cls, value):
        if isinstance(value, str):
            schedule = {}
            for part in value.split(","):
                if "=" not in part:
                    continue
                key, amount = part.split("=", 1)
                schedule[key.strip().lower()] = int(amount.strip())
            return schedule
        return value


# Instantiate a single settings object for app-wide import.
# Any module can just `from settlement.core.config import settings`.
settings = Settings()
