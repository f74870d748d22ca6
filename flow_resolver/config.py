"""Application configuration via environment variables."""

from decimal import Decimal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./flow_resolver.db"
    log_level: str = "INFO"

    # "Today" for the daily auto-approval counter is the calendar date here
    day_boundary_timezone: str = "UTC"
    history_lookback_days: int = 30
    balance_cache_ttl_seconds: int = 300

    # Guardrail defaults for users who have not configured their own
    default_max_auto_top_up: Decimal = Decimal("100")
    default_max_single_payment_auto: Decimal = Decimal("50")
    default_require_confirmation_above: Decimal = Decimal("500")
    default_daily_auto_limit: Decimal = Decimal("200")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
