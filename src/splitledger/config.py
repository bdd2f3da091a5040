"""Configuration management for SplitLedger."""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class Settings(BaseSettings):
    """Engine settings loaded from environment variables (LEDGER_ prefix)."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Ledger owner
    owner_id: str = "me"

    # Money
    minor_units_per_major: int = 100
    amount_tolerance: int = 1  # minor units allowed between stored and derived sums
    currency_symbol: str = "₹"

    # Allocation policies
    invalid_input_policy: Literal["zero", "reject"] = "zero"
    dynamic_remainder: Literal["drift", "absorb"] = "drift"

    # Snapshot handling
    include_deleted: bool = False  # feed soft-deleted transactions to the passes
    require_timestamp: bool = False  # warn about transactions with no timestamp


def load_settings() -> Settings:
    """Load engine settings from environment variables."""
    try:
        return Settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Check the LEDGER_* environment variables "
            f"or your .env file.\n"
            f"Error: {e}"
        ) from e
