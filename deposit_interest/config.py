"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from decimal import Decimal
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class DepositInterestConfig(BaseSettings):
    """Rental deposit interest calculator configuration"""

    # Tax and rate policy
    tax_rate: str = "0.22"  # Flat capital gains tax (fjármagnstekjuskattur)
    key_rate_margin: str = "0.60"  # Percentage points below the central bank key rate
    fallback_rate: str = "6.90"  # Used only when a history has no events at all

    # Output precision
    amount_precision: int = 0  # ISK has no minor unit
    rate_precision: int = 4

    # Rate feed
    rate_feed_path: Optional[str] = None  # Central bank CSV read at API startup

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    model_config = SettingsConfigDict(
        env_prefix="DEPOSIT_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def tax_rate_decimal(self) -> Decimal:
        return Decimal(self.tax_rate)

    @property
    def key_rate_margin_decimal(self) -> Decimal:
        return Decimal(self.key_rate_margin)

    @property
    def fallback_rate_decimal(self) -> Decimal:
        return Decimal(self.fallback_rate)


# Global configuration instance
config = DepositInterestConfig()


def get_config() -> DepositInterestConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> DepositInterestConfig:
    """Reload configuration from environment"""
    global config
    config = DepositInterestConfig()
    return config
