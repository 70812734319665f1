"""
Configuration Management Module

Centralized configuration using pydantic-settings; every field can be set from
the environment with the LEDGER_ prefix (LEDGER_LOG_LEVEL, ...) or a .env file.
"""

from decimal import Decimal
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

PLACEHOLDER_SMTP_HOST = "smtp.example.com"


class LedgerConfig(BaseSettings):
    """Bank ledger configuration"""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    # Loan pricing (percent per year)
    fallback_base_rate: Decimal = Decimal("10")
    loan_rate_margin: Decimal = Decimal("5")

    # Base rate source
    fixed_base_rate: Decimal = Decimal("16.0")
    base_rate_url: str = ""  # Empty = use fixed_base_rate
    base_rate_timeout: float = 2.0
    base_rate_cache_ttl_seconds: int = 3600

    # Cards
    card_validity_years: int = 4

    # Notifications
    smtp_host: str = PLACEHOLDER_SMTP_HOST
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_sender: str = "bankapp@example.com"

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host) and self.smtp_host != PLACEHOLDER_SMTP_HOST


# Global configuration instance
config = LedgerConfig()


def get_config() -> LedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LedgerConfig:
    """Reload configuration from environment"""
    global config
    config = LedgerConfig()
    return config
