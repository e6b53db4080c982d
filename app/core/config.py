# app/core/config.py
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when the process configuration is unsafe or incomplete."""

    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__("Invalid configuration: " + "; ".join(errors))


class Settings(BaseSettings):
    PROJECT_NAME: str = "Capability Gateway"
    ENVIRONMENT: Literal["development", "production"] = "development"
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    FRONTEND_URL: str = "http://localhost:5173"

    # Network selection; mainnet needs an explicit second opt-in
    NETWORK_MODE: Literal["testnet", "mainnet"] = "testnet"
    ALLOW_MAINNET: bool = False

    # x402 payments
    SKIP_X402: bool = False
    X402_PAY_TO_ADDRESS: Optional[str] = None
    X402_FACILITATOR_URL: str = "https://x402.org/facilitator"
    X402_FACILITATOR_TIMEOUT_SECONDS: float = 15.0
    X402_BINDING_SECRET: Optional[str] = None
    X402_MAX_TIMEOUT_SECONDS: int = 300
    X402_PAYMENT_LOG_MAX_ENTRIES: int = 1000
    X402_AUDIT_LOG_PATH: Optional[str] = None

    # Result formatting (external text generation)
    ANTHROPIC_API_KEY: Optional[str] = None
    FORMATTER_MODEL: str = "claude-3-5-haiku-20241022"
    FORMATTER_TIMEOUT_SECONDS: float = 8.0
    FORMATTER_MAX_TOKENS: int = 500

    # Chain access for the capabilities (defaults come from app.core.network)
    CHAIN_RPC_URL: Optional[str] = None
    EXPLORER_API_URL: Optional[str] = None
    EXPLORER_API_KEY: Optional[str] = None
    RPC_TIMEOUT_SECONDS: float = 10.0
    VVS_ROUTER_ADDRESS: str = "0x145863Eb42Cf62847A6Ca784e6416C1682b1b2Ae"
    VVS_FACTORY_ADDRESS: str = "0x3B44B2a187a7b3824131F8db5a74194D0a42Fc15"

    # Rate limits, requests per window per client IP
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    RATE_LIMIT_CAPABILITY: int = 30
    RATE_LIMIT_PAYMENT: int = 10
    RATE_LIMIT_INFO: int = 100

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields from .env

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


@dataclass
class ConfigReport:
    """Outcome of startup validation."""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def validate_settings(config: Settings) -> ConfigReport:
    """
    Check a Settings object for unsafe or missing values.

    Errors make the process refuse to start. Warnings describe gaps that are
    tolerated outside production because a safe default exists.
    """
    report = ConfigReport()

    if config.SKIP_X402 and config.is_production:
        report.errors.append(
            "SKIP_X402 cannot be enabled when ENVIRONMENT=production"
        )

    if config.NETWORK_MODE == "mainnet" and not config.ALLOW_MAINNET:
        report.errors.append(
            "NETWORK_MODE=mainnet requires ALLOW_MAINNET=true"
        )

    if not config.SKIP_X402 and not config.X402_PAY_TO_ADDRESS:
        if config.is_production:
            report.errors.append("X402_PAY_TO_ADDRESS is required in production")
        else:
            report.warnings.append(
                "X402_PAY_TO_ADDRESS not set, challenges will use a placeholder address"
            )

    if not config.SKIP_X402 and not config.X402_BINDING_SECRET:
        if config.is_production:
            report.errors.append("X402_BINDING_SECRET is required in production")
        else:
            report.warnings.append(
                "X402_BINDING_SECRET not set, using a per-process random secret"
            )

    if not config.ANTHROPIC_API_KEY:
        report.warnings.append(
            "ANTHROPIC_API_KEY not set, responses will use template formatting"
        )

    return report


def enforce_settings(config: Settings) -> ConfigReport:
    """Validate settings, log warnings, and raise ConfigurationError on errors."""
    report = validate_settings(config)
    for warning in report.warnings:
        logger.warning(f"Config: {warning}")
    if not report.valid:
        for error in report.errors:
            logger.error(f"Config: {error}")
        raise ConfigurationError(report.errors)
    return report


@lru_cache() # Cache the settings object for performance
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
