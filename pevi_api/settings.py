"""Application settings and configuration."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

TESTNET_PASSPHRASE = "Test SDF Network ; September 2015"
PUBLIC_PASSPHRASE = "Public Global Stellar Network ; September 2015"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: Optional[str] = None
    postgres_user: str = "pevi"
    postgres_password: str = "pevi_dev_password"
    postgres_db: str = "pevi"
    postgres_host: str = "localhost"
    postgres_port: int = 5432

    # API
    api_port: int = 8000
    api_host: str = "0.0.0.0"
    environment: str = "development"

    # Logging
    log_level: str = "INFO"

    # Stellar network
    stellar_network: str = "testnet"  # testnet, mainnet
    horizon_url: Optional[str] = None
    ledger_timeout_seconds: int = 30

    # Trustless Work escrow service
    trustless_work_api_key: Optional[str] = None  # Required in non-dev
    trustless_work_testnet_url: str = "https://dev.api.trustlesswork.com"
    trustless_work_mainnet_url: str = "https://api.trustlesswork.com"
    trustless_work_timeout_seconds: int = 30

    # Platform wallet acts as fee receiver and dispute resolver
    platform_wallet: Optional[str] = None

    # Asset addresses keyed by currency code ("native" for lumens)
    trustline_addresses: dict[str, str] = {
        "XLM": "native",
        "USDC": "GBBD47IF6LWK7P7MDEVSCWR7DPUWV3NY3DTQEVFL4NAT4AQH3ZLLFLA5",
    }
    trustline_decimals: int = 10_000_000
    payout_currency: str = "USDC"

    # Release lease (one in-flight release per campaign)
    release_lease_ttl_seconds: int = 900

    # CORS
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    @property
    def database_url_computed(self) -> str:
        """Compute database URL if not explicitly set."""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def is_mainnet(self) -> bool:
        """Check if configured against the public network."""
        return self.stellar_network.lower() == "mainnet"

    @property
    def network_passphrase(self) -> str:
        """Passphrase every signature and submission must match."""
        return PUBLIC_PASSPHRASE if self.is_mainnet else TESTNET_PASSPHRASE

    @property
    def horizon_url_computed(self) -> str:
        """Horizon endpoint for the configured network."""
        if self.horizon_url:
            return self.horizon_url
        if self.is_mainnet:
            return "https://horizon.stellar.org"
        return "https://horizon-testnet.stellar.org"

    @property
    def trustless_work_base_url(self) -> str:
        """Escrow service base URL for the configured network."""
        if self.is_mainnet:
            return self.trustless_work_mainnet_url
        return self.trustless_work_testnet_url

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment.lower() == "development"

    def validate_production_settings(self):
        """Validate settings for production environment."""
        env = self.environment.lower()
        if env not in ("development", "test", "dev"):
            if not self.trustless_work_api_key:
                raise ValueError("TRUSTLESS_WORK_API_KEY is required outside development.")
            if not self.platform_wallet:
                raise ValueError("PLATFORM_WALLET is required outside development.")
            if self.payout_currency not in self.trustline_addresses:
                raise ValueError(
                    f"PAYOUT_CURRENCY={self.payout_currency} has no entry in TRUSTLINE_ADDRESSES."
                )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
