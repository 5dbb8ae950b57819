"""Application Configuration - environment-driven settings via pydantic-settings.

Invariants:
    - All secrets and endpoints come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache): single instance per process
    - development_mode is true when no service account is configured or
      SKIP_BLOCKCHAIN_CHECKS is set

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for all non-secret settings: works out-of-the-box against testnet
    - collaborator_timeout_seconds must exceed seal_timeout_seconds: the engine's
      call-level timeout wraps the executor's own seal wait
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://transfers:transfers@db:5432/transfers"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosted providers hand out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Flow
    flow_access_node: str = "https://rest-testnet.onflow.org"
    scheduled_transfer_contract: str = "0x8401ed4fc6788c8a"
    service_account_address: str | None = None
    signer_relay_url: str | None = None
    skip_blockchain_checks: bool = False
    dev_max_amount: Decimal = Decimal("999999.0")

    # Scheduler
    scheduler_enabled: bool = True
    scheduler_interval_seconds: int = 60
    scheduler_batch_size: int = 100

    # Collaborator calls
    collaborator_timeout_seconds: float = 180.0
    seal_poll_interval_seconds: float = 2.0
    seal_timeout_seconds: float = 120.0
    default_retry_limit: int = 3

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    @property
    def development_mode(self) -> bool:
        return self.skip_blockchain_checks or not self.service_account_address


@lru_cache
def get_settings() -> Settings:
    return Settings()
