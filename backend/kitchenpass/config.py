"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache) — single instance per process
    - Issuance policy defaults live here, but only the HTTP caller applies them;
      IssuanceService itself takes explicit limits

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for all non-secret settings: works out-of-the-box locally
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

from kitchenpass.core.issuance_policy import IssuanceLimits


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://kitchenpass:kitchenpass@db:5432/kitchenpass"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosting providers hand out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Credentials
    public_origin: str = "http://localhost:5173"
    code_length: int = Field(6, ge=4, le=12)
    code_max_attempts: int = Field(10, ge=1)

    # Redemption: transient conflicts are retried
    redeem_conflict_retries: int = Field(3, ge=0)
    redeem_retry_base_delay_ms: int = Field(50, ge=0)

    # Issuance policy (applied by the HTTP layer, not by IssuanceService)
    owner_code_expiry_minutes: int = Field(60, ge=1)
    owner_code_max_uses: int = Field(5, ge=1)
    member_code_expiry_minutes: int = Field(30, ge=1)
    member_code_max_uses: int = Field(2, ge=1)
    link_expiry_minutes: int = Field(1440, ge=1)
    link_max_uses: int = Field(1, ge=1)

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    def issuance_limits(self) -> IssuanceLimits:
        return IssuanceLimits(
            owner_code_expiry_minutes=self.owner_code_expiry_minutes,
            owner_code_max_uses=self.owner_code_max_uses,
            member_code_expiry_minutes=self.member_code_expiry_minutes,
            member_code_max_uses=self.member_code_max_uses,
            link_expiry_minutes=self.link_expiry_minutes,
            link_max_uses=self.link_max_uses,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
