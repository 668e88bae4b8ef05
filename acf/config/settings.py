"""
ACF settings.

Every field can be overridden by an environment variable of the same name
(case-insensitive) or by an entry in the local .env file.
"""

from loguru import logger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from acf.config.constants import MAX_SUBTREE_SIZE
from acf.models.enums import Scope


class Settings(BaseSettings):
    """Runtime configuration of the placement engine and its storage."""

    # Storage
    database_url: str
    database_echo: bool = False

    # ACF root (target owner for NIC registrations)
    acf_root_id: str | None = Field(
        default=None,
        description=(
            "Member ID used as the NIC target owner. "
            "Falls back to the system root when unset or unknown."
        ),
    )

    # Placement policy
    default_scope: Scope = Scope.FILE
    escalate_file_scope: bool = Field(
        default=False,
        description=(
            "Retry a FILE-scope registration once with NETWORK scope "
            "when no Open parent is found"
        ),
    )

    # Allocation budgets
    max_allocation_retries: int = Field(
        default=8,
        ge=1,
        le=100,
        description="Capacity conflict retries before AllocationTimeout",
    )
    allocation_node_budget: int = Field(
        default=MAX_SUBTREE_SIZE,
        ge=1,
        description="Max nodes visited by one candidate traversal",
    )
    allocation_time_budget_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Max wall time of one candidate traversal",
    )

    # Logging
    log_level: str = "INFO"
    log_file: str | None = "logs/acf.log"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode='after')
    def normalize_root_id(self) -> 'Settings':
        """Treat a blank ACF root as unset."""
        if self.acf_root_id is not None and not self.acf_root_id.strip():
            self.acf_root_id = None
        return self

    @field_validator('database_url')
    @classmethod
    def check_postgres_url(cls, v: str) -> str:
        """PostgreSQL only, always through the asyncpg driver."""
        if v.startswith('postgresql://'):
            return 'postgresql+asyncpg://' + v[len('postgresql://'):]
        if not v.startswith('postgresql+asyncpg://'):
            raise ValueError('database_url must use postgresql+asyncpg://')
        return v

    @field_validator('default_scope', mode='before')
    @classmethod
    def parse_scope(cls, v: object) -> object:
        """Scope names are matched in any case."""
        return Scope(v) if isinstance(v, str) else v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate loguru level name."""
        level = v.upper()
        allowed = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
        if level not in allowed:
            logger.warning(f"Unknown log level {v!r}, using INFO")
            return "INFO"
        return level


# Module-level instance read by database.py and the scripts
settings = Settings()
