"""Application configuration (settings and environment).

Single source of truth for all configuration. Uses pydantic-settings
with .env support. Engine knobs (retry attempts, sweep batch size,
self-approval, hierarchy depth) and the optional outbound event webhook
are validated at load time.
"""

from functools import lru_cache

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment and .env.

    The SQL backend is optional at load time: when DATABASE_URL is empty the
    session dependencies raise SqlNotConfiguredException on first use.
    """

    # App
    app_name: str = "hrflow"
    app_version: str = "1.0.0"
    debug: bool = False

    # Database (PostgreSQL via asyncpg)
    database_url: str = ""
    database_echo: bool = False
    # Optional pool/driver overrides (None = use defaults in database.py)
    db_pool_size: int | None = None
    db_max_overflow: int | None = None
    db_command_timeout: int | None = None

    # CORS
    allowed_origins: str = "http://localhost:3000,http://localhost:8080"

    # Tenant / request
    tenant_header_name: str = "X-Tenant-ID"
    request_id_header: str = "X-Request-ID"

    # Approval engine
    approval_decision_retry_attempts: int = 3
    approval_timeout_sweep_batch_size: int = 500
    approval_allow_self_approval: bool = False
    approval_default_organization_levels: int = 1
    org_max_hierarchy_depth: int = 20

    # Outbound approval events: if set, every emitted event is POSTed here.
    # When approval_webhook_secret is set the body is signed with
    # X-Signature-256: sha256=<hex(hmac_sha256(secret, body))>.
    approval_webhook_url: str | None = None
    approval_webhook_timeout_seconds: float = 10.0
    approval_webhook_secret: SecretStr | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_engine_settings(self) -> "Settings":
        """Validate engine knobs and webhook configuration."""
        if self.approval_decision_retry_attempts < 1:
            raise ValueError("APPROVAL_DECISION_RETRY_ATTEMPTS must be >= 1")
        if self.approval_timeout_sweep_batch_size < 1:
            raise ValueError("APPROVAL_TIMEOUT_SWEEP_BATCH_SIZE must be >= 1")
        if self.approval_default_organization_levels < 1:
            raise ValueError("APPROVAL_DEFAULT_ORGANIZATION_LEVELS must be >= 1")
        if self.org_max_hierarchy_depth < 1:
            raise ValueError("ORG_MAX_HIERARCHY_DEPTH must be >= 1")
        if self.approval_webhook_url and not self.approval_webhook_url.startswith(
            ("http://", "https://")
        ):
            raise ValueError(
                f"APPROVAL_WEBHOOK_URL must be an http(s) URL, got: {self.approval_webhook_url!r}"
            )
        if self.approval_webhook_timeout_seconds <= 0:
            raise ValueError("APPROVAL_WEBHOOK_TIMEOUT_SECONDS must be > 0")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings (single instance per process).

    Validation runs on first call, not at import time. In tests, call
    get_settings.cache_clear() before overriding env vars so the next
    get_settings() uses the new values.

    Returns:
        Loaded and validated Settings instance.
    """
    return Settings()
