"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache) — single instance per process
    - Services receive Settings in their constructor; business logic never reads os.environ

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for all non-secret settings: works out-of-the-box with docker-compose
    - Money settings typed as Decimal: the ledger never sees a float
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_TLD_COSTS: dict[str, Decimal] = {
    "com": Decimal("11.08"),
    "pt": Decimal("12.00"),
    "eu": Decimal("5.94"),
    "net": Decimal("12.52"),
    "io": Decimal("32.68"),
    "co": Decimal("9.71"),
    "org": Decimal("10.74"),
    "dev": Decimal("12.87"),
    "app": Decimal("14.93"),
}


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://nexus:nexus@db:5432/nexus"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosted Postgres provides postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Identity provider (opaque bearer verification)
    identity_url: str = "http://localhost:54321"
    identity_anon_key: str = "anon-placeholder"

    # Public addresses
    public_base_url: str = "http://localhost:8000"
    oauth_fallback_origin: str = "https://marketing-ai-core.lovable.app"

    # OAuth state signing
    oauth_state_secret: str = "change-me-oauth-state-secret"
    oauth_state_ttl_seconds: int = 600

    # Meta (Facebook Graph)
    meta_app_id: str = ""
    meta_app_secret: str = ""
    meta_graph_version: str = "v21.0"

    # Google (Ads + Analytics)
    google_client_id: str = ""
    google_client_secret: str = ""
    google_ads_developer_token: str = ""
    google_ads_api_version: str = "v18"

    @field_validator("google_client_id", "google_client_secret", mode="before")
    @classmethod
    def strip_google_credentials(cls, v: str) -> str:
        """Console copy-paste often carries trailing whitespace."""
        return v.strip() if isinstance(v, str) else v

    # WhatsApp Cloud API
    whatsapp_access_token: str = ""
    whatsapp_business_account_id: str = ""
    whatsapp_verify_token: str = "nexus_whatsapp_verify"
    whatsapp_app_secret: str = ""

    # Registrar
    porkbun_api_key: str = ""
    porkbun_secret_key: str = ""
    porkbun_base_url: str = "https://api.porkbun.com/api/json/v3"
    registrar_mode: str = "mock"
    registrar_nameservers: list[str] = ["ns1.porkbun.com", "ns2.porkbun.com"]

    # Domain pricing
    domain_margin: Decimal = Decimal("15.00")
    domain_cashback: Decimal = Decimal("15.00")
    default_tld_cost: Decimal = Decimal("15.00")
    tld_cost_table: dict[str, Decimal] = DEFAULT_TLD_COSTS
    alternate_tlds: list[str] = ["com", "pt", "eu", "net", "io", "co"]
    max_domain_suggestions: int = 5

    # Ledger
    ledger_compensate_failed_purchases: bool = False
    ledger_credit_retries: int = 3

    @field_validator("ledger_credit_retries")
    @classmethod
    def non_negative_retries(cls, v: int) -> int:
        return max(v, 0)

    # Stripe (wallet top-up)
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_api_base: str = "https://api.stripe.com/v1"
    stripe_signature_tolerance_seconds: int = 300
    wallet_currency: str = "eur"
    wallet_min_topup: Decimal = Decimal("1.00")

    # Outbound HTTP
    http_timeout_seconds: float = 20.0
    http_max_retries: int = 2
    http_base_delay_ms: int = 250
    http_max_delay_ms: int = 4_000

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    @property
    def oauth_callback_base(self) -> str:
        return f"{self.public_base_url.rstrip('/')}/api/v1/oauth"


@lru_cache
def get_settings() -> Settings:
    return Settings()
