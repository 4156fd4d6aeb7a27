from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="PGW_", case_sensitive=False)

    env: str = "dev"
    log_level: str = "INFO"
    metrics_enabled: bool = True

    # Identity + persona store
    supabase_url: str | None = None
    supabase_anon_key: str | None = None
    supabase_service_role_key: str | None = None
    store_timeout_s: float = 10.0

    # Token claim checks
    jwt_expected_issuer: str | None = None
    jwt_project_ref: str | None = None
    jwt_secret: str | None = None
    jwt_audience: str = "authenticated"

    # Vendor secrets and endpoints
    gemini_api_key: str | None = None
    gemini_base_url: str = "https://generativelanguage.googleapis.com"
    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com"
    perplexity_api_key: str | None = None
    perplexity_base_url: str = "https://api.perplexity.ai"
    vendor_timeout_s: float = 60.0

    # Generation tiers
    default_max_tokens: int = Field(default=2048, ge=1)
    default_temperature: float = Field(default=0.7, ge=0, le=2)
    deep_max_tokens: int = Field(default=4096, ge=1)
    deep_temperature: float = Field(default=0.5, ge=0, le=2)
    deep_models: str = Field(
        default="gemini:gemini-2.5-pro,openai:gpt-4o,perplexity:sonar-pro",
        description="Comma separated vendor:model pairs used in deep mode",
    )

    # CORS
    cors_allow_origins: str = "*"
    cors_allow_headers: str = "authorization, x-client-info, apikey, content-type"

    @property
    def expected_issuer(self) -> str | None:
        if self.jwt_expected_issuer:
            return self.jwt_expected_issuer.strip()
        if self.supabase_url:
            return f"{self.supabase_url.rstrip('/')}/auth/v1"
        return None

    @property
    def deep_model_map(self) -> dict[str, str]:
        """Parse ``vendor:model,vendor:model`` into a dict."""
        result: dict[str, str] = {}
        for item in self.deep_models.split(","):
            item = item.strip()
            if ":" not in item:
                continue
            vendor, model = item.split(":", 1)
            vendor = vendor.strip().lower()
            model = model.strip()
            if not vendor or not model:
                continue
            result[vendor] = model
        return result

    @property
    def vendor_secrets(self) -> dict[str, str | None]:
        return {
            "gemini": self.gemini_api_key,
            "openai": self.openai_api_key,
            "perplexity": self.perplexity_api_key,
        }

    @property
    def cors_origin_list(self) -> list[str]:
        return [item.strip() for item in self.cors_allow_origins.split(",") if item.strip()]

    @property
    def store_configured(self) -> bool:
        return bool(
            self.supabase_url and self.supabase_anon_key and self.supabase_service_role_key
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()


def clear_settings_cache() -> None:
    get_settings.cache_clear()
