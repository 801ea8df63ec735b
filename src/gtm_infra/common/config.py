"""GTM-Infra configuration via pydantic-settings."""

import warnings
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_DEFAULTS = {
    "api_key": "insecure-admin-key-change-me",
}


class InfraSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="GTM_INFRA_")

    environment: str = "development"
    log_level: str = "INFO"

    # Database
    db_url: str = "sqlite+aiosqlite:///./data/gtm_infra.db"

    # API
    api_title: str = "GTM-Infra"
    api_version: str = "0.1.0"
    api_key: str = "insecure-admin-key-change-me"
    host: str = "0.0.0.0"
    port: int = 8080
    api_prefix: str = ""
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Progress polling
    poll_interval_seconds: float = 3.0
    poll_min_interval: float = 1.0
    poll_max_interval: float = 30.0
    poll_max_errors: int = 5

    # Step engine retry policy
    step_max_retries: int = 3
    step_backoff_base: float = 2.0  # seconds
    step_backoff_max: float = 60.0
    run_lease_seconds: float = 900.0
    worker_interval_seconds: float = 10.0

    # Wizard / domains
    default_service_provider: str = "GOOGLE"
    domain_check_url: str = "http://localhost:3001"
    domain_check_timeout: float = 20.0

    # Vendors
    zapmail_base_url: str = "https://api.zapmail.ai"
    zapmail_api_key: str = ""
    plusvibe_base_url: str = "https://api.plusvibe.ai"
    plusvibe_api_key: str = ""
    heyreach_base_url: str = "https://api.heyreach.io"
    heyreach_api_key: str = ""
    vendor_timeout: float = 30.0

    # Checkout (Stripe)
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    checkout_success_url: str = "http://localhost:3000/bootcamp?lesson=virtual:infrastructure-manager&provisioning=true"
    checkout_cancel_url: str = "http://localhost:3000/bootcamp?lesson=virtual:infrastructure-manager"

    def clamp_poll_interval(self, interval: float | None = None) -> float:
        """Return the polling interval bounded to [poll_min_interval, poll_max_interval]."""
        value = self.poll_interval_seconds if interval is None else interval
        return max(self.poll_min_interval, min(value, self.poll_max_interval))

    def validate_for_production(self) -> None:
        """Raise if insecure defaults are used in non-development environments."""
        insecure_fields = [
            field
            for field, default in _INSECURE_DEFAULTS.items()
            if getattr(self, field) == default
        ]

        if self.environment != "development" and insecure_fields:
            env_vars = ", ".join(f"GTM_INFRA_{f.upper()}" for f in insecure_fields)
            raise RuntimeError(
                f"Insecure default values detected in '{self.environment}' environment. "
                f"Set these environment variables to secure values: {env_vars}. "
                "Generate secrets with: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
            )

        if self.environment != "development" and not self.stripe_webhook_secret:
            raise RuntimeError(
                "GTM_INFRA_STRIPE_WEBHOOK_SECRET must be set outside development"
            )

        if insecure_fields:
            warnings.warn(
                "Using insecure default admin key; set GTM_INFRA_API_KEY for production",
                UserWarning,
                stacklevel=2,
            )


@lru_cache
def get_settings() -> InfraSettings:
    settings = InfraSettings()
    settings.validate_for_production()
    return settings
