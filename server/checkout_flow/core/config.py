from functools import lru_cache
from typing import List, Optional

from pydantic import AnyHttpUrl, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CHECKOUT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = Field(default="Checkout Flow")
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")
    allowed_origins: List[AnyHttpUrl] = Field(default_factory=list)

    # Backend endpoints
    backend_base_url: str = Field(default="http://localhost:8000/api")
    methods_path: str = Field(default="/payments/methods", description="Method catalogue endpoint")
    purchase_path: str = Field(default="/payments/purchase", description="Initiation endpoint for BOOK intents")
    subscribe_path: str = Field(default="/payments/subscribe", description="Initiation endpoint for SUBSCRIPTION intents")
    verify_path: str = Field(default="/payments/verify", description="Verification endpoint")
    request_timeout_seconds: float = Field(default=15.0, gt=0)

    # Provider redirects land here
    callback_base_url: str = Field(default="http://localhost:8080/payments/callback")

    # Popup closure polling is a UI signal only
    popup_poll_interval_seconds: float = Field(default=1.0, gt=0)
    popup_poll_timeout_seconds: float = Field(default=900.0, gt=0)

    # Optional cross-process duplicate guard for verification
    redis_url: Optional[str] = Field(default=None)
    verification_lock_ttl_seconds: int = Field(default=3600, gt=0)

    @model_validator(mode="after")
    def validate_endpoints(self) -> "Settings":
        """
        Reject backend URLs that httpx cannot talk to and endpoint paths
        that would be joined onto the base URL incorrectly.
        """
        if not self.backend_base_url.startswith(("http://", "https://")):
            raise ValueError(
                f"backend_base_url must be an http(s) URL, got '{self.backend_base_url}'"
            )

        paths = {
            "methods_path": self.methods_path,
            "purchase_path": self.purchase_path,
            "subscribe_path": self.subscribe_path,
            "verify_path": self.verify_path,
        }
        invalid = [name for name, value in paths.items() if not value.startswith("/")]
        if invalid:
            raise ValueError(f"endpoint paths must start with '/': {', '.join(invalid)}")

        return self

    def endpoint(self, path: str) -> str:
        return self.backend_base_url.rstrip("/") + path

    def redacted(self) -> dict:
        """Settings as a dict with connection secrets masked, for display."""
        data = self.model_dump(mode="json")
        if data.get("redis_url"):
            data["redis_url"] = "***"
        return data


@lru_cache(maxsize=None)
def get_settings() -> Settings:
    """
    Get cached settings instance.

    The same instance is returned for the lifetime of the process so that
    the API layer and the CLI agree on configuration. Services never call
    this directly; they receive settings through their constructors.
    """
    return Settings()


def clear_settings_cache() -> None:
    """
    Clear the cached settings instance.

    Useful for testing or when configuration needs to be reloaded.
    """
    get_settings.cache_clear()
