import pytest
from pydantic import ValidationError

from checkout_flow.core.config import Settings, clear_settings_cache, get_settings


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.endpoint(settings.verify_path) == "http://localhost:8000/api/payments/verify"
        assert settings.redis_url is None

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("CHECKOUT_BACKEND_BASE_URL", "https://shop.example.com/api/")
        monkeypatch.setenv("CHECKOUT_VERIFY_PATH", "/checkout/verify")

        settings = Settings(_env_file=None)

        assert settings.endpoint(settings.verify_path) == "https://shop.example.com/api/checkout/verify"

    def test_rejects_non_http_backend(self):
        with pytest.raises(ValidationError, match="backend_base_url"):
            Settings(backend_base_url="ftp://backend", _env_file=None)

    def test_rejects_relative_paths(self):
        with pytest.raises(ValidationError, match="purchase_path"):
            Settings(purchase_path="payments/purchase", _env_file=None)

    def test_redacted_masks_redis(self):
        settings = Settings(redis_url="redis://:secret@cache:6379/0", _env_file=None)

        assert settings.redacted()["redis_url"] == "***"
        assert "secret" not in str(settings.redacted())

    def test_cached_settings_reload(self, monkeypatch):
        clear_settings_cache()
        monkeypatch.setenv("CHECKOUT_APP_NAME", "First")
        first = get_settings()
        monkeypatch.setenv("CHECKOUT_APP_NAME", "Second")

        assert get_settings() is first

        clear_settings_cache()
        assert get_settings().app_name == "Second"
        clear_settings_cache()
