"""Unit tests for Settings defaults, environment loading and field validators."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from arp_plugin_sdk.core import config
from arp_plugin_sdk.core.config import (
    DEFAULT_GROCERIES_URL,
    Settings,
    get_settings_instance,
    reset_settings_instance,
)


class TestDefaults:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in (
            "ARP_LOG_LEVEL",
            "ARP_LOG_FORMAT",
            "ARP_PRODUCT_STORE",
            "ARP_GROCERIES_URL",
            "ARP_HTTP_TIMEOUT",
            "ARP_HTTP_MAX_RETRIES",
            "ARP_HTTP_RETRY_BASE_DELAY",
            "ARP_HANDLER_TIMEOUT",
            "ARP_LOG_FILE",
        ):
            monkeypatch.delenv(name, raising=False)
        settings = Settings(_env_file=None)
        assert settings.log_level == "INFO"
        assert settings.log_format == "text"
        assert settings.log_file is None
        assert settings.product_store == "seed"
        assert settings.groceries_url == DEFAULT_GROCERIES_URL
        assert settings.http_timeout == 10.0
        assert settings.http_max_retries == 2
        assert settings.http_retry_base_delay == 0.5
        assert settings.handler_timeout == 30.0

    def test_reads_prefixed_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ARP_PRODUCT_STORE", "memory")
        monkeypatch.setenv("ARP_HTTP_MAX_RETRIES", "5")
        settings = Settings(_env_file=None)
        assert settings.product_store == "memory"
        assert settings.http_max_retries == 5


class TestPluginsRoot:
    def test_relative_path_resolved_against_repo_root(self) -> None:
        settings = Settings(ARP_PLUGINS_ROOT="plugins")
        expected = Path(config.__file__).resolve().parents[3] / "plugins"
        assert settings.plugins_root == str(expected)

    def test_absolute_path_kept(self, tmp_path: Path) -> None:
        settings = Settings(ARP_PLUGINS_ROOT=str(tmp_path))
        assert settings.plugins_root == str(tmp_path)


class TestValidators:
    def test_log_level_normalised(self) -> None:
        assert Settings(ARP_LOG_LEVEL="debug").log_level == "DEBUG"

    def test_log_level_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Log level must be one of"):
            Settings(ARP_LOG_LEVEL="LOUD")

    def test_log_format_normalised(self) -> None:
        assert Settings(ARP_LOG_FORMAT="JSON").log_format == "json"

    def test_log_format_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Log format must be one of"):
            Settings(ARP_LOG_FORMAT="xml")

    def test_product_store_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Product store must be one of"):
            Settings(ARP_PRODUCT_STORE="postgres")

    @pytest.mark.parametrize("alias", ["ARP_HTTP_TIMEOUT", "ARP_HANDLER_TIMEOUT", "ARP_HTTP_RETRY_BASE_DELAY"])
    def test_non_positive_durations_rejected(self, alias: str) -> None:
        with pytest.raises(ValidationError, match="must be positive"):
            Settings(**{alias: 0})

    def test_negative_retries_rejected(self) -> None:
        with pytest.raises(ValidationError, match="must not be negative"):
            Settings(ARP_HTTP_MAX_RETRIES=-1)

    def test_zero_retries_allowed(self) -> None:
        assert Settings(ARP_HTTP_MAX_RETRIES=0).http_max_retries == 0


class TestGlobalInstance:
    def test_cached_until_reset(self, monkeypatch: pytest.MonkeyPatch) -> None:
        first = get_settings_instance()
        assert get_settings_instance() is first

        monkeypatch.setenv("ARP_ENVIRONMENT", "staging")
        reset_settings_instance()
        second = get_settings_instance()
        assert second is not first
        assert second.environment == "staging"
