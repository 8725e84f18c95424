"""Configuration management for arp plugins.

Uses Pydantic Settings for type-safe, environment-based configuration. Every
variable carries the ``ARP_`` prefix; a ``.env`` file in the working
directory is read as well.
"""

from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file
# Use override=True to ensure .env changes take effect immediately
load_dotenv(override=True)

DEFAULT_GROCERIES_URL = "https://raw.githubusercontent.com/mdn/dom-examples/main/fetch/fetch-json/products.json"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")
PRODUCT_STORES = ("seed", "memory")

# <repo>/src/arp_plugin_sdk/core/config.py
REPO_ROOT = Path(__file__).resolve().parents[3]


def _one_of(value: str, choices: tuple[str, ...], label: str) -> str:
    if value not in choices:
        raise ValueError(f"{label} must be one of: {list(choices)}")
    return value


class Settings(BaseSettings):
    """Plugin runtime settings with environment variable support."""

    environment: str = Field("development", alias="ARP_ENVIRONMENT")

    # Logging configuration
    log_level: str = Field("INFO", alias="ARP_LOG_LEVEL")
    log_format: str = Field("text", alias="ARP_LOG_FORMAT")
    log_file: str | None = Field(None, alias="ARP_LOG_FILE")  # unset = console only

    # Directory scanned for plugin packages; relative paths are taken from the repo root
    plugins_root: str = Field("plugins", alias="ARP_PLUGINS_ROOT")

    # "seed" rebuilds the seed list on every call, "memory" keeps appended
    # products for the life of the plugin module
    product_store: str = Field("seed", alias="ARP_PRODUCT_STORE")

    # Outbound HTTP (groceries handler)
    groceries_url: str = Field(DEFAULT_GROCERIES_URL, alias="ARP_GROCERIES_URL")
    http_timeout: float = Field(10.0, alias="ARP_HTTP_TIMEOUT")
    http_max_retries: int = Field(2, alias="ARP_HTTP_MAX_RETRIES")
    http_retry_base_delay: float = Field(0.5, alias="ARP_HTTP_RETRY_BASE_DELAY")

    # Upper bound for a single handler invocation, network I/O included
    handler_timeout: float = Field(30.0, alias="ARP_HANDLER_TIMEOUT")

    @field_validator("plugins_root", mode="before")
    @classmethod
    def resolve_plugins_root(cls, v: str) -> str:
        path = Path(v).expanduser()
        if not path.is_absolute():
            path = (REPO_ROOT / path).resolve()
        return str(path)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        return _one_of(v.upper(), LOG_LEVELS, "Log level")

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        return _one_of(v.lower(), LOG_FORMATS, "Log format")

    @field_validator("product_store")
    @classmethod
    def validate_product_store(cls, v: str) -> str:
        return _one_of(v.lower(), PRODUCT_STORES, "Product store")

    @field_validator("http_timeout", "handler_timeout", "http_retry_base_delay")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeouts and delays must be positive")
        return v

    @field_validator("http_max_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("http_max_retries must not be negative")
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra environment variables instead of forbidding them
    )


def get_settings() -> Settings:
    """Build a fresh settings instance from the environment."""
    return Settings()  # type: ignore[call-arg]


# Global settings instance - will be created when first accessed
settings = None


def get_settings_instance() -> Settings:
    """Get the global settings instance, creating it if necessary."""
    global settings  # noqa: PLW0603
    if settings is None:
        settings = get_settings()
    return settings


def reset_settings_instance() -> None:
    """Drop the cached settings so the next access re-reads the environment."""
    global settings  # noqa: PLW0603
    settings = None
