"""Application configuration using Pydantic Settings."""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import structlog
from pydantic import AliasChoices, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from animalmatch.core.errors import ConfigurationError

logger = structlog.get_logger("animalmatch.config")

# backend/animalmatch/core/config.py -> backend/data
DEFAULT_DATA_DIR = Path(__file__).parent.parent.parent / "data"


def json_config_settings_source(
    settings: BaseSettings | None = None,
) -> dict[str, Any]:
    """Load settings from config/settings.json under the data directory.

    This source has lowest priority - .env and environment variables
    override anything found here.

    Returns:
        Dictionary with lowercase setting keys, or an empty dict if the
        file is missing or unreadable.
    """
    data_dir_env = os.environ.get("ANIMALMATCH_DATA_DIR", "")
    data_dir = Path(data_dir_env) if data_dir_env else DEFAULT_DATA_DIR
    settings_file = data_dir / "config" / "settings.json"

    if not settings_file.exists():
        return {}

    try:
        with settings_file.open("r") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring unreadable settings.json", path=str(settings_file), error=str(e))
        return {}

    if not isinstance(data, dict):
        return {}

    # Accept the nested {"host": {"bind_address": ..., "port": ...}} layout as well as flat keys
    flattened: dict[str, Any] = {}
    host = data.pop("host", None)
    if isinstance(host, dict):
        if "bind_address" in host:
            flattened["host_bind_address"] = host["bind_address"]
        if "port" in host:
            flattened["host_port"] = host["port"]
    flattened.update(data)

    return {k.lower(): v for k, v in flattened.items()}


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from:
    1. JSON file (config/settings.json under the data directory) - lowest priority
    2. .env file
    3. Environment variables prefixed with ANIMALMATCH_
    4. Values passed to Settings() - highest priority

    The payment gate fields are handed to the gate unchanged; only their
    presence is checked here (see validate_payment_settings).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ANIMALMATCH_",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources.

        Earlier sources win: init kwargs, then env vars, then .env, then
        config/settings.json.
        """
        return (  # type: ignore[return-value]
            init_settings,
            env_settings,
            dotenv_settings,
            json_config_settings_source,
        )

    # Application
    env: Literal["development", "production", "testing"] = Field(
        default="development",
        description="Application environment (development, production, testing)",
    )

    # Host settings
    host_bind_address: str = Field(
        default="127.0.0.1",
        description="Host address to bind the server to",
    )

    host_port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port number to bind the server to",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] | None = Field(
        default=None,
        description="Logging level (DEBUG in development, INFO otherwise when unset)",
    )

    log_to_file: bool = Field(
        default=False,
        description="Write JSON log files under logs_dir instead of logging to stdout",
    )

    data_dir: Path = Field(
        default_factory=lambda: DEFAULT_DATA_DIR.resolve(),
        description="Base directory for application data (catalog, config, logs)",
    )

    catalog_file: Path | None = Field(
        default=None,
        description="Path to the animal catalog JSON file (defaults to <data_dir>/animals.json)",
    )

    # Payment gate
    receiver_address: str = Field(
        default="",
        validation_alias=AliasChoices(
            "animalmatch_receiver_address",
            "animalmatch_wallet_address",
        ),
        description="Wallet address that receives payments (not a token account)",
    )

    network: str = Field(
        default="solana-devnet",
        description="Solana network name (solana, solana-devnet) or CAIP-2 id for settlement",
    )

    facilitator_url: str = Field(
        default="https://x402.org/facilitator",
        description="Base URL of the payment facilitator",
    )

    price: str = Field(
        default="$0.001",
        description="Price charged per protected request",
    )

    protected_routes: list[str] = Field(
        default_factory=lambda: ["/api/animals"],
        description="Route patterns guarded by the payment gate",
    )

    resource_description: str = Field(
        default="Get a random animal based on character repetition",
        description="Description shown in the payment challenge",
    )

    max_timeout_seconds: int = Field(
        default=60,
        ge=1,
        description="How long a signed payment stays valid for the facilitator",
    )

    app_name: str = Field(
        default="Guess the Animal - x402",
        description="Application name shown on the paywall",
    )

    app_logo: str = Field(
        default="/static/logo.svg",
        description="Logo URL shown on the paywall",
    )

    # Client
    retry_grace_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Delay before retrying a request after returning from the paywall",
    )

    @property
    def logs_dir(self) -> Path:
        """Directory for log files (if file logging is enabled)."""
        return self.data_dir / "logs"

    @property
    def catalog_path(self) -> Path:
        """Resolved location of the animal catalog."""
        if self.catalog_file is not None:
            return self.catalog_file
        return self.data_dir / "animals.json"

    @property
    def masked_receiver(self) -> str:
        """Receiver address with the middle elided, safe to log."""
        address = self.receiver_address
        if len(address) <= 16:
            return address
        return f"{address[:8]}...{address[-8:]}"

    @property
    def is_debug(self) -> bool:
        """Check if running in debug/development mode."""
        return self.env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.env == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.env == "testing"

    def model_post_init(self, __context: object) -> None:
        """Post-initialization: resolve the data directory."""
        self.data_dir = self.data_dir.resolve()
        if self.log_to_file:
            self.logs_dir.mkdir(parents=True, exist_ok=True)


def validate_payment_settings(settings: Settings) -> None:
    """Check the payment gate configuration before serving.

    Raises:
        ConfigurationError: If no receiver address is configured
    """
    if not settings.receiver_address:
        logger.error(
            "Receiver address is not configured",
            hint="Set ANIMALMATCH_RECEIVER_ADDRESS (or ANIMALMATCH_WALLET_ADDRESS) to a wallet address",
        )
        raise ConfigurationError("Missing receiver address")

    # Solana addresses are base58, typically 32-44 characters
    address_length = len(settings.receiver_address)
    if address_length < 32 or address_length > 44:
        logger.warning(
            "Receiver address length looks unusual",
            length=address_length,
            expected="32-44 characters",
            hint="Make sure this is a wallet address, not a token account",
        )

    logger.info(
        "Payment gate configuration",
        network=settings.network,
        facilitator=settings.facilitator_url,
        receiver=settings.masked_receiver,
        protected_routes=settings.protected_routes,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the cached settings instance.

    The cache is cleared when reload_settings() is called.
    """
    return Settings()


def reload_settings() -> Settings:
    """Reload settings from all sources (JSON, .env, env vars).

    Returns:
        New Settings instance
    """
    get_settings.cache_clear()
    return get_settings()
