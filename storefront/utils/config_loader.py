"""
Configuration loader module.

Loads application configuration from YAML files and environment variables.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/config.yaml")

# Config path used when load_config is called without one
CONFIG_PATH_ENV = "ETSUB_CONFIG"


@dataclass
class PathsConfig:
    """File path configuration."""

    data_dir: str = "data"
    storage_file: str = "storage.json"
    media_dir: str = "data/media"
    logs_dir: str = "logs"

    @property
    def storage_path(self) -> Path:
        return Path(self.data_dir) / self.storage_file


@dataclass
class RateProviderConfig:
    """A single public exchange-rate endpoint."""

    name: str
    url: str


def _default_providers() -> list[RateProviderConfig]:
    return [
        RateProviderConfig(
            name="frankfurter",
            url="https://api.frankfurter.app/latest?from=USD&to=ETB",
        ),
        RateProviderConfig(
            name="exchangerate-api",
            url="https://api.exchangerate-api.com/v4/latest/USD",
        ),
    ]


@dataclass
class FXConfig:
    """USD to ETB conversion configuration."""

    base_currency: str = "USD"
    quote_currency: str = "ETB"
    default_rate: float = 154.0
    cache_ttl_seconds: int = 3600
    refresh_interval_seconds: int = 3600
    timeout_seconds: int = 5
    providers: list[RateProviderConfig] = field(default_factory=_default_providers)


@dataclass
class AuthConfig:
    """Admin login configuration."""

    password_env: str = "ADMIN_PASSWORD"
    default_password: str = "etsub-admin"
    max_attempts: int = 3
    lockout_seconds: int = 300
    session_seconds: int = 3600
    expiry_check_seconds: int = 60


@dataclass
class MessagingConfig:
    """Chat app order hand-off configuration."""

    whatsapp_phone: str = "251992011629"
    telegram_handle: str = "EtsubOnline"
    currency_label: str = "ETB"


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "text"
    log_file: str | None = None


@dataclass
class ServerConfig:
    """HTTP server configuration."""

    title: str = "Etsub Online Shopping"
    host: str = "127.0.0.1"
    port: int = 8000


@dataclass
class AppConfig:
    """
    Main application configuration.

    Aggregates all configuration sections into a single object.
    """

    paths: PathsConfig = field(default_factory=PathsConfig)
    fx: FXConfig = field(default_factory=FXConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    messaging: MessagingConfig = field(default_factory=MessagingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    server: ServerConfig = field(default_factory=ServerConfig)


def load_env(env_file: Path = Path(".env")) -> None:
    """
    Load environment variables from .env file.

    Args:
        env_file: Path to .env file.
    """
    if env_file.exists():
        load_dotenv(env_file)
        logger.debug(f"Loaded environment from: {env_file}")
    else:
        logger.debug(f"No .env file found at: {env_file}")


def load_config(config_file: Path | None = None) -> AppConfig:
    """
    Load application configuration from YAML file.

    Args:
        config_file: Path to configuration YAML file. Defaults to the path in
            $ETSUB_CONFIG, then config/config.yaml.

    Returns:
        AppConfig: Loaded configuration object.

    Raises:
        yaml.YAMLError: If config file is invalid.
    """
    config_file = Path(config_file or get_env_var(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)
    if not config_file.exists():
        logger.warning(f"Config file not found: {config_file}. Using defaults.")
        return AppConfig()

    with open(config_file, encoding="utf-8") as f:
        raw_config = yaml.safe_load(f)

    if raw_config is None:
        return AppConfig()

    config = _parse_config(raw_config)
    logger.info(f"Loaded configuration from: {config_file}")
    return config


def _parse_config(raw: dict[str, Any]) -> AppConfig:
    """
    Parse raw YAML dict into AppConfig dataclass.

    Args:
        raw: Raw dictionary from YAML file.

    Returns:
        AppConfig: Parsed configuration object.
    """
    paths_raw = raw.get("paths", {})
    paths = PathsConfig(
        data_dir=paths_raw.get("data_dir", "data"),
        storage_file=paths_raw.get("storage_file", "storage.json"),
        media_dir=paths_raw.get("media_dir", "data/media"),
        logs_dir=paths_raw.get("logs_dir", "logs"),
    )

    fx_raw = raw.get("fx", {})
    providers_raw = fx_raw.get("providers")
    if providers_raw:
        providers = [
            RateProviderConfig(name=p.get("name", p["url"]), url=p["url"])
            for p in providers_raw
        ]
    else:
        providers = _default_providers()
    fx = FXConfig(
        base_currency=fx_raw.get("base_currency", "USD"),
        quote_currency=fx_raw.get("quote_currency", "ETB"),
        default_rate=float(fx_raw.get("default_rate", 154.0)),
        cache_ttl_seconds=int(fx_raw.get("cache_ttl_seconds", 3600)),
        refresh_interval_seconds=int(fx_raw.get("refresh_interval_seconds", 3600)),
        timeout_seconds=int(fx_raw.get("timeout_seconds", 5)),
        providers=providers,
    )

    auth_raw = raw.get("auth", {})
    auth = AuthConfig(
        password_env=auth_raw.get("password_env", "ADMIN_PASSWORD"),
        default_password=auth_raw.get("default_password", "etsub-admin"),
        max_attempts=int(auth_raw.get("max_attempts", 3)),
        lockout_seconds=int(auth_raw.get("lockout_seconds", 300)),
        session_seconds=int(auth_raw.get("session_seconds", 3600)),
        expiry_check_seconds=int(auth_raw.get("expiry_check_seconds", 60)),
    )

    messaging_raw = raw.get("messaging", {})
    messaging = MessagingConfig(
        whatsapp_phone=str(messaging_raw.get("whatsapp_phone", "251992011629")),
        telegram_handle=messaging_raw.get("telegram_handle", "EtsubOnline"),
        currency_label=messaging_raw.get("currency_label", "ETB"),
    )

    logging_raw = raw.get("logging", {})
    logging_config = LoggingConfig(
        level=logging_raw.get("level", "INFO"),
        format=logging_raw.get("format", "text"),
        log_file=logging_raw.get("log_file"),
    )

    server_raw = raw.get("server", {})
    server = ServerConfig(
        title=server_raw.get("title", "Etsub Online Shopping"),
        host=server_raw.get("host", "127.0.0.1"),
        port=int(server_raw.get("port", 8000)),
    )

    return AppConfig(
        paths=paths,
        fx=fx,
        auth=auth,
        messaging=messaging,
        logging=logging_config,
        server=server,
    )


def get_env_var(key: str, default: str | None = None) -> str | None:
    """
    Get an environment variable with optional default.

    Args:
        key: Environment variable name.
        default: Default value if not set.

    Returns:
        Environment variable value or default.
    """
    return os.environ.get(key, default)


def get_admin_password(config: AppConfig) -> str:
    """
    Resolve the admin password.

    The environment variable named by ``auth.password_env`` wins over the
    configured default.
    """
    return get_env_var(config.auth.password_env) or config.auth.default_password
