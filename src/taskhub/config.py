"""
Settings document loading for the TaskHub service.

Parses the YAML settings document into typed pydantic models and applies the
environment overrides used at startup (config path, listening port and the
inert database credential variables).
"""

import logging
import os
from typing import List, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from . import __version__

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "CONFIG_PATH"
PORT_ENV = "PORT"
DEFAULT_CONFIG_PATH = "./config.yaml"


class ConfigError(ValueError):
    """Raised when the settings document cannot be read or validated."""


class AppSettings(BaseModel):
    name: str = "taskhub"
    version: str = __version__
    port: int = Field(8080, ge=0, le=65535)
    environment: str = "development"


class DatabaseSettings(BaseModel):
    type: str = "sqlite"
    path: str = "./taskhub.db"
    timeout: float = Field(5.0, ge=0, description="Busy timeout in seconds")


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: str = "text"


class SecuritySettings(BaseModel):
    # Parsed for completeness; the CORS middleware always answers with a wildcard origin.
    cors_enabled: bool = True
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])


class Settings(BaseModel):
    """Typed view of the settings document."""

    app: AppSettings = Field(default_factory=AppSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)

    @property
    def is_production(self) -> bool:
        return self.app.environment.lower() == "production"


class DatabaseCredentials(BaseModel):
    """
    Credentials read from DB_USER/DB_HOST/DB_PASSWORD.

    Only logged at startup; the embedded SQLite file never uses them.
    """

    user: str = ""
    host: str = ""
    password: str = ""

    @classmethod
    def from_environ(cls, environ: Optional[Mapping[str, str]] = None) -> "DatabaseCredentials":
        environ = os.environ if environ is None else environ
        return cls(
            user=environ.get("DB_USER", ""),
            host=environ.get("DB_HOST", ""),
            password=environ.get("DB_PASSWORD", ""),
        )

    def masked_password(self) -> str:
        return mask_password(self.password)


def mask_password(password: str) -> str:
    if not password:
        return "not set"
    return "***"


def resolve_config_path(environ: Optional[Mapping[str, str]] = None) -> str:
    """Return the settings document path from CONFIG_PATH, or the local default."""
    environ = os.environ if environ is None else environ
    return environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH


def load_settings(config_path: str) -> Settings:
    """
    Load and validate the YAML settings document.

    Args:
        config_path: Path to the YAML file

    Returns:
        Parsed Settings

    Raises:
        ConfigError: For a missing file, malformed YAML or invalid values
    """
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {config_path}")
    except OSError as e:
        raise ConfigError(f"Cannot read config file {config_path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML format: {e}")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("Config file must contain a mapping at root level")

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}: {e}")


def resolve_port(settings: Settings, environ: Optional[Mapping[str, str]] = None) -> int:
    """
    Listening port: app.port unless PORT holds an integer.

    A non-numeric PORT is ignored.
    """
    environ = os.environ if environ is None else environ
    raw = environ.get(PORT_ENV, "")
    if raw:
        try:
            return int(raw)
        except ValueError:
            logger.warning(f"Ignoring non-numeric {PORT_ENV}={raw!r}, using port {settings.app.port}")
    return settings.app.port
