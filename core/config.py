"""Configuration models and loading."""

import json
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, ValidationError

from core.exceptions import ConfigurationError

CONFIG_DIR = Path.home() / ".config" / "tpi"
CONFIG_FILE = CONFIG_DIR / "config.json"


class ApiSettings(BaseModel):
    host: str = "turingpi.local"
    scheme: Literal["http", "https"] = "https"


class AuthSettings(BaseModel):
    mode: Literal["token", "trusted"] = "token"
    username: str | None = None
    cache_token: bool = True
    token_file: Path = Field(default_factory=lambda: CONFIG_DIR / "token.json")


class TransportSettings(BaseModel):
    # The controller ships a self-signed certificate
    verify_tls: bool = False
    timeout: float = 30.0
    max_connections: int = 10
    max_keepalive_connections: int = 5


class Config(BaseModel):
    api: ApiSettings = Field(default_factory=ApiSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    transport: TransportSettings = Field(default_factory=TransportSettings)


def load_config(config_file: Path = CONFIG_FILE) -> Config:
    """Load configuration from JSON file, creating default if needed.

    Raises ConfigurationError when the file cannot be read or written.
    """
    try:
        return _load_or_create(config_file)
    except OSError as e:
        raise ConfigurationError(f"Cannot use config file {config_file}: {e}") from e


def _load_or_create(config_file: Path) -> Config:
    if not config_file.exists():
        config_file.parent.mkdir(parents=True, exist_ok=True)
        default = Config()
        config_file.write_text(default.model_dump_json(indent=2))
        return default

    try:
        data = json.loads(config_file.read_text())
        return Config.model_validate(data)
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError):
        # Backup corrupted config and recreate default
        backup = config_file.with_suffix(".json.bak")
        config_file.rename(backup)
        default = Config()
        config_file.write_text(default.model_dump_json(indent=2))
        return default
