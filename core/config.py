"""Configuration models and loading."""

import json
import os
from pathlib import Path
from typing import Literal
from urllib.parse import urlsplit

from pydantic import BaseModel, Field, ValidationError, field_validator

from core.exceptions import ConfigurationError

CONFIG_DIR = Path.home() / ".config" / "broker-proxy"
CONFIG_FILE = Path(os.environ.get("BROKER_PROXY_CONFIG", CONFIG_DIR / "config.json"))


class ProxySettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8080
    username: str = ""
    password: str = ""
    request_logs: bool = False
    max_request_logs: int = 200

    @property
    def basic_auth_enabled(self) -> bool:
        return bool(self.username and self.password)


class BrokerSettings(BaseModel):
    url: str = ""

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Require an absolute http(s) URL when one is given."""
        v = v.strip().rstrip("/")
        if not v:
            return v
        parts = urlsplit(v)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"broker url must be an absolute http(s) URL, got {v!r}")
        return v


class TokenSettings(BaseModel):
    kind: Literal["static", "file", "client_credentials"] = "static"
    token: str = ""
    path: str = ""
    token_url: str = ""
    client_id: str = ""
    client_secret: str = ""
    scope: str = ""


class LimitsSettings(BaseModel):
    timeout: float = 300.0
    connect_timeout: float = 10.0
    max_connections: int = 100
    max_keepalive_connections: int = 20
    keep_alive_timeout: int = 5


class Config(BaseModel):
    proxy: ProxySettings = Field(default_factory=ProxySettings)
    broker: BrokerSettings = Field(default_factory=BrokerSettings)
    token: TokenSettings = Field(default_factory=TokenSettings)
    limits: LimitsSettings = Field(default_factory=LimitsSettings)


def load_config(config_file: Path = CONFIG_FILE) -> Config:
    """Load configuration from JSON file, creating default if needed."""
    if not config_file.exists():
        config_file.parent.mkdir(parents=True, exist_ok=True)
        default = Config()
        config_file.write_text(default.model_dump_json(indent=2))
        return default

    try:
        data = json.loads(config_file.read_text())
        return Config.model_validate(data)
    except json.JSONDecodeError:
        # Backup corrupted config and recreate default
        backup = config_file.with_suffix(".json.bak")
        config_file.rename(backup)
        default = Config()
        config_file.write_text(default.model_dump_json(indent=2))
        return default
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config {config_file}: {e}") from e


def validate_for_serving(config: Config) -> None:
    """Check the settings that must be present before the proxy can run."""
    if not config.broker.url:
        raise ConfigurationError("broker.url is not configured")
    if bool(config.proxy.username) != bool(config.proxy.password):
        raise ConfigurationError("proxy.username and proxy.password must be set together")
