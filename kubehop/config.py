"""Configuration management for kubehop.

Settings are resolved with the following precedence:
1. Explicitly passed parameters
2. Environment variables (a ``.env`` file is loaded first if present)
3. Configuration files
4. Default values
"""
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

# Load environment variables from .env file if it exists
load_dotenv()

logger = logging.getLogger("kubehop.config")

DEFAULT_CONFIG_PATHS = [
    Path("/etc/kubehop/config.yaml"),
    Path("~/.config/kubehop/config.yaml").expanduser(),
    Path("kubehop.yaml").absolute(),
]

# Keys whose values are never written to logs
REDACT_KEYS = ("password", "secret", "token", "api_key", "certificate_key", "join_command")

ENV_OVERRIDES = {
    "KUBEHOP_BASE_URL": ("backend", "base_url"),
    "KUBEHOP_API_TOKEN": ("backend", "api_token"),
    "KUBEHOP_TIMEOUT": ("backend", "timeout"),
    "KUBEHOP_BOOTSTRAP_TIMEOUT": ("backend", "bootstrap_timeout"),
    "KUBEHOP_VERIFY_TLS": ("backend", "verify_tls"),
    "KUBEHOP_LOG_LEVEL": ("logging", "level"),
    "KUBEHOP_LOG_FILE": ("logging", "file"),
    "KUBEHOP_API_KEY": ("gateway", "api_key"),
}


class BackendConfig(BaseModel):
    """Remote execution backend connection settings."""
    base_url: str = Field(
        default="http://localhost:8080/api/v1",
        description="Base URL of the remote execution backend"
    )
    api_token: Optional[str] = Field(
        default=None,
        description="Bearer token sent with every backend request"
    )
    timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for queries and short commands"
    )
    bootstrap_timeout: float = Field(
        default=1800.0,
        description="Timeout in seconds for install, join and rebuild operations"
    )
    verify_tls: bool = Field(default=True, description="Verify backend TLS certificates")

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("timeout", "bootstrap_timeout")
    @classmethod
    def positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    file: Optional[str] = Field(
        default=None,
        description="Path to log file (if None, logs to stderr only)"
    )
    max_size_mb: int = Field(default=50, description="Maximum log file size in MB before rotation")
    backup_count: int = Field(default=5, description="Number of rotated log files to keep")

    @field_validator("level")
    @classmethod
    def upper_level(cls, v: str) -> str:
        return v.upper()


class GatewayConfig(BaseModel):
    """HTTP gateway settings."""
    api_key: str = Field(default="kubehop-secret", description="Value expected in the X-API-Key header")
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000)


class Settings(BaseModel):
    """kubehop settings."""
    backend: BackendConfig = Field(default_factory=BackendConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    config_paths: List[Path] = Field(
        default_factory=lambda: list(DEFAULT_CONFIG_PATHS),
        exclude=True
    )

    model_config = {"extra": "ignore"}

    @classmethod
    def load(cls, config_path: Optional[Union[str, Path]] = None) -> "Settings":
        """Load settings from a YAML file and apply environment overrides."""
        config_data: Dict[str, Any] = {}

        if config_path:
            config_path = Path(config_path).expanduser().absolute()
            if config_path.exists():
                config_data = cls._load_config_file(config_path)
            else:
                logger.warning(f"Config file {config_path} not found, using defaults")
        else:
            for path in DEFAULT_CONFIG_PATHS:
                path = path.expanduser().absolute()
                if path.exists():
                    config_data = cls._load_config_file(path)
                    break

        for env_name, (section, key) in ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value is not None and value != "":
                config_data.setdefault(section, {})[key] = value

        return cls(**config_data)

    @classmethod
    def _load_config_file(cls, path: Path) -> Dict[str, Any]:
        """Load configuration from a YAML file."""
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load config from {path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring config {path}: top level must be a mapping")
            return {}
        logger.debug(f"Loaded config from {path}")
        return data

    def save(self, path: Union[str, Path]) -> None:
        """Save settings to a YAML file."""
        path = Path(path).expanduser().absolute()
        path.parent.mkdir(parents=True, exist_ok=True)
        config_dict = self.model_dump(exclude={"config_paths"}, exclude_none=True)
        with open(path, "w") as f:
            yaml.safe_dump(config_dict, f, default_flow_style=False, sort_keys=False)


_settings: Optional[Settings] = None


def get_settings(config_path: Optional[Union[str, Path]] = None) -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load(config_path)
    return _settings


def set_settings(settings: Optional[Settings]) -> None:
    """Set (or reset, with None) the global settings instance."""
    global _settings
    _settings = settings
