"""
Configuration schema and loading for erlc clients.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

DEFAULT_BASE_URL = "https://api.policeroleplay.community/v1/"


class LoggingSettings(BaseModel):
    """Logging output configuration.

    Example YAML:
        logging:
          level: DEBUG
          json_output: true
    """

    model_config = {"frozen": True, "extra": "forbid"}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO", description="Minimum log level")
    json_output: bool = Field(default=False, description="Render logs as JSON instead of console text")

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v


class ErlcSettings(BaseModel):
    """Top-level client settings.

    Credentials are optional here because callers may set them later with
    ErlcClient.set_global_key() / set_server_key(). They are excluded from
    repr so settings objects can be logged safely.

    Example YAML:
        timeout_seconds: 10
        poll_interval_ms: 25
        max_workers: 4
    """

    model_config = {"frozen": True, "extra": "forbid"}

    base_url: str = Field(default=DEFAULT_BASE_URL, description="API root; endpoints are appended to it")
    timeout_seconds: float = Field(default=30.0, gt=0, description="Per-request network timeout")
    poll_interval_ms: int = Field(default=25, gt=0, description="Dispatcher idle wait between scans")
    max_workers: int = Field(default=4, ge=1, description="Requests to distinct endpoints executing at once")
    global_key: str | None = Field(default=None, repr=False, description="Sent as the Authorization header")
    server_key: str | None = Field(default=None, repr=False, description="Sent as the Server-Key header")
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("base_url")
    @classmethod
    def _validate_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"base_url must be an http(s) URL, got {v!r}")
        # Endpoints are relative paths, so the root must end with a slash
        return v if v.endswith("/") else f"{v}/"

    @field_validator("global_key", "server_key", mode="before")
    @classmethod
    def _empty_key_is_unset(cls, v: object) -> str | None:
        if v is None:
            return None
        # Dynaconf parses all-digit env values as int
        key = str(v)
        return key if key.strip() else None

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_ms / 1000


def load_settings(config_path: Path | None = None) -> ErlcSettings:
    """Load settings from an optional YAML file with environment overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (ERLC_*) - highest priority
    2. Config file (when given)
    3. Defaults from the Pydantic schema - lowest priority

    Environment variable format: ERLC_LOGGING__LEVEL for nested keys.

    Args:
        config_path: Path to YAML configuration file, or None for
            environment-only loading

    Returns:
        Validated ErlcSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config_path is given but doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if config_path is not None and not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="ERLC",
        settings_files=[str(config_path)] if config_path is not None else [],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf returns uppercase keys and a few internal settings
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}
    if isinstance(raw_config.get("logging"), dict):
        raw_config["logging"] = {k.lower(): v for k, v in raw_config["logging"].items()}

    return ErlcSettings(**raw_config)
