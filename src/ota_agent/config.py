"""Agent configuration loaded from YAML."""

import logging
import os
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger("ota_agent.config")

CONFIG_ENV_VAR = "OTA_AGENT_CONFIG"

DEFAULT_CONFIG_PATHS = [
    "/etc/ota-agent/config.yaml",
    "./config/ota-agent.yaml",
    "~/.config/ota-agent/config.yaml",
]


class DeviceConfig(BaseModel):
    """Overrides for the device identity read from the host."""

    version: Optional[str] = Field(
        None, description="Running build marker (skips host detection if set)"
    )
    model: Optional[str] = Field(
        None, description="Hardware model token (skips host detection if set)"
    )


class PlatformConfig(BaseModel):
    """How the staged package is verified and handed to the installer."""

    mode: Literal["command", "recovery"] = Field(
        "command", description="Install through a command or the recovery hand-off"
    )
    verify_command: list[str] = Field(
        default_factory=lambda: ["swupdate", "-c", "-i", "{package}"],
        min_length=1,
        description="Verification command, {package} is replaced by the staged path",
    )
    install_command: list[str] = Field(
        default_factory=lambda: ["swupdate", "-i", "{package}"],
        min_length=1,
        description="Install command used in 'command' mode",
    )
    recovery_command_file: Path = Field(
        Path("/cache/recovery/command"),
        description="Command file read by recovery in 'recovery' mode",
    )
    reboot_command: list[str] = Field(
        default_factory=lambda: ["reboot", "recovery"],
        min_length=1,
        description="Command that reboots into recovery in 'recovery' mode",
    )
    timeout: float = Field(
        600.0, gt=0, description="Seconds to wait for each platform command"
    )


class LoggingConfig(BaseModel):
    """Log file and level settings passed to setup_logger."""

    log_file: Optional[str] = Field("./logs/ota_agent.log")
    level: str = Field("INFO")
    max_bytes: int = Field(10 * 1024 * 1024, gt=0)
    backup_count: int = Field(3, ge=0)


class AgentConfig(BaseModel):
    """Root configuration of the OTA agent."""

    source_dir: Path = Field(
        Path("/sdcard/Download"), description="Directory update files are dropped into"
    )
    staging_dir: Path = Field(
        Path("/cache/recovery"), description="Privileged directory the installer reads"
    )
    package_prefix: str = Field(
        "delta-sdcard", min_length=1, description="Required file name prefix"
    )
    version_delimiters: str = Field(
        ".-_",
        min_length=1,
        description="Characters that must surround the version marker in a file name",
    )
    verify_copy: bool = Field(
        True, description="Compare SHA-256 of source and staged copy after transfer"
    )
    copy_chunk_size: int = Field(
        1024 * 1024, gt=0, description="Bytes per transfer call"
    )
    report_url: Optional[str] = Field(
        None,
        pattern=r"^https?://.+",
        description="Device API base URL that receives status events",
    )
    host: str = Field("127.0.0.1", description="Bind address for 'serve'")
    port: int = Field(12315, gt=0, lt=65536, description="Port for 'serve'")

    device: DeviceConfig = Field(default_factory=DeviceConfig)
    platform: PlatformConfig = Field(default_factory=PlatformConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("version_delimiters")
    @classmethod
    def no_whitespace_delimiters(cls, v: str) -> str:
        if any(c.isspace() for c in v):
            raise ValueError("Version delimiters must not contain whitespace")
        return v


def load_config(config_path: Optional[str] = None) -> AgentConfig:
    """Load configuration from YAML.

    Lookup order: explicit ``config_path``, ``$OTA_AGENT_CONFIG``, then
    ``DEFAULT_CONFIG_PATHS``. Falls back to defaults when no file exists.

    Raises:
        FileNotFoundError: If an explicitly requested file does not exist
        ValueError: If the file is not valid YAML or fails validation
    """
    explicit = config_path or os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        path = Path(explicit).expanduser()
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        return _load_file(path)

    for candidate in DEFAULT_CONFIG_PATHS:
        path = Path(candidate).expanduser()
        if path.exists():
            return _load_file(path)

    logger.warning("No configuration file found, using defaults")
    return AgentConfig()


def _load_file(path: Path) -> AgentConfig:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Config root in {path} must be a mapping")

    try:
        config = AgentConfig(**data)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration in {path}: {e}") from e

    logger.info(f"Loaded configuration from {path}")
    return config
