"""Configuration management with Pydantic and YAML support."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TimerSettings(BaseModel):
    """Focus timer configuration."""

    work_minutes: int = Field(default=25, ge=1, description="Default work interval length")
    break_minutes: int = Field(default=5, ge=1, description="Default break interval length")
    tick_seconds: float = Field(default=1.0, ge=0, description="Countdown tick interval")
    work_to_break_delay: float = Field(
        default=0.3, ge=0, description="Pause before a break auto-starts"
    )
    break_to_work_delay: float = Field(
        default=1.5, ge=0, description="Pause before the next work interval auto-starts"
    )
    auto_start_delay: float = Field(
        default=0.5, ge=0, description="Pause before an auto-start requested at load"
    )


class StoreConfig(BaseModel):
    """Goal and session store (server) configuration."""

    base_url: str = Field(default="http://127.0.0.1:8080")
    timeout_seconds: float = Field(default=10.0, gt=0)
    user_id: str = Field(default="1", description="Authenticated user identifier")


class WebConfig(BaseModel):
    """Reference server configuration."""

    host: str = Field(default="127.0.0.1", description="Bind to localhost only")
    port: int = Field(default=8080, ge=1024, le=65535)


class Config(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(
        env_prefix="POMOGOAL_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Paths
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".local/share/pomogoal")
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".local/state/pomogoal")
    config_dir: Path = Field(default_factory=lambda: Path.home() / ".config/pomogoal")

    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

    # Sub-configurations
    timer: TimerSettings = Field(default_factory=TimerSettings)
    store: StoreConfig = Field(default_factory=StoreConfig)
    web: WebConfig = Field(default_factory=WebConfig)

    @property
    def db_path(self) -> Path:
        """Path to the reference server's SQLite database."""
        return self.data_dir / "pomogoal.db"

    @property
    def cache_path(self) -> Path:
        """Path to the local session cache."""
        return self.data_dir / "session_cache.json"

    @property
    def config_file(self) -> Path:
        """Path to YAML config file."""
        return self.config_dir / "config.yaml"

    def ensure_directories(self) -> None:
        """Create all required directories."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.config_dir.mkdir(parents=True, exist_ok=True)

        os.chmod(self.data_dir, 0o700)

    @classmethod
    def load(cls, config_path: Path | None = None) -> Config:
        """Load configuration from YAML file, environment variables, and defaults.

        Priority (highest to lowest):
        1. YAML config file
        2. Environment variables
        3. Default values
        """
        config_path = config_path or Path.home() / ".config/pomogoal/config.yaml"

        yaml_config: dict[str, Any] = {}
        if config_path.exists():
            with open(config_path) as f:
                yaml_config = yaml.safe_load(f) or {}

        return cls(**yaml_config)

    def save(self, config_path: Path | None = None) -> None:
        """Save current configuration to YAML file."""
        config_path = config_path or self.config_file
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(exclude_none=True)

        # Convert Path objects to strings for YAML
        for key in ["data_dir", "log_dir", "config_dir"]:
            if key in data:
                data[key] = str(data[key])

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

        os.chmod(config_path, 0o600)


@lru_cache
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config.load()
