"""Core configuration."""

from pomogoal.core.config import Config, StoreConfig, TimerSettings, WebConfig, get_config

__all__ = ["Config", "StoreConfig", "TimerSettings", "WebConfig", "get_config"]
