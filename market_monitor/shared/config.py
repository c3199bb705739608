#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Configuration System for the Market Monitor
Handles YAML configuration loading, environment and CLI overrides, validation.
"""

import copy
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .models import DEFAULT_PERIOD, Period

BASE_URL_ENV = "MARKET_MONITOR_BASE_URL"
DEFAULT_REFRESH_INTERVAL_MS = 60000
VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class ConfigError(Exception):
    """Configuration-related errors"""
    pass


@dataclass
class ApiConfig:
    """Market-data API connection configuration"""
    base_url: str = "http://localhost:8000"
    timeout_seconds: float = 15.0

    def __post_init__(self):
        """Validate connection parameters"""
        self.base_url = str(self.base_url or "").strip().rstrip("/")
        if not self.base_url:
            raise ValueError("api.base_url cannot be empty")
        if not self.base_url.startswith(("http://", "https://")):
            raise ValueError(f"api.base_url must start with http:// or https://, got {self.base_url!r}")
        if self.timeout_seconds <= 0:
            raise ValueError("api.timeout_seconds must be positive")


@dataclass
class ScheduleConfig:
    """Polling cadence and the period requested at startup"""
    refresh_interval_ms: int = DEFAULT_REFRESH_INTERVAL_MS
    default_period: Period = DEFAULT_PERIOD

    def __post_init__(self):
        """Validate cadence and normalize period"""
        if isinstance(self.refresh_interval_ms, bool) or not isinstance(self.refresh_interval_ms, int):
            raise ValueError("schedule.refresh_interval_ms must be an integer")
        if self.refresh_interval_ms <= 0:
            raise ValueError("schedule.refresh_interval_ms must be positive")
        self.default_period = Period.parse(self.default_period)

    @property
    def refresh_interval_seconds(self) -> float:
        return self.refresh_interval_ms / 1000.0


@dataclass
class TelemetryConfig:
    """Prometheus exporter configuration"""
    enabled: bool = False
    listen_address: str = "0.0.0.0"
    listen_port: int = 9108
    path: str = "/metrics"
    metric_prefix: str = "mm_"

    def __post_init__(self):
        if not (1 <= int(self.listen_port) <= 65535):
            raise ValueError("telemetry.listen_port must be between 1 and 65535")
        if not str(self.path).startswith("/"):
            raise ValueError("telemetry.path must start with '/'")


@dataclass
class MonitorConfig:
    """Main monitor configuration"""
    api: ApiConfig = field(default_factory=ApiConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    logging_level: str = "INFO"

    def __post_init__(self):
        level = str(self.logging_level or "").upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(f"logging.level must be one of: {VALID_LOG_LEVELS}")
        self.logging_level = level


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' section must be a mapping")
    return value


def _load_raw_config(config_path: str) -> Dict[str, Any]:
    """
    Load raw configuration from YAML file

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Raw configuration dictionary (empty for an empty file)

    Raises:
        ConfigError: If file cannot be loaded or parsed
    """
    path = Path(config_path).expanduser()
    if not path.is_file():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        raw_config = yaml.safe_load(path.read_text(encoding='utf-8'))
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}")
    except OSError as e:
        raise ConfigError(f"Could not read {config_path}: {e}")

    if raw_config is None:
        return {}
    if not isinstance(raw_config, dict):
        raise ConfigError(f"Configuration must be a YAML mapping, got {type(raw_config).__name__}")

    return raw_config


def build_config(raw: Optional[Dict[str, Any]] = None, environ: Optional[Dict[str, str]] = None) -> MonitorConfig:
    """
    Build MonitorConfig from a raw mapping, then apply environment overrides

    Args:
        raw: Parsed YAML mapping (None means all defaults)
        environ: Environment mapping, os.environ by default

    Returns:
        Validated MonitorConfig instance

    Raises:
        ConfigError: If configuration is invalid
    """
    raw = raw or {}
    environ = os.environ if environ is None else environ
    try:
        api_raw = _section(raw, "api")
        schedule_raw = _section(raw, "schedule")
        telemetry_raw = _section(raw, "telemetry")
        logging_raw = _section(raw, "logging")

        base_url = environ.get(BASE_URL_ENV) or api_raw.get("base_url", ApiConfig.base_url)

        return MonitorConfig(
            api=ApiConfig(
                base_url=base_url,
                timeout_seconds=float(api_raw.get("timeout_seconds", ApiConfig.timeout_seconds)),
            ),
            schedule=ScheduleConfig(
                refresh_interval_ms=schedule_raw.get("refresh_interval_ms", DEFAULT_REFRESH_INTERVAL_MS),
                default_period=schedule_raw.get("default_period", DEFAULT_PERIOD.value),
            ),
            telemetry=TelemetryConfig(
                enabled=bool(telemetry_raw.get("enabled", False)),
                listen_address=str(telemetry_raw.get("listen_address", TelemetryConfig.listen_address)),
                listen_port=int(telemetry_raw.get("listen_port", TelemetryConfig.listen_port)),
                path=str(telemetry_raw.get("path", TelemetryConfig.path)),
                metric_prefix=str(telemetry_raw.get("metric_prefix", TelemetryConfig.metric_prefix)),
            ),
            logging_level=str(logging_raw.get("level", "INFO")),
        )
    except ConfigError:
        raise
    except (ValueError, TypeError) as e:
        raise ConfigError(f"Configuration validation failed: {e}")


def load_config(config_path: Optional[str] = None, environ: Optional[Dict[str, str]] = None) -> MonitorConfig:
    """
    Load and validate monitor configuration

    Args:
        config_path: Path to YAML configuration file; None uses defaults only
        environ: Environment mapping, os.environ by default

    Returns:
        Validated MonitorConfig instance

    Raises:
        ConfigError: If configuration cannot be loaded or is invalid
    """
    raw = _load_raw_config(config_path) if config_path else {}
    return build_config(raw, environ=environ)


def apply_cli_overrides(config: MonitorConfig, **overrides) -> MonitorConfig:
    """
    Apply command-line overrides to configuration

    Args:
        config: Base configuration
        **overrides: base_url, period, interval_ms, log_level; None values are ignored

    Returns:
        Updated copy of the configuration

    Raises:
        ConfigError: If overrides are invalid
    """
    updated = copy.deepcopy(config)
    try:
        if overrides.get("base_url"):
            updated.api.base_url = overrides["base_url"]
        if overrides.get("period"):
            updated.schedule.default_period = overrides["period"]
        if overrides.get("interval_ms") is not None:
            updated.schedule.refresh_interval_ms = overrides["interval_ms"]
        if overrides.get("log_level"):
            updated.logging_level = overrides["log_level"]

        # Re-validate after overrides
        updated.api.__post_init__()
        updated.schedule.__post_init__()
        updated.__post_init__()
    except (ValueError, TypeError) as e:
        raise ConfigError(f"Failed to apply CLI overrides: {e}")
    return updated
