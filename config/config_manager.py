#!/usr/bin/env python3
"""
Configuration Management Module for the PHP Worker Calculators

This module builds the immutable settings records each command runs with.
Values are layered, lowest precedence first:

- Built-in defaults
- Optional JSON config file (validated against a JSON schema)
- Environment variables (RESERVED_GB, BUFFER_PERCENT, ...)
- Command line flags

All validation happens here, before any sizing model runs. The sizing core
never reads the environment; it only sees the frozen records built below.

Usage:
    from config.config_manager import ConfigManager
    config_manager = ConfigManager(config_file="config/calculator-config.json")
    settings = config_manager.fpm_settings({"reserved_gb": "0.5"})
    logging_settings = config_manager.logging_settings()
"""

import json
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import jsonschema
from jsonschema import ValidationError

from core.errors import ConfigError, InputValidationError
from core.fpm_model import PM_DYNAMIC, PM_MODES
from core.frankenphp_model import FALLBACK_WORKER_MB

NUMBER_PATTERN = re.compile(r"^[0-9]*\.?[0-9]+$")
INTEGER_PATTERN = re.compile(r"^[0-9]+$")
URL_PATTERN = re.compile(r"^https?://")

OVERHEAD_AUTO = "auto"
CALCULATOR_FORMATS = ("table", "json")
LOAD_TEST_FORMATS = ("summary", "json")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "calculator-config.json"


@dataclass(frozen=True)
class FpmSettings:
    reserved_gb: float = 1.0
    buffer_percent: float = 10.0
    pool_pattern: str = "php-fpm: pool"
    pm_mode: str = PM_DYNAMIC
    output_format: str = "table"


@dataclass(frozen=True)
class FrankenPhpSettings:
    reserved_gb: float = 0.4
    buffer_percent: float = 10.0
    process_pattern: str = "frankenphp"
    worker_multiplier: float = 2.0
    overhead_mb: Optional[float] = None  # None means estimate automatically
    fallback_worker_mb: float = FALLBACK_WORKER_MB
    output_format: str = "table"

    @property
    def overhead_is_auto(self) -> bool:
        return self.overhead_mb is None


@dataclass(frozen=True)
class LoadTestSettings:
    url: str = "http://localhost"
    duration_seconds: int = 30
    workers: int = 10
    max_workers: int = 50
    progressive: bool = False
    cooldown_seconds: float = 5.0
    output_format: str = "summary"


@dataclass(frozen=True)
class LoggingSettings:
    log_dir: Optional[str] = None
    file_logging: bool = True
    level: str = "WARNING"


_NUMBER = {"type": "number", "minimum": 0}
_POSITIVE_INT = {"type": "integer", "minimum": 1}

CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "fpm": {
            "type": "object",
            "properties": {
                "reserved_gb": _NUMBER,
                "buffer_percent": _NUMBER,
                "pool_pattern": {"type": "string", "minLength": 1},
                "pm_mode": {"type": "string", "enum": list(PM_MODES)},
                "output_format": {"type": "string", "enum": list(CALCULATOR_FORMATS)},
            },
            "additionalProperties": False,
        },
        "frankenphp": {
            "type": "object",
            "properties": {
                "reserved_gb": _NUMBER,
                "buffer_percent": _NUMBER,
                "process_pattern": {"type": "string", "minLength": 1},
                "worker_multiplier": _NUMBER,
                "overhead_mb": {"oneOf": [_NUMBER, {"type": "string", "enum": [OVERHEAD_AUTO]}]},
                "fallback_worker_mb": _NUMBER,
                "output_format": {"type": "string", "enum": list(CALCULATOR_FORMATS)},
            },
            "additionalProperties": False,
        },
        "load_test": {
            "type": "object",
            "properties": {
                "url": {"type": "string", "pattern": "^https?://"},
                "duration_seconds": _POSITIVE_INT,
                "workers": _POSITIVE_INT,
                "max_workers": _POSITIVE_INT,
                "progressive": {"type": "boolean"},
                "cooldown_seconds": _NUMBER,
                "output_format": {"type": "string", "enum": list(LOAD_TEST_FORMATS)},
            },
            "additionalProperties": False,
        },
        "logging": {
            "type": "object",
            "properties": {
                "log_dir": {"type": "string"},
                "file_logging": {"type": "boolean"},
                "level": {"type": "string", "enum": list(LOG_LEVELS)},
            },
            "additionalProperties": False,
        },
    },
    "additionalProperties": False,
}

# Settings field -> environment variable
FPM_ENV = {
    "reserved_gb": "RESERVED_GB",
    "buffer_percent": "BUFFER_PERCENT",
    "pool_pattern": "POOL_NAME_PATTERN",
    "pm_mode": "PM_MODE",
    "output_format": "OUTPUT_FORMAT",
}
FRANKENPHP_ENV = {
    "reserved_gb": "RESERVED_GB",
    "buffer_percent": "BUFFER_PERCENT",
    "process_pattern": "PROCESS_PATTERN",
    "worker_multiplier": "WORKER_MULTIPLIER",
    "overhead_mb": "OVERHEAD_MB",
    "output_format": "OUTPUT_FORMAT",
}
LOAD_TEST_ENV = {
    "url": "URL",
    "duration_seconds": "DURATION",
    "workers": "WORKERS",
    "max_workers": "MAX_WORKERS",
    "output_format": "OUTPUT_FORMAT",
}
LOGGING_ENV = {
    "log_dir": "CALC_LOG_DIR",
    "level": "CALC_LOG_LEVEL",
}


def parse_non_negative(name: str, raw: Any) -> float:
    """Validate a non-negative decimal.

    Strings must look like ``12``, ``0.5`` or ``.25``: no sign and no
    exponent, so "-5" is rejected rather than clamped.
    """
    if isinstance(raw, bool):
        raise InputValidationError(f"{name} must be a non-negative number", field=name)
    if isinstance(raw, (int, float)):
        if raw < 0:
            raise InputValidationError(f"{name} must be a non-negative number", field=name)
        return float(raw)
    text = str(raw).strip()
    if not NUMBER_PATTERN.match(text):
        raise InputValidationError(f"{name} must be a non-negative number (got {raw!r})", field=name)
    return float(text)


def parse_positive_int(name: str, raw: Any) -> int:
    if isinstance(raw, bool):
        raise InputValidationError(f"{name} must be a positive integer", field=name)
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, float) and raw.is_integer():
        value = int(raw)
    else:
        text = str(raw).strip()
        if not INTEGER_PATTERN.match(text):
            raise InputValidationError(f"{name} must be a positive integer (got {raw!r})", field=name)
        value = int(text)
    if value < 1:
        raise InputValidationError(f"{name} must be a positive integer (got {raw!r})", field=name)
    return value


def parse_choice(name: str, raw: Any, choices) -> str:
    value = str(raw).strip()
    if value not in choices:
        raise InputValidationError(f"{name} must be one of {', '.join(choices)} (got {raw!r})", field=name)
    return value


def parse_pattern(name: str, raw: Any) -> str:
    pattern = str(raw)
    if not pattern:
        raise InputValidationError(f"{name} must not be empty", field=name)
    try:
        re.compile(pattern)
    except re.error as e:
        raise InputValidationError(f"{name} is not a valid pattern: {e}", field=name)
    return pattern


def parse_overhead(name: str, raw: Any) -> Optional[float]:
    """Return None for 'auto', else the overhead in MB."""
    if isinstance(raw, str) and raw.strip().lower() == OVERHEAD_AUTO:
        return None
    try:
        return parse_non_negative(name, raw)
    except InputValidationError:
        raise InputValidationError(f"{name} must be a non-negative number of MB or 'auto' (got {raw!r})", field=name)


def parse_url(name: str, raw: Any) -> str:
    url = str(raw).strip()
    if not URL_PATTERN.match(url):
        raise InputValidationError("URL must start with http:// or https://", field=name)
    return url


class ConfigManager:
    """Builds validated, immutable settings from defaults, file, environment and flags"""

    def __init__(self, config_file: Optional[str] = None, environ: Optional[Mapping[str, str]] = None):
        """Initialize configuration manager

        Args:
            config_file: Explicit JSON config path. Falls back to $CALC_CONFIG,
                then to config/calculator-config.json when that file exists.
            environ: Environment mapping (defaults to os.environ)
        """
        self.environ = dict(os.environ if environ is None else environ)
        explicit = config_file or self.environ.get("CALC_CONFIG")
        self.config_path: Optional[Path] = Path(explicit) if explicit else None
        self.file_config = self.load_config()

    def load_config(self) -> Dict[str, Any]:
        """Load and validate the JSON config file

        Returns:
            The parsed document, or an empty dict when no file is configured
            and the default file does not exist.
        """
        path = self.config_path
        if path is None:
            if not DEFAULT_CONFIG_PATH.exists():
                return {}
            path = DEFAULT_CONFIG_PATH
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}", path=str(path))
        try:
            with open(path, "r") as f:
                config = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in configuration file: {e}", path=str(path))
        except OSError as e:
            raise ConfigError(f"Failed to read configuration file: {e}", path=str(path))

        errors = self.validate_config(config)
        if errors:
            raise ConfigError("; ".join(errors), path=str(path))
        return config

    def validate_config(self, config: Dict[str, Any]) -> list:
        """Validate a config document against the schema

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []
        try:
            jsonschema.validate(config, CONFIG_SCHEMA)
        except ValidationError as e:
            location = ".".join(str(p) for p in e.absolute_path) or "<root>"
            errors.append(f"Config validation error at {location}: {e.message}")
        return errors

    def _layer(self, section: str, env_map: Dict[str, str], overrides: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        values: Dict[str, Any] = dict(self.file_config.get(section, {}))
        for field_name, env_name in env_map.items():
            if env_name in self.environ and self.environ[env_name] != "":
                values[field_name] = self.environ[env_name]
        for field_name, value in (overrides or {}).items():
            if value is not None:
                values[field_name] = value
        return values

    def fpm_settings(self, overrides: Optional[Mapping[str, Any]] = None) -> FpmSettings:
        values = self._layer("fpm", FPM_ENV, overrides)
        defaults = FpmSettings()
        return FpmSettings(
            reserved_gb=parse_non_negative("reserved", values.get("reserved_gb", defaults.reserved_gb)),
            buffer_percent=parse_non_negative("buffer", values.get("buffer_percent", defaults.buffer_percent)),
            pool_pattern=parse_pattern("pool-pattern", values.get("pool_pattern", defaults.pool_pattern)),
            pm_mode=parse_choice("pm", values.get("pm_mode", defaults.pm_mode), PM_MODES),
            output_format=parse_choice("format", values.get("output_format", defaults.output_format), CALCULATOR_FORMATS),
        )

    def frankenphp_settings(self, overrides: Optional[Mapping[str, Any]] = None) -> FrankenPhpSettings:
        values = self._layer("frankenphp", FRANKENPHP_ENV, overrides)
        defaults = FrankenPhpSettings()
        return FrankenPhpSettings(
            reserved_gb=parse_non_negative("reserved", values.get("reserved_gb", defaults.reserved_gb)),
            buffer_percent=parse_non_negative("buffer", values.get("buffer_percent", defaults.buffer_percent)),
            process_pattern=parse_pattern("process-pattern", values.get("process_pattern", defaults.process_pattern)),
            worker_multiplier=parse_non_negative("multiplier", values.get("worker_multiplier", defaults.worker_multiplier)),
            overhead_mb=parse_overhead("overhead", values.get("overhead_mb", OVERHEAD_AUTO)),
            fallback_worker_mb=parse_non_negative(
                "fallback_worker_mb", values.get("fallback_worker_mb", defaults.fallback_worker_mb)
            ),
            output_format=parse_choice("format", values.get("output_format", defaults.output_format), CALCULATOR_FORMATS),
        )

    def load_test_settings(self, overrides: Optional[Mapping[str, Any]] = None) -> LoadTestSettings:
        values = self._layer("load_test", LOAD_TEST_ENV, overrides)
        defaults = LoadTestSettings()
        return LoadTestSettings(
            url=parse_url("url", values.get("url", defaults.url)),
            duration_seconds=parse_positive_int("duration", values.get("duration_seconds", defaults.duration_seconds)),
            workers=parse_positive_int("workers", values.get("workers", defaults.workers)),
            max_workers=parse_positive_int("max", values.get("max_workers", defaults.max_workers)),
            progressive=bool(values.get("progressive", defaults.progressive)),
            cooldown_seconds=parse_non_negative("cooldown", values.get("cooldown_seconds", defaults.cooldown_seconds)),
            output_format=parse_choice("format", values.get("output_format", defaults.output_format), LOAD_TEST_FORMATS),
        )

    def logging_settings(self, overrides: Optional[Mapping[str, Any]] = None) -> LoggingSettings:
        values = self._layer("logging", LOGGING_ENV, overrides)
        defaults = LoggingSettings()
        return LoggingSettings(
            log_dir=values.get("log_dir", defaults.log_dir),
            file_logging=bool(values.get("file_logging", defaults.file_logging)),
            level=parse_choice("log level", str(values.get("level", defaults.level)).upper(), LOG_LEVELS),
        )


def create_config_manager(config_file: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> ConfigManager:
    """Factory function to create configuration manager"""
    return ConfigManager(config_file, environ)
