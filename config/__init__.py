"""
Configuration Management Package

This package builds the validated, immutable settings used by the PHP worker calculators.
"""

from .config_manager import (
    ConfigManager,
    FpmSettings,
    FrankenPhpSettings,
    LoadTestSettings,
    LoggingSettings,
    create_config_manager,
)
from core.errors import ConfigError

__version__ = "1.0.0"

__all__ = [
    'ConfigManager',
    'ConfigError',
    'FpmSettings',
    'FrankenPhpSettings',
    'LoadTestSettings',
    'LoggingSettings',
    'create_config_manager',
    '__version__',
]
