"""
Pytest configuration for the PHP worker calculator tests

This file contains shared fixtures and configuration for all tests.
"""

import pytest
from unittest.mock import Mock

from core.probe import StaticResourceProbe

CALCULATOR_ENV_VARS = [
    "RESERVED_GB",
    "BUFFER_PERCENT",
    "POOL_NAME_PATTERN",
    "PM_MODE",
    "OUTPUT_FORMAT",
    "PROCESS_PATTERN",
    "WORKER_MULTIPLIER",
    "OVERHEAD_MB",
    "URL",
    "DURATION",
    "WORKERS",
    "MAX_WORKERS",
    "CALC_CONFIG",
    "CALC_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep host environment variables out of the tests and log to a temp dir"""
    for name in CALCULATOR_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    log_dir = tmp_path / "logs"
    monkeypatch.setenv("CALC_LOG_DIR", str(log_dir))
    yield log_dir


@pytest.fixture
def pool_probe():
    """Host from the php-fpm reference scenario: 0.94 GB RAM, 7.93 MB workers"""
    return StaticResourceProbe(total_gb=0.94, cpus=1, worker_mb=7.93)


@pytest.fixture
def worker_probe():
    """Host from the FrankenPHP reference scenario: 0.94 GB RAM, 1 CPU, 50 MB workers"""
    return StaticResourceProbe(total_gb=0.94, cpus=1, worker_mb=50.0)


@pytest.fixture
def sample_config():
    """Sample calculator configuration file contents"""
    return {
        "fpm": {
            "reserved_gb": 0.5,
            "buffer_percent": 15,
            "pool_pattern": "php-fpm: pool www",
            "pm_mode": "static"
        },
        "frankenphp": {
            "reserved_gb": 0.2,
            "buffer_percent": 10,
            "process_pattern": "frankenphp php-server",
            "worker_multiplier": 3,
            "overhead_mb": 278
        },
        "load_test": {
            "url": "https://example.test/index.php",
            "duration_seconds": 10,
            "workers": 4,
            "max_workers": 20,
            "cooldown_seconds": 0
        },
        "logging": {
            "file_logging": False,
            "level": "ERROR"
        }
    }


@pytest.fixture
def mock_completed_process():
    """Factory for subprocess.CompletedProcess-like results"""
    def _make(stdout="", returncode=0, stderr=""):
        result = Mock()
        result.stdout = stdout
        result.stderr = stderr
        result.returncode = returncode
        return result
    return _make
