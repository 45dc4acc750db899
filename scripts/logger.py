#!/usr/bin/env python3
"""
Structured Logging Module for the PHP Worker Calculators

This module provides logging for calculator and load test runs: a console
handler on stderr (stdout is reserved for reports and JSON output) and
rotating JSON-lines files for later inspection.

Usage:
    from scripts.logger import CalculatorLogger
    logger = CalculatorLogger('fpm-calculator', settings)
    logger.log_run_start('fpm', settings)
    logger.log_probe(snapshot)
    logger.log_result(result)
"""

import json
import logging
import logging.handlers
import os
import sys
from dataclasses import asdict, is_dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from config.config_manager import LoggingSettings

APP_NAME = "php-worker-calculator"


def default_log_dir() -> Path:
    """$XDG_STATE_HOME/php-worker-calculator/logs, or ~/.local/state/... when unset"""
    state_home = os.environ.get("XDG_STATE_HOME") or str(Path.home() / ".local" / "state")
    return Path(state_home) / APP_NAME / "logs"


class JSONFormatter(logging.Formatter):
    """Render log records as single-line JSON documents"""

    def __init__(self, operation_name: str, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.operation_name = operation_name

    def format(self, record):
        log_entry = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'operation': self.operation_name
        }

        # Add extra fields if present
        if hasattr(record, 'extra_fields'):
            log_entry.update(record.extra_fields)

        return json.dumps(log_entry, default=str)


class CalculatorLogger:
    """Structured logger for calculator and load test runs"""

    def __init__(self, operation_name: str, settings: Optional[LoggingSettings] = None, verbose: bool = False):
        """Initialize logger with settings"""
        self.operation_name = operation_name
        self.settings = settings or LoggingSettings()
        self.verbose = verbose
        self.start_time = None
        self.file_logging_error = None

        self._setup_logging()

    @property
    def log_dir(self) -> Path:
        if self.settings.log_dir:
            return Path(self.settings.log_dir)
        return default_log_dir()

    def _setup_logging(self):
        """Setup console and rotating file handlers"""
        self.logger = logging.getLogger(f"calculator.{self.operation_name}")
        self.logger.setLevel(logging.DEBUG)
        self.logger.propagate = False

        # Clear existing handlers
        for handler in list(self.logger.handlers):
            handler.close()
        self.logger.handlers.clear()

        # Console handler writes to stderr so reports on stdout stay parseable
        console_handler = logging.StreamHandler(sys.stderr)
        console_level = logging.INFO if self.verbose else getattr(logging, self.settings.level, logging.WARNING)
        console_handler.setLevel(console_level)
        console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
        self.logger.addHandler(console_handler)

        if not self.settings.file_logging:
            return

        log_dir = self.log_dir
        file_handlers = []
        try:
            log_dir.mkdir(parents=True, exist_ok=True)

            # File handler with JSON structured logging
            file_handler = logging.handlers.RotatingFileHandler(
                log_dir / f"{self.operation_name}.log",
                maxBytes=5*1024*1024,  # 5MB
                backupCount=3
            )
            file_handler.setLevel(logging.DEBUG)
            file_handlers.append(file_handler)

            # Error file handler
            error_handler = logging.handlers.RotatingFileHandler(
                log_dir / f"{self.operation_name}-errors.log",
                maxBytes=1024*1024,  # 1MB
                backupCount=3
            )
            error_handler.setLevel(logging.ERROR)
            file_handlers.append(error_handler)
        except OSError as e:
            # Fall back to console-only logging
            for handler in file_handlers:
                handler.close()
            self.file_logging_error = str(e)
            self.logger.warning(f"File logging disabled, cannot write to {log_dir}: {e}")
            return

        for handler in file_handlers:
            handler.setFormatter(JSONFormatter(self.operation_name))
            self.logger.addHandler(handler)

    def close(self):
        """Flush and detach all handlers"""
        for handler in list(self.logger.handlers):
            handler.flush()
            handler.close()
        self.logger.handlers.clear()

    def log_run_start(self, model: str, settings: Any):
        """Log the start of a run with the settings it uses"""
        self.start_time = datetime.now()
        extra_fields = {
            'event_type': 'run_start',
            'model': model,
            'settings': asdict(settings) if is_dataclass(settings) else settings,
            'start_time': self.start_time.isoformat()
        }
        self.logger.info(f"Starting {model} sizing run", extra={'extra_fields': extra_fields})

    def log_probe(self, snapshot: Any):
        """Log the host numbers gathered by the resource probe"""
        fields = asdict(snapshot) if is_dataclass(snapshot) else dict(snapshot)
        message = f"Probe: total={fields.get('total_gb')} GB, cpus={fields.get('cpu_count')}, worker={fields.get('worker_mb')} MB"
        self.logger.info(message, extra={'extra_fields': {'event_type': 'probe', **fields}})

    def log_fallback_worker_size(self, pattern: str, fallback_mb: float):
        """Warn that no worker process matched and an estimate is used"""
        message = (
            f"Could not find FrankenPHP processes matching pattern: {pattern}. "
            f"Using estimated {fallback_mb:g} MB per worker (typical for Laravel worker mode)"
        )
        self.log_warning(message, {'pattern': pattern, 'fallback_worker_mb': fallback_mb})

    def log_overhead(self, overhead_mb: float, source: str):
        message = f"Overhead: {overhead_mb:g} MB ({source})"
        self.logger.info(message, extra={'extra_fields': {'event_type': 'overhead', 'overhead_mb': overhead_mb, 'source': source}})

    def log_result(self, result: Any):
        """Log the computed sizing result"""
        data = result.to_dict() if hasattr(result, 'to_dict') else dict(result)
        duration = (datetime.now() - self.start_time).total_seconds() if self.start_time else 0.0
        extra_fields = {'event_type': 'result', 'duration_seconds': duration, 'result': data}
        self.logger.info("Sizing complete", extra={'extra_fields': extra_fields})

    def log_load_step(self, percent: Optional[int], workers: int, url: str):
        """Log one concurrency level of a load test"""
        label = f"{percent}% capacity ({workers} workers)" if percent is not None else f"{workers} workers"
        extra_fields = {'event_type': 'load_step', 'percent': percent, 'workers': workers, 'url': url}
        self.logger.info(f"Load test at {label}", extra={'extra_fields': extra_fields})

    def log_error(self, error: Exception, context: str = None):
        """Log error with context"""
        message = f"{error}"
        extra_fields = {
            'event_type': 'error',
            'error_type': type(error).__name__,
            'error_message': str(error),
            'context': context
        }
        self.logger.error(message, extra={'extra_fields': extra_fields})

    def log_warning(self, message: str, extra_fields: Dict[str, Any] = None):
        """Log warning message"""
        extra_fields = dict(extra_fields or {})
        extra_fields['event_type'] = 'warning'
        self.logger.warning(message, extra={'extra_fields': extra_fields})

    def log_info(self, message: str, extra_fields: Dict[str, Any] = None):
        """Log info message"""
        extra_fields = dict(extra_fields or {})
        extra_fields['event_type'] = 'info'
        self.logger.info(message, extra={'extra_fields': extra_fields})


def create_calculator_logger(operation_name: str, settings: Optional[LoggingSettings] = None,
                             verbose: bool = False) -> CalculatorLogger:
    """Factory function to create a calculator logger"""
    return CalculatorLogger(operation_name, settings, verbose)
