#!/usr/bin/env python3
"""
FrankenPHP Worker Calculator (CLI)

Detects total RAM and CPU count, measures the average FrankenPHP worker size
(processes matching "frankenphp"), subtracts runtime overhead from the
available RAM and recommends a worker count as the smaller of a CPU-based and
a memory-based estimate, plus num_threads / max_threads settings.

Usage:
    frankenphp-calc
    frankenphp-calc -r 0.2 -b 15
    frankenphp-calc -m 3
    frankenphp-calc -o 200
    frankenphp-calc --json
    RESERVED_GB=0.5 BUFFER_PERCENT=10 OVERHEAD_MB=150 frankenphp-calc

Notes:
- FrankenPHP uses threads (not processes), sharing memory more efficiently than PHP-FPM
- num_threads = 2 x num_workers (handles worker + classic PHP requests)
- max_threads = 2 x num_threads (burst capacity)
- When no worker process is running, 50 MB per worker is assumed

Overhead Detection (--overhead auto):
- Reads opcache.memory_consumption from the PHP CLI (128 MB if unavailable)
- Adds 50 MB for the Caddy/FrankenPHP runtime and 100 MB for caches
- Override with a specific MB value if auto-detection is incorrect
"""

from __future__ import annotations

import argparse
import os
import sys
from typing import List, Optional

try:
    from config.config_manager import FrankenPhpSettings, create_config_manager
    from scripts.logger import CalculatorLogger, create_calculator_logger
except ImportError:
    sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    from config.config_manager import FrankenPhpSettings, create_config_manager
    from scripts.logger import CalculatorLogger, create_calculator_logger

from config import __version__
from core.errors import EXIT_OK, CalculatorError, InputValidationError
from core.frankenphp_model import (
    FrankenPhpSizing,
    compute_frankenphp_sizing,
    estimate_overhead_mb,
    parse_php_memory_value,
)
from core.probe import PsutilResourceProbe, ResourceProbe, collect_worker_snapshot
from tui.formatters import get_formatter

OPERATION_NAME = "frankenphp-calculator"
OPCACHE_SETTING = "opcache.memory_consumption"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="frankenphp-calc",
        description="FrankenPHP Worker Calculator (CLI)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  frankenphp-calc
  frankenphp-calc -r 0.2 -b 15
  frankenphp-calc -m 3
  frankenphp-calc -o 200
  frankenphp-calc --overhead auto
  frankenphp-calc --json
        """
    )
    parser.add_argument('-r', '--reserved', metavar='GB', help='RAM reserved for OS/other processes (default: 0.4)')
    parser.add_argument('-b', '--buffer', metavar='PERCENT', help='Safety buffer percent (default: 10)')
    parser.add_argument('-p', '--process-pattern', metavar='STR',
                        help='Command line pattern for FrankenPHP processes (default: "frankenphp")')
    parser.add_argument('-m', '--multiplier', metavar='NUM',
                        help='Worker multiplier per CPU (default: 2, FrankenPHP recommends 2-4)')
    parser.add_argument('-o', '--overhead', metavar='MB|auto',
                        help="Memory overhead in MB or 'auto' to detect (default: auto)")
    parser.add_argument('--json', action='store_true', help='Output JSON instead of table')
    parser.add_argument('--config', metavar='FILE', help='JSON config file with default values')
    parser.add_argument('--verbose', action='store_true', help='Log progress to stderr')
    parser.add_argument('-v', '--version', action='version', version=f"frankenphp-calc v{__version__}")
    return parser


def resolve_overhead_mb(settings: FrankenPhpSettings, probe: ResourceProbe, logger: CalculatorLogger) -> float:
    """Use the configured overhead, or estimate it from the PHP runtime."""
    if not settings.overhead_is_auto:
        logger.log_overhead(settings.overhead_mb, "configured")
        return settings.overhead_mb
    raw = probe.php_ini_value(OPCACHE_SETTING)
    opcache_mb = parse_php_memory_value(raw)
    overhead = estimate_overhead_mb(opcache_mb)
    source = f"auto, {OPCACHE_SETTING}={raw}" if raw else "auto, OPcache default"
    logger.log_overhead(overhead, source)
    return float(overhead)


def calculate(settings: FrankenPhpSettings, probe: ResourceProbe, logger: CalculatorLogger) -> FrankenPhpSizing:
    """Probe the host and size FrankenPHP workers for ``settings``."""
    logger.log_run_start("frankenphp", settings)
    snapshot = collect_worker_snapshot(probe, settings.process_pattern, settings.fallback_worker_mb)
    if snapshot.worker_mb_is_fallback:
        logger.log_fallback_worker_size(settings.process_pattern, snapshot.worker_mb)
    logger.log_probe(snapshot)
    overhead_mb = resolve_overhead_mb(settings, probe, logger)
    result = compute_frankenphp_sizing(
        total_gb=snapshot.total_gb,
        reserved_gb=settings.reserved_gb,
        buffer_percent=settings.buffer_percent,
        cpu_count=snapshot.cpu_count,
        worker_multiplier=settings.worker_multiplier,
        overhead_mb=overhead_mb,
        worker_mb=snapshot.worker_mb,
    )
    logger.log_result(result)
    return result


def main(argv: Optional[List[str]] = None, probe: Optional[ResourceProbe] = None) -> int:
    """Main entry point for the FrankenPHP calculator"""
    args = build_parser().parse_args(argv)

    try:
        config_manager = create_config_manager(args.config)
        settings = config_manager.frankenphp_settings({
            'reserved_gb': args.reserved,
            'buffer_percent': args.buffer,
            'process_pattern': args.process_pattern,
            'worker_multiplier': args.multiplier,
            'overhead_mb': args.overhead,
            'output_format': 'json' if args.json else None,
        })
        logging_settings = config_manager.logging_settings()
    except InputValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return e.exit_code

    logger = create_calculator_logger(OPERATION_NAME, logging_settings, verbose=args.verbose)
    try:
        result = calculate(settings, probe or PsutilResourceProbe(), logger)
        sys.stdout.write(get_formatter(settings.output_format).render(result))
        return EXIT_OK
    except CalculatorError as e:
        logger.log_error(e, "frankenphp sizing")
        return e.exit_code
    finally:
        logger.close()


if __name__ == "__main__":
    sys.exit(main())
