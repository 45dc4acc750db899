#!/usr/bin/env python3
"""
PHP-FPM Process Calculator (CLI)

Detects total RAM, measures the average php-fpm worker size (children whose
command line matches "php-fpm: pool"), computes the RAM left for workers as
(Total - Reserved) * (1 - Buffer%) and derives pm.max_children plus the
dynamic pool warmth settings.

Usage:
    fpm-calc
    fpm-calc -r 0.25 -b 10
    fpm-calc --pm static
    fpm-calc --json
    RESERVED_GB=0.5 BUFFER_PERCENT=15 fpm-calc

Notes:
- For pm=static, only pm.max_children is relevant; spare/start values are ignored.
- Re-run under typical load to get a realistic worker MB average.
- Adjust --pool-pattern if your process titles differ, e.g. "php-fpm: pool www".
"""

from __future__ import annotations

import argparse
import os
import sys
from typing import List, Optional

try:
    from config.config_manager import FpmSettings, create_config_manager
    from scripts.logger import CalculatorLogger, create_calculator_logger
except ImportError:
    sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    from config.config_manager import FpmSettings, create_config_manager
    from scripts.logger import CalculatorLogger, create_calculator_logger

from config import __version__
from core.errors import EXIT_NO_CAPACITY, EXIT_OK, CalculatorError, InputValidationError
from core.fpm_model import PM_MODES, FpmSizing, compute_fpm_sizing
from core.probe import PsutilResourceProbe, ResourceProbe, collect_pool_snapshot
from tui.formatters import get_formatter

OPERATION_NAME = "fpm-calculator"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fpm-calc",
        description="PHP-FPM Process Calculator (CLI)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  fpm-calc
  fpm-calc -r 0.25 -b 10
  fpm-calc --pm static
  fpm-calc --json
  RESERVED_GB=0.5 BUFFER_PERCENT=15 fpm-calc
        """
    )
    parser.add_argument('-r', '--reserved', metavar='GB', help='RAM reserved for OS/other processes (default: 1)')
    parser.add_argument('-b', '--buffer', metavar='PERCENT', help='Safety buffer percent (default: 10)')
    parser.add_argument('-p', '--pool-pattern', metavar='STR',
                        help='Command line pattern for php-fpm worker children (default: "php-fpm: pool")')
    parser.add_argument('--pm', metavar='|'.join(PM_MODES), help='Compute settings for pm mode (default: dynamic)')
    parser.add_argument('--json', action='store_true', help='Output JSON instead of table')
    parser.add_argument('--config', metavar='FILE', help='JSON config file with default values')
    parser.add_argument('--verbose', action='store_true', help='Log progress to stderr')
    parser.add_argument('-v', '--version', action='version', version=f"fpm-calc v{__version__}")
    return parser


def calculate(settings: FpmSettings, probe: ResourceProbe, logger: CalculatorLogger) -> FpmSizing:
    """Probe the host and size the pool for ``settings``."""
    logger.log_run_start("fpm", settings)
    snapshot = collect_pool_snapshot(probe, settings.pool_pattern)
    logger.log_probe(snapshot)
    result = compute_fpm_sizing(
        total_gb=snapshot.total_gb,
        reserved_gb=settings.reserved_gb,
        buffer_percent=settings.buffer_percent,
        worker_mb=snapshot.worker_mb,
        pm_mode=settings.pm_mode,
    )
    logger.log_result(result)
    return result


def main(argv: Optional[List[str]] = None, probe: Optional[ResourceProbe] = None) -> int:
    """Main entry point for the php-fpm calculator"""
    args = build_parser().parse_args(argv)

    try:
        config_manager = create_config_manager(args.config)
        settings = config_manager.fpm_settings({
            'reserved_gb': args.reserved,
            'buffer_percent': args.buffer,
            'pool_pattern': args.pool_pattern,
            'pm_mode': args.pm,
            'output_format': 'json' if args.json else None,
        })
        logging_settings = config_manager.logging_settings()
    except InputValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return e.exit_code

    logger = create_calculator_logger(OPERATION_NAME, logging_settings, verbose=args.verbose)
    try:
        result = calculate(settings, probe or PsutilResourceProbe(), logger)
        output = get_formatter(settings.output_format).render(result)
        sys.stdout.write(output)
        if result.max_children == 0:
            logger.log_warning(
                "pm.max_children is 0: no safe capacity for another worker with these settings",
                {'available_mb': result.available_mb, 'worker_mb_avg': result.worker_mb_avg},
            )
            return EXIT_NO_CAPACITY
        return EXIT_OK
    except CalculatorError as e:
        logger.log_error(e, "fpm sizing")
        return e.exit_code
    finally:
        logger.close()


if __name__ == "__main__":
    sys.exit(main())
