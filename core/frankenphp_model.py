from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from core.sizing import (
    MB_PER_GB,
    available_memory_gb,
    clamp_non_negative,
    gb_to_mb,
    integer_divide_floor,
    round_to,
)

MIN_WORKERS = 2
THREADS_PER_WORKER = 2
MAX_THREADS_PER_THREAD = 2

# Overhead estimate components, in MB
DEFAULT_OPCACHE_MB = 128
RUNTIME_OVERHEAD_MB = 50
CACHE_OVERHEAD_MB = 100

FALLBACK_WORKER_MB = 50.0

_PHP_SHORTHAND = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([KkMmGg]?)\s*$")


@dataclass(frozen=True)
class FrankenPhpSizing:
    """FrankenPHP worker and thread sizing for one host snapshot."""

    total_gb: float
    reserved_gb: float
    buffer_percent: float
    cpu_count: int
    worker_multiplier: float
    worker_mb_avg: float
    overhead_mb: float
    available_gb: float
    available_mb: int
    usable_mb: int
    cpu_based_workers: int
    memory_based_workers: int
    recommended_workers: int
    num_threads: int
    max_threads: int
    estimated_worker_mb: int
    estimated_total_mb: int
    estimated_total_gb: float

    title = "FrankenPHP Worker Calculator (CLI)"
    label_width = 28

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_gb": self.total_gb,
            "reserved_gb": self.reserved_gb,
            "buffer_percent": self.buffer_percent,
            "cpu_count": self.cpu_count,
            "worker_multiplier": self.worker_multiplier,
            "worker_mb_avg": self.worker_mb_avg,
            "overhead_mb": self.overhead_mb,
            "available_gb": self.available_gb,
            "available_mb": self.available_mb,
            "usable_mb": self.usable_mb,
            "cpu_based_workers": self.cpu_based_workers,
            "memory_based_workers": self.memory_based_workers,
            "recommended_workers": self.recommended_workers,
            "num_threads": self.num_threads,
            "max_threads": self.max_threads,
            "estimated_memory": {
                "worker_mb": self.estimated_worker_mb,
                "total_mb": self.estimated_total_mb,
                "total_gb": self.estimated_total_gb,
            },
            "caddyfile": {
                "num": self.recommended_workers,
                "num_threads": self.num_threads,
                "max_threads": self.max_threads,
            },
        }

    def report_sections(self) -> List[List[Tuple[str, str]]]:
        worker_gb = self.estimated_worker_mb / MB_PER_GB
        return [
            [
                ("Total RAM (GB)", f"{self.total_gb:.2f}"),
                ("Reserved RAM (GB)", f"{self.reserved_gb:g}"),
                ("RAM Buffer (%)", f"{self.buffer_percent:g}"),
                ("CPU Count", str(self.cpu_count)),
                ("Worker Multiplier (per CPU)", f"{self.worker_multiplier:g}"),
                ("Worker Process (MB)", f"{self.worker_mb_avg:.2f}"),
                ("Overhead (MB)", f"{self.overhead_mb:g}"),
                ("Available RAM (GB)", f"{self.available_gb:.2f}"),
                ("Available RAM (MB)", str(self.available_mb)),
                ("Usable for Workers (MB)", str(self.usable_mb)),
            ],
            [
                ("CPU-based workers", str(self.cpu_based_workers)),
                ("Memory-based workers", str(self.memory_based_workers)),
                ("Recommended workers", f"{self.recommended_workers} (conservative)"),
                ("num_threads", f"{self.num_threads} (2x workers)"),
                ("max_threads", f"{self.max_threads} (burst capacity)"),
            ],
            [
                ("Estimated worker memory", f"{self.estimated_worker_mb} MB ({worker_gb:.2f} GB)"),
                ("Estimated total memory", f"{self.estimated_total_mb} MB ({self.estimated_total_gb:.2f} GB)"),
            ],
        ]

    def config_snippet(self) -> str:
        return f"""# Suggested Caddyfile configuration
{{
  frankenphp {{
    worker {{
      file "/path/to/your/frankenphp-worker.php"
      num {self.recommended_workers}
    }}
    num_threads {self.num_threads}
    max_threads {self.max_threads}
  }}
}}

:8080 {{
  route {{
    root * "/path/to/your/public"
    encode zstd br gzip

    php_server {{
      index frankenphp-worker.php
      try_files {{path}} frankenphp-worker.php
      resolve_root_symlink
      num_threads {self.num_threads}
    }}
  }}
}}"""


def parse_php_memory_value(raw: Optional[str]) -> Optional[float]:
    """Parse a php.ini memory value into MB.

    Accepts PHP shorthand (``64M``, ``1G``, ``524288K``). A bare number is
    read as MB, which is the unit ``opcache.memory_consumption`` uses.
    Returns None for empty or unparseable values.
    """
    if raw is None:
        return None
    match = _PHP_SHORTHAND.match(str(raw))
    if not match:
        return None
    value = float(match.group(1))
    unit = match.group(2).upper()
    if unit == "K":
        return value / 1024
    if unit == "G":
        return value * 1024
    return value


def estimate_overhead_mb(opcache_mb: Optional[float]) -> int:
    """Estimate non-worker memory: OPcache + runtime + caches.

    Falls back to 128 MB of OPcache when the interpreter could not be queried
    or reports a non-positive value.
    """
    if opcache_mb is not None and opcache_mb > 0:
        opcache = int(opcache_mb)
    else:
        opcache = DEFAULT_OPCACHE_MB
    return opcache + RUNTIME_OVERHEAD_MB + CACHE_OVERHEAD_MB


def compute_frankenphp_sizing(
    total_gb: float,
    reserved_gb: float,
    buffer_percent: float,
    cpu_count: int,
    worker_multiplier: float,
    overhead_mb: float,
    worker_mb: float,
) -> FrankenPhpSizing:
    """Size FrankenPHP workers as the smaller of the CPU and memory estimates.

    The recommendation never drops below two workers, even when both
    estimates are zero.
    """
    available_gb = available_memory_gb(total_gb, reserved_gb, buffer_percent)
    available_mb = gb_to_mb(available_gb)
    usable_mb = int(round(clamp_non_negative(available_mb - float(overhead_mb))))

    cpu_based = int(int(cpu_count) * float(worker_multiplier))
    memory_based = integer_divide_floor(usable_mb, worker_mb)
    recommended = max(min(cpu_based, memory_based), MIN_WORKERS)

    num_threads = recommended * THREADS_PER_WORKER
    max_threads = num_threads * MAX_THREADS_PER_THREAD

    estimated_worker_mb = int(round(recommended * float(worker_mb)))
    estimated_total_mb = int(round(estimated_worker_mb + float(overhead_mb)))

    return FrankenPhpSizing(
        total_gb=float(total_gb),
        reserved_gb=float(reserved_gb),
        buffer_percent=float(buffer_percent),
        cpu_count=int(cpu_count),
        worker_multiplier=float(worker_multiplier),
        worker_mb_avg=float(worker_mb),
        overhead_mb=float(overhead_mb),
        available_gb=available_gb,
        available_mb=available_mb,
        usable_mb=usable_mb,
        cpu_based_workers=max(cpu_based, 0),
        memory_based_workers=memory_based,
        recommended_workers=recommended,
        num_threads=num_threads,
        max_threads=max_threads,
        estimated_worker_mb=estimated_worker_mb,
        estimated_total_mb=estimated_total_mb,
        estimated_total_gb=round_to(estimated_total_mb / MB_PER_GB),
    )
