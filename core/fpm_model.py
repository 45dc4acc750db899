from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from core.sizing import available_memory_gb, gb_to_mb, integer_divide_floor

PM_DYNAMIC = "dynamic"
PM_STATIC = "static"
PM_MODES = (PM_DYNAMIC, PM_STATIC)

MIN_SPARE_PERCENT = 10
MAX_SPARE_PERCENT = 30


@dataclass(frozen=True)
class FpmSizing:
    """php-fpm pool sizing for one host snapshot."""

    total_gb: float
    reserved_gb: float
    buffer_percent: float
    worker_mb_avg: float
    available_gb: float
    available_mb: int
    pm_mode: str
    max_children: int
    start_servers: Optional[int] = None
    min_spare_servers: Optional[int] = None
    max_spare_servers: Optional[int] = None

    title = "PHP-FPM Process Calculator (CLI)"
    label_width = 24

    @property
    def is_dynamic(self) -> bool:
        return self.pm_mode == PM_DYNAMIC

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "total_gb": self.total_gb,
            "reserved_gb": self.reserved_gb,
            "buffer_percent": self.buffer_percent,
            "worker_mb_avg": self.worker_mb_avg,
            "available_gb": self.available_gb,
            "available_mb": self.available_mb,
            "pm_mode": self.pm_mode,
            "max_children": self.max_children,
        }
        if self.is_dynamic:
            data["start_servers"] = self.start_servers
            data["min_spare_servers"] = self.min_spare_servers
            data["max_spare_servers"] = self.max_spare_servers
        return data

    def report_sections(self) -> List[List[Tuple[str, str]]]:
        inputs = [
            ("Total RAM (GB)", f"{self.total_gb:.2f}"),
            ("Reserved RAM (GB)", f"{self.reserved_gb:g}"),
            ("RAM Buffer (%)", f"{self.buffer_percent:g}"),
            ("Worker Process (MB)", f"{self.worker_mb_avg:.2f}"),
            ("Available RAM (GB)", f"{self.available_gb:.2f}"),
            ("Available RAM (MB)", str(self.available_mb)),
        ]
        pool = [
            ("pm.mode (selected)", self.pm_mode),
            ("pm.max_children", str(self.max_children)),
        ]
        if self.is_dynamic:
            pool += [
                ("pm.start_servers", str(self.start_servers)),
                ("pm.min_spare_servers", str(self.min_spare_servers)),
                ("pm.max_spare_servers", str(self.max_spare_servers)),
            ]
        return [inputs, pool]

    def config_snippet(self) -> str:
        lines = ["# Suggested php-fpm pool config", f"pm = {self.pm_mode}", f"pm.max_children = {self.max_children}"]
        if self.is_dynamic:
            lines += [
                f"pm.start_servers = {self.start_servers}",
                f"pm.min_spare_servers = {self.min_spare_servers}",
                f"pm.max_spare_servers = {self.max_spare_servers}",
            ]
        else:
            lines.append("# (spare/start values are ignored in static mode)")
        return "\n".join(lines)


def spare_server_bounds(max_children: int) -> Tuple[int, int, int]:
    """Return (start_servers, min_spare_servers, max_spare_servers).

    min spare is 10 % of max_children (at least 1), max spare is 30 % and
    always strictly above min spare; start sits at the midpoint, rounded
    down toward min spare.
    """
    children = max(int(max_children), 0)
    min_spare = max(1, children * MIN_SPARE_PERCENT // 100)
    max_spare = children * MAX_SPARE_PERCENT // 100
    if max_spare <= min_spare:
        max_spare = min_spare + 1
    start = min_spare + (max_spare - min_spare) // 2
    return start, min_spare, max_spare


def compute_fpm_sizing(
    total_gb: float,
    reserved_gb: float,
    buffer_percent: float,
    worker_mb: float,
    pm_mode: str = PM_DYNAMIC,
) -> FpmSizing:
    """Size a php-fpm pool.

    A ``worker_mb`` of zero or less yields ``max_children == 0``, which
    callers must treat as "no safe capacity".
    """
    available_gb = available_memory_gb(total_gb, reserved_gb, buffer_percent)
    available_mb = gb_to_mb(available_gb)
    max_children = integer_divide_floor(available_mb, worker_mb)

    start = min_spare = max_spare = None
    if pm_mode == PM_DYNAMIC:
        start, min_spare, max_spare = spare_server_bounds(max_children)

    return FpmSizing(
        total_gb=float(total_gb),
        reserved_gb=float(reserved_gb),
        buffer_percent=float(buffer_percent),
        worker_mb_avg=float(worker_mb),
        available_gb=available_gb,
        available_mb=available_mb,
        pm_mode=pm_mode,
        max_children=max_children,
        start_servers=start,
        min_spare_servers=min_spare,
        max_spare_servers=max_spare,
    )
