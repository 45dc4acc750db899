from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import psutil

from core.errors import NoWorkersFoundError, ProbeUnavailableError

BYTES_PER_MB = 1024 * 1024


class ResourceProbe(Protocol):
    """Source of raw host numbers for the sizing models."""

    def total_memory_gb(self) -> float: ...

    def cpu_count(self) -> int: ...

    def average_worker_size_mb(self, pattern: str) -> Optional[float]: ...

    def php_ini_value(self, name: str) -> Optional[str]: ...


@dataclass(frozen=True)
class ResourceSnapshot:
    total_gb: float
    cpu_count: int | None
    worker_mb: float
    worker_mb_is_fallback: bool = False


class PhpRuntime:
    """Query the local PHP CLI for ini settings."""

    def __init__(
        self,
        binary: str = "php",
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        timeout: float = 10.0,
    ):
        self.binary = binary
        self._runner = runner
        self.timeout = timeout
        self._logger = logging.getLogger("calculator.php-runtime")

    def is_available(self) -> bool:
        return shutil.which(self.binary) is not None

    def ini_get(self, name: str) -> Optional[str]:
        """Return the ini value as PHP reports it, or None when PHP is unavailable."""
        if not self.is_available():
            self._logger.debug(f"{self.binary} not found on PATH")
            return None
        cmd = [self.binary, "-r", f"echo ini_get('{name}');"]
        try:
            result = self._runner(cmd, capture_output=True, text=True, timeout=self.timeout, check=False)
        except (OSError, subprocess.SubprocessError) as e:
            self._logger.debug(f"Failed to query {name}: {e}")
            return None
        if result.returncode != 0:
            return None
        value = (result.stdout or "").strip()
        return value or None


class PsutilResourceProbe:
    """Read host memory, CPU count and worker sizes through psutil."""

    def __init__(self, php_runtime: PhpRuntime | None = None):
        self.php_runtime = php_runtime or PhpRuntime()
        self._logger = logging.getLogger("calculator.probe")

    def total_memory_gb(self) -> float:
        try:
            total_bytes = psutil.virtual_memory().total
        except (OSError, RuntimeError, AttributeError) as e:
            raise ProbeUnavailableError(f"Unable to detect total RAM on this OS: {e}")
        if not total_bytes:
            raise ProbeUnavailableError("Unable to detect total RAM on this OS.")
        # Whole MiB first, as `free -m` reports it
        total_mib = int(total_bytes) // BYTES_PER_MB
        return round(total_mib / 1024, 2)

    def cpu_count(self) -> int:
        try:
            count = psutil.cpu_count(logical=True)
        except (OSError, RuntimeError) as e:
            raise ProbeUnavailableError(f"Unable to detect CPU count: {e}")
        if not count:
            raise ProbeUnavailableError("Unable to detect CPU count on this OS.")
        return int(count)

    def average_worker_size_mb(self, pattern: str) -> Optional[float]:
        """Average RSS (MB) of processes whose command line matches ``pattern``.

        Returns None when nothing matches.
        """
        regex = re.compile(pattern)
        own_pid = os.getpid()
        total_bytes = 0
        count = 0
        for proc in psutil.process_iter(["pid", "name", "cmdline", "memory_info"]):
            try:
                info = proc.info
                if info.get("pid") == own_pid:
                    continue
                cmdline = info.get("cmdline") or []
                command = " ".join(cmdline) if cmdline else (info.get("name") or "")
                if not command or not regex.search(command):
                    continue
                mem = info.get("memory_info")
                if mem is None:
                    continue
                total_bytes += mem.rss
                count += 1
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue
        self._logger.debug(f"Matched {count} processes for pattern {pattern!r}")
        if count == 0:
            return None
        return round(total_bytes / count / BYTES_PER_MB, 2)

    def php_ini_value(self, name: str) -> Optional[str]:
        return self.php_runtime.ini_get(name)


class StaticResourceProbe:
    """Probe returning fixed numbers; for tests and what-if runs."""

    def __init__(
        self,
        total_gb: float = 1.0,
        cpus: int = 1,
        worker_mb: Optional[float] = None,
        ini_values: Optional[dict] = None,
    ):
        self._total_gb = total_gb
        self._cpus = cpus
        self._worker_mb = worker_mb
        self._ini_values = dict(ini_values or {})
        self.patterns_seen: list[str] = []

    def total_memory_gb(self) -> float:
        if self._total_gb is None:
            raise ProbeUnavailableError("Unable to detect total RAM on this OS.")
        return self._total_gb

    def cpu_count(self) -> int:
        if self._cpus is None:
            raise ProbeUnavailableError("Unable to detect CPU count on this OS.")
        return self._cpus

    def average_worker_size_mb(self, pattern: str) -> Optional[float]:
        self.patterns_seen.append(pattern)
        return self._worker_mb

    def php_ini_value(self, name: str) -> Optional[str]:
        return self._ini_values.get(name)


def collect_pool_snapshot(probe: ResourceProbe, pattern: str) -> ResourceSnapshot:
    """Gather inputs for php-fpm sizing; a pool with no running children is fatal."""
    total_gb = probe.total_memory_gb()
    worker_mb = probe.average_worker_size_mb(pattern)
    if worker_mb is None:
        raise NoWorkersFoundError(pattern, "php-fpm worker")
    return ResourceSnapshot(total_gb=total_gb, cpu_count=None, worker_mb=worker_mb)


def collect_worker_snapshot(probe: ResourceProbe, pattern: str, fallback_mb: float) -> ResourceSnapshot:
    """Gather inputs for FrankenPHP sizing, substituting ``fallback_mb`` when no worker runs."""
    total_gb = probe.total_memory_gb()
    cpus = probe.cpu_count()
    worker_mb = probe.average_worker_size_mb(pattern)
    if worker_mb is None:
        return ResourceSnapshot(total_gb=total_gb, cpu_count=cpus, worker_mb=float(fallback_mb), worker_mb_is_fallback=True)
    return ResourceSnapshot(total_gb=total_gb, cpu_count=cpus, worker_mb=worker_mb)
