from __future__ import annotations

import json
import logging
import shutil
import subprocess
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from core.errors import LoadDriverError

PROGRESSIVE_PERCENTAGES = (10, 25, 50, 75, 100)
DEFAULT_COOLDOWN_SECONDS = 5.0

INSTALL_HINT = """Install with:
  macOS:   brew install oha
  Linux:   cargo install oha
  Or download from: https://github.com/hatoo/oha"""


@dataclass
class LoadTestRun:
    concurrency: int
    command: List[str]
    returncode: int
    output: str
    percent: Optional[int] = None
    metrics: Optional[Dict] = None

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0

    def to_dict(self) -> Dict:
        data = {
            "concurrency": self.concurrency,
            "percent": self.percent,
            "returncode": self.returncode,
        }
        if self.metrics is not None:
            data["metrics"] = self.metrics
        else:
            data["output"] = self.output
        return data


@dataclass
class ProgressiveReport:
    url: str
    max_workers: int
    duration_seconds: int
    runs: List[LoadTestRun] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "url": self.url,
            "max_workers": self.max_workers,
            "duration_seconds": self.duration_seconds,
            "levels": [r.to_dict() for r in self.runs],
        }


def progressive_levels(max_workers: int, percentages: Tuple[int, ...] = PROGRESSIVE_PERCENTAGES) -> List[Tuple[int, int]]:
    """Return (percent, concurrency) pairs; concurrency is at least 1."""
    return [(pct, max(1, int(max_workers) * pct // 100)) for pct in percentages]


class OhaLoadDriver:
    """Drive HTTP load through the ``oha`` command line tool.

    With an ``on_output`` callback, oha output is streamed line by line as
    it arrives instead of being captured until the run ends. The runner,
    popen and sleep functions are injectable so progressive runs can be
    exercised without spawning processes or waiting.
    """

    def __init__(
        self,
        binary: str = "oha",
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        popen: Callable[..., subprocess.Popen] = subprocess.Popen,
        sleep: Callable[[float], None] = time.sleep,
        logger: logging.Logger | None = None,
    ):
        self.binary = binary
        self._runner = runner
        self._popen = popen
        self._sleep = sleep
        self._logger = logger or logging.getLogger("calculator.load-driver")

    def ensure_available(self) -> None:
        if shutil.which(self.binary) is None:
            raise LoadDriverError(f"{self.binary} is not installed\n\n{INSTALL_HINT}")

    def build_command(self, url: str, concurrency: int, duration: int, json_output: bool = False) -> List[str]:
        cmd = [self.binary, "-z", f"{int(duration)}s", "-c", str(int(concurrency)), "--no-tui"]
        if json_output:
            cmd.append("--json")
        cmd.append(url)
        return cmd

    def run(
        self,
        url: str,
        concurrency: int,
        duration: int,
        json_output: bool = False,
        percent: Optional[int] = None,
        on_output: Callable[[str], None] | None = None,
    ) -> LoadTestRun:
        cmd = self.build_command(url, concurrency, duration, json_output)
        self._logger.info(f"Running: {' '.join(cmd)}")
        if on_output is not None:
            returncode, output = self._stream(cmd, on_output)
        else:
            returncode, output = self._capture(cmd)
        metrics = self._parse_metrics(output) if json_output and returncode == 0 else None
        return LoadTestRun(
            concurrency=int(concurrency),
            command=cmd,
            returncode=returncode,
            output=output,
            percent=percent,
            metrics=metrics,
        )

    def _capture(self, cmd: List[str]) -> Tuple[int, str]:
        try:
            result = self._runner(cmd, capture_output=True, text=True, check=False)
        except OSError as e:
            raise LoadDriverError(f"Failed to start {self.binary}: {e}")
        output = result.stdout or ""
        if result.returncode != 0 and result.stderr:
            output = output + result.stderr
        return result.returncode, output

    def _stream(self, cmd: List[str], on_output: Callable[[str], None]) -> Tuple[int, str]:
        try:
            process = self._popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True)
        except OSError as e:
            raise LoadDriverError(f"Failed to start {self.binary}: {e}")
        lines = []
        with process:
            for line in process.stdout:
                lines.append(line)
                on_output(line)
            returncode = process.wait()
        return returncode, "".join(lines)

    def run_progressive(
        self,
        url: str,
        max_workers: int,
        duration: int,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        json_output: bool = False,
        on_step: Callable[[int, int], None] | None = None,
        on_result: Callable[[LoadTestRun], None] | None = None,
        on_output: Callable[[str], None] | None = None,
    ) -> ProgressiveReport:
        """Run one load test per ladder level, pausing between levels."""
        report = ProgressiveReport(url=url, max_workers=int(max_workers), duration_seconds=int(duration))
        levels = progressive_levels(max_workers)
        for index, (percent, workers) in enumerate(levels):
            if on_step:
                on_step(percent, workers)
            run = self.run(url, workers, duration, json_output=json_output, percent=percent, on_output=on_output)
            report.runs.append(run)
            if on_result:
                on_result(run)
            if index < len(levels) - 1 and cooldown_seconds > 0:
                self._logger.info(f"Cooling down for {cooldown_seconds:g} seconds")
                self._sleep(cooldown_seconds)
        return report

    def _parse_metrics(self, output: str) -> Optional[Dict]:
        try:
            data = json.loads(output)
        except json.JSONDecodeError:
            self._logger.warning("oha returned output that is not valid JSON")
            return None
        if isinstance(data, dict) and isinstance(data.get("summary"), dict):
            return data["summary"]
        return data if isinstance(data, dict) else None
