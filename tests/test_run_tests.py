#!/usr/bin/env python3
"""
Tests for the run_tests.py wrapper
"""
import sys
from unittest.mock import MagicMock

import run_tests


def test_default_command_runs_whole_suite():
    cmd = run_tests.build_command([])
    assert cmd[:3] == [sys.executable, "-m", "pytest"]
    assert cmd[-1] == "tests/"
    assert not any(arg.startswith("--cov") for arg in cmd)


def test_coverage_covers_every_package():
    cmd = run_tests.build_command(["tests/test_probe.py"], coverage=True)
    assert [a for a in cmd if a.startswith("--cov=")] == ["--cov=core", "--cov=config", "--cov=scripts", "--cov=tui"]
    assert "--cov-report=term-missing" in cmd
    assert cmd[-1] == "tests/test_probe.py"


def test_main_passes_extra_arguments_to_pytest(mocker, capsys):
    run = mocker.patch("run_tests.subprocess.run", return_value=MagicMock(returncode=3))
    assert run_tests.main(["tests/test_cli.py", "--", "-k", "version"]) == 3
    cmd = run.call_args[0][0]
    assert cmd[-3:] == ["tests/test_cli.py", "-k", "version"]
    assert "pytest" in capsys.readouterr().out
