#!/usr/bin/env python3
"""
Tests for the fpm-calc and frankenphp-calc commands

Probes are injected, so results depend only on the fixed host numbers.
"""
import json
import sys
from pathlib import Path

import pytest

from core.probe import StaticResourceProbe

sys.path.insert(0, str(Path(__file__).parent.parent / "scripts"))
import fpm_calculator
import frankenphp_calculator


class TestFpmCalculator:
    """Test cases for fpm-calc"""

    def test_reference_host(self, pool_probe, capsys):
        code = fpm_calculator.main(["-r", "0.5", "-b", "10"], probe=pool_probe)
        assert code == 0
        out = capsys.readouterr().out
        assert "pm.max_children" in out
        assert "pm.max_children = 51" in out
        assert "pm.start_servers = 10" in out
        assert pool_probe.patterns_seen == ["php-fpm: pool"]

    def test_json_output(self, pool_probe, capsys):
        code = fpm_calculator.main(["-r", "0.5", "--json"], probe=pool_probe)
        assert code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["available_mb"] == 410
        assert data["max_children"] == 51
        assert data["min_spare_servers"] == 5
        assert data["max_spare_servers"] == 15

    def test_static_mode(self, pool_probe, capsys):
        assert fpm_calculator.main(["-r", "0.5", "--pm", "static", "--json"], probe=pool_probe) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["pm_mode"] == "static"
        assert "start_servers" not in data

    def test_environment_values(self, pool_probe, capsys, monkeypatch):
        monkeypatch.setenv("RESERVED_GB", "0.5")
        monkeypatch.setenv("BUFFER_PERCENT", "10")
        monkeypatch.setenv("POOL_NAME_PATTERN", "php-fpm: pool www")
        assert fpm_calculator.main(["--json"], probe=pool_probe) == 0
        assert json.loads(capsys.readouterr().out)["max_children"] == 51
        assert pool_probe.patterns_seen == ["php-fpm: pool www"]

    def test_negative_buffer_is_rejected_before_probing(self, pool_probe, capsys):
        code = fpm_calculator.main(["-b", "-5"], probe=pool_probe)
        assert code == 2
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "Error:" in captured.err
        assert pool_probe.patterns_seen == []

    def test_no_workers(self, capsys):
        code = fpm_calculator.main([], probe=StaticResourceProbe(total_gb=2, worker_mb=None))
        assert code == 3
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "ERROR: Could not find php-fpm worker processes matching pattern: php-fpm: pool" in captured.err

    def test_probe_unavailable(self, capsys):
        code = fpm_calculator.main([], probe=StaticResourceProbe(total_gb=None, worker_mb=10))
        assert code == 4
        assert "Unable to detect total RAM" in capsys.readouterr().err

    def test_no_capacity_still_prints_report(self, capsys):
        code = fpm_calculator.main(["--json"], probe=StaticResourceProbe(total_gb=8, worker_mb=0))
        assert code == 5
        captured = capsys.readouterr()
        assert json.loads(captured.out)["max_children"] == 0
        assert "pm.max_children is 0" in captured.err

    def test_config_file(self, pool_probe, tmp_path, sample_config, capsys):
        path = tmp_path / "calculator-config.json"
        path.write_text(json.dumps(sample_config))
        assert fpm_calculator.main(["--config", str(path), "--json"], probe=pool_probe) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["pm_mode"] == "static"
        assert data["buffer_percent"] == 15.0

    def test_bad_config_file(self, pool_probe, tmp_path, capsys):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"fpm": {"pm_mode": "ondemand"}}))
        assert fpm_calculator.main(["--config", str(path)], probe=pool_probe) == 2
        assert "Config validation error" in capsys.readouterr().err

    def test_unusable_log_dir_does_not_stop_the_run(self, pool_probe, tmp_path, monkeypatch, capsys):
        blocker = tmp_path / "afile"
        blocker.write_text("not a directory")
        monkeypatch.setenv("CALC_LOG_DIR", str(blocker / "logs"))
        assert fpm_calculator.main(["-r", "0.5", "--json"], probe=pool_probe) == 0
        captured = capsys.readouterr()
        assert json.loads(captured.out)["max_children"] == 51
        assert "File logging disabled" in captured.err

    def test_builds_settings_and_logger_through_factories(self, pool_probe, tmp_path, sample_config, mocker, capsys):
        path = tmp_path / "calculator-config.json"
        path.write_text(json.dumps(sample_config))
        config_factory = mocker.patch.object(fpm_calculator, "create_config_manager",
                                             wraps=fpm_calculator.create_config_manager)
        logger_factory = mocker.patch.object(fpm_calculator, "create_calculator_logger",
                                             wraps=fpm_calculator.create_calculator_logger)
        assert fpm_calculator.main(["--config", str(path), "--verbose"], probe=pool_probe) == 0
        config_factory.assert_called_once_with(str(path))
        assert logger_factory.call_args[0][0] == "fpm-calculator"
        assert logger_factory.call_args[1] == {"verbose": True}

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            fpm_calculator.main(["--version"])
        assert exc_info.value.code == 0
        assert "fpm-calc v" in capsys.readouterr().out


class TestFrankenPhpCalculator:
    """Test cases for frankenphp-calc"""

    def test_reference_host(self, worker_probe, capsys):
        code = frankenphp_calculator.main(["-r", "0.2", "-o", "278", "--json"], probe=worker_probe)
        assert code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["recommended_workers"] == 2
        assert data["cpu_based_workers"] == 2
        assert data["memory_based_workers"] == 8
        assert data["caddyfile"] == {"num": 2, "num_threads": 4, "max_threads": 8}

    def test_fallback_worker_size_warning(self, capsys):
        probe = StaticResourceProbe(total_gb=0.94, cpus=1, worker_mb=None)
        code = frankenphp_calculator.main(["-r", "0.2", "-o", "278", "--json"], probe=probe)
        assert code == 0
        captured = capsys.readouterr()
        assert json.loads(captured.out)["worker_mb_avg"] == 50.0
        assert "Could not find FrankenPHP processes matching pattern: frankenphp" in captured.err
        assert "Using estimated 50 MB per worker" in captured.err

    def test_auto_overhead_uses_opcache_setting(self, capsys):
        probe = StaticResourceProbe(total_gb=4, cpus=4, worker_mb=50,
                                    ini_values={"opcache.memory_consumption": "256"})
        assert frankenphp_calculator.main(["--json"], probe=probe) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["overhead_mb"] == 406

    def test_auto_overhead_defaults_without_php(self, worker_probe, capsys):
        assert frankenphp_calculator.main(["-o", "auto", "--json"], probe=worker_probe) == 0
        assert json.loads(capsys.readouterr().out)["overhead_mb"] == 278

    def test_table_output(self, worker_probe, capsys):
        assert frankenphp_calculator.main(["-r", "0.2"], probe=worker_probe) == 0
        out = capsys.readouterr().out
        assert "FrankenPHP Worker Calculator (CLI)" in out
        assert "frankenphp {" in out

    def test_cpu_count_unavailable(self, capsys):
        probe = StaticResourceProbe(total_gb=2, cpus=None, worker_mb=50)
        assert frankenphp_calculator.main([], probe=probe) == 4
        assert capsys.readouterr().out == ""

    @pytest.mark.parametrize("argv", [["-m", "two"], ["-o", "-10"], ["-r", "abc"], ["-p", "frankenphp ("]])
    def test_invalid_input(self, worker_probe, argv, capsys):
        assert frankenphp_calculator.main(argv, probe=worker_probe) == 2
        assert capsys.readouterr().out == ""
