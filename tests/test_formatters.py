"""
Tests for report formatters
"""

import json

import pytest

from core.errors import InputValidationError
from core.fpm_model import PM_STATIC, compute_fpm_sizing
from core.frankenphp_model import compute_frankenphp_sizing
from tui.formatters import JsonFormatter, TableFormatter, get_formatter


@pytest.fixture
def fpm_result():
    return compute_fpm_sizing(0.94, 0.5, 10, 7.93)


@pytest.fixture
def frankenphp_result():
    return compute_frankenphp_sizing(0.94, 0.2, 10, 1, 2, 278, 50)


class TestTableFormatter:

    def test_fpm_report(self, fpm_result):
        output = TableFormatter().render(fpm_result)
        assert "PHP-FPM Process Calculator (CLI)" in output
        assert "pm.max_children" in output
        assert "51" in output
        assert "410" in output
        assert "pm = dynamic" in output
        assert "pm.max_spare_servers = 15" in output

    def test_static_report_omits_spare_rows(self):
        output = TableFormatter().render(compute_fpm_sizing(0.94, 0.5, 10, 7.93, pm_mode=PM_STATIC))
        assert "pm = static" in output
        assert "pm.start_servers" not in output

    def test_frankenphp_report_keeps_caddyfile_braces(self, frankenphp_result):
        output = TableFormatter().render(frankenphp_result)
        assert "FrankenPHP Worker Calculator (CLI)" in output
        assert "try_files {path} frankenphp-worker.php" in output
        assert "num_threads 4" in output
        assert "max_threads 8" in output

    def test_no_ansi_escape_codes(self, fpm_result):
        assert "\x1b[" not in TableFormatter().render(fpm_result)


class TestJsonFormatter:

    def test_fpm_record_is_flat(self, fpm_result):
        data = json.loads(JsonFormatter().render(fpm_result))
        assert data["max_children"] == 51
        assert data["available_mb"] == 410
        assert not any(isinstance(value, dict) for value in data.values())

    def test_frankenphp_record_nests_estimates(self, frankenphp_result):
        data = json.loads(JsonFormatter().render(frankenphp_result))
        assert data["recommended_workers"] == 2
        assert data["caddyfile"]["num_threads"] == 4
        assert data["estimated_memory"]["worker_mb"] == 100

    def test_output_ends_with_newline(self, fpm_result):
        assert JsonFormatter().render(fpm_result).endswith("}\n")


def test_get_formatter():
    assert isinstance(get_formatter("table"), TableFormatter)
    assert isinstance(get_formatter("json"), JsonFormatter)
    with pytest.raises(InputValidationError, match="Unknown output format"):
        get_formatter("yaml")
