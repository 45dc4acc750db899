import pytest

from core.sizing import (
    available_memory_gb,
    clamp_non_negative,
    gb_to_mb,
    integer_divide_floor,
)


def test_clamp_non_negative():
    assert clamp_non_negative(-3.5) == 0
    assert clamp_non_negative(0) == 0
    assert clamp_non_negative(2.25) == 2.25


def test_available_memory_rounds_to_two_decimals():
    # (0.94 - 0.5) * 0.9 = 0.396
    assert available_memory_gb(0.94, 0.5, 10) == 0.40
    assert available_memory_gb(8, 1, 0) == 7.0


def test_available_memory_buffer_over_100_is_zero_not_error():
    assert available_memory_gb(4, 1, 150) == 0
    assert available_memory_gb(4, 1, 100) == 0


def test_available_memory_reserved_above_total_is_zero():
    assert available_memory_gb(1, 2, 10) == 0
    # Both factors negative must not multiply into a positive value
    assert available_memory_gb(1, 2, 200) == 0


def test_gb_to_mb_rounds_to_nearest():
    assert gb_to_mb(0.40) == 410
    assert gb_to_mb(0.67) == 686
    assert gb_to_mb(0) == 0


def test_integer_divide_floor_guards_zero_and_negative_denominators():
    assert integer_divide_floor(410, 0) == 0
    assert integer_divide_floor(0, 0) == 0
    assert integer_divide_floor(410, -1) == 0


@pytest.mark.parametrize("numerator", [0, 1, 99, 1000, 123456.7])
def test_integer_divide_floor_by_zero_is_zero_for_any_numerator(numerator):
    assert integer_divide_floor(numerator, 0) == 0


def test_integer_divide_floor_truncates_instead_of_rounding():
    # 410 / 7.93 = 51.70..., rounding would give 52
    assert integer_divide_floor(410, 7.93) == 51
    assert integer_divide_floor(99, 100) == 0
    assert integer_divide_floor(408, 50) == 8


def test_integer_divide_floor_never_negative():
    assert integer_divide_floor(-100, 7) == 0


def test_available_memory_monotonic_in_total():
    previous = -1.0
    for tenths in range(0, 200):
        value = available_memory_gb(tenths / 10, 1, 10)
        assert value >= 0
        assert value >= previous
        previous = value


def test_available_memory_monotonic_decreasing_in_buffer():
    for reserved in (0, 0.5, 3, 20):
        previous = None
        for buffer in range(0, 260, 5):
            value = available_memory_gb(16, reserved, buffer)
            assert value >= 0
            if previous is not None:
                assert value <= previous
            previous = value


def test_module_docstring_is_kept():
    import core.sizing
    assert "Shared arithmetic for worker sizing" in core.sizing.__doc__
