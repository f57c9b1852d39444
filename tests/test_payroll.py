from datetime import date, datetime, time, timedelta

import pytest

import payroll


def _at(hour, minute=0, second=0):
    return datetime(2025, 1, 6, hour, minute, second)


class TestLateness:
    def test_within_tolerance_is_not_late(self):
        assert payroll.late_minutes(_at(8, 15), _at(8, 0)) == 0

    def test_late_minutes_exclude_tolerance(self):
        assert payroll.late_minutes(_at(8, 20), _at(8, 0)) == 5

    def test_partial_minutes_are_floored(self):
        assert payroll.late_minutes(_at(8, 16, 30), _at(8, 0)) == 1

    def test_custom_tolerance(self):
        assert payroll.late_minutes(_at(8, 20), _at(8, 0), tolerance=0) == 20

    def test_early_leave(self):
        assert payroll.early_leave_minutes(_at(15, 30), _at(16, 0)) == 30
        assert payroll.early_leave_minutes(_at(16, 10), _at(16, 0)) == 0


def test_scheduled_minutes_wraps_midnight():
    assert payroll.scheduled_minutes(time(8, 0), time(16, 0)) == 480
    assert payroll.scheduled_minutes(time(22, 0), time(6, 0)) == 480


def test_split_worked_minutes():
    assert payroll.split_worked_minutes(540, 420) == {
        'total_hours': 9.0,
        'regular_hours': 7.0,
        'overtime_hours': 2.0,
    }
    assert payroll.split_worked_minutes(-10, 420)['total_hours'] == 0


def test_exactly_planned_minutes_has_no_overtime():
    hours = payroll.split_worked_minutes(420, 420)
    assert hours['overtime_hours'] == 0
    assert hours['regular_hours'] == 7.0


@pytest.mark.parametrize('hours, has_request, expected', [
    (0, False, (False, False)),
    (1.5, False, (True, False)),
    (2, False, (True, False)),
    (3, False, (False, True)),
    (3, True, (True, False)),
])
def test_overtime_decision(hours, has_request, expected):
    assert payroll.overtime_decision(hours, has_request, auto_limit=2) == expected


def test_period_bounds():
    assert payroll.period_bounds(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29), 29)
    with pytest.raises(ValueError):
        payroll.period_bounds(2024, 13)


def test_hourly_rate_by_salary_type():
    assert payroll.hourly_rate('hourly', 20000, 31) == 20000
    assert payroll.hourly_rate('daily', 160000, 31) == 20000
    assert payroll.hourly_rate('monthly', 4960000, 31) == 20000
    with pytest.raises(ValueError):
        payroll.hourly_rate('weekly', 1, 31)


def test_basic_salary_by_salary_type():
    assert payroll.basic_salary('monthly', 3000000, 10, 70) == 3000000
    assert payroll.basic_salary('daily', 150000, 20, 160) == 3000000
    assert payroll.basic_salary('hourly', 20000, 20, 70.5) == 1410000


def test_overtime_pay_uses_multiplier():
    assert payroll.overtime_pay(2, 20000) == 60000
    assert payroll.overtime_pay(2, 20000, multiplier=2) == 80000


def test_compute_payroll_applies_penalties():
    result = payroll.compute_payroll(3000000, 60000, late_days=2, absent_days=1)
    assert result == {
        'basic_salary': 3000000,
        'overtime_pay': 60000,
        'gross_salary': 3060000,
        'deductions': 300000,
        'net_salary': 2760000,
    }


def test_shift_across_midnight_late_check():
    scheduled = datetime(2025, 1, 6, 23, 30)
    assert payroll.late_minutes(scheduled + timedelta(minutes=40), scheduled) == 25
