"""Attendance and salary arithmetic shared by the clock endpoints and payroll generation."""
import calendar
import math
from datetime import date, datetime, timedelta

SALARY_TYPES = ('monthly', 'daily', 'hourly')
HOURS_PER_DAY = 8


def _minutes_between(start, end):
    return (end - start).total_seconds() / 60


def late_minutes(clock_in, scheduled_in, tolerance=15):
    """Minutes late beyond the tolerance window, 0 when on time."""
    delay = _minutes_between(scheduled_in, clock_in)
    if delay <= tolerance:
        return 0
    return math.floor(delay) - tolerance


def early_leave_minutes(clock_out, scheduled_out):
    early = _minutes_between(clock_out, scheduled_out)
    if early <= 0:
        return 0
    return math.floor(early)


def scheduled_minutes(shift_start, shift_end):
    """Length of a shift given two ``time`` values; wraps past midnight."""
    anchor = date(2000, 1, 1)
    start = datetime.combine(anchor, shift_start)
    end = datetime.combine(anchor, shift_end)
    if end <= start:
        end += timedelta(days=1)
    return _minutes_between(start, end)


def split_worked_minutes(worked_minutes, planned_minutes):
    """Split net worked minutes into regular and overtime hours."""
    worked_minutes = max(0, worked_minutes)
    regular = min(worked_minutes, planned_minutes)
    overtime = max(0, worked_minutes - planned_minutes)
    return {
        'total_hours': round(worked_minutes / 60, 2),
        'regular_hours': round(regular / 60, 2),
        'overtime_hours': round(overtime / 60, 2),
    }


def overtime_decision(overtime_hours, has_approved_request=False, auto_limit=2):
    """Return (approved, needs_approval) for a day's overtime."""
    if overtime_hours <= 0:
        return False, False
    if overtime_hours <= auto_limit:
        return True, False
    if has_approved_request:
        return True, False
    return False, True


def period_bounds(year, month):
    """First day, last day and number of days of a payroll month."""
    if not 1 <= month <= 12:
        raise ValueError('Bulan harus antara 1 dan 12')
    days = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, days), days


def hourly_rate(salary_type, salary_amount, days_in_period):
    if salary_type == 'hourly':
        return float(salary_amount)
    if salary_type == 'daily':
        return salary_amount / HOURS_PER_DAY
    if salary_type == 'monthly':
        return salary_amount / (days_in_period * HOURS_PER_DAY)
    raise ValueError(f'Tipe gaji tidak dikenal: {salary_type}')


def overtime_pay(hours, rate, multiplier=1.5):
    return round(hours * rate * multiplier)


def basic_salary(salary_type, salary_amount, worked_days, regular_hours):
    if salary_type == 'monthly':
        return int(salary_amount)
    if salary_type == 'daily':
        return int(salary_amount * worked_days)
    if salary_type == 'hourly':
        return round(salary_amount * regular_hours)
    raise ValueError(f'Tipe gaji tidak dikenal: {salary_type}')


def compute_payroll(basic, overtime_amount, late_days, absent_days,
                    late_penalty=50000, absence_penalty=200000):
    deductions = late_days * late_penalty + absent_days * absence_penalty
    gross = basic + overtime_amount
    return {
        'basic_salary': basic,
        'overtime_pay': overtime_amount,
        'gross_salary': gross,
        'deductions': deductions,
        'net_salary': gross - deductions,
    }
