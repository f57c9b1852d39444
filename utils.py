import math
from datetime import datetime, timezone

HARI = ['Senin', 'Selasa', 'Rabu', 'Kamis', 'Jumat', 'Sabtu', 'Minggu']
BULAN = ['Januari', 'Februari', 'Maret', 'April', 'Mei', 'Juni', 'Juli',
         'Agustus', 'September', 'Oktober', 'November', 'Desember']


def utc_now():
    """Return current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


def as_utc(value):
    """Attach UTC to naive datetimes coming back from the database."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def isoformat(value):
    return as_utc(value).isoformat() if value else None


def round_half_up(value):
    """Round to the nearest integer, .5 going up (same as JavaScript Math.round)."""
    return int(math.floor(value + 0.5))


def format_rupiah(value):
    """Format sebagai mata uang Rupiah"""
    try:
        return f"Rp {int(value):,}".replace(",", ".")
    except (ValueError, TypeError):
        return value


def format_date_id(value):
    """Tanggal panjang berbahasa Indonesia, mis. 'Senin, 6 Januari 2025'"""
    return f"{HARI[value.weekday()]}, {value.day} {BULAN[value.month - 1]} {value.year}"


def parse_date(value):
    """Parse YYYY-MM-DD, returning None for empty or malformed input."""
    if not value:
        return None
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except (ValueError, TypeError):
        return None


def parse_time(value):
    """Parse HH:MM or HH:MM:SS."""
    if not value:
        return None
    for fmt in ('%H:%M:%S', '%H:%M'):
        try:
            return datetime.strptime(value, fmt).time()
        except (ValueError, TypeError):
            continue
    return None
