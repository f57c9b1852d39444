"""Telegram messages for employees and the owner, plus in-app notifications."""
import json
import logging

import requests

from models import db, Notification
from utils import format_date_id, format_rupiah

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = 'https://api.telegram.org/bot{token}/sendMessage'

POSITION_LABELS = {
    'pelayan': 'Pelayan',
    'dapur': 'Dapur',
    'kasir': 'Kasir',
    'stok': 'Stok',
    'manager': 'Manager',
}


class TelegramNotifier:
    """Fire-and-forget sender; does nothing when no bot token is configured."""

    def __init__(self, token=None, timeout=10):
        self.token = token
        self.timeout = timeout

    @property
    def enabled(self):
        return bool(self.token)

    def send(self, chat_id, text):
        if not self.enabled or not chat_id:
            return False
        try:
            response = requests.post(
                TELEGRAM_API_URL.format(token=self.token),
                json={'chat_id': chat_id, 'text': text, 'parse_mode': 'HTML'},
                timeout=self.timeout,
            )
            if response.status_code != 200:
                logger.warning("Telegram error: %s - %s", response.status_code, response.text)
                return False
            return True
        except requests.exceptions.RequestException as e:
            logger.warning("Telegram connection error: %s", e)
            return False


def create_notification(type, title, message, user_id=None, data=None):
    """Helper function to create a notification"""
    notification = Notification(
        type=type,
        title=title,
        message=message,
        user_id=user_id,
        data=json.dumps(data) if data else None,
    )
    db.session.add(notification)
    db.session.commit()
    return notification


# ============================================
# MESSAGE TEMPLATES
# ============================================

def overtime_approved_message(name, day, hours, pay, notes=None):
    lines = [
        '<b>✅ Permintaan Lembur Disetujui</b>',
        '',
        f'Hai {name},',
        '',
        'Permintaan lembur Anda telah disetujui:',
        '',
        f'📅 <b>Tanggal:</b> {format_date_id(day)}',
        f'⏰ <b>Jam Lembur:</b> {hours:.1f} jam',
        f'💰 <b>Upah Lembur:</b> {format_rupiah(pay)}',
    ]
    if notes:
        lines += ['', f'📝 <b>Catatan Admin:</b> {notes}']
    lines += ['', 'Terima kasih atas kerja keras Anda! 💪']
    return '\n'.join(lines)


def overtime_rejected_message(name, day, hours, reason):
    return '\n'.join([
        '<b>❌ Permintaan Lembur Ditolak</b>',
        '',
        f'Hai {name},',
        '',
        'Permintaan lembur Anda telah ditolak:',
        '',
        f'📅 <b>Tanggal:</b> {format_date_id(day)}',
        f'⏰ <b>Jam Lembur:</b> {hours:.1f} jam',
        '',
        f'📝 <b>Alasan:</b> {reason or "-"}',
        '',
        'Jika ada pertanyaan, silakan hubungi manajer Anda.',
    ])


def connection_check_message(name):
    return '\n'.join([
        '<b>🔔 Test Notifikasi</b>',
        '',
        f'Halo <b>{name}</b>! 👋',
        '',
        'Ini adalah pesan test untuk memastikan notifikasi Telegram Anda berfungsi dengan baik.',
        '',
        'Anda akan menerima notifikasi untuk:',
        '• Persetujuan/Penolakan Lembur',
        '• Pengingat Absensi',
        '• Jadwal Shift',
        '• Slip Gaji',
    ])


def attendance_reminder_message(name, shift_start=None, shift_end=None):
    lines = ['<b>⏰ Pengingat Absensi</b>', '', f'Hai {name},', '',
             'Jangan lupa untuk absen masuk/keluar hari ini!', '']
    if shift_start:
        lines.append(f'🕐 <b>Jam Masuk:</b> {shift_start}')
    if shift_end:
        lines.append(f'🕐 <b>Jam Keluar:</b> {shift_end}')
    lines += ['📍 Pastikan GPS aktif saat absen', '', 'Semangat bekerja! 💪']
    return '\n'.join(lines)


def late_warning_message(name, clock_in_time, expected_time, minutes_late):
    return '\n'.join([
        '<b>⚠️ Peringatan Keterlambatan</b>',
        '',
        f'Hai {name},',
        '',
        'Anda terlambat absen masuk hari ini:',
        '',
        f'⏰ <b>Waktu Absen:</b> {clock_in_time}',
        f'⏰ <b>Waktu Seharusnya:</b> {expected_time}',
        f'⏱️ <b>Terlambat:</b> {minutes_late} menit',
        '',
        'Harap datang tepat waktu. Keterlambatan berulang dapat mempengaruhi rekam absensi Anda.',
    ])


def missing_clock_out_message(name, day, clock_in_time):
    return '\n'.join([
        '<b>🔔 Lupa Absen Keluar?</b>',
        '',
        f'Hai {name},',
        '',
        'Anda belum absen keluar hari ini:',
        '',
        f'📅 <b>Tanggal:</b> {format_date_id(day)}',
        f'🕐 <b>Absen Masuk:</b> {clock_in_time}',
        '',
        'Jangan lupa untuk absen keluar saat selesai kerja!',
    ])


def shift_schedule_message(name, day, shift_start, shift_end, position, break_minutes=None, notes=None):
    lines = [
        '<b>📅 Jadwal Shift Anda</b>',
        '',
        f'Hai {name},',
        '',
        f'📅 <b>Tanggal:</b> {format_date_id(day)}',
        f'⏰ <b>Jam Masuk:</b> {shift_start}',
        f'⏰ <b>Jam Keluar:</b> {shift_end}',
        f'👔 <b>Posisi:</b> {POSITION_LABELS.get(position, position)}',
    ]
    if break_minutes:
        lines.append(f'☕ <b>Istirahat:</b> {break_minutes} menit')
    if notes:
        lines.append(f'📝 <b>Catatan:</b> {notes}')
    lines += ['', 'Sampai jumpa di tempat kerja! 👋']
    return '\n'.join(lines)


def payslip_message(name, month, year, payroll):
    return '\n'.join([
        '<b>💰 Slip Gaji</b>',
        '',
        f'Hai {name},',
        '',
        f'Gaji Anda untuk periode {month:02d}/{year} telah dibayarkan:',
        '',
        f'💵 <b>Gaji Pokok:</b> {format_rupiah(payroll["basic_salary"])}',
        f'⏰ <b>Lembur:</b> {format_rupiah(payroll["overtime_pay"])}',
        f'➖ <b>Potongan:</b> {format_rupiah(payroll["deductions"])}',
        f'✅ <b>Total Diterima:</b> {format_rupiah(payroll["net_salary"])}',
    ])


def new_order_message(order_number, table_number, customer_name, total):
    return '\n'.join([
        '<b>🛎️ Pesanan Baru</b>',
        '',
        f'🧾 <b>Order:</b> {order_number}',
        f'🪑 <b>Meja:</b> {table_number}',
        f'👤 <b>Pelanggan:</b> {customer_name}',
        f'💰 <b>Total:</b> {format_rupiah(total)}',
    ])


def payment_proof_message(order_number, method, amount):
    return '\n'.join([
        '<b>📎 Bukti Pembayaran Masuk</b>',
        '',
        f'🧾 <b>Order:</b> {order_number}',
        f'💳 <b>Metode:</b> {method.upper()}',
        f'💰 <b>Jumlah:</b> {format_rupiah(amount)}',
        '',
        'Silakan verifikasi pembayaran.',
    ])
